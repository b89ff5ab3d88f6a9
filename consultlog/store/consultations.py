"""
ConsultationStore: SQLite + WAL mode storage for consultation records and
login-lock counters.
"""

import sqlite3
import uuid
from pathlib import Path
from typing import Optional, Dict, Any, List
from datetime import datetime
from contextlib import contextmanager

from consultlog.core.behavior.models import ConsultationRecord
from consultlog.shared.config import settings
from consultlog.shared.exceptions import StoreError
from consultlog.shared.logging import get_logger

logger = get_logger(__name__)

RECORD_COLUMNS = (
    "id", "teacher_id", "date", "time", "student_id", "student_name",
    "topic", "original_content", "ai_summary", "created_at", "updated_at",
)


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


class ConsultationStore:
    """Consultation records queried by owning teacher."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or settings.store.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")

            conn.executescript("""
                CREATE TABLE IF NOT EXISTS consultations (
                    id TEXT PRIMARY KEY,
                    teacher_id TEXT NOT NULL,
                    teacher_email TEXT,
                    date TEXT NOT NULL,
                    time TEXT NOT NULL,
                    student_id TEXT NOT NULL DEFAULT '',
                    student_name TEXT NOT NULL,
                    topic TEXT,
                    original_content TEXT,
                    ai_summary TEXT,
                    created_at TEXT,
                    updated_at TEXT
                );

                CREATE TABLE IF NOT EXISTS login_locks (
                    lock_key TEXT PRIMARY KEY,
                    failed_attempts INTEGER NOT NULL DEFAULT 0,
                    is_locked BOOLEAN NOT NULL DEFAULT 0,
                    locked_at TEXT,
                    updated_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_consultations_teacher ON consultations(teacher_id);
                CREATE INDEX IF NOT EXISTS idx_consultations_date ON consultations(teacher_id, date);
            """)

    @contextmanager
    def _get_connection(self):
        """Get database connection, committing on success."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Consultation store error: {str(e)}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ping(self) -> bool:
        """True when the database answers a trivial query."""
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except StoreError:
            return False

    def add_consultation(
        self,
        teacher_id: str,
        record: ConsultationRecord,
        teacher_email: Optional[str] = None
    ) -> ConsultationRecord:
        """Insert a record and return it with id and timestamps filled in."""
        now = _now()
        stored = record.model_copy(update={
            "id": record.id or uuid.uuid4().hex,
            "teacher_id": teacher_id,
            "created_at": record.created_at or now,
            "updated_at": now,
        })

        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO consultations
                   (id, teacher_id, teacher_email, date, time, student_id, student_name,
                    topic, original_content, ai_summary, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    stored.id, teacher_id, teacher_email, stored.date, stored.time,
                    stored.student_id, stored.student_name, stored.topic,
                    stored.original_content, stored.ai_summary,
                    stored.created_at, stored.updated_at,
                )
            )

        logger.debug(f"Stored consultation {stored.id} for {stored.student_name}")
        return stored

    def list_consultations(
        self,
        teacher_id: str,
        date: Optional[str] = None
    ) -> List[ConsultationRecord]:
        """A teacher's records, newest first, optionally for one date."""
        query = f"SELECT {', '.join(RECORD_COLUMNS)} FROM consultations WHERE teacher_id = ?"
        params: List[Any] = [teacher_id]
        if date:
            query += " AND date = ?"
            params.append(date)
        query += " ORDER BY date DESC, time DESC"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [ConsultationRecord(**dict(row)) for row in rows]

    def get_consultation(self, consultation_id: str) -> Optional[ConsultationRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {', '.join(RECORD_COLUMNS)} FROM consultations WHERE id = ?",
                (consultation_id,)
            ).fetchone()
        return ConsultationRecord(**dict(row)) if row else None

    def update_summary(self, consultation_id: str, ai_summary: Optional[str]) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE consultations SET ai_summary = ?, updated_at = ? WHERE id = ?",
                (ai_summary, _now(), consultation_id)
            )
            return cursor.rowcount > 0

    def delete_consultation(self, consultation_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM consultations WHERE id = ?", (consultation_id,))
            return cursor.rowcount > 0

    def delete_student(self, teacher_id: str, student_name: str) -> int:
        """Delete every record of one student; returns the number removed."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM consultations WHERE teacher_id = ? AND student_name = ?",
                (teacher_id, student_name)
            )
            deleted = cursor.rowcount

        logger.info(f"Deleted {deleted} consultation(s) of {student_name}")
        return deleted

    def get_lock(self, lock_key: str) -> Dict[str, Any]:
        """Lock document for a key; a fresh, unlocked state when absent."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT failed_attempts, is_locked, locked_at FROM login_locks WHERE lock_key = ?",
                (lock_key,)
            ).fetchone()

        if not row:
            return {"failed_attempts": 0, "is_locked": False, "locked_at": None}
        return {
            "failed_attempts": row["failed_attempts"],
            "is_locked": bool(row["is_locked"]),
            "locked_at": row["locked_at"],
        }

    def increment_lock_failure(self, lock_key: str, threshold: int) -> Dict[str, Any]:
        """
        Transactional read-modify-write of the failure counter.

        The counter saturates at `threshold`; reaching it locks the key, and a
        locked key is returned unchanged.
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT failed_attempts, is_locked, locked_at FROM login_locks WHERE lock_key = ?",
                (lock_key,)
            ).fetchone()

            if row and row["is_locked"]:
                return {
                    "failed_attempts": row["failed_attempts"],
                    "is_locked": True,
                    "locked_at": row["locked_at"],
                }

            current = row["failed_attempts"] if row else 0
            failed = min(current + 1, threshold)
            locked = failed >= threshold
            now = _now()
            locked_at = now if locked else None

            conn.execute(
                """INSERT INTO login_locks (lock_key, failed_attempts, is_locked, locked_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(lock_key) DO UPDATE SET
                       failed_attempts = excluded.failed_attempts,
                       is_locked = excluded.is_locked,
                       locked_at = excluded.locked_at,
                       updated_at = excluded.updated_at""",
                (lock_key, failed, int(locked), locked_at, now)
            )

        return {"failed_attempts": failed, "is_locked": locked, "locked_at": locked_at}

    def reset_lock(self, lock_key: str):
        with self._get_connection() as conn:
            conn.execute("DELETE FROM login_locks WHERE lock_key = ?", (lock_key,))
