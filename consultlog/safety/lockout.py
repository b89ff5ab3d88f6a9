"""
Login lockout: a bounded failure counter per account, keyed by the SHA-256
of the normalized email so addresses are never stored in clear.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional

from consultlog.shared.config import settings
from consultlog.shared.exceptions import AccountLockedError
from consultlog.shared.logging import get_logger
from consultlog.store.consultations import ConsultationStore

logger = get_logger(__name__)


@dataclass
class LockStatus:
    """Lock state reported to the login form."""
    is_locked: bool
    failed_attempts: int
    remaining_attempts: int


def normalize_email(value: str) -> str:
    return value.strip().lower()


def build_lock_key(email: str) -> str:
    """Hex SHA-256 of the normalized email."""
    return hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()


class LoginLockout:
    """Tracks failed logins and locks an account at the threshold."""

    def __init__(self, store: ConsultationStore, threshold: Optional[int] = None):
        self.store = store
        self.threshold = threshold or settings.lockout.threshold

    def _status(self, state: dict) -> LockStatus:
        failed = state["failed_attempts"]
        if state["is_locked"]:
            return LockStatus(is_locked=True, failed_attempts=failed, remaining_attempts=0)
        return LockStatus(
            is_locked=False,
            failed_attempts=failed,
            remaining_attempts=max(self.threshold - failed, 0),
        )

    def check(self, email: str) -> LockStatus:
        return self._status(self.store.get_lock(build_lock_key(email)))

    def ensure_unlocked(self, email: str):
        """Raise AccountLockedError when the account is locked."""
        if self.check(email).is_locked:
            raise AccountLockedError("로그인 시도 횟수를 초과하여 계정이 잠겼습니다.")

    def record_failure(self, email: str) -> LockStatus:
        status = self._status(
            self.store.increment_lock_failure(build_lock_key(email), self.threshold)
        )
        if status.is_locked:
            logger.warning("Account locked after repeated login failures")
        return status

    def reset(self, email: str):
        self.store.reset_lock(build_lock_key(email))
