"""
Models for consultation records and behavior-record drafts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Set

from pydantic import BaseModel


class ConsultationRecord(BaseModel):
    """One logged consultation."""
    id: Optional[str] = None
    teacher_id: Optional[str] = None
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    student_id: str = ""
    student_name: str
    topic: Optional[str] = None
    original_content: Optional[str] = None
    ai_summary: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class EvidenceSelectionMode(str, Enum):
    """Which of a student's records feed the prompt."""
    ALL_RECORDS = "all_records"
    SELECTED_ONLY = "selected_only"


class DraftStatus(str, Enum):
    """Lifecycle of one student's draft."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


STATUS_LABELS = {
    DraftStatus.PENDING: "대기",
    DraftStatus.GENERATING: "생성 중",
    DraftStatus.COMPLETED: "완료",
    DraftStatus.FAILED: "실패",
}


@dataclass(frozen=True)
class EvidenceItem:
    """One formatted consultation line for the prompt."""
    date: str
    time: str
    topic: str
    observation: str

    @property
    def line(self) -> str:
        return f"- {self.date} {self.time} | 주제: {self.topic} | 관찰: {self.observation}"


@dataclass
class DraftRequest:
    """Input to one draft generation."""
    student_name: str
    student_id: str
    evidence: List[EvidenceItem]
    total_count: int
    evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS
    length_guide: Optional[str] = None


@dataclass
class ViolationReport:
    """Outcome of validating one candidate draft."""
    violations: List[str] = field(default_factory=list)
    codes: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def add(self, code: str, message: str):
        self.codes.append(code)
        self.violations.append(message)


def build_student_key(student_name: str, student_id: Optional[str]) -> str:
    """Stable key for a student, from name and id."""
    return f"{student_name.strip()}__{(student_id or '').strip() or '-'}"


@dataclass
class StudentGroup:
    """A student's consultation records as one aggregate."""
    student_name: str
    student_id: str
    consultations: List[ConsultationRecord] = field(default_factory=list)
    selected_ids: Set[str] = field(default_factory=set)

    @property
    def student_key(self) -> str:
        return build_student_key(self.student_name, self.student_id)

    @property
    def consultation_count(self) -> int:
        return len(self.consultations)

    @property
    def last_consultation_at(self) -> str:
        """Latest `date time` string, empty when there are no records."""
        stamps = [f"{c.date} {c.time}" for c in self.consultations]
        return max(stamps) if stamps else ""

    @property
    def selected_consultations(self) -> List[ConsultationRecord]:
        return [c for c in self.consultations if c.id and c.id in self.selected_ids]


@dataclass
class BehaviorDraft:
    """Per-student draft, updated in place through status transitions."""
    student_key: str
    student_name: str
    student_id: str
    consultation_count: int = 0
    last_consultation_at: str = ""
    content: str = ""
    status: DraftStatus = DraftStatus.PENDING
    error_message: Optional[str] = None
    violations: List[str] = field(default_factory=list)
    model: Optional[str] = None
    generated_at: Optional[str] = None

    def mirror(self, group: StudentGroup):
        """Copy display fields from the student's current aggregate."""
        self.student_name = group.student_name
        self.student_id = group.student_id
        self.consultation_count = group.consultation_count
        self.last_consultation_at = group.last_consultation_at


@dataclass
class DraftResult:
    """What one student's generation produced."""
    status: DraftStatus
    content: str = ""
    error_message: Optional[str] = None
    violations: List[str] = field(default_factory=list)


@dataclass
class BatchProgress:
    """Aggregate progress of a batch run."""
    total: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.completed + self.failed
