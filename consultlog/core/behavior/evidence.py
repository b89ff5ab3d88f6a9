"""
Evidence selection and formatting for draft prompts.
"""

from typing import List, Optional, Sequence

from consultlog.core.behavior.models import (
    ConsultationRecord,
    DraftRequest,
    EvidenceItem,
    EvidenceSelectionMode,
    StudentGroup,
)
from consultlog.core.behavior.normalizer import collapse_whitespace, truncate_chars
from consultlog.shared.config import settings

DEFAULT_TOPIC = "일반 상담"
NO_OBSERVATION = "(관찰 내용 없음)"


def latest_first(records: Sequence[ConsultationRecord]) -> List[ConsultationRecord]:
    """Sort by (date desc, time desc); the fixed formats sort lexically."""
    return sorted(records, key=lambda r: (r.date, r.time), reverse=True)


def to_evidence_item(record: ConsultationRecord, max_chars: int) -> EvidenceItem:
    topic = collapse_whitespace(record.topic) or DEFAULT_TOPIC
    observation = (
        collapse_whitespace(record.original_content)
        or collapse_whitespace(record.ai_summary)
        or NO_OBSERVATION
    )
    return EvidenceItem(
        date=record.date,
        time=record.time,
        topic=topic,
        observation=truncate_chars(observation, max_chars),
    )


def format_evidence(
    records: Sequence[ConsultationRecord],
    max_items: Optional[int] = None,
    max_chars: Optional[int] = None
) -> List[EvidenceItem]:
    """Most recent `max_items` records as evidence lines."""
    max_items = max_items if max_items is not None else settings.behavior.max_consultations
    max_chars = max_chars or settings.behavior.max_note_chars
    return [to_evidence_item(r, max_chars) for r in latest_first(records)[:max_items]]


def build_draft_request(
    group: StudentGroup,
    evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS,
    max_items: Optional[int] = None,
    length_guide: Optional[str] = None
) -> DraftRequest:
    """
    Select a student's records by evidence mode and wrap them for prompting.

    The reported total is the student's full record count, which may exceed
    the number of evidence lines.
    """
    if evidence_mode == EvidenceSelectionMode.SELECTED_ONLY:
        pool = group.selected_consultations
    else:
        pool = group.consultations

    return DraftRequest(
        student_name=group.student_name,
        student_id=group.student_id,
        evidence=format_evidence(pool, max_items=max_items),
        total_count=group.consultation_count,
        evidence_mode=evidence_mode,
        length_guide=length_guide,
    )
