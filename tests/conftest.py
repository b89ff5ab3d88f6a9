"""
Pytest fixtures for consultlog tests.
"""

import pytest
from typing import List, Optional
from unittest.mock import AsyncMock

from consultlog.core.behavior.models import ConsultationRecord, StudentGroup
from consultlog.store.consultations import ConsultationStore


# Three sentences, each ending in a ㅁ-final syllable, no denylisted phrases
VALID_DRAFT = (
    "친구와 갈등 상황에서 스스로 해결책을 찾으려 노력함. "
    "모둠 활동에서 친구들의 의견을 경청하고 배려하는 태도를 보임. "
    "학급 행사 준비 과정에서 맡은 역할을 끝까지 책임감 있게 수행함."
)

# Second sentence ends in "다"
INVALID_DRAFT = "수업 시간에 적극적으로 발표함. 친구를 잘 도와주었다. 청소 시간에 솔선수범함."


@pytest.fixture
def valid_draft() -> str:
    return VALID_DRAFT


@pytest.fixture
def invalid_draft() -> str:
    return INVALID_DRAFT


@pytest.fixture
def mock_llm():
    """Mock LLM client that returns a valid draft."""
    mock = AsyncMock()
    mock.model = "test-model"
    mock.generate_with_retry.return_value = VALID_DRAFT
    mock.generate.return_value = VALID_DRAFT
    return mock


@pytest.fixture
def make_record():
    """Factory for consultation records."""
    counter = {"n": 0}

    def _make(
        student_name: str = "김민수",
        student_id: str = "10101",
        date: str = "2024-03-04",
        time: str = "09:00",
        topic: Optional[str] = "교우 관계",
        content: Optional[str] = "친구와 다툰 뒤 먼저 사과하고 화해함.",
        ai_summary: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> ConsultationRecord:
        counter["n"] += 1
        return ConsultationRecord(
            id=record_id or f"c{counter['n']}",
            date=date,
            time=time,
            student_id=student_id,
            student_name=student_name,
            topic=topic,
            original_content=content,
            ai_summary=ai_summary,
        )

    return _make


@pytest.fixture
def make_group(make_record):
    """Factory for student groups with `count` records."""

    def _make(
        student_name: str = "김민수",
        student_id: str = "10101",
        count: int = 2,
        selected: bool = False,
    ) -> StudentGroup:
        records: List[ConsultationRecord] = [
            make_record(
                student_name=student_name,
                student_id=student_id,
                date=f"2024-03-{i + 1:02d}",
            )
            for i in range(count)
        ]
        return StudentGroup(
            student_name=student_name,
            student_id=student_id,
            consultations=records,
            selected_ids={r.id for r in records} if selected else set(),
        )

    return _make


@pytest.fixture
def store(tmp_path) -> ConsultationStore:
    """Consultation store in a temporary directory."""
    return ConsultationStore(tmp_path / "consultlog.sqlite")
