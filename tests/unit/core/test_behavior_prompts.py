"""
Tests for behavior-draft prompt construction.
"""

from consultlog.core.behavior.models import DraftRequest, EvidenceItem, EvidenceSelectionMode
from consultlog.core.prompt.builder import (
    DEFAULT_LENGTH_GUIDE,
    EMPTY_DRAFT_PLACEHOLDER,
    EMPTY_EVIDENCE_LINE,
    build_initial_prompt,
    build_rewrite_prompt,
)


def _request(evidence=None, total=None, mode=EvidenceSelectionMode.ALL_RECORDS):
    evidence = evidence if evidence is not None else [
        EvidenceItem("2024-04-02", "10:00", "교우 관계", "먼저 사과하고 화해함."),
        EvidenceItem("2024-03-15", "09:30", "학습", "모둠 과제를 주도함."),
    ]
    return DraftRequest(
        student_name="김민수",
        student_id="10101",
        evidence=evidence,
        total_count=total if total is not None else len(evidence),
        evidence_mode=mode,
    )


def test_initial_prompt_contains_identity_and_counts():
    prompt = build_initial_prompt(_request(total=25))

    assert "- 이름: 김민수" in prompt
    assert "- 학번: 10101" in prompt
    assert "전체 상담 건수: 25건" in prompt
    assert "프롬프트 반영 상담 건수: 2건" in prompt
    assert DEFAULT_LENGTH_GUIDE in prompt


def test_initial_prompt_lists_evidence_in_order():
    prompt = build_initial_prompt(_request())

    first = prompt.index("- 2024-04-02 10:00 | 주제: 교우 관계 | 관찰: 먼저 사과하고 화해함.")
    second = prompt.index("- 2024-03-15 09:30 | 주제: 학습 | 관찰: 모둠 과제를 주도함.")
    assert first < second


def test_initial_prompt_without_evidence():
    prompt = build_initial_prompt(_request(evidence=[], total=0))
    assert EMPTY_EVIDENCE_LINE in prompt
    assert "프롬프트 반영 상담 건수: 0건" in prompt


def test_selected_only_instruction():
    prompt = build_initial_prompt(_request(mode=EvidenceSelectionMode.SELECTED_ONLY))
    assert "체크된 상담 기록만 근거로 사용함." in prompt


def test_rewrite_prompt_sections():
    base = build_initial_prompt(_request())

    prompt = build_rewrite_prompt(base, "잘 도와주었다.", ["본문이 비어 있음.", "줄바꿈이 포함됨."])

    assert base in prompt
    assert "[직전 생성 결과]\n잘 도와주었다." in prompt
    assert "1. 본문이 비어 있음.\n2. 줄바꿈이 포함됨." in prompt
    assert prompt.index("[원본 지시]") < prompt.index("[직전 생성 결과]") < prompt.index("[규칙 위반 목록]")


def test_rewrite_prompt_placeholder_for_empty_draft():
    prompt = build_rewrite_prompt("원본", "", ["본문이 비어 있음."])
    assert EMPTY_DRAFT_PLACEHOLDER in prompt
