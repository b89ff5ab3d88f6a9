"""
Integration test: stored consultations through grouping, generation,
validation and spreadsheet export.
"""

from io import BytesIO
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from openpyxl import load_workbook

from consultlog.core.behavior.batch import BatchCoordinator
from consultlog.core.behavior.generator import BehaviorDraftGenerator
from consultlog.core.behavior.models import ConsultationRecord, DraftStatus
from consultlog.core.behavior.students import group_consultations
from consultlog.export.spreadsheet import export_drafts
from consultlog.shared.llm import LLMClient


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.asyncio
async def test_pipeline_from_store_to_spreadsheet(store, valid_draft):
    for day in range(1, 26):
        store.add_consultation("t1", ConsultationRecord(
            date=f"2024-04-{day:02d}",
            time="09:00",
            student_id="10101",
            student_name="김민수",
            topic="학급 활동",
            original_content=f"{day}일 학급 활동에서 친구를 도움.",
        ))
    store.add_consultation("t1", ConsultationRecord(
        date="2024-04-03",
        time="10:00",
        student_id="10202",
        student_name="이서연",
        original_content="모둠 발표를 준비함.",
    ))

    llm = LLMClient(provider="openai", model="gemma3:4b-it-q4_K_M", api_key="test-key")
    create = AsyncMock(side_effect=[
        # First student: truncated, completed by retry, then rule violation, then valid
        _completion("성실하게 참여하였고"),
        _completion("친구를 잘 도와주었다."),
        _completion(valid_draft),
        # Second student: valid on the first try
        _completion(valid_draft),
    ])
    llm.client.chat.completions.create = create

    groups = group_consultations(store.list_consultations("t1"))
    coordinator = BatchCoordinator(BehaviorDraftGenerator(llm, max_rewrite_attempts=4))

    drafts = await coordinator.run_batch(groups)

    assert [d.status for d in drafts] == [DraftStatus.COMPLETED, DraftStatus.COMPLETED]
    assert all(d.content == valid_draft for d in drafts)
    assert drafts[0].consultation_count == 25
    assert create.await_count == 4

    first_prompt = create.call_args_list[0].kwargs["messages"][1]["content"]
    assert "전체 상담 건수: 25건" in first_prompt
    assert "프롬프트 반영 상담 건수: 20건" in first_prompt
    assert first_prompt.count("| 주제: 학급 활동 |") == 20
    assert "2024-04-25 09:00" in first_prompt
    assert "2024-04-05 09:00" not in first_prompt

    rewrite_prompt = create.call_args_list[2].kwargs["messages"][1]["content"]
    assert "[규칙 위반 목록]" in rewrite_prompt
    assert "친구를 잘 도와주었다." in rewrite_prompt

    ws = load_workbook(BytesIO(export_drafts(drafts))).active
    assert ws.max_row == 3
    assert ws.cell(row=2, column=8).value == "gemma3:4b-it-q4_K_M"
