"""
Tests for the batch coordinator.
"""

import pytest

from consultlog.core.behavior.batch import BatchCoordinator
from consultlog.core.behavior.generator import BehaviorDraftGenerator
from consultlog.core.behavior.models import DraftStatus, EvidenceSelectionMode
from consultlog.shared.exceptions import (
    BatchInProgressError,
    DraftNotFoundError,
    PreflightRejectionError,
    ServiceError,
)


@pytest.fixture
def coordinator(mock_llm):
    return BatchCoordinator(BehaviorDraftGenerator(mock_llm, max_rewrite_attempts=4))


@pytest.fixture
def students(make_group):
    return [
        make_group(student_name="김민수", student_id="10101"),
        make_group(student_name="이서연", student_id="10202"),
        make_group(student_name="박지훈", student_id="10303"),
    ]


def _prompt_of(call) -> str:
    return call.args[1]


@pytest.mark.asyncio
async def test_batch_completes_every_student(coordinator, students, mock_llm, valid_draft):
    drafts = await coordinator.run_batch(students)

    assert [d.student_name for d in drafts] == ["김민수", "이서연", "박지훈"]
    assert all(d.status == DraftStatus.COMPLETED for d in drafts)
    assert all(d.content == valid_draft for d in drafts)
    assert all(d.model == "test-model" for d in drafts)
    assert all(d.generated_at for d in drafts)
    assert coordinator.progress.completed == 3
    assert coordinator.progress.failed == 0
    assert not coordinator.is_running


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_others(coordinator, students, mock_llm, valid_draft):
    async def fake_generate(system_message, prompt, model=None):
        if "이서연" in prompt:
            raise ServiceError("서버 오류 (503)", status_code=503)
        return valid_draft

    mock_llm.generate_with_retry.side_effect = fake_generate

    drafts = await coordinator.run_batch(students)

    statuses = [d.status for d in drafts]
    assert statuses == [DraftStatus.COMPLETED, DraftStatus.FAILED, DraftStatus.COMPLETED]
    assert drafts[1].error_message == "서버 오류 (503)"
    assert drafts[1].content == ""
    assert coordinator.progress.total == 3
    assert coordinator.progress.completed == 2
    assert coordinator.progress.failed == 1


@pytest.mark.asyncio
async def test_students_processed_in_order(coordinator, students, mock_llm):
    await coordinator.run_batch(students)

    names = []
    for call in mock_llm.generate_with_retry.call_args_list:
        prompt = _prompt_of(call)
        names.append(next(s.student_name for s in students if f"- 이름: {s.student_name}" in prompt))
    assert names == ["김민수", "이서연", "박지훈"]


@pytest.mark.asyncio
async def test_progress_updated_before_each_yield(coordinator, students):
    seen = []
    async for student_key, result in coordinator.iter_batch(students):
        seen.append((student_key, coordinator.progress.processed, coordinator.drafts[student_key].status))
        assert result.status == DraftStatus.COMPLETED
        assert coordinator.is_running

    assert seen == [
        ("김민수__10101", 1, DraftStatus.COMPLETED),
        ("이서연__10202", 2, DraftStatus.COMPLETED),
        ("박지훈__10303", 3, DraftStatus.COMPLETED),
    ]


@pytest.mark.asyncio
async def test_validation_failure_records_violations(coordinator, students, mock_llm, invalid_draft):
    mock_llm.generate_with_retry.return_value = invalid_draft

    drafts = await coordinator.run_batch(students[:1])

    assert drafts[0].status == DraftStatus.FAILED
    assert drafts[0].violations == ["명사형 종결어미(받침 ㅁ)로 끝나지 않은 문장: 2."]
    assert "규칙 검증 실패" in drafts[0].error_message
    assert mock_llm.generate_with_retry.await_count == 5


@pytest.mark.asyncio
async def test_preflight_rejects_before_any_call(coordinator, make_group, mock_llm):
    selected = make_group(student_name="김민수", student_id="10101", selected=True)
    empty = make_group(student_name="이서연", student_id="10202")

    with pytest.raises(PreflightRejectionError) as exc_info:
        await coordinator.run_batch([selected, empty], EvidenceSelectionMode.SELECTED_ONLY)

    assert exc_info.value.student_names == ["이서연"]
    assert mock_llm.generate_with_retry.await_count == 0
    assert coordinator.drafts == {}
    assert not coordinator.is_running


@pytest.mark.asyncio
async def test_preflight_leaves_existing_drafts_untouched(coordinator, make_group, valid_draft):
    group = make_group(student_name="김민수", student_id="10101")
    await coordinator.run_batch([group])

    with pytest.raises(PreflightRejectionError):
        await coordinator.run_batch([group], EvidenceSelectionMode.SELECTED_ONLY)

    draft = coordinator.drafts[group.student_key]
    assert draft.status == DraftStatus.COMPLETED
    assert draft.content == valid_draft


@pytest.mark.asyncio
async def test_selected_only_batch_uses_selected_records(coordinator, make_group, mock_llm):
    group = make_group(count=3)
    group.selected_ids = {group.consultations[0].id}

    await coordinator.run_batch([group], EvidenceSelectionMode.SELECTED_ONLY)

    prompt = _prompt_of(mock_llm.generate_with_retry.call_args)
    assert "프롬프트 반영 상담 건수: 1건" in prompt
    assert "전체 상담 건수: 3건" in prompt


@pytest.mark.asyncio
async def test_rerun_resets_to_pending_keeping_text(coordinator, students, mock_llm, valid_draft):
    await coordinator.run_batch(students)
    mock_llm.generate_with_retry.side_effect = ServiceError("서버 오류 (500)")

    results = coordinator.iter_batch(students)
    await results.__anext__()

    # The second and third students have not started yet
    later = coordinator.drafts["이서연__10202"]
    assert later.status == DraftStatus.PENDING
    assert later.content == valid_draft
    await results.aclose()
    assert not coordinator.is_running


@pytest.mark.asyncio
async def test_concurrent_batch_rejected(coordinator, students):
    results = coordinator.iter_batch(students)
    await results.__anext__()

    with pytest.raises(BatchInProgressError):
        await coordinator.run_batch(students)
    with pytest.raises(BatchInProgressError):
        await coordinator.regenerate_one(students[0].student_key)

    await results.aclose()


@pytest.mark.asyncio
async def test_regenerate_one_leaves_others(coordinator, students, mock_llm, valid_draft):
    await coordinator.run_batch(students)
    before = {k: (d.status, d.content, d.generated_at) for k, d in coordinator.drafts.items()}

    mock_llm.generate_with_retry.side_effect = ServiceError("서버 오류 (500)")
    result = await coordinator.regenerate_one("이서연__10202")

    assert result.status == DraftStatus.FAILED
    assert coordinator.drafts["이서연__10202"].status == DraftStatus.FAILED
    for key in ("김민수__10101", "박지훈__10303"):
        draft = coordinator.drafts[key]
        assert (draft.status, draft.content, draft.generated_at) == before[key]


@pytest.mark.asyncio
async def test_regenerate_unknown_student(coordinator):
    with pytest.raises(DraftNotFoundError):
        await coordinator.regenerate_one("없는__학생")


@pytest.mark.asyncio
async def test_regenerate_with_new_group_creates_draft(coordinator, make_group, valid_draft):
    group = make_group(student_name="최유진", student_id="10404", count=1)

    result = await coordinator.regenerate_one(group.student_key, group=group)

    assert result.status == DraftStatus.COMPLETED
    assert coordinator.drafts[group.student_key].consultation_count == 1


@pytest.mark.asyncio
async def test_update_content_is_not_revalidated(coordinator, students):
    await coordinator.run_batch(students[:1])

    draft = coordinator.update_content("김민수__10101", "교사가 직접 고친 문장이다\n두 번째 줄")

    assert draft.content == "교사가 직접 고친 문장이다\n두 번째 줄"
    assert draft.status == DraftStatus.COMPLETED


def test_update_content_unknown_student(coordinator):
    with pytest.raises(DraftNotFoundError):
        coordinator.update_content("없는__학생", "내용")


@pytest.mark.asyncio
async def test_sync_groups_drops_removed_students(coordinator, students, make_group):
    await coordinator.run_batch(students)
    refreshed = make_group(student_name="김민수", student_id="10101", count=5)

    coordinator.sync_groups([refreshed, students[2]])

    assert set(coordinator.drafts) == {"김민수__10101", "박지훈__10303"}
    assert coordinator.drafts["김민수__10101"].consultation_count == 5


@pytest.mark.asyncio
async def test_sync_groups_rejected_while_batch_runs(coordinator, students):
    results = coordinator.iter_batch(students)
    await results.__anext__()

    with pytest.raises(BatchInProgressError):
        coordinator.sync_groups([students[0], students[2]])
    assert "이서연__10202" in coordinator.drafts

    remaining = [result async for _, result in results]

    assert [r.status for r in remaining] == [DraftStatus.COMPLETED, DraftStatus.COMPLETED]
    assert coordinator.progress.completed == 3


@pytest.mark.asyncio
async def test_batch_continues_when_a_draft_vanishes(coordinator, students, mock_llm):
    results = coordinator.iter_batch(students)
    await results.__anext__()
    del coordinator.drafts["이서연__10202"]

    remaining = [(key, result) async for key, result in results]

    assert [key for key, _ in remaining] == ["이서연__10202", "박지훈__10303"]
    assert coordinator.drafts["박지훈__10303"].status == DraftStatus.COMPLETED
    assert mock_llm.generate_with_retry.await_count == 3
