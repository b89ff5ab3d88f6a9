"""
Batch coordinator: runs validated draft generation over a list of students,
one student at a time, tracking per-student status and aggregate progress.
"""

import logging
from contextlib import aclosing
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from consultlog.core.behavior.generator import BehaviorDraftGenerator
from consultlog.core.behavior.models import (
    BatchProgress,
    BehaviorDraft,
    DraftResult,
    DraftStatus,
    EvidenceSelectionMode,
    StudentGroup,
)
from consultlog.shared.exceptions import (
    BatchInProgressError,
    DraftNotFoundError,
    PreflightRejectionError,
    ValidationExhaustedError,
)
from consultlog.shared.logging import get_logger, log_with_context

logger = get_logger(__name__)


class BatchCoordinator:
    """
    Owns the drafts collection for one teacher.

    The coordinator is the only writer of `drafts`; readers get the same
    objects and see status changes as they happen. Students are processed
    strictly in caller order with one outstanding generation call.
    """

    def __init__(self, generator: BehaviorDraftGenerator):
        self.generator = generator
        self.drafts: Dict[str, BehaviorDraft] = {}
        self.groups: Dict[str, StudentGroup] = {}
        self.progress = BatchProgress()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def list_drafts(self) -> List[BehaviorDraft]:
        return list(self.drafts.values())

    def preflight(
        self,
        targets: Sequence[StudentGroup],
        evidence_mode: EvidenceSelectionMode
    ):
        """Reject selected-only runs where a student has nothing selected."""
        if evidence_mode != EvidenceSelectionMode.SELECTED_ONLY:
            return
        missing = [g.student_name for g in targets if not g.selected_consultations]
        if missing:
            raise PreflightRejectionError(missing)

    async def iter_batch(
        self,
        targets: Sequence[StudentGroup],
        evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS,
        model: Optional[str] = None
    ) -> AsyncIterator[Tuple[str, DraftResult]]:
        """
        Generate drafts for every target, yielding after each student.

        Every target is reset to pending first (keeping any earlier text),
        then processed in order. A student's status and the progress counters
        are updated before the pair is yielded and before the next student
        starts. One student's failure never stops the others.

        Raises:
            BatchInProgressError: another batch is running
            PreflightRejectionError: selected-only mode with empty selections
        """
        if self._running:
            raise BatchInProgressError("이미 행발 생성이 진행 중입니다.")
        self.preflight(targets, evidence_mode)

        self._running = True
        try:
            for group in targets:
                self._reset_to_pending(group)
            self.progress = BatchProgress(total=len(targets))
            logger.info(f"Starting draft batch for {len(targets)} student(s)")

            for group in targets:
                result = await self._generate_one(group, evidence_mode, model)
                if result.status == DraftStatus.COMPLETED:
                    self.progress.completed += 1
                else:
                    self.progress.failed += 1
                yield group.student_key, result

            logger.info(
                f"Draft batch finished: {self.progress.completed} completed, "
                f"{self.progress.failed} failed of {self.progress.total}"
            )
        finally:
            self._running = False

    async def run_batch(
        self,
        targets: Sequence[StudentGroup],
        evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS,
        model: Optional[str] = None
    ) -> List[BehaviorDraft]:
        """Run a whole batch and return the targets' drafts in order."""
        async with aclosing(self.iter_batch(targets, evidence_mode, model)) as results:
            async for _ in results:
                pass
        return [self.drafts[g.student_key] for g in targets if g.student_key in self.drafts]

    async def regenerate_one(
        self,
        student_key: str,
        evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS,
        model: Optional[str] = None,
        group: Optional[StudentGroup] = None
    ) -> DraftResult:
        """
        Regenerate a single student's draft, leaving every other draft as is.

        Raises:
            BatchInProgressError: a batch is running
            DraftNotFoundError: no student group known for the key
            PreflightRejectionError: selected-only mode with nothing selected
        """
        if self._running:
            raise BatchInProgressError("이미 행발 생성이 진행 중입니다.")

        group = group or self.groups.get(student_key)
        if group is None:
            raise DraftNotFoundError(f"학생을 찾을 수 없습니다: {student_key}")
        self.preflight([group], evidence_mode)

        if student_key not in self.drafts:
            self._reset_to_pending(group)
        else:
            self.groups[student_key] = group
            self.drafts[student_key].mirror(group)

        self._running = True
        try:
            return await self._generate_one(group, evidence_mode, model)
        finally:
            self._running = False

    def update_content(self, student_key: str, content: str) -> BehaviorDraft:
        """Store user-edited text verbatim; edits are not re-validated."""
        draft = self.drafts.get(student_key)
        if draft is None:
            raise DraftNotFoundError(f"행발 초안을 찾을 수 없습니다: {student_key}")
        draft.content = content
        return draft

    def sync_groups(self, groups: Sequence[StudentGroup]):
        """
        Drop drafts of vanished students and refresh display fields.

        Raises:
            BatchInProgressError: a batch is running
        """
        if self._running:
            raise BatchInProgressError("이미 행발 생성이 진행 중입니다.")
        current = {g.student_key: g for g in groups}
        for key in list(self.drafts):
            if key not in current:
                del self.drafts[key]
                self.groups.pop(key, None)
        for key, group in current.items():
            if key in self.drafts:
                self.groups[key] = group
                self.drafts[key].mirror(group)

    def _reset_to_pending(self, group: StudentGroup):
        key = group.student_key
        self.groups[key] = group
        previous = self.drafts.get(key)
        draft = BehaviorDraft(
            student_key=key,
            student_name=group.student_name,
            student_id=group.student_id,
            content=previous.content if previous else "",
            model=previous.model if previous else None,
            generated_at=previous.generated_at if previous else None,
        )
        draft.mirror(group)
        self.drafts[key] = draft

    async def _generate_one(
        self,
        group: StudentGroup,
        evidence_mode: EvidenceSelectionMode,
        model: Optional[str]
    ) -> DraftResult:
        if group.student_key not in self.drafts:
            self._reset_to_pending(group)
        draft = self.drafts[group.student_key]
        draft.status = DraftStatus.GENERATING
        draft.error_message = None
        draft.violations = []
        log_with_context(
            logger, logging.INFO, "Generating behavior draft",
            student_key=group.student_key, action="generate_draft"
        )

        try:
            content = await self.generator.generate_for_group(group, evidence_mode, model)
        except ValidationExhaustedError as e:
            draft.status = DraftStatus.FAILED
            draft.error_message = str(e)
            draft.violations = list(e.violations)
        except Exception as e:
            logger.error(f"Draft generation failed for {group.student_key}: {str(e)}")
            draft.status = DraftStatus.FAILED
            draft.error_message = str(e) or e.__class__.__name__
        else:
            draft.status = DraftStatus.COMPLETED
            draft.content = content
            draft.model = model or getattr(self.generator.llm, "model", None)
            draft.generated_at = datetime.now().isoformat(timespec="seconds")

        return DraftResult(
            status=draft.status,
            content=draft.content if draft.status == DraftStatus.COMPLETED else "",
            error_message=draft.error_message,
            violations=list(draft.violations),
        )
