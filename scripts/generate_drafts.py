"""
CLI entry point for behavior-record draft batches.
"""

import asyncio
import argparse
from pathlib import Path

from consultlog.core.behavior.batch import BatchCoordinator
from consultlog.core.behavior.generator import BehaviorDraftGenerator
from consultlog.core.behavior.models import DraftStatus, EvidenceSelectionMode
from consultlog.core.behavior.students import group_consultations
from consultlog.export.spreadsheet import export_drafts
from consultlog.shared.config import settings
from consultlog.shared.llm import LLMClient
from consultlog.shared.logging import setup_logging
from consultlog.store.consultations import ConsultationStore


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="consultlog behavior-record draft batch")
    parser.add_argument("--teacher-id", required=True, help="Owning teacher identifier")
    parser.add_argument(
        "--student",
        action="append",
        default=None,
        help="Student name to include (repeatable; default: all students)"
    )
    parser.add_argument("--model", default=settings.llm.default_model, help="Model id")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path(settings.store.db_path),
        help="Consultation database path"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("exports/behavior_drafts.xlsx"),
        help="Spreadsheet output path"
    )

    args = parser.parse_args()

    setup_logging()

    store = ConsultationStore(args.db)
    groups = group_consultations(store.list_consultations(args.teacher_id))
    if args.student:
        wanted = set(args.student)
        groups = [g for g in groups if g.student_name in wanted]

    coordinator = BatchCoordinator(BehaviorDraftGenerator(LLMClient()))
    async for student_key, result in coordinator.iter_batch(
        groups, EvidenceSelectionMode.ALL_RECORDS, args.model
    ):
        progress = coordinator.progress
        mark = "OK" if result.status == DraftStatus.COMPLETED else "FAILED"
        print(f"[{progress.processed}/{progress.total}] {student_key}: {mark}")
        if result.error_message:
            print(f"    {result.error_message}")

    path = export_drafts(coordinator.list_drafts(), args.output)

    print("\n" + "=" * 50)
    print("Behavior Draft Summary")
    print("=" * 50)
    print(f"Students: {coordinator.progress.total}")
    print(f"Completed: {coordinator.progress.completed}")
    print(f"Failed: {coordinator.progress.failed}")
    print(f"Spreadsheet: {path}")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(main())
