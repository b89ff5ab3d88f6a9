"""
Spreadsheet export of behavior-record drafts.
"""

from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from consultlog.core.behavior.models import BehaviorDraft, STATUS_LABELS, DraftStatus

EXPORT_COLUMNS = [
    ("student_id", "학번", 12),
    ("student_name", "이름", 12),
    ("consultation_count", "상담 건수", 10),
    ("last_consultation_at", "최근 상담", 18),
    ("content", "행발 초안", 80),
    ("status", "상태", 10),
    ("error_message", "오류", 40),
    ("model", "모델", 22),
    ("generated_at", "생성 시각", 20),
]


def draft_to_row(draft: BehaviorDraft) -> Dict[str, Any]:
    """Flat row for one draft."""
    return {
        "student_id": draft.student_id,
        "student_name": draft.student_name,
        "consultation_count": draft.consultation_count,
        "last_consultation_at": draft.last_consultation_at,
        "content": draft.content,
        "status": STATUS_LABELS[DraftStatus(draft.status)],
        "error_message": draft.error_message or "",
        "model": draft.model or "",
        "generated_at": draft.generated_at or "",
    }


def drafts_to_rows(drafts: Sequence[BehaviorDraft]) -> List[Dict[str, Any]]:
    return [draft_to_row(d) for d in drafts]


def build_workbook(drafts: Sequence[BehaviorDraft], sheet_title: str = "행발 초안") -> Workbook:
    """Workbook with a header row and one row per draft."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title

    ws.append([header for _, header, _ in EXPORT_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in drafts_to_rows(drafts):
        ws.append([row[key] for key, _, _ in EXPORT_COLUMNS])

    for index, (_, _, width) in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[ws.cell(row=1, column=index).column_letter].width = width
    for cell in ws["E"][1:]:
        cell.alignment = Alignment(wrap_text=True, vertical="top")

    return wb


def export_drafts(
    drafts: Sequence[BehaviorDraft],
    destination: Optional[Union[str, Path]] = None
) -> Union[Path, bytes]:
    """
    Write drafts as .xlsx.

    Returns:
        The written path when a destination is given, else the file bytes
    """
    wb = build_workbook(drafts)
    if destination is not None:
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(path)
        return path

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
