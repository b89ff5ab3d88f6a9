"""
Behavior-record draft endpoints: student groups, batch generation,
single regeneration, edits, and spreadsheet export.
"""

from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from consultlog.api.dependencies import get_coordinator, get_store
from consultlog.core.behavior.batch import BatchCoordinator
from consultlog.core.behavior.models import BehaviorDraft, EvidenceSelectionMode, StudentGroup
from consultlog.core.behavior.students import group_consultations
from consultlog.export.spreadsheet import export_drafts
from consultlog.shared.exceptions import DraftNotFoundError
from consultlog.store.consultations import ConsultationStore

router = APIRouter(prefix="/behavior", tags=["behavior"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class BatchRequest(BaseModel):
    student_keys: Optional[List[str]] = None
    evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS
    selections: Dict[str, List[str]] = Field(default_factory=dict)
    model: Optional[str] = None


class RegenerateRequest(BaseModel):
    evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS
    selected_ids: List[str] = Field(default_factory=list)
    model: Optional[str] = None


class DraftEdit(BaseModel):
    content: str


def _load_groups(
    store: ConsultationStore,
    teacher_id: str,
    selections: Optional[Dict[str, List[str]]] = None
) -> List[StudentGroup]:
    records = store.list_consultations(teacher_id)
    selection_sets = {key: set(ids) for key, ids in (selections or {}).items()}
    return group_consultations(records, selection_sets)


def _current_drafts(
    coordinator: BatchCoordinator,
    store: ConsultationStore,
    teacher_id: str
) -> List[BehaviorDraft]:
    """Drafts whose student still has records in the store."""
    keys = {g.student_key for g in _load_groups(store, teacher_id)}
    return [d for d in coordinator.list_drafts() if d.student_key in keys]


def _drafts_payload(coordinator: BatchCoordinator, drafts: Optional[List[BehaviorDraft]] = None) -> dict:
    drafts = coordinator.list_drafts() if drafts is None else drafts
    return {
        "drafts": [asdict(d) for d in drafts],
        "progress": asdict(coordinator.progress),
        "running": coordinator.is_running,
    }


@router.get("/students")
async def list_students(
    teacher_id: str = Query(...),
    store: ConsultationStore = Depends(get_store),
):
    return [
        {
            "student_key": g.student_key,
            "student_name": g.student_name,
            "student_id": g.student_id,
            "consultation_count": g.consultation_count,
            "last_consultation_at": g.last_consultation_at,
            "consultation_ids": [c.id for c in g.consultations],
        }
        for g in _load_groups(store, teacher_id)
    ]


@router.post("/batch")
async def run_batch(
    body: BatchRequest,
    teacher_id: str = Query(...),
    store: ConsultationStore = Depends(get_store),
    coordinator: BatchCoordinator = Depends(get_coordinator),
):
    """Generate drafts for the requested students (all when none given)."""
    groups = _load_groups(store, teacher_id, body.selections)
    coordinator.sync_groups(groups)

    if body.student_keys is None:
        targets = groups
    else:
        by_key = {g.student_key: g for g in groups}
        unknown = [k for k in body.student_keys if k not in by_key]
        if unknown:
            raise DraftNotFoundError(f"학생을 찾을 수 없습니다: {', '.join(unknown)}")
        targets = [by_key[k] for k in body.student_keys]

    await coordinator.run_batch(targets, body.evidence_mode, body.model)
    return _drafts_payload(coordinator)


@router.get("/drafts")
async def list_drafts(
    teacher_id: str = Query(...),
    store: ConsultationStore = Depends(get_store),
    coordinator: BatchCoordinator = Depends(get_coordinator),
):
    return _drafts_payload(coordinator, _current_drafts(coordinator, store, teacher_id))


@router.post("/drafts/{student_key}/regenerate")
async def regenerate_draft(
    student_key: str,
    body: RegenerateRequest,
    teacher_id: str = Query(...),
    store: ConsultationStore = Depends(get_store),
    coordinator: BatchCoordinator = Depends(get_coordinator),
):
    groups = _load_groups(store, teacher_id, {student_key: body.selected_ids})
    coordinator.sync_groups(groups)
    group = next((g for g in groups if g.student_key == student_key), None)
    if group is None:
        raise DraftNotFoundError(f"학생을 찾을 수 없습니다: {student_key}")

    result = await coordinator.regenerate_one(
        student_key, body.evidence_mode, body.model, group=group
    )
    return {"student_key": student_key, **asdict(result)}


@router.put("/drafts/{student_key}")
async def edit_draft(
    student_key: str,
    body: DraftEdit,
    coordinator: BatchCoordinator = Depends(get_coordinator),
):
    return asdict(coordinator.update_content(student_key, body.content))


@router.get("/export")
async def export(
    teacher_id: str = Query(...),
    store: ConsultationStore = Depends(get_store),
    coordinator: BatchCoordinator = Depends(get_coordinator),
):
    content = export_drafts(_current_drafts(coordinator, store, teacher_id))
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="behavior_drafts.xlsx"'},
    )
