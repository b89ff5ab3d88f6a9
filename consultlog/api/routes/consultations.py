"""
Consultation record and summary endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from consultlog.api.dependencies import get_store, get_summarizer, refresh_teacher_drafts
from consultlog.core.behavior.models import ConsultationRecord
from consultlog.core.summary.summarizer import ConsultationSummarizer
from consultlog.store.consultations import ConsultationStore

router = APIRouter(tags=["consultations"])


class ConsultationCreate(BaseModel):
    teacher_id: str
    teacher_email: Optional[str] = None
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: str = Field(pattern=r"^\d{2}:\d{2}$")
    student_id: str = ""
    student_name: str = Field(min_length=1)
    topic: Optional[str] = None
    content: str = Field(min_length=1)
    ai_summary: Optional[str] = None


class SummarizeRequest(BaseModel):
    content: str = ""
    date: str = ""
    time: str = ""
    student_id: str = ""
    student_name: str = ""
    topic: Optional[str] = None
    consultation_id: Optional[str] = None
    model: Optional[str] = None
    target_chars: Optional[int] = Field(default=None, gt=0)


@router.get("/consultations", response_model=List[ConsultationRecord])
async def list_consultations(
    teacher_id: str = Query(...),
    date: Optional[str] = Query(default=None),
    store: ConsultationStore = Depends(get_store),
):
    return store.list_consultations(teacher_id, date=date)


@router.post("/consultations", response_model=ConsultationRecord, status_code=201)
async def create_consultation(
    body: ConsultationCreate,
    store: ConsultationStore = Depends(get_store),
):
    record = ConsultationRecord(
        date=body.date,
        time=body.time,
        student_id=body.student_id,
        student_name=body.student_name,
        topic=body.topic,
        original_content=body.content,
        ai_summary=body.ai_summary,
    )
    return store.add_consultation(body.teacher_id, record, teacher_email=body.teacher_email)


@router.delete("/consultations/{consultation_id}", status_code=204)
async def delete_consultation(
    consultation_id: str,
    request: Request,
    store: ConsultationStore = Depends(get_store),
):
    record = store.get_consultation(consultation_id)
    if record is None or not store.delete_consultation(consultation_id):
        raise HTTPException(status_code=404, detail="상담 기록을 찾을 수 없습니다.")
    refresh_teacher_drafts(request, store, record.teacher_id)


@router.delete("/students/{student_name}")
async def delete_student(
    student_name: str,
    request: Request,
    teacher_id: str = Query(...),
    store: ConsultationStore = Depends(get_store),
):
    deleted = store.delete_student(teacher_id, student_name)
    refresh_teacher_drafts(request, store, teacher_id)
    return {"deleted": deleted}


@router.post("/summarize")
async def summarize(
    body: SummarizeRequest,
    store: ConsultationStore = Depends(get_store),
    summarizer: ConsultationSummarizer = Depends(get_summarizer),
):
    """Formal summary of one consultation; stored when a consultation id is given."""
    if not body.content.strip():
        raise HTTPException(status_code=400, detail="요약할 내용이 없습니다.")

    record = ConsultationRecord(
        date=body.date,
        time=body.time,
        student_id=body.student_id,
        student_name=body.student_name,
        topic=body.topic,
        original_content=body.content,
    )
    summary = await summarizer.summarize(record, model=body.model, target_chars=body.target_chars)

    if body.consultation_id and summary:
        store.update_summary(body.consultation_id, summary)

    return {"summary": summary}
