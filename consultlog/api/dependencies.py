"""
FastAPI dependency injection for consultlog services.
"""

from fastapi import Query, Request

from consultlog.core.behavior.batch import BatchCoordinator
from consultlog.core.behavior.generator import BehaviorDraftGenerator
from consultlog.core.behavior.students import group_consultations
from consultlog.core.summary.summarizer import ConsultationSummarizer
from consultlog.safety.lockout import LoginLockout
from consultlog.shared.llm import LLMClient
from consultlog.store.consultations import ConsultationStore


def get_store(request: Request) -> ConsultationStore:
    """Get ConsultationStore singleton from lifespan state."""
    return request.app.state.store


def get_llm(request: Request) -> LLMClient:
    """Get the LLM client, created on first use so a missing key only fails generation routes."""
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        llm = LLMClient()
        request.app.state.llm = llm
    return llm


def get_lockout(request: Request) -> LoginLockout:
    return LoginLockout(get_store(request))


def get_summarizer(request: Request) -> ConsultationSummarizer:
    return ConsultationSummarizer(get_llm(request))


def get_coordinator(request: Request, teacher_id: str = Query(...)) -> BatchCoordinator:
    """One coordinator (and drafts collection) per teacher."""
    coordinators = request.app.state.coordinators
    coordinator = coordinators.get(teacher_id)
    if coordinator is None:
        coordinator = BatchCoordinator(BehaviorDraftGenerator(get_llm(request)))
        coordinators[teacher_id] = coordinator
    return coordinator


def refresh_teacher_drafts(request: Request, store: ConsultationStore, teacher_id: str):
    """Drop drafts of students whose records are gone; skipped while a batch runs."""
    coordinator = request.app.state.coordinators.get(teacher_id)
    if coordinator is None or coordinator.is_running:
        return
    coordinator.sync_groups(group_consultations(store.list_consultations(teacher_id)))
