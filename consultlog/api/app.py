"""
consultlog FastAPI application.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from consultlog.api.middleware.rate_limit import RateLimitMiddleware
from consultlog.api.routes import auth, behavior, consultations, health
from consultlog.shared.config import settings
from consultlog.shared.exceptions import (
    AccountLockedError,
    BatchInProgressError,
    ConsultLogError,
    DraftNotFoundError,
    EmptyResponseError,
    GenerationError,
    PreflightRejectionError,
    ServiceError,
)
from consultlog.shared.llm import LLMClient
from consultlog.shared.logging import get_logger
from consultlog.store.consultations import ConsultationStore

logger = get_logger(__name__)

ERROR_STATUS = [
    (PreflightRejectionError, 422),
    (BatchInProgressError, 409),
    (DraftNotFoundError, 404),
    (AccountLockedError, 423),
    (EmptyResponseError, 502),
    (ServiceError, 502),
    (GenerationError, 502),
]


async def handle_consultlog_error(request: Request, exc: ConsultLogError) -> JSONResponse:
    """Map domain errors to HTTP responses."""
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    content = {"detail": str(exc)}
    if isinstance(exc, PreflightRejectionError):
        content["students"] = exc.student_names
    logger.warning(f"{exc.__class__.__name__} on {request.url.path}: {str(exc)}")
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    store: Optional[ConsultationStore] = None,
    llm: Optional[LLMClient] = None
) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown."""
        logger.info("Starting consultlog API")

        app.state.store = store or ConsultationStore()
        app.state.llm = llm
        app.state.coordinators = {}

        health.set_start_time(time.time())

        logger.info("consultlog API ready")
        yield
        logger.info("consultlog API stopped")

    app = FastAPI(
        title="consultlog",
        description="Consultation records and behavior-record draft generation for teachers",
        version="0.1.0",
        lifespan=lifespan,
    )

    cors_origins = getattr(settings.api, "cors_origins", ["http://localhost:3000"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting (after CORS so CORS headers applied first)
    app.add_middleware(RateLimitMiddleware)

    app.add_exception_handler(ConsultLogError, handle_consultlog_error)

    app.include_router(health.router)
    app.include_router(consultations.router)
    app.include_router(auth.router)
    app.include_router(behavior.router)

    @app.get("/")
    async def root():
        return {"service": "consultlog", "status": "running"}

    return app


app = create_app()


def main():
    """CLI entry point for uvicorn."""
    import uvicorn

    host = getattr(settings.api, "host", "0.0.0.0")
    port = getattr(settings.api, "port", 8000)
    uvicorn.run(
        "consultlog.api.app:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
