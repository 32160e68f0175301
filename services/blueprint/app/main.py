"""FastAPI application entrypoint."""
from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import assist, projects, templates
from .config import get_settings
from .domain.ai_client import GenerationClient
from .domain.errors import (
    ConcurrentGenerationError,
    GenerationError,
    InvalidTransitionError,
    SectionNotFoundError,
    StaleSectionError,
    UnknownProjectError,
    UnknownTemplateError,
)
from .domain.orchestrator import GenerationOrchestrator
from .observability.logs import configure_logging
from .observability.otel import configure_telemetry
from .persistence.db import dispose_engine, init_db
from .persistence.repository import InMemoryProjectRepository, ProjectRepository, SqlProjectRepository

logger = structlog.get_logger(__name__)


async def build_orchestrator() -> GenerationOrchestrator:
    settings = get_settings()
    repository: ProjectRepository
    if settings.storage.backend == "database":
        await init_db()
        repository = SqlProjectRepository()
    else:
        repository = InMemoryProjectRepository()
    orchestrator = GenerationOrchestrator(GenerationClient(settings), repository, settings)
    await orchestrator.hydrate()
    return orchestrator


def _error(status_code: int, exc: Exception, remediation: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "message": str(exc), "remediation": remediation},
    )


def create_app(orchestrator: GenerationOrchestrator | None = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Blueprint Document Generator",
        version="0.1.0",
        openapi_version="3.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    configure_logging()
    configure_telemetry()
    app.state.orchestrator = orchestrator

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover - FastAPI lifecycle
        if app.state.orchestrator is None:
            app.state.orchestrator = await build_orchestrator()
        logger.info("app.started", environment=settings.environment, provider=settings.generation.provider)

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - FastAPI lifecycle
        if app.state.orchestrator is not None:
            await app.state.orchestrator.drain()
        await dispose_engine()

    @app.exception_handler(UnknownProjectError)
    @app.exception_handler(UnknownTemplateError)
    @app.exception_handler(SectionNotFoundError)
    async def _not_found_handler(request: Request, exc: Exception):
        return _error(404, exc, "Check the project, template and section identifiers")

    @app.exception_handler(ConcurrentGenerationError)
    @app.exception_handler(InvalidTransitionError)
    @app.exception_handler(StaleSectionError)
    async def _conflict_handler(request: Request, exc: Exception):
        return _error(409, exc, "Wait for the running generation to finish and retry")

    @app.exception_handler(GenerationError)
    async def _generation_handler(request: Request, exc: Exception):
        return _error(502, exc, "Check provider credentials or retry later")

    @app.exception_handler(Exception)
    async def _generic_exception_handler(request: Request, exc: Exception):  # pragma: no cover - fallback
        logger.exception("app.unhandled_error", path=request.url.path)
        return _error(500, exc, "Contact support with the request time and path")

    app.include_router(projects.router)
    app.include_router(assist.router)
    app.include_router(templates.router)

    @app.get("/healthz")
    async def healthcheck():
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()


__all__ = ["app", "build_orchestrator", "create_app"]
