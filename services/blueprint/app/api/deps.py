"""FastAPI dependency helpers."""
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from ..auth.oidc import Principal, current_principal
from ..domain.errors import UnknownProjectError
from ..domain.orchestrator import GenerationOrchestrator
from ..domain.types import Project


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting")
    return orchestrator


def owned_project(
    project_id: str,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    principal: Principal = Depends(current_principal),
) -> Project:
    project = orchestrator.project(project_id)
    if project.owner_id != principal.subject:
        raise UnknownProjectError(project_id)
    return project


__all__ = ["get_orchestrator", "owned_project"]
