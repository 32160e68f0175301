"""Project and document API."""
from __future__ import annotations

from typing import List

import structlog
from fastapi import APIRouter, Depends, status

from ..auth.oidc import Principal, current_principal
from ..domain.orchestrator import GenerationOrchestrator
from ..domain.templates import apply_template, lookup_template
from ..domain.types import DocumentKind, Project
from .deps import get_orchestrator, owned_project
from .schemas import (
    AdvanceResponse,
    DocumentResponse,
    ProjectCreateRequest,
    ProjectResponse,
    RefineRequest,
    SaveDocumentRequest,
    SectionResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreateRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    principal: Principal = Depends(current_principal),
) -> ProjectResponse:
    brief = payload.to_brief()
    if payload.template_id is not None:
        brief = apply_template(lookup_template(payload.template_id), brief)
    project = await orchestrator.create_project(brief, owner_id=principal.subject)
    orchestrator.schedule(orchestrator.run_initial_batch(project.id))
    return ProjectResponse.from_project(project)


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    principal: Principal = Depends(current_principal),
) -> List[ProjectResponse]:
    return [ProjectResponse.from_project(p) for p in orchestrator.projects(owner_id=principal.subject)]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project: Project = Depends(owned_project)) -> ProjectResponse:
    return ProjectResponse.from_project(project)


@router.get("/{project_id}/documents/{kind}", response_model=DocumentResponse)
async def get_document(kind: DocumentKind, project: Project = Depends(owned_project)) -> DocumentResponse:
    return DocumentResponse.from_document(project.document(kind))


@router.post(
    "/{project_id}/documents/{kind}/regenerate",
    response_model=DocumentResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def regenerate_document(
    kind: DocumentKind,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> DocumentResponse:
    orchestrator.regenerate_in_background(project.id, kind)
    logger.info("api.regenerate", project_id=project.id, kind=kind.value)
    return DocumentResponse.from_document(orchestrator.project(project.id).document(kind))


@router.post("/{project_id}/documents/{kind}/advance", response_model=AdvanceResponse)
async def advance_document(
    kind: DocumentKind,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> AdvanceResponse:
    target = await orchestrator.advance(project.id, kind, wait=False)
    if target is None:
        return AdvanceResponse(focus=None)
    doc = orchestrator.project(project.id).document(target)
    return AdvanceResponse(focus=target.value, document=DocumentResponse.from_document(doc))


@router.put("/{project_id}/documents/{kind}", response_model=DocumentResponse)
async def save_document(
    kind: DocumentKind,
    payload: SaveDocumentRequest,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> DocumentResponse:
    doc = await orchestrator.save_document(project.id, kind, payload.content)
    return DocumentResponse.from_document(doc)


@router.get("/{project_id}/documents/{kind}/sections", response_model=List[SectionResponse])
async def list_sections(
    kind: DocumentKind,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> List[SectionResponse]:
    return [SectionResponse.from_section(s) for s in orchestrator.sections(project.id, kind)]


@router.put("/{project_id}/documents/{kind}/sections/{section_id}", response_model=DocumentResponse)
async def edit_section(
    kind: DocumentKind,
    section_id: str,
    payload: SaveDocumentRequest,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> DocumentResponse:
    doc = await orchestrator.edit_section(project.id, kind, section_id, payload.content)
    return DocumentResponse.from_document(doc)


@router.post("/{project_id}/documents/{kind}/sections/{section_id}/refine", response_model=DocumentResponse)
async def refine_section(
    kind: DocumentKind,
    section_id: str,
    payload: RefineRequest,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> DocumentResponse:
    doc = await orchestrator.refine_section(project.id, kind, section_id, payload.instruction)
    return DocumentResponse.from_document(doc)


@router.post("/{project_id}/documents/{kind}/refine", response_model=DocumentResponse)
async def refine_document(
    kind: DocumentKind,
    payload: RefineRequest,
    project: Project = Depends(owned_project),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> DocumentResponse:
    doc = await orchestrator.refine_document(project.id, kind, payload.instruction)
    return DocumentResponse.from_document(doc)


__all__ = ["router"]
