"""Brief assistance API: extraction, brainstorming and key validation."""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..auth.oidc import Principal, current_principal
from ..domain.assist import brainstorm_features, extract_project_details
from ..domain.orchestrator import GenerationOrchestrator
from ..domain.providers import validate_openrouter_key
from .deps import get_orchestrator
from .schemas import BrainstormRequest, ExtractRequest, ValidateKeyRequest

router = APIRouter(prefix="/assist", tags=["assist"])


@router.post("/extract")
async def extract(
    payload: ExtractRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    _principal: Principal = Depends(current_principal),
) -> Dict[str, Any]:
    details = await extract_project_details(orchestrator.client, payload.text)
    return asdict(details)


@router.post("/brainstorm")
async def brainstorm(
    payload: BrainstormRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    _principal: Principal = Depends(current_principal),
) -> Dict[str, Any]:
    features = await brainstorm_features(orchestrator.client, payload.concept, payload.problem)
    return {"features": features}


@router.post("/validate-openrouter")
async def validate_openrouter(
    payload: ValidateKeyRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    _principal: Principal = Depends(current_principal),
) -> Dict[str, Any]:
    valid, error = await validate_openrouter_key(
        orchestrator.client.settings.openrouter, payload.api_key, model=payload.model
    )
    return {"valid": valid, "error": error}


__all__ = ["router"]
