"""Project template catalogue."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter

from ..domain.templates import all_templates, lookup_template
from .schemas import TemplateResponse

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=List[TemplateResponse])
async def list_templates(category: str | None = None) -> List[TemplateResponse]:
    return [TemplateResponse.from_template(t) for t in all_templates() if category is None or t.category == category]


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str) -> TemplateResponse:
    return TemplateResponse.from_template(lookup_template(template_id))


__all__ = ["router"]
