"""Brief assistance: extract project details and brainstorm features."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from .ai_client import GenerationClient
from .errors import ProviderError
from .prompts import build_brainstorm_prompt, build_extraction_prompt

logger = structlog.get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT = re.compile(r"\{[\s\S]*\}")
_ARRAY = re.compile(r"\[[\s\S]*\]")
_TRAILING_COMMA = re.compile(r",(\s*[\]}])")


@dataclass
class ExtractedProjectDetails:
    name: str | None = None
    concept: str | None = None
    problem: str | None = None
    audience: str | None = None
    features: list[str] = field(default_factory=list)
    tech: list[str] = field(default_factory=list)
    budget: str | None = None
    timeline: str | None = None


def safe_parse_json(content: str, expected: Literal["object", "array"] = "object") -> Any:
    """Parse JSON from model output that may include fences or trailing commas."""
    clean = _FENCE.sub("", content).strip()
    match = (_OBJECT if expected == "object" else _ARRAY).search(clean)
    if match:
        clean = match.group(0)
    clean = _TRAILING_COMMA.sub(r"\1", clean)
    try:
        value = json.loads(clean)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON structure in AI response") from exc
    if expected == "object" and not isinstance(value, dict):
        raise ValueError("Expected a JSON object in AI response")
    if expected == "array" and not isinstance(value, list):
        raise ValueError("Expected a JSON array in AI response")
    return value


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


async def extract_project_details(client: GenerationClient, text: str) -> ExtractedProjectDetails:
    result = await client.complete_text(build_extraction_prompt(text), purpose="extract")
    try:
        data = safe_parse_json(result.content, "object")
    except ValueError as exc:
        logger.warning("assist.extract_parse_failed", provider=result.provider_used.value)
        raise ProviderError("Failed to parse project details from AI response", provider=result.provider_used.value) from exc

    def text_field(key: str) -> str | None:
        value = data.get(key)
        return str(value).strip() if value else None

    return ExtractedProjectDetails(
        name=text_field("name"),
        concept=text_field("concept"),
        problem=text_field("problem"),
        audience=text_field("audience"),
        features=_str_list(data.get("features")),
        tech=_str_list(data.get("tech")),
        budget=text_field("budget"),
        timeline=text_field("timeline"),
    )


async def brainstorm_features(client: GenerationClient, concept: str, problem: str) -> list[str]:
    result = await client.complete_text(build_brainstorm_prompt(concept, problem), purpose="brainstorm")
    try:
        return _str_list(safe_parse_json(result.content, "array"))
    except ValueError as exc:
        logger.warning("assist.brainstorm_parse_failed", provider=result.provider_used.value)
        raise ProviderError("Failed to parse features from AI response", provider=result.provider_used.value) from exc


__all__ = ["ExtractedProjectDetails", "brainstorm_features", "extract_project_details", "safe_parse_json"]
