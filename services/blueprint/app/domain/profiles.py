"""Generation mode per document kind."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from .types import DocumentKind as K
from .types import GenerationMode

_GROUNDED = GenerationMode.grounded
_DEEP = GenerationMode.deep_reasoning
_STANDARD = GenerationMode.standard

GENERATION_PROFILES: Mapping[K, GenerationMode] = MappingProxyType(
    {
        K.strategy_vision: _GROUNDED,
        K.strategy_market: _GROUNDED,
        K.strategy_personas: _STANDARD,
        K.strategy_kpi: _STANDARD,
        K.product_brd: _STANDARD,
        K.product_prd: _STANDARD,
        K.product_stories: _DEEP,
        K.product_domain: _STANDARD,
        K.arch_overview: _GROUNDED,
        K.arch_components: _STANDARD,
        K.arch_db: _DEEP,
        K.arch_api: _DEEP,
        K.arch_ux: _STANDARD,
        K.code_overview: _STANDARD,
        K.code_standards: _STANDARD,
        K.code_scaffold: _DEEP,
        K.code_env: _STANDARD,
        K.test_strategy: _STANDARD,
        K.test_plans: _STANDARD,
        K.test_cases: _DEEP,
        K.ops_env: _STANDARD,
        K.ops_cicd: _STANDARD,
        K.ops_deploy: _STANDARD,
        K.ops_monitoring: _STANDARD,
        K.user_onboarding: _STANDARD,
        K.user_guides: _STANDARD,
        K.user_faq: _STANDARD,
        K.biz_pricing: _STANDARD,
        K.biz_gtm: _GROUNDED,
        K.biz_sales: _STANDARD,
        K.biz_legal: _STANDARD,
        K.process_roadmap: _STANDARD,
        K.process_adr: _STANDARD,
    }
)

if set(GENERATION_PROFILES) != set(K):  # pragma: no cover - import-time guard
    raise RuntimeError(f"Generation profile missing for {sorted(k.value for k in set(K) - set(GENERATION_PROFILES))}")


def profile_for(kind: K, overrides: Mapping[str, str] | None = None) -> GenerationMode:
    """Return the generation mode for ``kind``, honouring configured overrides."""
    if overrides and kind.value in overrides:
        return GenerationMode(overrides[kind.value])
    return GENERATION_PROFILES[kind]


__all__ = ["GENERATION_PROFILES", "profile_for"]
