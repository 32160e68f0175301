"""Domain-level dataclasses for projects, documents and generation."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentKind(str, enum.Enum):
    # 1. Strategy
    strategy_vision = "strategy_vision"
    strategy_market = "strategy_market"
    strategy_personas = "strategy_personas"
    strategy_kpi = "strategy_kpi"
    # 2. Product
    product_brd = "product_brd"
    product_prd = "product_prd"
    product_stories = "product_stories"
    product_domain = "product_domain"
    # 3. Architecture
    arch_overview = "arch_overview"
    arch_components = "arch_components"
    arch_db = "arch_db"
    arch_api = "arch_api"
    arch_ux = "arch_ux"
    # 4. Implementation
    code_overview = "code_overview"
    code_standards = "code_standards"
    code_scaffold = "code_scaffold"
    code_env = "code_env"
    # 5. Quality
    test_strategy = "test_strategy"
    test_plans = "test_plans"
    test_cases = "test_cases"
    # 6. Ops
    ops_env = "ops_env"
    ops_cicd = "ops_cicd"
    ops_deploy = "ops_deploy"
    ops_monitoring = "ops_monitoring"
    # 7. User docs
    user_onboarding = "user_onboarding"
    user_guides = "user_guides"
    user_faq = "user_faq"
    # 8. Business
    biz_pricing = "biz_pricing"
    biz_gtm = "biz_gtm"
    biz_sales = "biz_sales"
    biz_legal = "biz_legal"
    # 9. Process
    process_roadmap = "process_roadmap"
    process_adr = "process_adr"


class DocumentStatus(str, enum.Enum):
    pending = "pending"
    generating = "generating"
    completed = "completed"
    failed = "failed"


class ProjectStatus(str, enum.Enum):
    new = "new"
    in_progress = "in_progress"
    completed = "completed"


class GenerationMode(str, enum.Enum):
    standard = "standard"
    grounded = "grounded"
    deep_reasoning = "deep_reasoning"


class ProviderName(str, enum.Enum):
    google = "google"
    openrouter = "openrouter"
    offline = "offline"
    placeholder = "placeholder"


@dataclass(frozen=True)
class HierarchyNode:
    kind: DocumentKind
    title: str
    category: str
    owner: str
    cta_label: str
    description: str
    unlocks: tuple[DocumentKind, ...] = ()


@dataclass(frozen=True)
class ProjectBrief:
    name: str
    concept: str
    problem: str
    audience: str = ""
    features: tuple[str, ...] = ()
    tech_stack: tuple[str, ...] = ()
    budget: str = ""
    timeline: str = ""
    team_size: int = 1


@dataclass(frozen=True)
class Document:
    id: str
    kind: DocumentKind
    title: str
    content: str = ""
    status: DocumentStatus = DocumentStatus.pending
    progress: int = 0
    phase: str = "Pending"
    error: str | None = None
    provider: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)

    def evolve(self, **changes) -> "Document":
        return replace(self, **changes)


@dataclass(frozen=True)
class Project:
    id: str
    owner_id: str
    brief: ProjectBrief
    status: ProjectStatus
    documents: tuple[Document, ...]
    created_at: datetime
    updated_at: datetime

    def document(self, kind: DocumentKind) -> Document:
        for doc in self.documents:
            if doc.kind == kind:
                return doc
        raise KeyError(kind)


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    content: str
    order: int


@dataclass(frozen=True)
class GenerationPreferences:
    tech: tuple[str, ...] = ()
    budget: str = ""
    timeline: str = ""


@dataclass(frozen=True)
class GenerationRequest:
    kind: DocumentKind
    concept: str
    problem: str
    audience: str = ""
    features: tuple[str, ...] = ()
    preferences: GenerationPreferences = GenerationPreferences()

    @classmethod
    def from_brief(cls, kind: DocumentKind, brief: ProjectBrief) -> "GenerationRequest":
        return cls(
            kind=kind,
            concept=brief.concept,
            problem=brief.problem,
            audience=brief.audience,
            features=tuple(f for f in brief.features if f.strip()),
            preferences=GenerationPreferences(
                tech=tuple(brief.tech_stack),
                budget=brief.budget,
                timeline=brief.timeline,
            ),
        )


@dataclass(frozen=True)
class GenerationResult:
    content: str
    provider_used: ProviderName
    model: str
    references: tuple[str, ...] = ()
    degraded: bool = False


__all__ = [
    "Document",
    "DocumentKind",
    "DocumentStatus",
    "GenerationMode",
    "GenerationPreferences",
    "GenerationRequest",
    "GenerationResult",
    "HierarchyNode",
    "Project",
    "ProjectBrief",
    "ProjectStatus",
    "ProviderName",
    "Section",
    "utcnow",
]
