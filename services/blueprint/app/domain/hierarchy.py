"""Static document hierarchy: categories, ownership and unlock edges."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from .types import DocumentKind as K
from .types import HierarchyNode

CATEGORIES: tuple[str, ...] = (
    "1. Strategy & Context",
    "2. Product Requirements",
    "3. Architecture & Design",
    "4. Implementation & Code",
    "5. Quality & Testing",
    "6. Operations & DevOps",
    "7. User & Customer Docs",
    "8. Business & GTM",
    "9. Process & Governance",
)

_STRATEGY, _PRODUCT, _ARCH, _CODE, _QUALITY, _OPS, _USER, _BUSINESS, _PROCESS = CATEGORIES

_NODES: tuple[HierarchyNode, ...] = (
    HierarchyNode(
        K.strategy_vision, "1.1 Vision & Mission", _STRATEGY, "Founder / CPO",
        "Approve Vision → Analyze Market",
        "Define the core north star, mission statement, and long-term goals.",
        (K.strategy_market,),
    ),
    HierarchyNode(
        K.strategy_market, "1.2 Market & Problem Space", _STRATEGY, "Founder / Marketing",
        "Lock Problem → Define Personas",
        "Analysis of the market landscape, competitor analysis, and core problem definition.",
        (K.strategy_personas,),
    ),
    HierarchyNode(
        K.strategy_personas, "1.3 Personas & Use Cases", _STRATEGY, "PM / UX",
        "Confirm Personas → Set KPIs",
        "Detailed user personas, empathy maps, and primary use cases.",
        (K.strategy_kpi,),
    ),
    HierarchyNode(
        K.strategy_kpi, "1.4 Success Metrics & KPIs", _STRATEGY, "Data Lead",
        "Approve KPIs → Start Business Req",
        "Key Performance Indicators and success metrics for the product.",
        (K.product_brd,),
    ),
    HierarchyNode(
        K.product_brd, "2.1 Business Requirements (BRD)", _PRODUCT, "Business Lead",
        "Sign-off BRD → Generate PRD",
        "High-level business goals, scope, stakeholders, and financial constraints.",
        (K.product_prd, K.biz_gtm),
    ),
    HierarchyNode(
        K.product_prd, "2.2 Product Requirements (PRD)", _PRODUCT, "Product Manager",
        "Sign-off PRD → Define User Stories",
        "Detailed functional requirements, features, and system behavior.",
        (K.product_stories, K.arch_overview),
    ),
    HierarchyNode(
        K.product_stories, "2.3 Feature Specs & Stories", _PRODUCT, "PM / Tech Lead",
        "Freeze Stories → Estimation",
        "Detailed user stories with acceptance criteria and specific feature specs.",
        (K.product_domain,),
    ),
    HierarchyNode(
        K.product_domain, "2.4 Domain Models & Glossary", _PRODUCT, "PM / Architect",
        "Approve Domain → Sync DB Design",
        "Definitions of core entities, domain language, and relationships.",
    ),
    HierarchyNode(
        K.arch_overview, "3.1 System Architecture", _ARCH, "Solution Architect",
        "Approve Arch → Detailed Design",
        "High-level system design, technology choices, and diagram descriptions.",
        (K.arch_components, K.arch_db, K.arch_api),
    ),
    HierarchyNode(
        K.arch_components, "3.2 Component Design", _ARCH, "Tech Lead",
        "Finalize Map → Implementation",
        "Detailed breakdown of services, modules, and their interactions.",
    ),
    HierarchyNode(
        K.arch_db, "3.3 Database Design", _ARCH, "Data Engineer",
        "Schema Approved → Migration Plan",
        "ER Diagrams, schema definitions, and indexing strategies.",
    ),
    HierarchyNode(
        K.arch_api, "3.4 Integration & API Design", _ARCH, "Backend Lead",
        "API Spec Frozen → SDK Tasks",
        "REST/GraphQL API specifications, endpoints, and contracts.",
    ),
    HierarchyNode(
        K.arch_ux, "3.5 UX / UI Design Guidelines", _ARCH, "Product Designer",
        "Designs Approved → Frontend Build",
        "Design system, component library usage, and UX flows.",
    ),
    HierarchyNode(
        K.code_overview, "4.1 Codebase Overview", _CODE, "Tech Lead",
        "Repo Set → Onboard Devs",
        "Repository structure, key modules, and architectural patterns in code.",
        (K.code_standards,),
    ),
    HierarchyNode(
        K.code_standards, "4.2 Coding Standards", _CODE, "Principal Engineer",
        "Standards Agreed → Enforce",
        "Linting rules, style guides, and code review practices.",
    ),
    HierarchyNode(
        K.code_scaffold, "4.3 Code Scaffolding", _CODE, "AI Generator",
        "Review Code → Commit",
        "Auto-generated boilerplate code for the project.",
    ),
    HierarchyNode(
        K.code_env, "4.4 Config & Environment", _CODE, "DevOps",
        "Config Doc'd → Deployment",
        "Environment variables, secrets management, and configuration guides.",
    ),
    HierarchyNode(
        K.test_strategy, "5.1 Test Strategy", _QUALITY, "QA Lead",
        "Strategy Approved → Test Plans",
        "Overall approach to testing, tools, and coverage goals.",
        (K.test_plans,),
    ),
    HierarchyNode(
        K.test_plans, "5.2 Test Plans", _QUALITY, "QA Lead",
        "Plans Reviewed → Cases",
        "Specific test plans for features and releases.",
        (K.test_cases,),
    ),
    HierarchyNode(
        K.test_cases, "5.3 Test Cases & Suites", _QUALITY, "SDET",
        "Suites Ready → Pipeline",
        "Detailed test cases, scenarios, and automated suite definitions.",
    ),
    HierarchyNode(
        K.ops_env, "6.1 Environment Mgmt", _OPS, "SRE",
        "Envs Documented → Access",
        "Details on Dev, Staging, and Prod environments.",
        (K.ops_cicd,),
    ),
    HierarchyNode(
        K.ops_cicd, "6.2 CI/CD Pipelines", _OPS, "Platform Eng",
        "Pipelines Stable → Release",
        "Build, test, and deploy pipeline configurations.",
        (K.ops_deploy,),
    ),
    HierarchyNode(
        K.ops_deploy, "6.3 Deployment & Release", _OPS, "Release Manager",
        "Release Executed → Notes",
        "Release procedures, rollback strategies, and deployment checklists.",
        (K.ops_monitoring,),
    ),
    HierarchyNode(
        K.ops_monitoring, "6.4 Monitoring & Reliability", _OPS, "SRE",
        "SLOs Defined → Alerts",
        "Observability setup, metrics, dashboards, and alert policies.",
    ),
    HierarchyNode(
        K.user_onboarding, "7.1 Onboarding & Quick Start", _USER, "Docs Writer",
        "Onboarding Live → In-Product",
        "Guides for new users to get started with the product.",
        (K.user_guides,),
    ),
    HierarchyNode(
        K.user_guides, "7.2 How-to Guides", _USER, "Docs / PM",
        "Guides Ready → Help Center",
        "Detailed feature guides and tutorials.",
        (K.user_faq,),
    ),
    HierarchyNode(
        K.user_faq, "7.3 Troubleshooting & FAQ", _USER, "Support Lead",
        "FAQ Updated → Chatbot",
        "Common questions and troubleshooting steps.",
    ),
    HierarchyNode(
        K.biz_pricing, "8.1 Pricing & Packaging", _BUSINESS, "Revenue Lead",
        "Pricing Locked → Billing",
        "Pricing tiers, features per plan, and packaging strategy.",
        (K.biz_gtm,),
    ),
    HierarchyNode(
        K.biz_gtm, "8.2 GTM Strategy", _BUSINESS, "PMM",
        "GTM Agreed → Launch",
        "Marketing channels, sales strategy, and launch plan.",
        (K.biz_sales,),
    ),
    HierarchyNode(
        K.biz_sales, "8.3 Sales Enablement", _BUSINESS, "Sales Lead",
        "Playbooks Ready → Train",
        "Sales scripts, battle cards, and objection handling.",
    ),
    HierarchyNode(
        K.biz_legal, "8.4 Legal & Compliance", _BUSINESS, "Legal Counsel",
        "Policies Signed → Publish",
        "Terms of Service, Privacy Policy, and compliance requirements.",
    ),
    HierarchyNode(
        K.process_roadmap, "9.1 Roadmaps & Planning", _PROCESS, "PM / Founder",
        "Roadmap Aligned → Planning",
        "Strategic product roadmap and milestones.",
        (K.process_adr,),
    ),
    HierarchyNode(
        K.process_adr, "9.2 Decisions (ADRs)", _PROCESS, "Tech Lead",
        "ADR Logged → Review",
        "Architectural Decision Records and key technical choices.",
    ),
)

HIERARCHY: Mapping[K, HierarchyNode] = MappingProxyType({node.kind: node for node in _NODES})
_ORDER: tuple[K, ...] = tuple(node.kind for node in _NODES)


def _check_registry() -> None:
    kinds = [node.kind for node in _NODES]
    duplicates = {kind for kind in kinds if kinds.count(kind) > 1}
    missing = set(K) - set(kinds)
    if duplicates or missing:
        raise RuntimeError(f"Hierarchy registry mismatch: duplicates={duplicates} missing={missing}")
    for node in _NODES:
        if node.category not in CATEGORIES:
            raise RuntimeError(f"Unknown category {node.category!r} for {node.kind.value}")

    visiting: set[K] = set()
    done: set[K] = set()

    def visit(kind: K, path: tuple[K, ...]) -> None:
        if kind in done:
            return
        if kind in visiting:
            cycle = " -> ".join(k.value for k in path + (kind,))
            raise RuntimeError(f"Hierarchy unlock cycle: {cycle}")
        visiting.add(kind)
        for nxt in HIERARCHY[kind].unlocks:
            visit(nxt, path + (kind,))
        visiting.discard(kind)
        done.add(kind)

    for kind in _ORDER:
        visit(kind, ())


_check_registry()


def _coerce(kind: K | str) -> K:
    if isinstance(kind, K):
        return kind
    try:
        return K(kind)
    except ValueError as exc:
        raise KeyError(kind) from exc


def lookup(kind: K | str) -> HierarchyNode:
    """Return the node for ``kind``; raises ``KeyError`` for unknown kinds."""
    return HIERARCHY[_coerce(kind)]


def all_kinds() -> tuple[K, ...]:
    return _ORDER


def unlocks_of(kind: K | str) -> tuple[K, ...]:
    return lookup(kind).unlocks


def categories() -> tuple[str, ...]:
    return CATEGORIES


def kinds_in_category(category: str) -> tuple[K, ...]:
    if category not in CATEGORIES:
        raise KeyError(category)
    return tuple(kind for kind in _ORDER if HIERARCHY[kind].category == category)


def category_index(kind: K | str) -> int:
    return CATEGORIES.index(lookup(kind).category)


__all__ = [
    "CATEGORIES",
    "HIERARCHY",
    "all_kinds",
    "categories",
    "category_index",
    "kinds_in_category",
    "lookup",
    "unlocks_of",
]
