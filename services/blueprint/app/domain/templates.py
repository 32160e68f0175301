"""Preset project briefs that a new project can start from."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from types import MappingProxyType
from typing import Mapping

from .errors import UnknownTemplateError
from .types import ProjectBrief

TEMPLATE_CATEGORIES = ("Creator Platform", "Community", "Marketplace", "Tools")


@dataclass(frozen=True)
class ProjectTemplate:
    id: str
    name: str
    description: str
    category: str
    prefill: ProjectBrief


_TEMPLATES: tuple[ProjectTemplate, ...] = (
    ProjectTemplate(
        id="onlyfans-alt",
        name="Subscription Content Platform",
        description=(
            "A platform for creators to share exclusive content with paying subscribers, "
            "similar to OnlyFans or Patreon."
        ),
        category="Creator Platform",
        prefill=ProjectBrief(
            name="My Creator Platform",
            concept="A premium content subscription platform for digital creators to monetize their fanbase directly.",
            problem=(
                "Creators rely on ad revenue which is unstable. They need a direct way to monetize "
                "their most loyal fans with exclusive content."
            ),
            audience="Digital creators, influencers, artists, and their superfans.",
            features=(
                "Tiered subscription management",
                "Direct messaging with tip-to-unlock",
                "Secure video/image hosting",
                "Creator analytics dashboard",
                "Automated payouts via Stripe Connect",
            ),
            tech_stack=("Next.js", "Node.js", "PostgreSQL", "Stripe", "AWS S3"),
        ),
    ),
    ProjectTemplate(
        id="skool-clone",
        name="Community Learning Platform",
        description="A community-first course platform where creators can host courses and discussions in one place.",
        category="Community",
        prefill=ProjectBrief(
            name="Community Hub",
            concept="An all-in-one platform combining courses, community forums, and event calendars.",
            problem=(
                "Course platforms lack community engagement, and community tools (Discord) lack course "
                "structure. Creators need both in one place."
            ),
            audience="Educators, coaches, and community leaders.",
            features=(
                "Course curriculum builder",
                "Community discussion boards",
                "Gamification (Leaderboards & Levels)",
                "Live event scheduling",
                "Recurring membership billing",
            ),
            tech_stack=("React", "Firebase", "Node.js"),
        ),
    ),
    ProjectTemplate(
        id="creator-marketplace",
        name="Service Marketplace",
        description="A marketplace connecting creators with brands or editors, similar to Fiverr or Collabstr.",
        category="Marketplace",
        prefill=ProjectBrief(
            name="Creator Gig Market",
            concept="A marketplace connecting brands with UGC (User Generated Content) creators for marketing campaigns.",
            problem="Brands struggle to find authentic creators for ads, and creators struggle to find consistent brand deals.",
            audience="UGC creators, marketing agencies, D2C brands.",
            features=(
                "Advanced search & filtering",
                "Escrow payment system",
                "Milestone-based project management",
                "Creator portfolio verification",
                "Review & rating system",
            ),
            tech_stack=("Next.js", "Django", "PostgreSQL"),
        ),
    ),
    ProjectTemplate(
        id="creator-tools",
        name="AI Content Tool",
        description="SaaS tool for creators to edit, repurpose, or schedule content.",
        category="Tools",
        prefill=ProjectBrief(
            name="AI Content Repurposer",
            concept="An AI tool that takes long-form video and automatically cuts it into shorts for TikTok/Reels.",
            problem="Editing short-form content from long videos is time-consuming and tedious for creators.",
            audience="YouTubers, Podcasters, Twitch Streamers.",
            features=(
                "AI highlight detection",
                "Auto-captioning",
                "Multi-platform publishing",
                "Brand template presets",
                "Cloud rendering",
            ),
            tech_stack=("React", "Python", "FFmpeg", "OpenAI API"),
        ),
    ),
)

TEMPLATES: Mapping[str, ProjectTemplate] = MappingProxyType({t.id: t for t in _TEMPLATES})

if len(TEMPLATES) != len(_TEMPLATES):  # pragma: no cover - import-time guard
    raise RuntimeError("Duplicate project template ids")


def all_templates() -> tuple[ProjectTemplate, ...]:
    return _TEMPLATES


def lookup_template(template_id: str) -> ProjectTemplate:
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise UnknownTemplateError(template_id) from None


def apply_template(template: ProjectTemplate, overrides: ProjectBrief) -> ProjectBrief:
    """Fill every empty field of ``overrides`` from the template's prefill."""
    changes = {
        f.name: getattr(template.prefill, f.name)
        for f in fields(ProjectBrief)
        if f.name != "team_size" and not getattr(overrides, f.name)
    }
    return replace(overrides, **changes)


__all__ = [
    "ProjectTemplate",
    "TEMPLATES",
    "TEMPLATE_CATEGORIES",
    "all_templates",
    "apply_template",
    "lookup_template",
]
