"""Prompt templates for document generation, refinement and brief assistance."""
from __future__ import annotations

from textwrap import dedent

from . import hierarchy
from .types import DocumentKind, GenerationRequest

DOCUMENT_SYSTEM_PROMPT = (
    "You are an expert technical writer, product manager, and systems architect. "
    "Generate professional, detailed, and actionable documentation. "
    "Return ONLY the markdown content. Use Markdown H2 (##) for all main sections."
)

REFINE_SYSTEM_PROMPT = (
    "You are a professional document editor. Focus on clarity, accuracy, and structure. "
    "Return only the refined content without any wrapper text or explanations."
)

ASSIST_SYSTEM_PROMPT = "You are a product strategist. Answer with JSON only."

_CATEGORY_INSTRUCTIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("Strategy",),
        "Focus on high-level strategic alignment.\n"
        "Analyze the market fit, user needs, and long-term vision.\n"
        "Include sections: Vision, Mission, Strategic Pillars, Market Analysis.",
    ),
    (
        ("Product",),
        "Focus on detailed functional requirements.\n"
        "Define User Stories, Acceptance Criteria, and MoSCoW priorities.\n"
        "Include sections: Features, User Flows, Data Requirements.",
    ),
    (
        ("Architecture", "Code"),
        "Focus on technical implementation details.\n"
        "Provide specific technology choices, patterns, and component breakdowns.\n"
        "Include sections: System Design, Data Model, API Contracts, Security.",
    ),
    (
        ("Business",),
        "Focus on commercial viability and growth.\n"
        "Analyze costs, revenue models, and go-to-market channels.\n"
        "Include sections: Pricing Strategy, Sales Channels, Unit Economics (CAC/LTV).",
    ),
)


def _instructions_for(category: str, description: str) -> str:
    for markers, text in _CATEGORY_INSTRUCTIONS:
        if any(marker in category for marker in markers):
            return text
    return f"Focus on {description}\nProvide actionable guides, checklists, and clear process definitions."


def _join(values) -> str:
    return ", ".join(values) if values else "Not specified"


def build_document_prompt(kind: DocumentKind, request: GenerationRequest) -> str:
    node = hierarchy.lookup(kind)
    prefs = request.preferences
    return dedent(
        """\
        Create the document: "{title}"
        Description: {description}

        PROJECT CONTEXT:
        Concept: {concept}
        Problem: {problem}
        Audience: {audience}
        Features: {features}
        Tech Stack: {tech}
        Timeline: {timeline}
        Budget: {budget}

        INSTRUCTIONS:
        {instructions}

        FORMAT:
        - Use Markdown H2 (##) for all main sections.
        - Be professional, concise, and actionable.
        - If relevant, include tables or code blocks.
        """
    ).format(
        title=node.title,
        description=node.description,
        concept=request.concept,
        problem=request.problem,
        audience=request.audience or "Not specified",
        features=_join(request.features),
        tech=_join(prefs.tech),
        timeline=prefs.timeline or "Not specified",
        budget=prefs.budget or "Not specified",
        instructions=_instructions_for(node.category, node.description),
    )


def build_refine_prompt(content: str, instruction: str, kind: DocumentKind) -> str:
    return dedent(
        """\
        DOCUMENT TYPE: {title}
        USER REQUEST: "{instruction}"

        ORIGINAL CONTENT:
        {content}

        TASK: Refine the content according to the user's specific request.
        - Maintain the document's purpose and key information
        - Preserve important technical details and data
        - Keep the existing heading lines unless the request asks to change them
        - Return ONLY the refined markdown content
        - Do not add meta-commentary or explanations outside the content
        """
    ).format(title=hierarchy.lookup(kind).title, instruction=instruction, content=content)


def build_extraction_prompt(text: str) -> str:
    return dedent(
        """\
        Analyze the following project summary or transcript and extract structured project details.

        Input Text:
        \"\"\"
        {text}
        \"\"\"

        Return ONLY a JSON object with the following fields:
        {{
          "name": "Short project name",
          "concept": "1-2 line overview",
          "problem": "Main pain point being solved",
          "audience": "Target audience description",
          "features": ["Feature 1", "Feature 2"],
          "tech": ["React", "Node.js"],
          "budget": "One of: Bootstrapped (<$5k), Small ($5-25k), Medium ($25-100k), Enterprise (>$100k)",
          "timeline": "One of: ASAP (1-3m), Normal (3-6m), Flexible (6-12m), Long (12m+)"
        }}

        If a field is not mentioned, provide a reasonable best guess based on the context.
        """
    ).format(text=text)


def build_brainstorm_prompt(concept: str, problem: str) -> str:
    return dedent(
        """\
        Based on the following project concept and problem statement, brainstorm 5-7 core
        features that would make this a successful product.

        Concept: {concept}
        Problem: {problem}

        Return ONLY a JSON array of strings.
        Example: ["User Authentication", "Dashboard", "Push Notifications"]
        """
    ).format(concept=concept, problem=problem)


def placeholder_document(kind: DocumentKind) -> str:
    """Content used when every provider is rate limited."""
    title = hierarchy.lookup(kind).title
    return (
        "## ⚠️ Rate Limit\n\n"
        "AI provider busy. Please try again later or configure OpenRouter backup in settings.\n\n"
        f"## Placeholder for {title}\n"
        "- Section 1\n"
        "- Section 2"
    )


__all__ = [
    "ASSIST_SYSTEM_PROMPT",
    "DOCUMENT_SYSTEM_PROMPT",
    "REFINE_SYSTEM_PROMPT",
    "build_brainstorm_prompt",
    "build_document_prompt",
    "build_extraction_prompt",
    "build_refine_prompt",
    "placeholder_document",
]
