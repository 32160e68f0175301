"""Request/response models for the HTTP API."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..domain import hierarchy
from ..domain.templates import ProjectTemplate
from ..domain.types import Document, Project, ProjectBrief, Section


class ProjectCreateRequest(BaseModel):
    template_id: str | None = Field(default=None, alias="templateId")
    name: str = ""
    concept: str = ""
    problem: str = ""
    audience: str = ""
    features: List[str] = Field(default_factory=list)
    tech_stack: List[str] = Field(default_factory=list, alias="techStack")
    budget: str = ""
    timeline: str = ""
    team_size: int = Field(default=1, ge=1, alias="teamSize")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _require_brief_fields(self) -> "ProjectCreateRequest":
        if self.template_id is None:
            missing = [f for f in ("name", "concept", "problem") if not getattr(self, f).strip()]
            if missing:
                raise ValueError(f"{', '.join(missing)} required unless a templateId is given")
        return self

    def to_brief(self) -> ProjectBrief:
        return ProjectBrief(
            name=self.name.strip(),
            concept=self.concept.strip(),
            problem=self.problem.strip(),
            audience=self.audience.strip(),
            features=tuple(f.strip() for f in self.features if f.strip()),
            tech_stack=tuple(self.tech_stack),
            budget=self.budget,
            timeline=self.timeline,
            team_size=self.team_size,
        )


class DocumentResponse(BaseModel):
    id: str
    kind: str
    title: str
    category: str
    owner: str
    cta_label: str = Field(alias="ctaLabel")
    content: str
    status: str
    progress: int
    phase: str
    error: str | None = None
    provider: str | None = None
    unlocks: List[str] = Field(default_factory=list)
    created_at: str = Field(alias="createdAt")
    last_updated: str = Field(alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True, ser_json_t="alias")

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentResponse":
        node = hierarchy.lookup(doc.kind)
        return cls(
            id=doc.id,
            kind=doc.kind.value,
            title=doc.title,
            category=node.category,
            owner=node.owner,
            ctaLabel=node.cta_label,
            content=doc.content,
            status=doc.status.value,
            progress=doc.progress,
            phase=doc.phase,
            error=doc.error,
            provider=doc.provider,
            unlocks=[k.value for k in node.unlocks],
            createdAt=doc.created_at.isoformat(),
            lastUpdated=doc.last_updated.isoformat(),
        )


class ProjectResponse(BaseModel):
    id: str
    owner_id: str = Field(alias="ownerId")
    name: str
    concept: str
    problem: str
    audience: str
    features: List[str]
    tech_stack: List[str] = Field(alias="techStack")
    budget: str
    timeline: str
    team_size: int = Field(alias="teamSize")
    status: str
    documents: List[DocumentResponse]
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, ser_json_t="alias")

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        brief = project.brief
        return cls(
            id=project.id,
            ownerId=project.owner_id,
            name=brief.name,
            concept=brief.concept,
            problem=brief.problem,
            audience=brief.audience,
            features=list(brief.features),
            techStack=list(brief.tech_stack),
            budget=brief.budget,
            timeline=brief.timeline,
            teamSize=brief.team_size,
            status=project.status.value,
            documents=[DocumentResponse.from_document(doc) for doc in project.documents],
            createdAt=project.created_at.isoformat(),
            updatedAt=project.updated_at.isoformat(),
        )


class SaveDocumentRequest(BaseModel):
    content: str


class SectionResponse(BaseModel):
    id: str
    title: str
    content: str
    order: int

    @classmethod
    def from_section(cls, section: Section) -> "SectionResponse":
        return cls(id=section.id, title=section.title, content=section.content, order=section.order)


class RefineRequest(BaseModel):
    instruction: str = Field(min_length=1)


class AdvanceResponse(BaseModel):
    focus: str | None
    document: DocumentResponse | None = None


class ExtractRequest(BaseModel):
    text: str = Field(min_length=1)


class BrainstormRequest(BaseModel):
    concept: str = Field(min_length=1)
    problem: str = Field(min_length=1)


class ValidateKeyRequest(BaseModel):
    api_key: str = Field(alias="apiKey")
    model: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class TemplatePrefill(BaseModel):
    name: str
    concept: str
    problem: str
    audience: str
    features: List[str]
    tech_stack: List[str] = Field(alias="techStack")

    model_config = ConfigDict(populate_by_name=True)


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    prefill: TemplatePrefill

    @classmethod
    def from_template(cls, template: ProjectTemplate) -> "TemplateResponse":
        brief = template.prefill
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            category=template.category,
            prefill=TemplatePrefill(
                name=brief.name,
                concept=brief.concept,
                problem=brief.problem,
                audience=brief.audience,
                features=list(brief.features),
                techStack=list(brief.tech_stack),
            ),
        )


__all__ = [
    "AdvanceResponse",
    "BrainstormRequest",
    "DocumentResponse",
    "ExtractRequest",
    "ProjectCreateRequest",
    "ProjectResponse",
    "RefineRequest",
    "SaveDocumentRequest",
    "SectionResponse",
    "TemplatePrefill",
    "TemplateResponse",
    "ValidateKeyRequest",
]
