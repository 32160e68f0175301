"""Project snapshot repositories (SQLAlchemy and in-memory)."""
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..domain import hierarchy
from ..domain.types import Document, DocumentKind, DocumentStatus, Project, ProjectBrief, ProjectStatus
from .db import session_scope
from .models import DocumentRecord, ProjectRecord

logger = structlog.get_logger(__name__)


class ProjectRepository(Protocol):
    async def save_project_snapshot(self, project: Project) -> None: ...

    async def load_all_projects(self) -> list[Project]: ...


class InMemoryProjectRepository:
    """Keeps the latest snapshot per project in process memory."""

    def __init__(self) -> None:
        self._projects: dict[str, Project] = {}

    async def save_project_snapshot(self, project: Project) -> None:
        self._projects[project.id] = project

    async def load_all_projects(self) -> list[Project]:
        return sorted(self._projects.values(), key=lambda p: p.created_at, reverse=True)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def project_to_record(project: Project) -> ProjectRecord:
    positions = {kind: idx for idx, kind in enumerate(hierarchy.all_kinds())}
    return ProjectRecord(
        id=project.id,
        owner_id=project.owner_id,
        status=project.status.value,
        brief=asdict(project.brief),
        created_at=project.created_at,
        updated_at=project.updated_at,
        documents=[
            DocumentRecord(
                id=doc.id,
                project_id=project.id,
                kind=doc.kind.value,
                position=positions[doc.kind],
                title=doc.title,
                content=doc.content,
                status=doc.status.value,
                progress=doc.progress,
                phase=doc.phase,
                error=doc.error,
                provider=doc.provider,
                created_at=doc.created_at,
                last_updated=doc.last_updated,
            )
            for doc in project.documents
        ],
    )


def record_to_project(record: ProjectRecord) -> Project:
    brief = dict(record.brief or {})
    brief["features"] = tuple(brief.get("features") or ())
    brief["tech_stack"] = tuple(brief.get("tech_stack") or ())
    return Project(
        id=record.id,
        owner_id=record.owner_id,
        brief=ProjectBrief(**brief),
        status=ProjectStatus(record.status),
        documents=tuple(
            Document(
                id=doc.id,
                kind=DocumentKind(doc.kind),
                title=doc.title,
                content=doc.content,
                status=DocumentStatus(doc.status),
                progress=doc.progress,
                phase=doc.phase,
                error=doc.error,
                provider=doc.provider,
                created_at=_aware(doc.created_at),
                last_updated=_aware(doc.last_updated),
            )
            for doc in sorted(record.documents, key=lambda d: d.position)
        ),
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


class SqlProjectRepository:
    """Persists project snapshots through an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    async def save_project_snapshot(self, project: Project) -> None:
        async with session_scope(self._session_factory) as session:
            await session.merge(project_to_record(project))
        logger.debug("project.saved", project_id=project.id, status=project.status.value)

    async def load_all_projects(self) -> list[Project]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(ProjectRecord)
                .options(selectinload(ProjectRecord.documents))
                .order_by(ProjectRecord.created_at.desc())
            )
            records = result.scalars().all()
            return [record_to_project(record) for record in records]


__all__ = [
    "InMemoryProjectRepository",
    "ProjectRepository",
    "SqlProjectRepository",
    "project_to_record",
    "record_to_project",
]
