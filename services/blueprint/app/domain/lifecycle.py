"""Per-project document lifecycle store.

The store is the single writer of a project's documents. Every mutation goes
through one of the transition methods below; readers only ever receive frozen
``Project``/``Document`` snapshots. Transitions are synchronous, so on a single
event loop each one is atomic with respect to other tasks.
"""
from __future__ import annotations

from typing import Callable

import structlog

from . import hierarchy
from .errors import ConcurrentGenerationError, InvalidTransitionError
from .types import (
    Document,
    DocumentKind,
    DocumentStatus,
    Project,
    ProjectBrief,
    ProjectStatus,
    utcnow,
)

logger = structlog.get_logger(__name__)

PHASE_PENDING = "Pending"
PHASE_INITIALIZING = "Initializing..."
PHASE_COMPLETED = "Completed"
PHASE_FAILED = "Failed"

SnapshotListener = Callable[[Project], None]


def document_id(project_id: str, kind: DocumentKind) -> str:
    return f"{project_id}-{kind.value}"


class DocumentLifecycleStore:
    """Owns the canonical document list of one project."""

    def __init__(self, project_id: str, owner_id: str, brief: ProjectBrief) -> None:
        now = utcnow()
        self.project_id = project_id
        self.owner_id = owner_id
        self.brief = brief
        self._status = ProjectStatus.new
        self._documents: dict[DocumentKind, Document] = {}
        self._created_at = now
        self._updated_at = now
        self._listeners: list[SnapshotListener] = []
        self._baselines: dict[DocumentKind, str] = {}

    @classmethod
    def from_snapshot(cls, project: Project) -> "DocumentLifecycleStore":
        store = cls(project.id, project.owner_id, project.brief)
        store._status = project.status
        store._documents = {doc.kind: doc for doc in project.documents}
        store._created_at = project.created_at
        store._updated_at = project.updated_at
        return store

    # -- reads -----------------------------------------------------------

    @property
    def status(self) -> ProjectStatus:
        return self._status

    def document(self, kind: DocumentKind) -> Document:
        try:
            return self._documents[kind]
        except KeyError:
            raise KeyError(f"{kind.value} is not initialized for project {self.project_id}") from None

    def snapshot(self) -> Project:
        return Project(
            id=self.project_id,
            owner_id=self.owner_id,
            brief=self.brief,
            status=self._status,
            documents=tuple(self._documents[k] for k in hierarchy.all_kinds() if k in self._documents),
            created_at=self._created_at,
            updated_at=self._updated_at,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- transitions -----------------------------------------------------

    def initialize_all(self) -> Project:
        if self._documents:
            raise InvalidTransitionError(self.project_id, self._status.value, "initialize_all")
        now = utcnow()
        for kind in hierarchy.all_kinds():
            node = hierarchy.lookup(kind)
            self._documents[kind] = Document(
                id=document_id(self.project_id, kind),
                kind=kind,
                title=node.title,
                created_at=now,
                last_updated=now,
            )
        self._status = ProjectStatus.in_progress
        return self._commit()

    def start_generation(self, kind: DocumentKind) -> Document:
        doc = self.document(kind)
        if doc.status is DocumentStatus.generating:
            raise ConcurrentGenerationError(doc.id)
        self._baselines[kind] = doc.content
        self._put(
            doc.evolve(
                status=DocumentStatus.generating,
                progress=0,
                phase=PHASE_INITIALIZING,
                error=None,
            )
        )
        logger.info("document.generating", document_id=doc.id, previous_status=doc.status.value)
        return self._documents[kind]

    def stream_draft(self, kind: DocumentKind, text: str) -> Document:
        """Show ``text`` as the content of a generating document.

        An empty ``text`` restores the content the document had when the
        generation started.
        """
        doc = self._require_generating(kind, "stream_draft")
        self._put(doc.evolve(content=text or self._baselines.get(kind, doc.content)))
        return self._documents[kind]

    def update_progress(self, kind: DocumentKind, percent: int, phase: str) -> Document:
        doc = self._require_generating(kind, "update_progress")
        self._put(doc.evolve(progress=max(0, min(100, int(percent))), phase=phase))
        return self._documents[kind]

    def complete_generation(self, kind: DocumentKind, content: str, provider: str | None = None) -> Document:
        doc = self._require_generating(kind, "complete_generation")
        self._baselines.pop(kind, None)
        self._put(
            doc.evolve(
                status=DocumentStatus.completed,
                content=content,
                progress=100,
                phase=PHASE_COMPLETED,
                provider=provider,
            )
        )
        logger.info("document.completed", document_id=doc.id, provider=provider, length=len(content))
        return self._documents[kind]

    def fail_generation(self, kind: DocumentKind, reason: str, partial_content: str | None = None) -> Document:
        doc = self._require_generating(kind, "fail_generation")
        changes: dict = {
            "status": DocumentStatus.failed,
            "progress": 100,
            "phase": PHASE_FAILED,
            "error": reason,
            "content": partial_content or self._baselines.get(kind, doc.content),
        }
        self._baselines.pop(kind, None)
        self._put(doc.evolve(**changes))
        logger.warning("document.failed", document_id=doc.id, reason=reason)
        return self._documents[kind]

    def replace_content(self, kind: DocumentKind, content: str) -> Document:
        doc = self.document(kind)
        if doc.status is DocumentStatus.generating:
            raise InvalidTransitionError(doc.id, doc.status.value, "replace_content")
        if doc.content == content:
            return doc
        self._put(doc.evolve(content=content))
        return self._documents[kind]

    # -- internals -------------------------------------------------------

    def _require_generating(self, kind: DocumentKind, operation: str) -> Document:
        doc = self.document(kind)
        if doc.status is not DocumentStatus.generating:
            raise InvalidTransitionError(doc.id, doc.status.value, operation)
        return doc

    def _put(self, doc: Document) -> None:
        now = utcnow()
        self._documents[doc.kind] = doc.evolve(last_updated=now)
        if self._documents and all(d.status is DocumentStatus.completed for d in self._documents.values()):
            self._status = ProjectStatus.completed
        elif self._status is ProjectStatus.completed:
            self._status = ProjectStatus.in_progress
        self._commit(now)

    def _commit(self, now=None) -> Project:
        self._updated_at = now or utcnow()
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot


__all__ = [
    "DocumentLifecycleStore",
    "PHASE_COMPLETED",
    "PHASE_FAILED",
    "PHASE_INITIALIZING",
    "SnapshotListener",
    "document_id",
]
