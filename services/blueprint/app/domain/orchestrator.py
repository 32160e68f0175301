"""Document generation orchestration."""
from __future__ import annotations

import asyncio
import random
import uuid
from typing import Any, Callable, Coroutine, TypeVar

import structlog
from opentelemetry import trace

from ..config import BlueprintSettings
from ..persistence.repository import InMemoryProjectRepository, ProjectRepository
from . import hierarchy
from .ai_client import ChunkCallback, GenerationClient
from .errors import GenerationError, InvalidTransitionError, StaleSectionError, UnknownProjectError
from .lifecycle import DocumentLifecycleStore, SnapshotListener
from .progress import Sleep, drive_with_progress
from .sections import find_section, join, replace_section, split
from .types import (
    Document,
    DocumentKind,
    DocumentStatus,
    GenerationRequest,
    Project,
    ProjectBrief,
    Section,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")
FocusListener = Callable[[str, DocumentKind], None]

INTERRUPTED_REASON = "Generation interrupted before completion"


class GenerationOrchestrator:
    """Decides when documents are generated and drives client and store together.

    One orchestrator serves every project of the process. Per-document
    single-flight is enforced by the lifecycle store; the initial batch runs
    strictly one document at a time with a settle delay in between.
    """

    def __init__(
        self,
        client: GenerationClient,
        repository: ProjectRepository | None = None,
        settings: BlueprintSettings | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._repository = repository or InMemoryProjectRepository()
        self._settings = settings or client.settings
        self._sleep = sleep
        self._rng = rng
        self._stores: dict[str, DocumentLifecycleStore] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._focus_listeners: list[FocusListener] = []
        self._save_locks: dict[str, asyncio.Lock] = {}

    @property
    def client(self) -> GenerationClient:
        return self._client

    # -- projects --------------------------------------------------------

    def store(self, project_id: str) -> DocumentLifecycleStore:
        try:
            return self._stores[project_id]
        except KeyError:
            raise UnknownProjectError(project_id) from None

    def project(self, project_id: str) -> Project:
        return self.store(project_id).snapshot()

    def projects(self, owner_id: str | None = None) -> list[Project]:
        snapshots = [s.snapshot() for s in self._stores.values() if owner_id is None or s.owner_id == owner_id]
        return sorted(snapshots, key=lambda p: p.created_at, reverse=True)

    def subscribe(self, project_id: str, listener: SnapshotListener) -> Callable[[], None]:
        return self.store(project_id).subscribe(listener)

    def on_focus(self, listener: FocusListener) -> None:
        self._focus_listeners.append(listener)

    async def hydrate(self) -> int:
        """Load persisted projects; documents caught mid-generation become failed."""
        loaded = 0
        for project in await self._repository.load_all_projects():
            store = DocumentLifecycleStore.from_snapshot(project)
            interrupted = [d.kind for d in project.documents if d.status is DocumentStatus.generating]
            for kind in interrupted:
                store.fail_generation(kind, INTERRUPTED_REASON)
            self._stores[project.id] = store
            if interrupted:
                await self._persist(store)
            loaded += 1
        logger.info("orchestrator.hydrated", projects=loaded)
        return loaded

    async def create_project(self, brief: ProjectBrief, owner_id: str, project_id: str | None = None) -> Project:
        project_id = project_id or uuid.uuid4().hex
        if project_id in self._stores:
            raise InvalidTransitionError(project_id, self._stores[project_id].status.value, "create_project")
        store = DocumentLifecycleStore(project_id, owner_id, brief)
        store.initialize_all()
        self._stores[project_id] = store
        await self._persist(store)
        logger.info("project.created", project_id=project_id, owner_id=owner_id, documents=len(hierarchy.all_kinds()))
        return store.snapshot()

    # -- generation ------------------------------------------------------

    def initial_batch(self) -> tuple[DocumentKind, ...]:
        count = self._settings.generation.initial_categories
        return tuple(
            kind for category in hierarchy.categories()[:count] for kind in hierarchy.kinds_in_category(category)
        )

    async def run_initial_batch(self, project_id: str) -> Project:
        store = self.store(project_id)
        settle_s = self._settings.generation.settle_delay_ms / 1000
        kinds = self.initial_batch()
        logger.info("batch.start", project_id=project_id, kinds=[k.value for k in kinds])
        for idx, kind in enumerate(kinds):
            if idx:
                await self._sleep(settle_s)
            if store.document(kind).status is not DocumentStatus.pending:
                logger.info("batch.skip", project_id=project_id, kind=kind.value, status=store.document(kind).status.value)
                continue
            store.start_generation(kind)
            try:
                await self._run_generation(store, kind)
            except Exception as exc:
                logger.error("batch.document_error", project_id=project_id, kind=kind.value, error=repr(exc))
        logger.info("batch.done", project_id=project_id)
        return store.snapshot()

    async def regenerate(self, project_id: str, kind: DocumentKind) -> Document:
        store = self.store(project_id)
        store.start_generation(kind)
        return await self._run_generation(store, kind)

    def regenerate_in_background(self, project_id: str, kind: DocumentKind) -> "asyncio.Task[Document]":
        """Mark ``kind`` as generating now and finish the generation in a task.

        Raises ``ConcurrentGenerationError`` immediately when already in flight.
        """
        store = self.store(project_id)
        store.start_generation(kind)
        return self.schedule(self._run_generation(store, kind))

    async def advance(self, project_id: str, from_kind: DocumentKind, wait: bool = True) -> DocumentKind | None:
        """Move focus to the first successor of ``from_kind``, generating it if pending."""
        store = self.store(project_id)
        successors = hierarchy.unlocks_of(from_kind)
        if not successors:
            return None
        target = successors[0]
        task: asyncio.Task[Document] | None = None
        if store.document(target).status is DocumentStatus.pending:
            task = self.regenerate_in_background(project_id, target)
        for listener in list(self._focus_listeners):
            listener(project_id, target)
        logger.info("document.focus", project_id=project_id, kind=target.value, generating=task is not None)
        if task is not None and wait:
            await task
        return target

    async def _run_generation(self, store: DocumentLifecycleStore, kind: DocumentKind) -> Document:
        draft = ""

        def on_draft(text: str) -> None:
            nonlocal draft
            draft = text
            store.stream_draft(kind, text)

        on_chunk: ChunkCallback | None = on_draft if self._settings.generation.stream else None

        def on_progress(percent: int, phase: str) -> None:
            store.update_progress(kind, percent, phase)

        with tracer.start_as_current_span("document.generate") as span:
            span.set_attribute("blueprint.project_id", store.project_id)
            span.set_attribute("blueprint.kind", kind.value)
            try:
                await self._persist(store)
                request = GenerationRequest.from_brief(kind, store.brief)
                result = await drive_with_progress(
                    self._client.generate(kind, request, on_chunk=on_chunk),
                    on_progress,
                    interval_s=self._settings.generation.progress_interval_ms / 1000,
                    sleep=self._sleep,
                    rng=self._rng,
                )
            except GenerationError as exc:
                span.set_attribute("blueprint.status", "failed")
                store.fail_generation(kind, str(exc), draft or None)
                await self._persist(store)
                return store.document(kind)
            except (Exception, asyncio.CancelledError) as exc:
                store.fail_generation(kind, f"Unexpected error: {exc!r}", draft or None)
                await self._persist(store)
                raise
            span.set_attribute("blueprint.status", "completed")
            span.set_attribute("blueprint.provider", result.provider_used.value)
            store.complete_generation(kind, result.content, provider=result.provider_used.value)
            await self._persist(store)
            return store.document(kind)

    # -- editing ---------------------------------------------------------

    def sections(self, project_id: str, kind: DocumentKind) -> list[Section]:
        return split(self.store(project_id).document(kind).content)

    async def save_document(self, project_id: str, kind: DocumentKind, content: str) -> Document:
        store = self.store(project_id)
        doc = store.replace_content(kind, content)
        await self._persist(store)
        return doc

    async def edit_section(self, project_id: str, kind: DocumentKind, section_id: str, content: str) -> Document:
        current = self.sections(project_id, kind)
        return await self.save_document(project_id, kind, join(replace_section(current, section_id, content)))

    async def refine_section(
        self,
        project_id: str,
        kind: DocumentKind,
        section_id: str,
        instruction: str,
        on_chunk: ChunkCallback | None = None,
    ) -> Document:
        store = self.store(project_id)
        self._require_editable(store, kind, "refine_section")
        target = find_section(split(store.document(kind).content), section_id)
        result = await self._client.refine(target.content, instruction, kind, on_chunk=on_chunk)

        current = split(store.document(kind).content)
        if find_section(current, section_id).content != target.content:
            raise StaleSectionError(f"Section {section_id} changed while it was being refined")
        return await self.save_document(project_id, kind, join(replace_section(current, section_id, result.content)))

    async def refine_document(
        self, project_id: str, kind: DocumentKind, instruction: str, on_chunk: ChunkCallback | None = None
    ) -> Document:
        store = self.store(project_id)
        original = self._require_editable(store, kind, "refine_document").content
        result = await self._client.refine(original, instruction, kind, on_chunk=on_chunk)
        if store.document(kind).content != original:
            raise StaleSectionError(f"{kind.value} changed while it was being refined")
        return await self.save_document(project_id, kind, result.content)

    # -- tasks -----------------------------------------------------------

    def schedule(self, coro: Coroutine[Any, Any, T]) -> "asyncio.Task[T]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("orchestrator.task_failed", error=repr(exc))

    async def drain(self) -> None:
        """Wait for every scheduled task, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- internals -------------------------------------------------------

    @staticmethod
    def _require_editable(store: DocumentLifecycleStore, kind: DocumentKind, operation: str) -> Document:
        doc = store.document(kind)
        if doc.status is DocumentStatus.generating:
            raise InvalidTransitionError(doc.id, doc.status.value, operation)
        return doc

    async def _persist(self, store: DocumentLifecycleStore) -> None:
        # Snapshot under the lock so a slower earlier save never lands last.
        lock = self._save_locks.setdefault(store.project_id, asyncio.Lock())
        async with lock:
            await self._repository.save_project_snapshot(store.snapshot())


__all__ = ["FocusListener", "GenerationOrchestrator", "INTERRUPTED_REASON"]
