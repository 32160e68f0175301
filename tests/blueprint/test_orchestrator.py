import asyncio

import httpx
import pytest

from services.blueprint.app.config import GoogleProviderSettings
from services.blueprint.app.domain import hierarchy
from services.blueprint.app.domain.errors import (
    ConcurrentGenerationError,
    InvalidTransitionError,
    ProviderError,
    RateLimited,
    StaleSectionError,
    UnknownProjectError,
)
from services.blueprint.app.domain.orchestrator import INTERRUPTED_REASON
from services.blueprint.app.domain.providers import GoogleProvider
from services.blueprint.app.domain.types import DocumentKind, DocumentStatus, ProjectStatus
from services.blueprint.app.persistence.repository import InMemoryProjectRepository

K = DocumentKind
EARLY = {
    K.strategy_vision,
    K.strategy_market,
    K.strategy_personas,
    K.strategy_kpi,
    K.product_brd,
    K.product_prd,
    K.product_stories,
    K.product_domain,
}


def _by_status(project, status):
    return {d.kind for d in project.documents if d.status is status}


@pytest.mark.asyncio
async def test_initial_batch_generates_strategy_and_product(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    assert project.status is ProjectStatus.in_progress
    assert _by_status(project, DocumentStatus.pending) == set(K)

    assert set(orchestrator.initial_batch()) == EARLY
    project = await orchestrator.run_initial_batch(project.id)

    assert _by_status(project, DocumentStatus.completed) == EARLY
    assert _by_status(project, DocumentStatus.pending) == set(K) - EARLY
    assert [c.label for c in provider.calls] == [hierarchy.lookup(k).title for k in orchestrator.initial_batch()]
    vision = project.document(K.strategy_vision)
    assert vision.progress == 100 and vision.phase == "Completed"
    assert vision.provider == "google"


@pytest.mark.asyncio
async def test_initial_batch_waits_between_documents(make_provider, make_orchestrator, sleeper, brief):
    orchestrator = make_orchestrator(make_provider(), settle_delay_ms=3_000)
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.run_initial_batch(project.id)
    assert sleeper.delays.count(3.0) == len(EARLY) - 1


@pytest.mark.asyncio
async def test_initial_batch_skips_documents_already_generated(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.regenerate(project.id, K.strategy_market)
    provider.calls.clear()

    project = await orchestrator.run_initial_batch(project.id)

    assert len(provider.calls) == len(EARLY) - 1
    assert hierarchy.lookup(K.strategy_market).title not in [c.label for c in provider.calls]
    assert _by_status(project, DocumentStatus.completed) == EARLY


@pytest.mark.asyncio
async def test_initial_batch_continues_past_malformed_provider_body(make_orchestrator, brief):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, text="<html>gateway hiccup</html>", headers={"content-type": "text/html"})
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "## Doc\nBody"}]}}]})

    google = GoogleProvider(
        GoogleProviderSettings(api_key="g-key"), http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    orchestrator = make_orchestrator(google)
    project = await orchestrator.create_project(brief, owner_id="owner-1")

    project = await orchestrator.run_initial_batch(project.id)

    first, *rest = orchestrator.initial_batch()
    failed = project.document(first)
    assert failed.status is DocumentStatus.failed
    assert "malformed response" in failed.error
    assert _by_status(project, DocumentStatus.completed) == set(rest)
    assert len(calls) == len(EARLY)


@pytest.mark.asyncio
async def test_initial_batch_continues_past_unexpected_error(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.script = [RuntimeError("boom")]

    project = await orchestrator.run_initial_batch(project.id)

    first, *rest = orchestrator.initial_batch()
    assert project.document(first).status is DocumentStatus.failed
    assert project.document(first).error.startswith("Unexpected error")
    assert _by_status(project, DocumentStatus.completed) == set(rest)


@pytest.mark.asyncio
async def test_failed_generation_is_recorded_not_raised(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.script = [ProviderError("model not found", status_code=404)]

    doc = await orchestrator.regenerate(project.id, K.arch_db)

    assert doc.status is DocumentStatus.failed
    assert doc.error == "model not found"
    assert doc.phase == "Failed"

    doc = await orchestrator.regenerate(project.id, K.arch_db)
    assert doc.status is DocumentStatus.completed
    assert doc.error is None


@pytest.mark.asyncio
async def test_concurrent_regenerate_is_rejected(orchestrator, brief):
    project = await orchestrator.create_project(brief, owner_id="owner-1")

    results = await asyncio.gather(
        orchestrator.regenerate(project.id, K.arch_api),
        orchestrator.regenerate(project.id, K.arch_api),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ConcurrentGenerationError)
    assert orchestrator.project(project.id).document(K.arch_api).status is DocumentStatus.completed


@pytest.mark.asyncio
async def test_background_regenerate_marks_generating_immediately(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.gate = asyncio.Event()

    task = orchestrator.regenerate_in_background(project.id, K.code_env)
    assert orchestrator.project(project.id).document(K.code_env).status is DocumentStatus.generating
    with pytest.raises(ConcurrentGenerationError):
        await orchestrator.regenerate(project.id, K.code_env)

    provider.gate.set()
    doc = await task
    assert doc.status is DocumentStatus.completed


@pytest.mark.asyncio
async def test_cancelled_generation_is_marked_failed(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.gate = asyncio.Event()

    task = orchestrator.regenerate_in_background(project.id, K.ops_env)
    while not provider.calls:
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    doc = orchestrator.project(project.id).document(K.ops_env)
    assert doc.status is DocumentStatus.failed


@pytest.mark.asyncio
async def test_advance_generates_pending_successor_and_moves_focus(orchestrator, brief):
    focused = []
    orchestrator.on_focus(lambda pid, kind: focused.append((pid, kind)))
    project = await orchestrator.create_project(brief, owner_id="owner-1")

    target = await orchestrator.advance(project.id, K.arch_overview)

    assert target is K.arch_components
    assert focused == [(project.id, K.arch_components)]
    assert orchestrator.project(project.id).document(K.arch_components).status is DocumentStatus.completed
    assert orchestrator.project(project.id).document(K.arch_db).status is DocumentStatus.pending


@pytest.mark.asyncio
async def test_advance_to_completed_successor_does_not_regenerate(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.regenerate(project.id, K.strategy_market)
    provider.calls.clear()

    assert await orchestrator.advance(project.id, K.strategy_vision) is K.strategy_market
    assert provider.calls == []
    assert await orchestrator.advance(project.id, K.process_adr) is None


@pytest.mark.asyncio
async def test_advance_without_waiting_returns_while_generating(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.gate = asyncio.Event()

    target = await orchestrator.advance(project.id, K.ops_cicd, wait=False)

    assert target is K.ops_deploy
    assert orchestrator.project(project.id).document(K.ops_deploy).status is DocumentStatus.generating
    provider.gate.set()
    await orchestrator.drain()
    assert orchestrator.project(project.id).document(K.ops_deploy).status is DocumentStatus.completed


@pytest.mark.asyncio
async def test_section_edit_and_refine_touch_only_one_section(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.save_document(project.id, K.product_brd, "# Intro\nA\n## Scope\nB\n## Risks\nC")

    doc = await orchestrator.edit_section(project.id, K.product_brd, "sec-1", "## Scope\nB2")
    assert doc.content == "# Intro\nA\n## Scope\nB2\n## Risks\nC"

    provider.default = "## Risks\nC, mitigated"
    doc = await orchestrator.refine_section(project.id, K.product_brd, "sec-2", "add mitigations")
    assert doc.content == "# Intro\nA\n## Scope\nB2\n## Risks\nC, mitigated"
    assert provider.calls[-1].source == "## Risks\nC"
    assert [s.title for s in orchestrator.sections(project.id, K.product_brd)] == ["Intro", "Scope", "Risks"]


@pytest.mark.asyncio
async def test_refine_section_detects_concurrent_edit(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.save_document(project.id, K.product_brd, "## Scope\nB\n## Risks\nC")
    provider.gate = asyncio.Event()

    refine = asyncio.ensure_future(orchestrator.refine_section(project.id, K.product_brd, "sec-1", "shorter"))
    while not provider.calls:
        await asyncio.sleep(0)
    await orchestrator.edit_section(project.id, K.product_brd, "sec-1", "## Risks\nEdited meanwhile")
    provider.gate.set()

    with pytest.raises(StaleSectionError):
        await refine
    assert orchestrator.project(project.id).document(K.product_brd).content.endswith("Edited meanwhile")


@pytest.mark.asyncio
async def test_refine_is_rejected_while_generating(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.gate = asyncio.Event()
    task = orchestrator.regenerate_in_background(project.id, K.product_prd)

    with pytest.raises(InvalidTransitionError):
        await orchestrator.refine_document(project.id, K.product_prd, "shorter")
    with pytest.raises(InvalidTransitionError):
        await orchestrator.save_document(project.id, K.product_prd, "manual")

    provider.gate.set()
    await task


@pytest.mark.asyncio
async def test_refine_document_replaces_whole_content(orchestrator, brief, provider):
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.regenerate(project.id, K.user_faq)
    provider.default = "## FAQ\nTighter answers"

    doc = await orchestrator.refine_document(project.id, K.user_faq, "tighten")

    assert doc.content == "## FAQ\nTighter answers"
    assert doc.status is DocumentStatus.completed


@pytest.mark.asyncio
async def test_hydrate_fails_interrupted_generations(make_provider, make_orchestrator, brief):
    repository = InMemoryProjectRepository()
    first = make_orchestrator(make_provider(), repository=repository)
    project = await first.create_project(brief, owner_id="owner-1", project_id="p-restart")
    first.store(project.id).start_generation(K.test_cases)
    await repository.save_project_snapshot(first.project(project.id))

    second = make_orchestrator(make_provider(), repository=repository)
    assert await second.hydrate() == 1

    doc = second.project("p-restart").document(K.test_cases)
    assert doc.status is DocumentStatus.failed
    assert doc.error == INTERRUPTED_REASON
    saved = (await repository.load_all_projects())[0]
    assert saved.document(K.test_cases).status is DocumentStatus.failed
    await second.regenerate("p-restart", K.test_cases)


@pytest.mark.asyncio
async def test_every_transition_is_persisted(make_provider, make_orchestrator, brief):
    repository = InMemoryProjectRepository()
    orchestrator = make_orchestrator(make_provider(), repository=repository)
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    await orchestrator.regenerate(project.id, K.biz_legal)

    saved = (await repository.load_all_projects())[0]
    assert saved.document(K.biz_legal).status is DocumentStatus.completed
    assert saved == orchestrator.project(project.id)


@pytest.mark.asyncio
async def test_projects_are_scoped_by_owner(orchestrator, brief):
    mine = await orchestrator.create_project(brief, owner_id="alice")
    await orchestrator.create_project(brief, owner_id="bob")

    assert [p.id for p in orchestrator.projects(owner_id="alice")] == [mine.id]
    assert len(orchestrator.projects()) == 2
    with pytest.raises(UnknownProjectError):
        orchestrator.project("missing")


@pytest.mark.asyncio
async def test_streamed_draft_is_visible_and_retries_start_over(
    make_provider, make_orchestrator, stream_then_fail, brief
):
    provider = make_provider(
        script=[
            stream_then_fail("## Vision attempt 1\n", RateLimited("quota exceeded", provider="google")),
            stream_then_fail("## Vision attempt 2\n", ProviderError("upstream reset")),
        ]
    )
    orchestrator = make_orchestrator(provider, stream=True)
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    drafts = []

    def on_snapshot(snapshot):
        doc = snapshot.document(K.strategy_vision)
        if doc.status is DocumentStatus.generating:
            drafts.append(doc.content)

    orchestrator.subscribe(project.id, on_snapshot)
    doc = await orchestrator.regenerate(project.id, K.strategy_vision)

    assert "## Vision attempt 1\n" in drafts
    assert "## Vision attempt 2\n" in drafts
    assert doc.status is DocumentStatus.failed
    assert doc.error == "upstream reset"
    assert doc.content == "## Vision attempt 2\n"


@pytest.mark.asyncio
async def test_failed_stream_without_draft_keeps_previous_content(
    make_provider, make_orchestrator, stream_then_fail, brief
):
    provider = make_provider()
    orchestrator = make_orchestrator(provider, stream=True)
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    previous = (await orchestrator.regenerate(project.id, K.strategy_kpi)).content

    provider.script = [
        stream_then_fail("## Rewrite\n", RateLimited("quota exceeded", provider="google")),
        ProviderError("bad gateway"),
    ]
    doc = await orchestrator.regenerate(project.id, K.strategy_kpi)

    assert doc.status is DocumentStatus.failed
    assert doc.error == "bad gateway"
    assert doc.content == previous


class HoldingRepository(InMemoryProjectRepository):
    """Blocks the next save once ``hold`` is set, until ``release`` fires."""

    def __init__(self) -> None:
        super().__init__()
        self.hold = False
        self.holding = asyncio.Event()
        self.release = asyncio.Event()

    async def save_project_snapshot(self, project) -> None:
        if self.hold:
            self.hold = False
            self.holding.set()
            await self.release.wait()
        await super().save_project_snapshot(project)


@pytest.mark.asyncio
async def test_slow_save_does_not_overwrite_later_edit(make_provider, make_orchestrator, brief):
    repository = HoldingRepository()
    provider = make_provider(default="## Generated\nBody")
    orchestrator = make_orchestrator(provider, repository=repository)
    project = await orchestrator.create_project(brief, owner_id="owner-1")
    provider.gate = asyncio.Event()

    task = orchestrator.regenerate_in_background(project.id, K.arch_ux)
    while not provider.calls:
        await asyncio.sleep(0)
    repository.hold = True
    provider.gate.set()
    await repository.holding.wait()

    edit = asyncio.create_task(orchestrator.save_document(project.id, K.arch_ux, "## Hand edit"))
    for _ in range(3):
        await asyncio.sleep(0)
    repository.release.set()
    await task
    await edit

    saved = (await repository.load_all_projects())[0]
    assert saved.document(K.arch_ux).content == "## Hand edit"
    assert saved == orchestrator.project(project.id)
