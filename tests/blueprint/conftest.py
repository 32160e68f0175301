import asyncio
import random
from typing import AsyncIterator

import pytest

from services.blueprint.app.config import BlueprintSettings, GenerationTuning, StorageSettings
from services.blueprint.app.domain.ai_client import GenerationClient
from services.blueprint.app.domain.orchestrator import GenerationOrchestrator
from services.blueprint.app.domain.providers import ProviderCall, ProviderDelta, ProviderResponse
from services.blueprint.app.domain.types import GenerationMode, ProjectBrief, ProviderName
from services.blueprint.app.persistence.repository import InMemoryProjectRepository


class StreamThenFail:
    """Script item: stream ``text`` line by line, then raise ``error``."""

    def __init__(self, text: str, error: BaseException) -> None:
        self.text = text
        self.error = error


class FakeProvider:
    """Scripted provider: each call pops the next item, an exception is raised."""

    def __init__(self, name=ProviderName.google, script=None, default="## Draft\nGenerated body.", configured=True):
        self.name = name
        self.script = list(script or [])
        self.default = default
        self.configured = configured
        self.calls: list[ProviderCall] = []
        self.gate: asyncio.Event | None = None

    def is_configured(self) -> bool:
        return self.configured

    def model_for(self, mode: GenerationMode) -> str:
        return f"{self.name.value}-model"

    async def _next(self, call: ProviderCall):
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, BaseException):
            raise item
        return item

    async def complete(self, call: ProviderCall) -> ProviderResponse:
        item = await self._next(call)
        if isinstance(item, StreamThenFail):
            raise item.error
        if isinstance(item, ProviderResponse):
            return item
        return ProviderResponse(text=item, model=self.model_for(call.mode))

    async def stream(self, call: ProviderCall) -> AsyncIterator[ProviderDelta]:
        item = await self._next(call)
        failure = None
        if isinstance(item, StreamThenFail):
            item, failure = item.text, item.error
        text = item.text if isinstance(item, ProviderResponse) else item
        for line in text.splitlines(keepends=True):
            yield ProviderDelta(text=line)
        if failure is not None:
            raise failure


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_settings(**generation) -> BlueprintSettings:
    tuning = {
        "settle_delay_ms": 0,
        "progress_interval_ms": 0,
        "backoff_base_ms": 2_000,
    }
    tuning.update(generation)
    return BlueprintSettings(
        generation=GenerationTuning(**tuning),
        storage=StorageSettings(backend="memory"),
    )


@pytest.fixture
def brief() -> ProjectBrief:
    return ProjectBrief(
        name="Harbor",
        concept="A booking tool for small marinas",
        problem="Slip reservations are tracked on paper",
        audience="Marina operators",
        features=("Slip calendar", "Online payments"),
        tech_stack=("Python", "Postgres"),
        budget="Small ($5-25k)",
        timeline="Normal (3-6m)",
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def orchestrator(provider, make_orchestrator) -> GenerationOrchestrator:
    return make_orchestrator(provider)


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def stream_then_fail():
    return StreamThenFail


@pytest.fixture
def make_client(sleeper):
    def factory(primary=None, secondary=None, **generation) -> GenerationClient:
        return GenerationClient(make_settings(**generation), primary=primary, secondary=secondary, sleep=sleeper)

    return factory


@pytest.fixture
def make_orchestrator(sleeper):
    def factory(primary, secondary=None, repository=None, **generation) -> GenerationOrchestrator:
        settings = make_settings(**generation)
        client = GenerationClient(settings, primary=primary, secondary=secondary, sleep=sleeper)
        return GenerationOrchestrator(
            client, repository or InMemoryProjectRepository(), settings, sleep=sleeper, rng=random.Random(7)
        )

    return factory
