import pytest

from services.blueprint.app.domain.errors import ConfigError, ProviderError, RateLimited
from services.blueprint.app.domain.providers import ProviderResponse
from services.blueprint.app.domain.types import (
    DocumentKind,
    GenerationMode,
    GenerationRequest,
    ProviderName,
)

PERSONAS = DocumentKind.strategy_personas


def _request(kind=PERSONAS):
    return GenerationRequest(kind=kind, concept="Marina booking", problem="Paper ledgers", features=("Calendar",))


def _limited():
    return RateLimited("quota exceeded", provider="google")


@pytest.mark.asyncio
async def test_rate_limit_is_retried_with_doubling_backoff(make_provider, make_client, sleeper):
    primary = make_provider(script=[_limited(), _limited(), "## Personas\nMarina owner"])
    client = make_client(primary)

    result = await client.generate(PERSONAS, _request())

    assert result.content == "## Personas\nMarina owner"
    assert result.provider_used is ProviderName.google
    assert not result.degraded
    assert sleeper.delays == [2.0, 4.0]
    assert len(primary.calls) == 3


@pytest.mark.asyncio
async def test_exhausted_primary_fails_over_to_secondary(make_provider, make_client, sleeper):
    primary = make_provider(script=[_limited() for _ in range(4)])
    secondary = make_provider(name=ProviderName.openrouter, default="## From backup")
    client = make_client(primary, secondary)

    result = await client.generate(PERSONAS, _request())

    assert result.provider_used is ProviderName.openrouter
    assert result.content == "## From backup"
    assert sleeper.delays == [2.0, 4.0, 8.0]
    assert len(primary.calls) == 4
    assert len(secondary.calls) == 1


@pytest.mark.asyncio
async def test_unconfigured_secondary_is_skipped_and_placeholder_returned(make_provider, make_client):
    primary = make_provider(script=[_limited() for _ in range(4)])
    secondary = make_provider(name=ProviderName.openrouter, configured=False)
    client = make_client(primary, secondary)

    result = await client.generate(PERSONAS, _request())

    assert result.degraded
    assert result.provider_used is ProviderName.placeholder
    assert result.content.startswith("## ⚠️ Rate Limit")
    assert "Placeholder for 1.3 Personas & Use Cases" in result.content
    assert secondary.calls == []


@pytest.mark.asyncio
async def test_failed_failover_still_degrades_to_placeholder(make_provider, make_client):
    primary = make_provider(script=[_limited() for _ in range(4)])
    secondary = make_provider(name=ProviderName.openrouter, script=[ProviderError("no credit", status_code=402)])
    client = make_client(primary, secondary)

    result = await client.generate(PERSONAS, _request())

    assert result.degraded


@pytest.mark.asyncio
async def test_provider_error_is_not_retried(make_provider, make_client, sleeper):
    primary = make_provider(script=[ProviderError("bad model", status_code=400)])
    secondary = make_provider(name=ProviderName.openrouter)
    client = make_client(primary, secondary)

    with pytest.raises(ProviderError):
        await client.generate(PERSONAS, _request())
    assert sleeper.delays == []
    assert secondary.calls == []


@pytest.mark.asyncio
async def test_no_credentials_without_offline_fallback_raises(make_provider, make_client):
    client = make_client(make_provider(configured=False), offline_fallback=False)
    with pytest.raises(ConfigError):
        await client.generate(PERSONAS, _request())


@pytest.mark.asyncio
async def test_no_credentials_uses_offline_mock(make_provider, make_client):
    client = make_client(make_provider(configured=False))
    result = await client.generate(PERSONAS, _request())
    assert result.provider_used is ProviderName.offline
    assert result.content.startswith("## Mock Generated 1.3 Personas & Use Cases")


@pytest.mark.asyncio
async def test_unconfigured_primary_routes_to_configured_secondary(make_provider, make_client):
    primary = make_provider(configured=False)
    secondary = make_provider(name=ProviderName.openrouter, default="## Routed")
    result = await make_client(primary, secondary).generate(PERSONAS, _request())
    assert result.provider_used is ProviderName.openrouter
    assert primary.calls == []


@pytest.mark.asyncio
async def test_grounded_documents_get_reference_section(make_provider, make_client):
    primary = make_provider(
        script=[ProviderResponse(text="## Market\nBig", model="g", references=("https://a.example", "https://b.example"))]
    )
    result = await make_client(primary).generate(DocumentKind.strategy_market, _request(DocumentKind.strategy_market))

    assert primary.calls[0].mode is GenerationMode.grounded
    assert result.content.startswith("## Market\nBig\n\n## References & Sources")
    assert "- [https://b.example](https://b.example)" in result.content


@pytest.mark.asyncio
async def test_deep_reasoning_profile_reaches_provider(make_provider, make_client):
    primary = make_provider()
    await make_client(primary).generate(DocumentKind.arch_api, _request(DocumentKind.arch_api))
    assert primary.calls[0].mode is GenerationMode.deep_reasoning
    assert "3.4" in primary.calls[0].label


@pytest.mark.asyncio
async def test_streaming_forwards_chunks(make_provider, make_client):
    primary = make_provider(default="## A\nline one\nline two")
    chunks = []
    result = await make_client(primary).generate(PERSONAS, _request(), on_chunk=chunks.append)
    assert chunks == ["", "## A\n", "## A\nline one\n", "## A\nline one\nline two"]
    assert chunks[-1] == result.content


@pytest.mark.asyncio
async def test_streaming_retry_starts_a_fresh_draft(make_provider, make_client, stream_then_fail, sleeper):
    primary = make_provider(
        script=[stream_then_fail("## Personas\nfirst try\n", _limited()), "## Personas\nsecond try"]
    )
    chunks = []
    result = await make_client(primary).generate(PERSONAS, _request(), on_chunk=chunks.append)

    assert result.content == "## Personas\nsecond try"
    assert "first try" not in result.content
    reset = chunks.index("", 1)
    assert chunks[reset - 1] == "## Personas\nfirst try\n"
    assert all("first try" not in c for c in chunks[reset:])
    assert sleeper.delays == [2.0]


@pytest.mark.asyncio
async def test_empty_response_is_a_provider_error(make_provider, make_client):
    with pytest.raises(ProviderError):
        await make_client(make_provider(default="   ")).generate(PERSONAS, _request())


@pytest.mark.asyncio
async def test_refine_raises_instead_of_placeholder(make_provider, make_client):
    primary = make_provider(script=[_limited() for _ in range(4)])
    with pytest.raises(RateLimited):
        await make_client(primary).refine("## Body", "shorter", PERSONAS)


@pytest.mark.asyncio
async def test_refine_prompt_carries_instruction_and_content(make_provider, make_client):
    primary = make_provider(default="## Body\nShorter")
    result = await make_client(primary).refine("## Body\nLong text", "make it shorter", PERSONAS)
    assert result.content == "## Body\nShorter"
    assert primary.calls[0].purpose == "refine"
    assert "make it shorter" in primary.calls[0].prompt
    assert "Long text" in primary.calls[0].prompt
