import pytest

from services.blueprint.app.domain.assist import brainstorm_features, extract_project_details, safe_parse_json
from services.blueprint.app.domain.errors import ProviderError


def test_safe_parse_json_tolerates_fences_and_trailing_commas():
    content = 'Sure!\n```json\n{"name": "Harbor", "features": ["a", "b",],}\n```'
    assert safe_parse_json(content) == {"name": "Harbor", "features": ["a", "b"]}
    assert safe_parse_json('Here you go: ["x", "y",]', "array") == ["x", "y"]


def test_safe_parse_json_rejects_wrong_shapes():
    with pytest.raises(ValueError):
        safe_parse_json("no json here")
    with pytest.raises(ValueError):
        safe_parse_json('["a"]', "object")


@pytest.mark.asyncio
async def test_extract_project_details(make_provider, make_client):
    primary = make_provider(
        default='```json\n{"name": "Harbor", "concept": "Marina booking", "features": ["Calendar", ""], "tech": null}\n```'
    )
    details = await extract_project_details(make_client(primary), "We are building Harbor...")

    assert details.name == "Harbor"
    assert details.concept == "Marina booking"
    assert details.features == ["Calendar"]
    assert details.tech == []
    assert details.budget is None
    assert primary.calls[0].purpose == "extract"
    assert "We are building Harbor..." in primary.calls[0].prompt


@pytest.mark.asyncio
async def test_extract_uses_offline_mock_without_credentials(make_provider, make_client):
    details = await extract_project_details(make_client(make_provider(configured=False)), "anything")
    assert details.name == "Mock Project"
    assert details.tech == ["React", "Node.js", "Supabase"]


@pytest.mark.asyncio
async def test_brainstorm_features(make_provider, make_client):
    primary = make_provider(default='["Slip calendar", "Tide alerts"]')
    features = await brainstorm_features(make_client(primary), "Marina booking", "Paper ledgers")
    assert features == ["Slip calendar", "Tide alerts"]


@pytest.mark.asyncio
async def test_unparseable_answer_is_a_provider_error(make_provider, make_client):
    with pytest.raises(ProviderError):
        await brainstorm_features(make_client(make_provider(default="I cannot help")), "c", "p")
