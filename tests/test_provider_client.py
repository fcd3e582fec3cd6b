"""Provider client tests against a mocked Bolna API."""

import json
import logging

import httpx
import pytest

from voicedesk.errors import ProviderError, ProviderNotConfigured, ValidationError
from voicedesk.provider.client import (
    MODEL_ENDPOINTS,
    SUB_ACCOUNT_HEADER,
    BolnaClient,
    ExecutionFilters,
    as_list,
)
from voicedesk.provider.fallbacks import default_models, default_voices


async def test_sub_account_header_sent(provider, provider_api):
    route = provider_api.get("/v2/agent/all").mock(return_value=httpx.Response(200, json=[]))
    await provider.list_agents("sub-1")
    request = route.calls.last.request
    assert request.headers[SUB_ACCOUNT_HEADER] == "sub-1"
    assert request.headers["Authorization"] == "Bearer test-key"


async def test_unconfigured_client_raises():
    client = BolnaClient()
    with pytest.raises(ProviderNotConfigured) as exc_info:
        await client.list_agents("sub-1")
    assert exc_info.value.status_code == 503


async def test_error_status_and_message_propagate(provider, provider_api):
    provider_api.get("/v2/agent/a1").mock(
        return_value=httpx.Response(422, json={"message": "agent_config invalid"})
    )
    with pytest.raises(ProviderError) as exc_info:
        await provider.get_agent("sub-1", "a1")
    assert exc_info.value.status_code == 422
    assert exc_info.value.message == "agent_config invalid"


async def test_structured_error_message_is_serialized(provider, provider_api):
    provider_api.post("/call").mock(
        return_value=httpx.Response(400, json={"message": {"field": "recipient_phone_number"}})
    )
    with pytest.raises(ProviderError) as exc_info:
        await provider.make_call("sub-1", {"agent_id": "a1", "recipient_phone_number": "+1"})
    assert json.loads(exc_info.value.message) == {"field": "recipient_phone_number"}


async def test_timeout_maps_to_gateway_timeout(provider, provider_api):
    provider_api.get("/v2/agent/all").mock(side_effect=httpx.ConnectTimeout)
    with pytest.raises(ProviderError) as exc_info:
        await provider.list_agents("sub-1")
    assert exc_info.value.status_code == 504


async def test_models_tries_next_endpoint_on_404(provider, provider_api):
    provider_api.get(MODEL_ENDPOINTS[0]).mock(return_value=httpx.Response(404))
    provider_api.get(MODEL_ENDPOINTS[1]).mock(
        return_value=httpx.Response(200, json={"llmModels": [{"model": "gpt-4o"}]})
    )
    assert await provider.get_models("sub-1") == {"llmModels": [{"model": "gpt-4o"}]}


async def test_models_fall_back_to_catalog(provider, provider_api):
    """Every endpoint 404s, with and without the sub-account header."""
    routes = [
        provider_api.get(endpoint).mock(return_value=httpx.Response(404))
        for endpoint in MODEL_ENDPOINTS
    ]
    assert await provider.get_models("sub-1") == default_models()
    assert all(route.call_count == 2 for route in routes)


async def test_models_non_404_error_propagates(provider, provider_api):
    provider_api.get(MODEL_ENDPOINTS[0]).mock(return_value=httpx.Response(500))
    with pytest.raises(ProviderError) as exc_info:
        await provider.get_models("sub-1")
    assert exc_info.value.status_code == 500


async def test_voices_fall_back_on_404(provider, provider_api):
    provider_api.get("/me/voices").mock(return_value=httpx.Response(404))
    assert await provider.get_voices("sub-1") == default_voices()


async def test_knowledgebases_empty_on_404(provider, provider_api):
    provider_api.get("/knowledgebase/all").mock(return_value=httpx.Response(404))
    assert await provider.get_knowledgebases("sub-1") == []


async def test_knowledgebase_requires_file_or_url():
    """Rejected before any provider call, even without a configured key."""
    client = BolnaClient()
    with pytest.raises(ValidationError) as exc_info:
        await client.create_knowledgebase("sub-1", url="   ")
    assert exc_info.value.message == "Must provide either 'file' or 'url' parameter"


async def test_knowledgebase_from_url_is_json(provider, provider_api):
    route = provider_api.post("/knowledgebase").mock(
        return_value=httpx.Response(200, json={"rag_id": "kb-1"})
    )
    result = await provider.create_knowledgebase(
        "sub-1", url="https://example.com/faq", chunk_size=512
    )
    assert result == {"rag_id": "kb-1"}
    body = json.loads(route.calls.last.request.content)
    assert body == {"url": "https://example.com/faq", "chunk_size": 512}


async def test_knowledgebase_from_file_is_multipart(provider, provider_api):
    route = provider_api.post("/knowledgebase").mock(
        return_value=httpx.Response(200, json={"rag_id": "kb-2"})
    )
    await provider.create_knowledgebase("sub-1", file=b"%PDF-1.4")
    request = route.calls.last.request
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'filename="upload.pdf"' in request.content


async def test_create_agent_validates_tasks(provider):
    with pytest.raises(ValidationError) as exc_info:
        await provider.create_agent(
            "sub-1", {"agent_config": {"agent_name": "A", "tasks": []}, "agent_prompts": {"x": 1}}
        )
    assert "agent_config.tasks" in exc_info.value.message


async def test_create_agent_aligns_synthesizer_provider(provider, provider_api):
    """The synthesizer provider is corrected to the catalog's provider for its voice."""
    provider_api.get("/me/voices").mock(
        return_value=httpx.Response(200, json=[{"voice_id": "v-rachel", "provider": "elevenlabs"}])
    )
    route = provider_api.post("/v2/agent").mock(
        return_value=httpx.Response(200, json={"agent_id": "agent-1"})
    )
    payload = {
        "agent_config": {
            "agent_name": "Support",
            "tasks": [
                {
                    "tools_config": {
                        "synthesizer": {
                            "provider": "polly",
                            "provider_config": {"voice_id": "v-rachel"},
                        }
                    }
                }
            ],
        },
        "agent_prompts": {"task_1": {"system_prompt": "Hi"}},
    }
    assert await provider.create_agent("sub-1", payload) == {"agent_id": "agent-1"}
    sent = json.loads(route.calls.last.request.content)
    assert sent["agent_config"]["tasks"][0]["tools_config"]["synthesizer"]["provider"] == "elevenlabs"


async def test_make_call_requires_recipient(provider):
    with pytest.raises(ValidationError):
        await provider.make_call("sub-1", {"agent_id": "a1"})


async def test_download_batch_returns_bytes(provider, provider_api):
    provider_api.get("/batches/b1/download").mock(
        return_value=httpx.Response(200, content=b"name,phone\n")
    )
    assert await provider.download_batch("sub-1", "b1") == b"name,phone\n"


async def test_configure_switches_key(provider, provider_api):
    route = provider_api.get("/v2/agent/all").mock(return_value=httpx.Response(200, json=[]))
    await provider.configure("second-key")
    await provider.list_agents("sub-1")
    assert route.calls.last.request.headers["Authorization"] == "Bearer second-key"
    await provider.invalidate()
    assert provider.is_configured is False


async def test_unauthorized_response_drops_key(provider, provider_api):
    provider_api.get("/v2/agent/all").mock(return_value=httpx.Response(401))
    with pytest.raises(ProviderError) as exc_info:
        await provider.list_agents("sub-1")
    assert exc_info.value.status_code == 401
    assert provider.is_configured is False


async def test_configure_does_not_log_key(provider, caplog):
    with caplog.at_level(logging.INFO, logger="voicedesk.provider.client"):
        await provider.configure("bn-secret-value-1234")
    assert caplog.records
    assert "bn-secret" not in caplog.text


async def test_account_info_non_object_body_is_empty(provider, provider_api):
    provider_api.get("/user/me").mock(return_value=httpx.Response(200, json=["x"]))
    assert await provider.get_account_info("sub-1") == {}


def test_execution_filters_params():
    filters = ExecutionFilters(
        page_number=2, page_size=50, answered_by_voice_mail=False, from_="2025-01-01", status=""
    )
    assert filters.to_params() == {
        "page_number": "2",
        "page_size": "50",
        "answered_by_voice_mail": "false",
        "from": "2025-01-01",
    }


def test_as_list_unwraps_envelopes():
    assert as_list([1, 2]) == [1, 2]
    assert as_list({"data": [1]}) == [1]
    assert as_list({"voices": [2]}) == [2]
    assert as_list({"unexpected": 1}) == []
    assert as_list(None) == []
