"""
Tests for the Ollama backend client, using httpx.MockTransport.
"""

import json

import httpx
import pytest

from llm_orchestrator.entities import GenerationStatus
from llm_orchestrator.exceptions import BackendRejection, BackendTransientFailure
from llm_orchestrator.repositories import OllamaBackendClient


def make_client(handler) -> OllamaBackendClient:
    return OllamaBackendClient(
        model_name="mistral",
        base_url="http://ollama.test",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_generate_sends_non_streaming_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"model": "mistral", "response": "Pancakes!", "prompt_eval_count": 10, "eval_count": 20},
        )

    client = make_client(handler)
    response = await client.generate("eggs, flour, milk", None, 0.7, 256)
    await client.close()

    assert seen["path"] == "/api/generate"
    assert seen["body"] == {
        "model": "mistral",
        "prompt": "eggs, flour, milk",
        "stream": False,
        "options": {"temperature": 0.7, "num_predict": 256},
    }
    assert response.status == GenerationStatus.SUCCESS
    assert response.content == "Pancakes!"
    assert response.model == "mistral"
    assert response.tokens_used == 30


@pytest.mark.asyncio
async def test_generate_uses_requested_model_and_omits_unset_max_tokens():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "ok"})

    client = make_client(handler)
    await client.generate("hi", "llama3", 0.0, None)

    assert seen["body"]["model"] == "llama3"
    assert seen["body"]["options"] == {"temperature": 0.0}


@pytest.mark.asyncio
async def test_tokens_estimated_when_not_reported():
    client = make_client(lambda request: httpx.Response(200, json={"response": "abcdefgh"}))

    response = await client.generate("abcdefgh", None, 0.7, None)

    assert response.tokens_used == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
async def test_retryable_statuses_are_transient(status_code):
    client = make_client(lambda request: httpx.Response(status_code, text="busy"))

    with pytest.raises(BackendTransientFailure):
        await client.generate("hi", None, 0.7, None)


@pytest.mark.asyncio
async def test_missing_model_is_rejection_with_hint():
    client = make_client(lambda request: httpx.Response(404, text="model 'mistral' not found"))

    with pytest.raises(BackendRejection) as exc_info:
        await client.generate("hi", None, 0.7, None)

    assert exc_info.value.status_code == 404
    assert "ollama pull mistral" in str(exc_info.value)


@pytest.mark.asyncio
async def test_bad_request_is_rejection():
    client = make_client(lambda request: httpx.Response(400, text="invalid options"))

    with pytest.raises(BackendRejection):
        await client.generate("hi", None, 0.7, None)


@pytest.mark.asyncio
async def test_malformed_body_is_rejection():
    client = make_client(lambda request: httpx.Response(200, json={"unexpected": True}))

    with pytest.raises(BackendRejection, match="Unexpected response format"):
        await client.generate("hi", None, 0.7, None)


@pytest.mark.asyncio
async def test_timeout_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(BackendTransientFailure, match="timed out"):
        await make_client(handler).generate("hi", None, 0.7, None)


@pytest.mark.asyncio
async def test_connection_refused_is_transient_with_hint():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(BackendTransientFailure, match="ollama serve"):
        await make_client(handler).generate("hi", None, 0.7, None)


@pytest.mark.asyncio
async def test_is_available():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": []})

    assert await make_client(handler).is_available() is True


@pytest.mark.asyncio
async def test_is_available_false_when_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    assert await make_client(handler).is_available() is False


def test_estimate_tokens():
    client = OllamaBackendClient(model_name="mistral")
    assert client.estimate_tokens("a" * 40) == 10
    assert client.model_name == "mistral"
