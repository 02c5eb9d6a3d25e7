"""Tests for ChatGateway: authentication, config resolution, usage accounting, streaming."""

from __future__ import annotations

import json
import logging

import pytest

from spacegate.errors import AuthError, UpstreamError, ValidationError
from spacegate.gateway import ChatGateway, bearer_token, parse_request


@pytest.fixture
def gateway(credential_store, space_store, fake_factory):
    return ChatGateway(credential_store, space_store, fake_factory)


@pytest.fixture
def key(credential_store):
    token = credential_store.issue("alice", "alice_docs", "Alice docs", "AIza-alice")
    return credential_store.resolve(token)


def _request(content="hello", **extra):
    return parse_request({"messages": [{"role": "user", "content": content}], **extra})


async def _collect(events):
    return [e async for e in events]


def _payloads(events):
    return [json.loads(e[len("data: "):]) for e in events if e.startswith("data: {")]


# --- bearer_token ---

@pytest.mark.parametrize("header", [None, "", "Basic abc", "bearer abc", "Bearer ", "Bearer    "])
def test_bearer_token_rejects(header):
    with pytest.raises(AuthError) as info:
        bearer_token(header)
    assert info.value.status_code == 401


def test_bearer_token_extracts():
    assert bearer_token("Bearer grag-abc") == "grag-abc"


def test_authenticate_unknown_token(gateway):
    with pytest.raises(AuthError, match="Invalid API key"):
        gateway.authenticate("Bearer grag-" + "z" * 43)


def test_authenticate_known_token(gateway, key):
    assert gateway.authenticate(f"Bearer {key.token}") == key


# --- complete ---

@pytest.mark.asyncio
async def test_uses_space_config_and_echoes_requested_model(gateway, key, space_store, fake_upstream, fake_factory):
    space_store.put("alice_docs", model="m1", system_instruction="be terse")

    body = await gateway.complete(key, _request(model="gpt-4o"))

    call = fake_upstream.calls[0]
    assert call["model"] == "m1"
    assert call["system_instruction"] == "be terse"
    assert call["store_name"] == "alice_docs"
    assert call["query"] == "hello"
    assert fake_factory.api_keys == ["AIza-alice"]
    assert body["model"] == "gpt-4o"
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "Grounded answer"}


@pytest.mark.asyncio
async def test_echoes_space_model_when_request_omits_it(gateway, key, space_store):
    space_store.put("alice_docs", model="m1")
    body = await gateway.complete(key, _request())
    assert body["model"] == "m1"


@pytest.mark.asyncio
async def test_forwards_generation_parameters(gateway, key, fake_upstream):
    await gateway.complete(key, _request(temperature=0.3, max_tokens=64))
    assert fake_upstream.calls[0]["temperature"] == 0.3
    assert fake_upstream.calls[0]["max_tokens"] == 64


@pytest.mark.asyncio
async def test_success_increments_usage_once(gateway, key, space_store):
    await gateway.complete(key, _request())
    cfg = space_store.get("alice_docs")
    assert cfg.usage_count == 1
    assert cfg.last_active is not None


@pytest.mark.asyncio
async def test_upstream_failure_does_not_increment(gateway, key, space_store, fake_upstream):
    fake_upstream.error = UpstreamError("API key not valid. Please pass a valid API key.")
    with pytest.raises(UpstreamError, match="API key not valid"):
        await gateway.complete(key, _request())
    assert space_store.get("alice_docs").usage_count == 0
    assert len(fake_upstream.calls) == 1  # no retry


@pytest.mark.asyncio
async def test_invalid_messages_never_reach_upstream(gateway, key, fake_upstream):
    request = parse_request({"messages": [{"role": "system", "content": "only instructions"}]})
    with pytest.raises(ValidationError):
        await gateway.complete(key, request)
    assert fake_upstream.calls == []


# --- streaming ---

@pytest.mark.asyncio
async def test_stream_emits_chunks_and_increments_after_completion(gateway, key, space_store):
    events = await gateway.open_stream(key, _request(stream=True))
    assert space_store.get("alice_docs").usage_count == 0

    collected = await _collect(events)
    payloads = _payloads(collected)

    assert payloads[0]["choices"][0]["delta"]["role"] == "assistant"
    text = "".join(p["choices"][0]["delta"].get("content", "") for p in payloads)
    assert text == "Grounded answer"
    assert payloads[-1]["choices"][0]["finish_reason"] == "stop"
    assert collected[-1] == "data: [DONE]\n\n"
    assert space_store.get("alice_docs").usage_count == 1


@pytest.mark.asyncio
async def test_stream_upstream_failure_raises_before_streaming(gateway, key, space_store, fake_upstream):
    fake_upstream.error = UpstreamError("quota exceeded")
    with pytest.raises(UpstreamError):
        await gateway.open_stream(key, _request(stream=True))
    assert space_store.get("alice_docs").usage_count == 0


@pytest.mark.asyncio
async def test_stream_interrupted_mid_way_reports_error_without_increment(gateway, key, space_store, fake_upstream):
    fake_upstream.stream_error_after = 1
    events = await gateway.open_stream(key, _request(stream=True))
    payloads = _payloads(await _collect(events))

    assert payloads[-1] == {"error": {"message": "stream interrupted", "type": "api_error"}}
    assert space_store.get("alice_docs").usage_count == 0


@pytest.mark.asyncio
async def test_stream_with_no_text_still_finishes(gateway, key, space_store, fake_upstream):
    fake_upstream.deltas = []
    events = await gateway.open_stream(key, _request(stream=True))
    payloads = _payloads(await _collect(events))
    assert payloads[-1]["choices"][0]["finish_reason"] == "stop"
    assert space_store.get("alice_docs").usage_count == 1


@pytest.mark.asyncio
async def test_citations_are_logged_with_the_response(gateway, key, fake_upstream, caplog):
    fake_upstream.citations = [{"title": "manual.pdf", "text": "Hold the button"}]
    with caplog.at_level(logging.INFO, logger="spacegate.gateway"):
        await gateway.complete(key, _request())
    [record] = [r for r in caplog.records if getattr(r, "citations", None) is not None]
    assert record.citations == ["manual.pdf"]
    assert record.space_id == "alice_docs"
