"""Tests for OpenAI → upstream message translation and response envelopes."""

from __future__ import annotations

import pytest

from spacegate.errors import ValidationError
from spacegate.gateway.translate import (
    ChatMessage,
    completion_chunk,
    completion_response,
    parse_request,
    to_upstream_query,
)
from spacegate.upstream import Turn


def _msgs(*pairs):
    return [ChatMessage(role=r, content=c) for r, c in pairs]


def test_single_user_message_is_sent_as_text():
    assert to_upstream_query(_msgs(("user", "hello"))) == "hello"


def test_system_message_dropped_before_single_turn_shortcut():
    query = to_upstream_query(_msgs(("system", "You are a pirate"), ("user", "hello")))
    assert query == "hello"


def test_multi_turn_maps_roles_and_drops_system():
    query = to_upstream_query(_msgs(
        ("system", "ignored"),
        ("user", "What is in the manual?"),
        ("assistant", "Setup steps."),
        ("developer", "also ignored"),
        ("user", "Step two?"),
    ))
    assert query == [
        Turn(role="user", text="What is in the manual?"),
        Turn(role="model", text="Setup steps."),
        Turn(role="user", text="Step two?"),
    ]
    assert all(t.text not in ("ignored", "also ignored") for t in query)


def test_single_assistant_message_uses_transcript():
    assert to_upstream_query(_msgs(("assistant", "hi"))) == [Turn(role="model", text="hi")]


def test_text_content_parts_are_joined():
    msg = ChatMessage(role="user", content=[{"type": "text", "text": "foo "}, {"type": "text", "text": "bar"}])
    assert to_upstream_query([msg]) == "foo bar"


def test_image_parts_rejected():
    msg = ChatMessage(role="user", content=[{"type": "image_url", "image_url": {"url": "http://x"}}])
    with pytest.raises(ValidationError):
        to_upstream_query([msg])


def test_only_system_messages_rejected():
    with pytest.raises(ValidationError):
        to_upstream_query(_msgs(("system", "x")))


def test_unknown_role_rejected():
    with pytest.raises(ValidationError, match="tool"):
        to_upstream_query(_msgs(("tool", "x")))


def test_missing_content_rejected():
    with pytest.raises(ValidationError):
        to_upstream_query([ChatMessage(role="user")])


@pytest.mark.parametrize("body", [
    None,
    [],
    {},
    {"messages": []},
    {"messages": "hello"},
    {"messages": [{"content": "no role"}]},
    {"messages": [{"role": "user", "content": "x"}], "max_tokens": 0},
])
def test_parse_request_rejects(body):
    with pytest.raises(ValidationError) as info:
        parse_request(body)
    assert info.value.status_code == 400


def test_parse_request_accepts_openai_fields():
    req = parse_request({
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "hi"}],
        "stream": False,
        "temperature": 0.2,
        "max_tokens": 128,
        "top_p": 1,  # unknown fields are ignored
    })
    assert req.model == "gpt-4o"
    assert req.temperature == 0.2
    assert req.max_tokens == 128


def test_completion_response_shape():
    body = completion_response("answer", "gemini-2.5-flash")
    assert body["id"].startswith("chatcmpl-")
    assert body["object"] == "chat.completion"
    assert isinstance(body["created"], int)
    assert body["model"] == "gemini-2.5-flash"
    assert body["choices"] == [
        {"index": 0, "message": {"role": "assistant", "content": "answer"}, "finish_reason": "stop"}
    ]
    assert body["usage"] == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


def test_completion_ids_are_unique():
    assert completion_response("a", "m")["id"] != completion_response("a", "m")["id"]


def test_completion_chunk_shape():
    chunk = completion_chunk("chatcmpl-1", 123, "m", {"content": "x"})
    assert chunk["object"] == "chat.completion.chunk"
    assert chunk["choices"][0] == {"index": 0, "delta": {"content": "x"}, "finish_reason": None}
