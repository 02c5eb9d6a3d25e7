"""OpenAI chat request ↔ Gemini File Search translation."""

from __future__ import annotations

import time
import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from spacegate.errors import ValidationError
from spacegate.upstream import Query, Turn

# Instruction-style roles carry no conversation turn; the space's stored
# system instruction is what the upstream sees.
_DROPPED_ROLES = {"system", "developer"}
_ROLE_MAP = {"user": "user", "assistant": "model"}


class ChatMessage(BaseModel):
    role: str
    content: Any = None


class ChatCompletionRequest(BaseModel):
    model: Optional[str] = None
    messages: list[ChatMessage] = Field(..., min_length=1)
    stream: bool = False
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)


def parse_request(body: Any) -> ChatCompletionRequest:
    """Validate a decoded JSON body. Raises ValidationError (400) on any problem."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    if not isinstance(body.get("messages"), list) or not body["messages"]:
        raise ValidationError("Invalid messages format: 'messages' must be a non-empty array")
    try:
        return ChatCompletionRequest.model_validate(body)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"Invalid request: {where}: {first.get('msg')}") from exc


def message_text(message: ChatMessage, index: int) -> str:
    """Flatten string or content-part list into plain text."""
    content = message.content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if not isinstance(part, dict) or part.get("type") != "text" or not isinstance(part.get("text"), str):
                raise ValidationError(f"messages[{index}].content: only text content parts are supported")
            texts.append(part["text"])
        return "".join(texts)
    raise ValidationError(f"messages[{index}].content must be a string or an array of text parts")


def to_upstream_query(messages: list[ChatMessage]) -> Query:
    """Drop instruction messages and map roles.

    A conversation that is exactly one user message is sent as its bare text;
    anything longer becomes a transcript of user/model turns.
    """
    turns: list[Turn] = []
    for i, msg in enumerate(messages):
        if msg.role in _DROPPED_ROLES:
            continue
        if msg.role not in _ROLE_MAP:
            raise ValidationError(f"messages[{i}].role '{msg.role}' is not supported")
        turns.append(Turn(role=_ROLE_MAP[msg.role], text=message_text(msg, i)))

    if not turns:
        raise ValidationError("messages must contain at least one user or assistant message")
    if len(turns) == 1 and turns[0].role == "user":
        return turns[0].text
    return turns


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"


def completion_response(text: str, model: str) -> dict[str, Any]:
    """OpenAI chat.completion envelope. Upstream reports no token counts."""
    return {
        "id": new_completion_id(),
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }


def completion_chunk(
    completion_id: str,
    created: int,
    model: str,
    delta: dict[str, Any],
    finish_reason: Optional[str] = None,
) -> dict[str, Any]:
    """One chat.completion.chunk for streamed responses."""
    return {
        "id": completion_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }
