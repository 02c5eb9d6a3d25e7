"""Routes: POST /v1/chat/completions (OpenAI-compatible)."""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from spacegate.errors import ValidationError
from spacegate.gateway import parse_request
from spacegate.server.server_helpers import gateway

router = APIRouter(prefix="/v1")


@router.post("/chat/completions")
async def chat_completions(request: Request):
    gw = gateway(request.app.state)
    key = gw.authenticate(request.headers.get("Authorization"))

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")
    chat_request = parse_request(body)

    if chat_request.stream:
        events = await gw.open_stream(key, chat_request)
        return StreamingResponse(
            events,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )
    return await gw.complete(key, chat_request)
