"""OpenAI-compatible chat completions served from a space's File Search store.

Flow per request: bearer token → IssuedKey → space config → upstream
generate → usage +1 → OpenAI envelope. Nothing is retried; the usage counter
is bumped only after the upstream call has fully succeeded.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator, Callable, Optional

from spacegate.credentials import CredentialStore
from spacegate.errors import AuthError, UpstreamError, openai_error_body
from spacegate.gateway.translate import (
    ChatCompletionRequest,
    completion_chunk,
    completion_response,
    new_completion_id,
    to_upstream_query,
)
from spacegate.logging_setup import mask_secret
from spacegate.models import IssuedKey, SpaceConfig
from spacegate.space_config import SpaceConfigStore
from spacegate.upstream import FileSearchClient

logger = logging.getLogger("spacegate.gateway")

ClientFactory = Callable[[str], FileSearchClient]


def bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Invalid or missing API key")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Invalid or missing API key")
    return token


def _sse(payload: Any) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class ChatGateway:
    """Authenticates bearer tokens and runs chat requests against the bound space."""

    def __init__(
        self,
        credentials: CredentialStore,
        space_configs: SpaceConfigStore,
        client_factory: ClientFactory,
    ) -> None:
        self._credentials = credentials
        self._space_configs = space_configs
        self._client_factory = client_factory

    def authenticate(self, authorization: Optional[str]) -> IssuedKey:
        token = bearer_token(authorization)
        key = self._credentials.resolve(token)
        if key is None:
            logger.info("gateway: rejected unknown key %s", mask_secret(token))
            raise AuthError("Invalid API key")
        return key

    def _prepare(self, key: IssuedKey, request: ChatCompletionRequest) -> tuple[dict[str, Any], SpaceConfig]:
        query = to_upstream_query(request.messages)
        space = self._space_configs.get(key.target_space_id)
        call = {
            "store_name": key.target_space_id,
            "model": space.model,
            "system_instruction": space.system_instruction,
            "query": query,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        return call, space

    async def complete(self, key: IssuedKey, request: ChatCompletionRequest) -> dict[str, Any]:
        """Run a non-streamed completion and return the chat.completion body."""
        call, space = self._prepare(key, request)
        echo_model = request.model or space.model
        logger.info(
            "gateway: completion for space %s (%s) using %s",
            key.display_name or key.target_space_id, key.owner_username, space.model,
            extra={"space_id": key.target_space_id, "owner": key.owner_username},
        )

        client = self._client_factory(key.upstream_credential)
        answer = await client.generate(**call)

        self._space_configs.increment_usage(key.target_space_id)
        logger.info(
            "gateway: response sent for space %s (%d citations)",
            key.target_space_id, len(answer.citations),
            extra={"space_id": key.target_space_id, "citations": [c["title"] for c in answer.citations]},
        )
        return completion_response(answer.text, echo_model)

    async def open_stream(self, key: IssuedKey, request: ChatCompletionRequest) -> AsyncIterator[str]:
        """Start a streamed completion.

        The first upstream delta is awaited here so that a failing upstream
        call surfaces as UpstreamError before any bytes are sent. The returned
        iterator yields Server-Sent Events lines.
        """
        call, space = self._prepare(key, request)
        echo_model = request.model or space.model
        client = self._client_factory(key.upstream_credential)
        deltas = client.generate_stream(**call).__aiter__()

        try:
            first: Optional[str] = await deltas.__anext__()
        except StopAsyncIteration:
            first = None

        logger.info("gateway: streaming completion for space %s using %s", key.target_space_id, space.model)
        return self._stream_events(key, deltas, first, echo_model)

    async def _stream_events(
        self,
        key: IssuedKey,
        deltas: AsyncIterator[str],
        first: Optional[str],
        model: str,
    ) -> AsyncIterator[str]:
        completion_id = new_completion_id()
        created = int(time.time())

        yield _sse(completion_chunk(completion_id, created, model, {"role": "assistant", "content": ""}))
        if first is not None:
            yield _sse(completion_chunk(completion_id, created, model, {"content": first}))
            try:
                async for text in deltas:
                    yield _sse(completion_chunk(completion_id, created, model, {"content": text}))
            except UpstreamError as exc:
                logger.warning("gateway: stream aborted for space %s: %s", key.target_space_id, exc.message)
                yield _sse(openai_error_body(exc))
                yield "data: [DONE]\n\n"
                return

        self._space_configs.increment_usage(key.target_space_id)
        yield _sse(completion_chunk(completion_id, created, model, {}, finish_reason="stop"))
        yield "data: [DONE]\n\n"
