"""Gemini File Search client and per-credential client factory (google-genai SDK).

Every issued key carries its owner's Gemini API key. Clients are built per
credential and cached, so two tenants served by one process never share a
client handle.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Union

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from spacegate.errors import UpstreamError

logger = logging.getLogger("spacegate.upstream")


@dataclass
class Turn:
    """One conversation turn in upstream terms (role is "user" or "model")."""
    role: str
    text: str


# A single-turn query is sent as a plain string, multi-turn as a transcript.
Query = Union[str, list[Turn]]


@dataclass
class UpstreamAnswer:
    text: str
    citations: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class StoreInfo:
    name: str
    display_name: str


def _error_message(exc: Exception) -> str:
    if isinstance(exc, genai_errors.APIError):
        return exc.message or str(exc)
    return str(exc) or exc.__class__.__name__


def _to_contents(query: Query) -> Union[str, list[types.Content]]:
    if isinstance(query, str):
        return query
    return [types.Content(role=t.role, parts=[types.Part.from_text(text=t.text)]) for t in query]


def _extract_citations(response: Any) -> list[dict[str, Any]]:
    """Pull retrieved-context references out of the grounding metadata, if any."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    citations = []
    for chunk in chunks:
        ctx = getattr(chunk, "retrieved_context", None)
        if ctx is None:
            continue
        citations.append({
            "title": getattr(ctx, "title", None) or "",
            "text": getattr(ctx, "text", None) or "",
        })
    return citations


class FileSearchClient:
    """Thin async wrapper over genai.Client scoped to one upstream credential."""

    def __init__(self, api_key: str, client: Optional[genai.Client] = None) -> None:
        self._client = client or genai.Client(api_key=api_key)

    def _generation_config(
        self,
        store_name: str,
        system_instruction: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens,
            tools=[types.Tool(file_search=types.FileSearch(file_search_store_names=[store_name]))],
        )

    async def generate(
        self,
        *,
        store_name: str,
        model: str,
        system_instruction: str,
        query: Query,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> UpstreamAnswer:
        """Answer query grounded on the documents of store_name."""
        config = self._generation_config(store_name, system_instruction, temperature, max_tokens)
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=_to_contents(query),
                config=config,
            )
        except Exception as exc:
            logger.warning("upstream: generate_content failed for %s: %s", store_name, exc)
            raise UpstreamError(_error_message(exc)) from exc

        text = response.text or ""
        citations = _extract_citations(response)
        if not text:
            logger.warning("upstream: empty response text for store %s", store_name)
        logger.debug("upstream: %d chars, %d citations from %s", len(text), len(citations), store_name)
        return UpstreamAnswer(text=text, citations=citations)

    async def generate_stream(
        self,
        *,
        store_name: str,
        model: str,
        system_instruction: str,
        query: Query,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas as the upstream produces them."""
        config = self._generation_config(store_name, system_instruction, temperature, max_tokens)
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=model,
                contents=_to_contents(query),
                config=config,
            )
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except Exception as exc:
            logger.warning("upstream: generate_content_stream failed for %s: %s", store_name, exc)
            raise UpstreamError(_error_message(exc)) from exc

    async def list_stores(self) -> list[StoreInfo]:
        """All File Search stores visible to this credential."""
        try:
            pager = await self._client.aio.file_search_stores.list()
            stores = [
                StoreInfo(name=s.name, display_name=s.display_name or s.name)
                async for s in pager
            ]
        except Exception as exc:
            raise UpstreamError(_error_message(exc)) from exc
        logger.debug("upstream: %d stores listed", len(stores))
        return stores


class UpstreamClientFactory:
    """Create and cache one FileSearchClient per upstream credential (LRU)."""

    def __init__(self, max_clients: int = 64) -> None:
        self._max_clients = max(1, max_clients)
        self._clients: OrderedDict[str, FileSearchClient] = OrderedDict()
        self._lock = threading.Lock()

    def __call__(self, api_key: str) -> FileSearchClient:
        return self.get(api_key)

    def get(self, api_key: str) -> FileSearchClient:
        if not api_key:
            raise UpstreamError("Upstream API key not set for this space")
        cache_key = hashlib.sha256(api_key.encode()).hexdigest()
        with self._lock:
            if cache_key in self._clients:
                self._clients.move_to_end(cache_key)
                return self._clients[cache_key]
            client = FileSearchClient(api_key)
            self._clients[cache_key] = client
            if len(self._clients) > self._max_clients:
                self._clients.popitem(last=False)
                logger.info("upstream: evicted least recently used client (cache full)")
            return client

    def __len__(self) -> int:
        return len(self._clients)
