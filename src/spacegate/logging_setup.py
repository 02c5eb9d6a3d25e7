"""Logging for spacegate: text or JSON lines, request correlation, secret redaction.

Every record passes through two filters before formatting: one stamps the
current request's correlation id, the other rewrites anything that looks like
an issued token or a Gemini API key down to a short prefix.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spacegate.config import Config

# Per-request correlation id, set by CorrelationIdMiddleware
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Google API keys; issued tokens are matched on the configured prefix
_API_KEY_PATTERN = r"AIza[0-9A-Za-z_-]{20,}"

# Attributes callers may attach with ``extra=`` that end up in JSON output
_CONTEXT_FIELDS = ("space_id", "owner", "citations", "status", "elapsed_ms")


def mask_secret(value: str, keep: int = 9) -> str:
    """Return a log-safe prefix of a token or credential."""
    if not value:
        return ""
    if len(value) <= keep:
        return "***"
    return value[:keep] + "..."


class _CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get("")  # type: ignore[attr-defined]
        return True


class _SecretRedactionFilter(logging.Filter):
    """Mask issued tokens and API keys in the rendered message."""

    def __init__(self, token_prefix: str = "grag") -> None:
        super().__init__()
        self._pattern = re.compile(
            rf"({re.escape(token_prefix)}-[A-Za-z0-9_-]{{16,}}|{_API_KEY_PATTERN})"
        )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._pattern.sub(lambda m: mask_secret(m.group(1)), message)
        if redacted != message:
            record.msg, record.args = redacted, None
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        cid = getattr(record, "correlation_id", "")
        if cid:
            payload["correlation_id"] = cid
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class _TextFormatter(logging.Formatter):
    """Plain lines; the correlation id is appended only inside a request."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        cid = getattr(record, "correlation_id", "")
        return f"{line} [{cid[:8]}]" if cid else line


def setup_logging(config: "Config") -> None:
    """Install a single stream handler on the root logger per config.logging."""
    log_cfg = config.logging
    level = getattr(logging, log_cfg.level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(_CorrelationIdFilter())
    handler.addFilter(_SecretRedactionFilter(config.keys.prefix))
    handler.setFormatter(StructuredFormatter() if log_cfg.format.lower() == "json" else _TextFormatter())
    root.addHandler(handler)

    # google-genai logs full request URLs at INFO
    for noisy in ("httpx", "httpcore", "google_genai", "google.genai"):
        logging.getLogger(noisy).setLevel(logging.ERROR)


def new_correlation_id(incoming: str | None = None) -> str:
    """Adopt incoming (if any) or a fresh uuid as the current correlation id."""
    cid = incoming or str(uuid.uuid4())
    correlation_id.set(cid)
    return cid
