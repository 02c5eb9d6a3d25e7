"""Credential store: issue, persist and resolve per-space bearer tokens.

Tokens are stored in ``api-keys.json`` keyed by the token itself so that
resolve() is a single dict lookup. The in-memory index is replaced only after
the JSON file has been durably rewritten, so memory never runs ahead of disk.
"""

from __future__ import annotations

import logging
import re
import secrets
import threading
from pathlib import Path
from typing import Iterable, Optional

from spacegate.config import KEY_PREFIX_PATTERN
from spacegate.json_table import JsonTable
from spacegate.logging_setup import mask_secret
from spacegate.models import IssuedKey

logger = logging.getLogger("spacegate.credentials")

# prefix-<urlsafe base64>; anything else is rejected before the lookup.
# Any prefix that passes KEY_PREFIX_PATTERN yields tokens of this shape.
_TOKEN_RE = re.compile(r"^[A-Za-z0-9_]{1,16}-[A-Za-z0-9_-]{16,128}$")


class CredentialStore:
    """Durable token → IssuedKey registry."""

    def __init__(self, path: Path, prefix: str = "grag") -> None:
        if not re.fullmatch(KEY_PREFIX_PATTERN, prefix):
            raise ValueError(f"Invalid key prefix {prefix!r}: 1-16 letters, digits or underscores")
        self._table = JsonTable(path, "apiKeys")
        self._prefix = prefix
        self._lock = threading.Lock()
        self._keys: dict[str, IssuedKey] = {
            token: IssuedKey(token=token, **{k: v for k, v in row.items() if k != "token"})
            for token, row in self._table.load().items()
        }
        logger.info("credentials: loaded %d issued keys from %s", len(self._keys), path)

    # --- Internal ---

    def _mint(self) -> str:
        while True:
            token = f"{self._prefix}-{secrets.token_urlsafe(32)}"
            if token not in self._keys:
                return token

    def _commit(self, keys: dict[str, IssuedKey]) -> None:
        """Persist then swap. Caller holds self._lock."""
        self._table.save({t: k.to_json_dict() for t, k in keys.items()})
        self._keys = keys

    # --- Public API ---

    def issue(
        self,
        owner_username: str,
        target_space_id: str,
        display_name: str,
        upstream_credential: str,
    ) -> str:
        """Mint a new token bound to target_space_id and persist it. Always a fresh token."""
        with self._lock:
            token = self._mint()
            record = IssuedKey(
                token=token,
                owner_username=owner_username,
                target_space_id=target_space_id,
                display_name=display_name,
                upstream_credential=upstream_credential,
            )
            keys = dict(self._keys)
            keys[token] = record
            self._commit(keys)
        logger.info(
            "credentials: issued %s for space %s (owner %s)",
            mask_secret(token), target_space_id, owner_username,
        )
        return token

    def resolve(self, token: object) -> Optional[IssuedKey]:
        """Return the record for token, or None for unknown / malformed input."""
        if not isinstance(token, str) or not _TOKEN_RE.match(token):
            return None
        return self._keys.get(token)

    def list_for_owner(self, owner_username: str) -> list[IssuedKey]:
        """All keys issued by owner_username, oldest first."""
        if not owner_username:
            return []
        return sorted(
            (k for k in self._keys.values() if k.owner_username == owner_username),
            key=lambda k: k.created_at,
        )

    def find_for_space(self, owner_username: str, space_id: str) -> Optional[IssuedKey]:
        """Newest key owner_username holds for space_id."""
        matches = [k for k in self.list_for_owner(owner_username) if k.target_space_id == space_id]
        return matches[-1] if matches else None

    def has_keys_for_space(self, space_id: str) -> bool:
        """True if any owner still holds a key bound to space_id."""
        return any(k.target_space_id == space_id for k in self._keys.values())

    def reconcile(self, owner_username: str, live_space_ids: Iterable[str]) -> list[IssuedKey]:
        """Drop the owner's keys whose space no longer exists upstream. Returns removed records."""
        live = set(live_space_ids)
        with self._lock:
            stale = [
                k for k in self._keys.values()
                if k.owner_username == owner_username and k.target_space_id not in live
            ]
            if not stale:
                return []
            stale_tokens = {k.token for k in stale}
            keys = {t: k for t, k in self._keys.items() if t not in stale_tokens}
            self._commit(keys)
        logger.info(
            "credentials: reconcile removed %d keys for %s (spaces: %s)",
            len(stale), owner_username, sorted({k.target_space_id for k in stale}),
        )
        return stale

    def __len__(self) -> int:
        return len(self._keys)
