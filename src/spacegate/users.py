"""Read-only view of the externally managed ``users.json`` account file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from spacegate.json_table import JsonTable
from spacegate.models import Role, User

logger = logging.getLogger("spacegate.users")


class UserDirectory:
    """Looks up accounts by username. The file is re-read on every lookup
    because it is written by the account management front end, not by us."""

    def __init__(self, path: Path) -> None:
        self._table = JsonTable(path, "users")

    def get(self, username: str) -> Optional[User]:
        if not username:
            return None
        row = self._table.load().get(username)
        if not isinstance(row, dict):
            return None
        credential = row.get("upstreamCredential") or row.get("geminiApiKey")
        role = row.get("role", Role.USER.value)
        return User(
            username=username,
            role=Role(role) if role in Role._value2member_map_ else Role.USER,
            spaces=list(row.get("spaces") or []),
            upstream_credential=credential or None,
        )

    def upstream_credential_for(self, username: str) -> Optional[str]:
        user = self.get(username)
        return user.upstream_credential if user else None
