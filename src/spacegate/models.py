"""Data models for spacegate: issued keys, per-space config, users."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _CamelModel(BaseModel):
    """Stored and serialised with camelCase keys, built with either spelling."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, **kwargs)


class IssuedKey(_CamelModel):
    """One record per bearer token minted by the credential store."""
    token: str
    owner_username: str
    target_space_id: str
    display_name: str = ""
    upstream_credential: str
    created_at: str = Field(default_factory=utc_now_iso)

    def public_dict(self) -> dict:
        """JSON form safe to hand back to the owner (no upstream credential)."""
        return self.to_json_dict(exclude={"upstream_credential"})


class SpaceConfig(_CamelModel):
    """Per-space settings and usage counters. None fields fall back to configured defaults."""
    model: Optional[str] = None
    system_instruction: Optional[str] = None
    usage_count: int = 0
    last_active: Optional[str] = None


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(_CamelModel):
    """Read-only view of an externally managed account."""
    username: str
    role: Role = Role.USER
    spaces: list[str] = Field(default_factory=list)
    upstream_credential: Optional[str] = None
