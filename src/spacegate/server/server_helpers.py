"""Shared helpers and dependency resolvers for spacegate HTTP routes."""

from __future__ import annotations

from typing import Any

from fastapi import Request

from spacegate.config import Config
from spacegate.credentials import CredentialStore
from spacegate.errors import AuthError
from spacegate.gateway import ChatGateway
from spacegate.space_config import SpaceConfigStore
from spacegate.users import UserDirectory

OWNER_HEADER = "X-Username"


def require_owner(request: Request) -> str:
    """FastAPI dependency: the owner identity asserted by the front end."""
    username = request.headers.get(OWNER_HEADER, "").strip()
    if not username:
        raise AuthError("Not authenticated")
    return username


def credentials(state: Any) -> CredentialStore:
    return state.credentials


def space_configs(state: Any) -> SpaceConfigStore:
    return state.space_configs


def users(state: Any) -> UserDirectory:
    return state.users


def gateway(state: Any) -> ChatGateway:
    return state.gateway


def chat_endpoint(state: Any) -> str:
    cfg: Config = state.cfg
    return f"{cfg.serve.endpoint_base()}/v1/chat/completions"


def serialize_config(space_id: str, cfg: Any) -> dict[str, Any]:
    return {"spaceId": space_id, **cfg.to_json_dict()}
