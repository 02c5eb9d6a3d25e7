"""Routes: key issuance, per-space config and usage stats, owner key listing, reconcile.

Space ids are upstream resource names such as ``fileSearchStores/abc-123``,
so the id segment uses the ``path`` converter.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from spacegate.errors import NotFoundError, ValidationError
from spacegate.server.server_helpers import (
    chat_endpoint,
    credentials,
    require_owner,
    serialize_config,
    space_configs,
    users,
)
from spacegate.server.server_models import (
    GenerateKeyRequest,
    GenerateKeyResponse,
    ReconcileRequest,
    SpaceConfigUpdate,
)
from spacegate.stores import reconcile_owner

logger = logging.getLogger("spacegate.server")

router = APIRouter(prefix="/spaces")


@router.get("/list-with-keys")
async def list_with_keys(request: Request, owner: str = Depends(require_owner)):
    """The caller's issued keys, used by the front end to recover display names."""
    keys = credentials(request.app.state).list_for_owner(owner)
    return {"apiKeys": {k.token: k.public_dict() for k in keys}}


@router.post("/reconcile")
async def reconcile(req: ReconcileRequest, request: Request, owner: str = Depends(require_owner)):
    """Forget the caller's keys for spaces that no longer exist upstream, and unreferenced configs."""
    state = request.app.state
    removed, configs_removed = reconcile_owner(
        credentials(state), space_configs(state), owner, req.live_space_ids,
    )
    return {
        "removed": sorted({k.target_space_id for k in removed}),
        "count": len(removed),
        "configsRemoved": configs_removed,
    }


@router.post("/{space_id:path}/generate-key", response_model=GenerateKeyResponse)
async def generate_key(
    space_id: str,
    req: GenerateKeyRequest,
    request: Request,
    owner: str = Depends(require_owner),
):
    """Mint a new bearer token bound to space_id."""
    state = request.app.state
    upstream_credential = (
        req.upstream_credential
        or req.gemini_key
        or users(state).upstream_credential_for(owner)
    )
    if not upstream_credential:
        raise ValidationError("Missing required fields")

    token = credentials(state).issue(
        owner_username=owner,
        target_space_id=space_id,
        display_name=req.display_name or space_id,
        upstream_credential=upstream_credential,
    )
    return GenerateKeyResponse(apiKey=token, endpoint=chat_endpoint(state))


@router.get("/{space_id:path}/api-key", response_model=GenerateKeyResponse)
async def get_api_key(space_id: str, request: Request, owner: str = Depends(require_owner)):
    key = credentials(request.app.state).find_for_space(owner, space_id)
    if key is None:
        raise NotFoundError("API key not found for this space")
    return GenerateKeyResponse(apiKey=key.token, endpoint=chat_endpoint(request.app.state))


@router.get("/{space_id:path}/config")
async def get_config(space_id: str, request: Request):
    return serialize_config(space_id, space_configs(request.app.state).get(space_id))


@router.put("/{space_id:path}/config")
async def put_config(space_id: str, req: SpaceConfigUpdate, request: Request):
    """Merge model / systemInstruction into the stored config."""
    updated = space_configs(request.app.state).put(
        space_id,
        model=req.model,
        system_instruction=req.system_instruction,
    )
    return serialize_config(space_id, updated)


@router.delete("/{space_id:path}/config")
async def delete_config(space_id: str, request: Request):
    removed = space_configs(request.app.state).remove(space_id)
    return {"spaceId": space_id, "removed": removed}


@router.post("/{space_id:path}/stats/increment")
async def increment_stats(space_id: str, request: Request):
    """Count a chat served outside /v1/chat/completions (browser-side chats)."""
    updated = space_configs(request.app.state).increment_usage(space_id)
    return serialize_config(space_id, updated)
