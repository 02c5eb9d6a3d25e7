"""Open the on-disk tables named in the storage config, and operations spanning them."""

from __future__ import annotations

import logging
from typing import Iterable

from spacegate.config import Config
from spacegate.credentials import CredentialStore
from spacegate.models import IssuedKey
from spacegate.space_config import SpaceConfigStore
from spacegate.users import UserDirectory

logger = logging.getLogger("spacegate.stores")


def build_stores(config: Config) -> tuple[CredentialStore, SpaceConfigStore, UserDirectory]:
    storage = config.storage
    creds = CredentialStore(storage.path_for(storage.api_keys_file), prefix=config.keys.prefix)
    configs = SpaceConfigStore(
        storage.path_for(storage.space_configs_file),
        default_model=config.upstream.default_model,
        default_system_instruction=config.upstream.default_system_instruction,
    )
    directory = UserDirectory(storage.path_for(storage.users_file))
    return creds, configs, directory


def reconcile_owner(
    creds: CredentialStore,
    configs: SpaceConfigStore,
    owner_username: str,
    live_space_ids: Iterable[str],
) -> tuple[list[IssuedKey], list[str]]:
    """Drop owner's keys for spaces gone upstream, then the configs nobody references.

    A space's config survives while any other owner still holds a key for it.
    Returns (removed keys, space ids whose config was removed).
    """
    removed = creds.reconcile(owner_username, live_space_ids)
    orphaned = []
    for space_id in sorted({k.target_space_id for k in removed}):
        if creds.has_keys_for_space(space_id):
            logger.info("stores: keeping config of %s, still referenced by other keys", space_id)
            continue
        configs.remove(space_id)
        orphaned.append(space_id)
    return removed, orphaned
