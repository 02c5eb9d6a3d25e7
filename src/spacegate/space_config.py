"""Per-space settings (model, system instruction) and usage counters.

Writes for one space are serialised by a lock owned by that space id, so
"read count, add one, write back" never loses an update. The shared JSON file
is rewritten under a separate, short commit lock that always applies the
change to the latest in-memory table.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from pathlib import Path
from typing import Callable, Optional

from spacegate.config import DEFAULT_MODEL, DEFAULT_SYSTEM_INSTRUCTION
from spacegate.json_table import JsonTable
from spacegate.models import SpaceConfig, utc_now_iso

logger = logging.getLogger("spacegate.space_config")


class SpaceConfigStore:
    """Durable space_id → SpaceConfig table. Missing entries read as defaults."""

    def __init__(
        self,
        path: Path,
        default_model: str = DEFAULT_MODEL,
        default_system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION,
    ) -> None:
        self._table = JsonTable(path, "spaces")
        self.default_model = default_model
        self.default_system_instruction = default_system_instruction
        self._configs: dict[str, SpaceConfig] = {
            space_id: SpaceConfig(**row) for space_id, row in self._table.load().items()
        }
        self._commit_lock = threading.Lock()
        self._space_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._space_locks_guard = threading.Lock()

    def _space_lock(self, space_id: str) -> threading.Lock:
        with self._space_locks_guard:
            return self._space_locks[space_id]

    def _commit(self, space_id: str, record: Optional[SpaceConfig]) -> None:
        """Write one record (or its removal) into the latest table, persist, then swap."""
        with self._commit_lock:
            configs = dict(self._configs)
            if record is None:
                configs.pop(space_id, None)
            else:
                configs[space_id] = record
            self._table.save({sid: c.to_json_dict() for sid, c in configs.items()})
            self._configs = configs

    def _update(self, space_id: str, change: Callable[[SpaceConfig], SpaceConfig]) -> SpaceConfig:
        with self._space_lock(space_id):
            current = self._configs.get(space_id) or SpaceConfig()
            updated = change(current)
            self._commit(space_id, updated)
        return updated

    def _with_defaults(self, record: SpaceConfig) -> SpaceConfig:
        return record.model_copy(update={
            "model": record.model or self.default_model,
            "system_instruction": record.system_instruction or self.default_system_instruction,
        })

    # --- Public API ---

    def get(self, space_id: str) -> SpaceConfig:
        """Effective config for space_id, with defaults filled in for unset fields."""
        return self._with_defaults(self._configs.get(space_id) or SpaceConfig())

    def put(
        self,
        space_id: str,
        *,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> SpaceConfig:
        """Merge the given fields into the stored config. Counters are left alone."""
        changes: dict = {}
        if model is not None:
            changes["model"] = model
        if system_instruction is not None:
            changes["system_instruction"] = system_instruction
        self._update(space_id, lambda cur: cur.model_copy(update=changes))
        logger.info("space_config: updated %s (%s)", space_id, ", ".join(sorted(changes)) or "no fields")
        return self.get(space_id)

    def increment_usage(self, space_id: str) -> SpaceConfig:
        """Add one completed chat to space_id and stamp lastActive."""
        self._update(
            space_id,
            lambda cur: cur.model_copy(update={
                "usage_count": cur.usage_count + 1,
                "last_active": utc_now_iso(),
            }),
        )
        return self.get(space_id)

    def remove(self, space_id: str) -> bool:
        """Delete stored config. Returns False (not an error) if there was none."""
        with self._space_lock(space_id):
            if space_id not in self._configs:
                return False
            self._commit(space_id, None)
        logger.info("space_config: removed %s", space_id)
        return True

    def list_space_ids(self) -> list[str]:
        return sorted(self._configs)
