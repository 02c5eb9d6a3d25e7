"""Single-file JSON table used by the credential and space-config stores.

The whole table is rewritten on every mutation: serialise to a temp file in
the same directory, fsync, then os.replace over the live file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from spacegate.errors import PersistenceError
from spacegate.models import utc_now_iso

logger = logging.getLogger("spacegate.storage")


class JsonTable:
    """A ``{section: {id: record}}`` JSON document on disk."""

    def __init__(self, path: Path, section: str) -> None:
        self.path = Path(path)
        self.section = section
        self._write_lock = threading.Lock()

    def load(self) -> dict[str, dict[str, Any]]:
        """Read all rows. A missing file is an empty table; a corrupt one is an error."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}") from exc
        rows = data.get(self.section, {}) if isinstance(data, dict) else {}
        if not isinstance(rows, dict):
            raise PersistenceError(f"{self.path}: '{self.section}' must be an object")
        return rows

    def save(self, rows: dict[str, dict[str, Any]]) -> None:
        """Durably replace the table contents. Raises PersistenceError on any failure."""
        document = {self.section: rows, "lastModified": utc_now_iso()}
        with self._write_lock:
            tmp_name = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, 0o600)  # tables hold bearer tokens and upstream secrets
                os.replace(tmp_name, self.path)
                tmp_name = None
            except (OSError, TypeError, ValueError) as exc:
                logger.error("storage: write to %s failed: %s", self.path, exc)
                raise PersistenceError(f"Failed to persist {self.path.name}: {exc}") from exc
            finally:
                if tmp_name is not None:
                    try:
                        os.unlink(tmp_name)
                    except OSError:
                        pass
