"""Shared utility functions for spacegate."""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
from pathlib import Path
from typing import Any, Iterable


def run_async(coro: Any) -> Any:
    """Run async coroutine from sync context.

    Falls back to a worker thread with its own event loop when called while
    a loop is already running (asyncio.run() refuses to nest).
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is None:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(asyncio.run, coro)
        return future.result()


def load_env_file(candidates: Iterable[Path]) -> None:
    """Load KEY=VALUE lines from every existing .env candidate into os.environ.

    Existing env vars are NOT overwritten.
    """
    for env_path in candidates:
        if not env_path.is_file():
            continue
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, _, val = line.partition("=")
                key, val = key.strip(), val.strip().strip("'\"")
                if key and key not in os.environ:
                    os.environ[key] = val
