"""Storage backends."""
from __future__ import annotations

import config
from standings.storage.base import (
    PendingIncrement,
    PlayerIncrement,
    ResultPlan,
    StorageAdapter,
)
from standings.storage.json_file import JSONFileStorage
from standings.storage.sql import SQLStorage

__all__ = [
    "JSONFileStorage",
    "PendingIncrement",
    "PlayerIncrement",
    "ResultPlan",
    "SQLStorage",
    "StorageAdapter",
    "create_storage",
]


def create_storage(backend: str | None = None) -> StorageAdapter:
    """Build the configured backend: "sql" (default) or "file"."""
    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "file":
        return JSONFileStorage(config.DATA_DIR)
    if backend == "sql":
        return SQLStorage()
    raise ValueError(f"Unknown STORAGE_BACKEND {backend!r} (expected 'sql' or 'file')")
