"""Shared objects handed to API routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from manager.storage.data_store import DataStore

# Owned by the app lifespan
_data_store: Optional["DataStore"] = None


def set_data_store(store: Optional["DataStore"]) -> None:
    global _data_store
    _data_store = store


def get_data_store() -> "DataStore":
    """Run store of the running app; only valid inside its lifespan."""
    if _data_store is None:
        raise RuntimeError("Run store is not open")
    return _data_store
