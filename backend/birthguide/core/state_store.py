"""
BirthGuide - Session State Store

Persists and restores the single active LaborState record, keyed by a fixed
session key.

Backends:
    - InMemoryLaborStateStore: process-local, for tests and demos
    - JsonFileLaborStateStore: one JSON file per key on local disk

Every backend raises PersistenceError on failure. Errors are never
swallowed: losing a recorded critical decision or emergency flag is unsafe.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from birthguide.config import Settings
from birthguide.core.exceptions import ConfigurationError, PersistenceError
from birthguide.core.types import LaborState

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol
# =============================================================================

@runtime_checkable
class LaborStateStore(Protocol):
    """
    Protocol for labor state persistence.

    Implementations must hand out independent copies: mutating a loaded
    state must never change what is stored until ``save`` is called.
    """

    @abstractmethod
    async def load(self, key: str) -> Optional[LaborState]:
        """Return the last saved state, or None if nothing is stored."""
        ...

    @abstractmethod
    async def save(self, key: str, state: LaborState) -> None:
        """Replace the stored state."""
        ...

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Remove the stored state. No-op if nothing is stored."""
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================

class InMemoryLaborStateStore:
    """
    In-memory implementation of LaborStateStore.

    Stores serialized snapshots so that loaded and saved objects are never
    shared with callers. Thread-safe.
    """

    def __init__(self):
        self._lock = Lock()
        self._records: Dict[str, Dict[str, Any]] = {}

    async def load(self, key: str) -> Optional[LaborState]:
        with self._lock:
            record = self._records.get(key)
        if record is None:
            return None
        return LaborState.from_dict(record)

    async def save(self, key: str, state: LaborState) -> None:
        record = state.to_dict()
        with self._lock:
            self._records[key] = record

    async def clear(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)


# =============================================================================
# JSON File Implementation
# =============================================================================

class JsonFileLaborStateStore:
    """
    Local-disk implementation of LaborStateStore.

    Layout:
        <state_dir>/<key>.json

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so a crash mid-write leaves the previous
    record intact.
    """

    def __init__(self, state_dir: str = "./data/state"):
        """
        Initialize the file store.

        Args:
            state_dir: Directory holding one JSON file per session key
        """
        self._state_dir = Path(state_dir)
        logger.info("JsonFileLaborStateStore initialized: %s", self._state_dir)

    def _path(self, key: str) -> Path:
        return self._state_dir / f"{key}.json"

    async def load(self, key: str) -> Optional[LaborState]:
        return await asyncio.to_thread(self._load_sync, key)

    async def save(self, key: str, state: LaborState) -> None:
        await asyncio.to_thread(self._save_sync, key, state.to_dict())

    async def clear(self, key: str) -> None:
        await asyncio.to_thread(self._clear_sync, key)

    def _load_sync(self, key: str) -> Optional[LaborState]:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return LaborState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("Failed to load labor state from %s: %s", path, e)
            raise PersistenceError(
                "State load failed",
                details={"key": key, "reason": type(e).__name__},
            ) from e

    def _save_sync(self, key: str, record: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._state_dir, prefix=f".{key}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error("Failed to save labor state to %s: %s", path, e)
            raise PersistenceError(
                "State persistence failed",
                details={"key": key, "reason": type(e).__name__},
            ) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def _clear_sync(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to clear labor state at %s: %s", path, e)
            raise PersistenceError(
                "State clear failed",
                details={"key": key, "reason": type(e).__name__},
            ) from e


# =============================================================================
# Factory Function
# =============================================================================

def create_state_store(settings: Settings) -> LaborStateStore:
    """
    Create a labor state store based on settings.

    Args:
        settings: Application settings

    Returns:
        Configured LaborStateStore instance

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    backend = settings.state_backend.lower()

    if backend == "memory":
        logger.info("Creating InMemoryLaborStateStore")
        return InMemoryLaborStateStore()

    if backend == "file":
        logger.info("Creating JsonFileLaborStateStore: dir=%s", settings.state_dir)
        return JsonFileLaborStateStore(state_dir=settings.state_dir)

    raise ConfigurationError(
        f"Unknown state backend: {settings.state_backend}",
        details={"state_backend": settings.state_backend},
    )
