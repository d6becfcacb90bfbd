# ABOUTME: Persistence boundary for learning data: a store protocol plus memory and JSON backends.
# ABOUTME: The JSON store writes atomically and retries before raising StorageError.

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol

from src.common.errors import StorageError

logger = logging.getLogger(__name__)


class LearningStore(Protocol):
    def load(self) -> Optional[Dict[str, Any]]:
        ...

    def save(self, snapshot: Mapping[str, Any]) -> None:
        ...


class InMemoryStore:
    """Keeps the last saved snapshot in memory. Useful for tests and demos."""

    def __init__(self, snapshot: Optional[Mapping[str, Any]] = None) -> None:
        self._snapshot = copy.deepcopy(dict(snapshot)) if snapshot is not None else None
        self.save_count = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._snapshot)

    def save(self, snapshot: Mapping[str, Any]) -> None:
        self._snapshot = copy.deepcopy(dict(snapshot))
        self.save_count += 1


class JsonFileStore:
    def __init__(self, path: Path, retries: int = 2) -> None:
        self.path = Path(path)
        self.retries = max(0, retries)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Could not read learning data from {self.path}: {exc}") from exc

    def _write(self, snapshot: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(snapshot, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise

    def save(self, snapshot: Mapping[str, Any]) -> None:
        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                self._write(snapshot)
                return
            except (OSError, TypeError, ValueError) as exc:
                last_error = exc
                logger.warning("[storage] save attempt %d to %s failed: %s", attempt + 1, self.path, exc)
        raise StorageError(f"Could not save learning data to {self.path}") from last_error


def build_store(path: Optional[Path], retries: int = 2) -> LearningStore:
    return InMemoryStore() if path is None else JsonFileStore(path, retries)
