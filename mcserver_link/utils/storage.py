"""Key-value preference storage."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class MemoryStore:
    """In-memory key-value store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get a stored value.

        Args:
            key: Storage key
            default: Value returned when the key is unset

        Returns:
            A copy of the stored value, or default
        """
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        """Store a value."""
        self._data[key] = copy.deepcopy(value)
        self._flush()

    def remove(self, key: str) -> None:
        """Remove a key if present."""
        if key in self._data:
            del self._data[key]
            self._flush()

    def contains(self, key: str) -> bool:
        return key in self._data

    def _flush(self) -> None:
        pass


class KeyValueStore(MemoryStore):
    """Key-value store persisted to a YAML file.

    Every write rewrites the whole file; the store is small (settings plus the
    server list).
    """

    def __init__(self, path: Path) -> None:
        """Initialize store, loading existing data from disk.

        Args:
            path: Path to the YAML file
        """
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        """Load data from file."""
        if not self.path.exists():
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read preferences from %s: %s", self.path, e)
            return

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences file %s", self.path)
            return
        self._data = data

    def _flush(self) -> None:
        """Save data to file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
