"""Settings access helpers for JSON-based configuration and state."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger


class JsonSettings:
    """JSON settings store with dotted-key access.

    Used both for read-mostly configuration (``settings.json``) and for small
    pieces of persisted state such as folder grants.
    """

    def __init__(self, settings_path: str | Path, create_if_missing: bool = False) -> None:
        self._path = Path(os.path.expandvars(str(settings_path))).expanduser()
        self._data: dict[str, Any] = {}
        if not self._path.exists():
            if not create_if_missing:
                raise FileNotFoundError(f"settings file not found: {self._path}")
            return
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            if not create_if_missing:
                raise
            logger.warning("Ignoring unreadable settings file {}: {}", self._path, ex)
            data = {}
        self._data = data if isinstance(data, dict) else {}

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set dotted `key` to `value`, creating intermediate objects."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def save(self) -> None:
        """Write the current data back to disk (atomically)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self._path)

    def get_int(self, key: str, default: int) -> int:
        """Return `key` as a positive int, falling back to `default`."""
        try:
            value = int(self.get(key, default) or default)
        except (ValueError, TypeError):
            return default
        return value if value > 0 else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        return bool(self.get(key, default))
