"""Folder access grants: persisted capability tokens and their activation.

A token identifies a folder the user explicitly granted access to. Tokens are
persisted in a key-value store under a single key, resolved eagerly when the
store is created and activated for the lifetime of the store. Activated
folders are released by `AccessGrantStore.close()`.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from core.models import AccessGrant
from core.services.interfaces import FolderAccessDeniedError, KeyValueStore

GRANTS_KEY = "access.folder_grants"


def _normalize(path: str) -> str:
    return os.path.normcase(os.path.abspath(os.path.expanduser(path)))


def is_within(path: str, folder: str) -> bool:
    """True if `path` equals `folder` or lies below it (component-wise)."""
    p, f = _normalize(path), _normalize(folder)
    if p == f:
        return True
    try:
        return os.path.commonpath([p, f]) == f
    except ValueError:
        # different drives on Windows
        return False


class FolderTokenProvider:
    """Creates and resolves opaque folder tokens.

    A token records the folder path together with its device and inode
    numbers. It becomes stale when the folder at that path has been replaced
    by a different one, and fails to resolve when the folder is gone.
    """

    def create_token(self, folder_path: str) -> bytes:
        """Create a token for an existing folder.

        Raises:
            FolderAccessDeniedError: `folder_path` is not an accessible folder.
        """
        path = _normalize(folder_path)
        try:
            st = os.stat(path)
        except OSError as ex:
            raise FolderAccessDeniedError(f"Cannot access folder {folder_path}: {ex}") from ex
        if not Path(path).is_dir():
            raise FolderAccessDeniedError(f"Not a folder: {folder_path}")
        payload = {"path": path, "device": int(st.st_dev), "inode": int(st.st_ino)}
        return json.dumps(payload, sort_keys=True).encode("utf-8")

    def resolve_token(self, token: bytes) -> tuple[str, bool]:
        """Resolve `token` to ``(folder_path, is_stale)``.

        Raises:
            FolderAccessDeniedError: The token is corrupt or its folder is gone.
        """
        try:
            payload = json.loads(token.decode("utf-8"))
            path = str(payload["path"])
            device = int(payload["device"])
            inode = int(payload["inode"])
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as ex:
            raise FolderAccessDeniedError(f"Corrupt folder token: {ex}") from ex
        try:
            st = os.stat(path)
        except OSError as ex:
            raise FolderAccessDeniedError(f"Granted folder unavailable: {path}") from ex
        is_stale = (int(st.st_dev), int(st.st_ino)) != (device, inode)
        return path, is_stale

    def activate(self, folder_path: str) -> bool:
        """Start accessing `folder_path`; False when it cannot be listed."""
        return os.path.isdir(folder_path) and os.access(folder_path, os.R_OK | os.X_OK)

    def deactivate(self, folder_path: str) -> None:
        """Stop accessing `folder_path`."""
        logger.debug("Released folder access: {}", folder_path)


class AccessGrantStore:
    """Persists folder grants and tracks which folders are active.

    Use as a context manager, or call `close()` at teardown, so every
    activated folder is released.
    """

    def __init__(
        self,
        store: KeyValueStore,
        provider: FolderTokenProvider | None = None,
        key: str = GRANTS_KEY,
    ) -> None:
        self._store = store
        self._provider = provider or FolderTokenProvider()
        self._key = key
        self._grants: dict[str, AccessGrant] = {}
        self._active: list[str] = []
        self._closed = False
        self._load()

    def __enter__(self) -> AccessGrantStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # Persistence
    def _read_persisted(self) -> dict[str, bytes]:
        raw = self._store.get(self._key, {})
        result: dict[str, bytes] = {}
        if not isinstance(raw, dict):
            return result
        for folder, encoded in raw.items():
            if not isinstance(folder, str) or not isinstance(encoded, str):
                continue
            try:
                result[folder] = base64.b64decode(encoded.encode("ascii"), validate=True)
            except (binascii.Error, ValueError, UnicodeEncodeError):
                continue
        return result

    def _write_persisted(self) -> None:
        data = {
            folder: base64.b64encode(grant.token).decode("ascii")
            for folder, grant in self._grants.items()
        }
        self._store.set(self._key, data)
        try:
            self._store.save()
        except OSError as ex:
            logger.error("Failed to persist folder grants: {}", ex)

    def _load(self) -> None:
        raw = self._store.get(self._key, {})
        persisted = self._read_persisted()
        pruned = not isinstance(raw, dict) or len(persisted) != len(raw)
        for folder, token in persisted.items():
            try:
                resolved, is_stale = self._provider.resolve_token(token)
            except FolderAccessDeniedError as ex:
                logger.warning("Dropping folder grant for {}: {}", folder, ex)
                pruned = True
                continue
            if is_stale or not self._activate(resolved):
                logger.info("Dropping stale folder grant: {}", folder)
                pruned = True
                continue
            self._grants[folder] = AccessGrant(folder_path=resolved, token=token)
        if pruned:
            self._write_persisted()
        logger.info("Folder grants restored: {}", len(self._grants))

    # Activation
    def _activate(self, folder: str) -> bool:
        if any(_normalize(a) == _normalize(folder) for a in self._active):
            return True
        if not self._provider.activate(folder):
            return False
        self._active.append(folder)
        return True

    # Public API
    @property
    def active_folders(self) -> list[str]:
        return list(self._active)

    def grants(self) -> list[AccessGrant]:
        return list(self._grants.values())

    def resolve(self, folder_path: str) -> bytes | None:
        """Return the active token for `folder_path`, or None."""
        grant = self._grants.get(folder_path) or self._grants.get(_normalize(folder_path))
        if grant is None:
            return None
        try:
            _, is_stale = self._provider.resolve_token(grant.token)
        except FolderAccessDeniedError as ex:
            logger.warning("Folder grant no longer resolves for {}: {}", folder_path, ex)
            self._forget(folder_path)
            return None
        if is_stale or not self._activate(grant.folder_path):
            grant.is_stale = True
            self._forget(folder_path)
            return None
        return grant.token

    def grant(self, folder_path: str, token: bytes | None = None) -> bytes:
        """Persist a newly obtained grant for `folder_path` and activate it.

        Raises:
            FolderAccessDeniedError: The folder cannot be accessed.
        """
        folder = _normalize(folder_path)
        if token is None:
            token = self._provider.create_token(folder)
        if not self._activate(folder):
            raise FolderAccessDeniedError(f"Cannot access folder {folder_path}")
        self._grants[folder] = AccessGrant(folder_path=folder, token=token)
        self._write_persisted()
        logger.info("Folder access granted: {}", folder)
        return token

    def is_granted(self, path: str) -> bool:
        """True if `path` is an active folder or lies inside one."""
        return any(is_within(path, active) for active in self._active)

    def _forget(self, folder_path: str) -> None:
        for key in (folder_path, _normalize(folder_path)):
            grant = self._grants.pop(key, None)
            if grant is not None:
                self._release(grant.folder_path)
        self._write_persisted()

    def _release(self, folder: str) -> None:
        for active in list(self._active):
            if _normalize(active) == _normalize(folder):
                self._active.remove(active)
                self._provider.deactivate(active)

    def close(self) -> None:
        """Release every activated folder."""
        if self._closed:
            return
        self._closed = True
        for folder in list(self._active):
            self._provider.deactivate(folder)
        self._active.clear()
