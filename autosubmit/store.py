"""Durable key/value store for queue contents, proposals and settings.

Two backends share the :class:`KeyValueStore` contract:

- :class:`JsonFileStore` keeps every key in one JSON document on disk.
  Writes go to a ``.tmp`` sibling, are fsynced and renamed over the target
  (atomic on POSIX); the previous document is copied to ``.bak`` first so a
  corrupted primary file can be restored on the next read. An advisory
  ``fcntl`` lock serializes writers from separate processes.
- :class:`MemoryStore` keeps values in a dict; used for dry runs and tests.

Read failures that cannot be recovered from ``.bak`` surface as
:class:`StoreReadError`; write failures propagate as ``OSError``.
"""
from __future__ import annotations

import copy
import fcntl
import json
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from autosubmit.log import get_logger

log = get_logger(__name__)


class StoreReadError(Exception):
    pass


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return a deep copy of the stored value, or ``default``."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    def delete(self, key: str) -> None:
        self.set(key, None)


class MemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data or self._data[key] is None:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


class JsonFileStore(KeyValueStore):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._bak = self.path.with_suffix(self.path.suffix + ".bak")
        self._tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        self._lockfile = self.path.with_suffix(self.path.suffix + ".lock")

    def get(self, key: str, default: Any = None) -> Any:
        value = self._read().get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lockfile, "a") as lf:
            _lock(lf)
            try:
                data = self._read()
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
                self._backup_and_write(data)
            finally:
                _unlock(lf)

    def delete(self, key: str) -> None:
        self.set(key, None)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f) or {}
        except (json.JSONDecodeError, OSError) as exc:
            log.warning("Failed to read %s: %s, trying backup", self.path, exc)

        if self._bak.exists():
            try:
                with open(self._bak, "r", encoding="utf-8") as f:
                    data = json.load(f) or {}
                log.info("Restored %s from backup", self.path)
                self._atomic_write(data)
                return data
            except (json.JSONDecodeError, OSError) as exc:
                log.error("Backup %s also corrupted: %s", self._bak, exc)

        raise StoreReadError(f"Could not read {self.path} or its backup")

    def _backup_and_write(self, data: dict[str, Any]) -> None:
        if self.path.exists():
            try:
                shutil.copy2(self.path, self._bak)
            except OSError as exc:
                log.warning("Failed to create backup of %s: %s", self.path, exc)
        self._atomic_write(data)

    def _atomic_write(self, data: dict[str, Any]) -> None:
        try:
            with open(self._tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            self._tmp.replace(self.path)
        except OSError as exc:
            log.error("Failed to write %s: %s", self.path, exc)
            if self._tmp.exists():
                self._tmp.unlink()
            raise
