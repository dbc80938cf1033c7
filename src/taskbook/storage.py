"""Key-value persistence for JSON-serializable collections.

Repositories depend on the :class:`Storage` protocol only, so they can run
against :class:`MemoryStorage` in tests and :class:`JsonFileStorage` on disk.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, TypeVar

from taskbook import log
from taskbook.config import DEFAULT_NAMESPACE, VERSION
from taskbook.errors import PersistenceError, ValidationError
from taskbook.io_utils import read_json, write_json

T = TypeVar("T")


class Storage(Protocol):
    def load(self, key: str, default: Any = None) -> Any: ...

    def save(self, key: str, value: Any) -> None: ...


class MemoryStorage:
    """Dict-backed store. Values are deep-copied in and out, like a real medium."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def load(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return sorted(self._data)

    def clear(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def export_data(self) -> dict[str, Any]:
        return _snapshot(self, "memory", VERSION)


class JsonFileStorage:
    """One pretty-printed UTF-8 JSON file per key under ``<root>/<namespace>/``."""

    def __init__(
        self,
        root: Path | str,
        namespace: str = DEFAULT_NAMESPACE,
        version: str = VERSION,
    ) -> None:
        self.namespace = namespace
        self.version = version
        self._dir = Path(root) / namespace

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._dir / f"{key}.json"

    def load(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or *default* when absent or unreadable."""
        path = self._path(key)
        if not path.is_file():
            return default
        try:
            return read_json(path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.warn(f"Could not read {path}: {exc}. Using defaults.")
            return default

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            write_json(path, value, atomic=True)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(key, f"not JSON-serializable ({exc})") from exc
        except OSError as exc:
            raise PersistenceError(key, exc.strerror or str(exc)) from exc
        log.debug(f"Saved {key} -> {path}")

    def keys(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))

    def clear(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise PersistenceError(key, exc.strerror or str(exc)) from exc
        return True

    def export_data(self) -> dict[str, Any]:
        """Snapshot of every stored key, tagged with app name and version."""
        return _snapshot(self, self.namespace, self.version)


def _snapshot(store: MemoryStorage | JsonFileStorage, app_name: str, version: str) -> dict[str, Any]:
    return {
        "appName": app_name,
        "version": version,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "data": {key: store.load(key) for key in store.keys()},
    }


def load_records(
    storage: Storage, key: str, parse: Callable[[Any], T]
) -> tuple[list[T], list[Any]]:
    """Parse the record list stored under *key*.

    Returns ``(parsed, rejected)``. A record that *parse* refuses lands in
    ``rejected`` unchanged instead of failing the whole load; a stored value
    that is not a list is rejected as a single item.
    """
    raw = storage.load(key, [])
    if raw is None:
        return [], []
    if not isinstance(raw, list):
        return [], [raw]

    parsed: list[T] = []
    rejected: list[Any] = []
    for record in raw:
        try:
            parsed.append(parse(record))
        except (ValidationError, KeyError, TypeError, AttributeError):
            rejected.append(record)
    return parsed, rejected
