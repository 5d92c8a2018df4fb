"""Persistent storage for Stockpile.

Wraps an origin-scoped key-value byte store with a JSON codec. The root
document is persisted under a single key:

    {
        "schemaVersion": str,
        "settings": Settings,
        "activeSetId": SetId,
        "sets": {SetId -> InventorySet},
    }

``RootStore`` never raises. Missing keys, undecodable bytes and store-level
failures are logged with context and reported as ``None`` on read; failed
writes are logged and reported through the ``save`` return value so the
caller can decide whether to warn the user.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Final, Protocol

from .const import DOMAIN, STORAGE_KEY, STORAGE_LIMIT_BYTES, STORAGE_WARNING_RATIO

_LOGGER = logging.getLogger(__name__)

BYTES_PER_MB: Final[int] = 1024 * 1024
_KEY_SUFFIX: Final[str] = ".json"


class KeyValueStore(Protocol):
    """Synchronous byte-level key-value store scoped to one origin."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryKeyValueStore:
    """In-process store, used for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore:
    """Directory-backed store: one file per key under ``root/origin``.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write never leaves a truncated value behind.
    """

    def __init__(self, root: str | os.PathLike[str], origin: str = "default") -> None:
        if not origin or os.sep in origin or origin in {".", ".."}:
            raise ValueError(f"invalid origin: {origin!r}")
        self._dir = Path(root) / origin

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"invalid storage key: {key!r}")
        return self._dir / f"{key}{_KEY_SUFFIX}"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        self._dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=_KEY_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(
            p.name[: -len(_KEY_SUFFIX)]
            for p in self._dir.iterdir()
            if p.is_file() and p.name.endswith(_KEY_SUFFIX) and not p.name.startswith(".")
        )


class RootStore:
    """JSON codec and error boundary around the root document key."""

    def __init__(self, kv: KeyValueStore, *, key: str = STORAGE_KEY) -> None:
        self._kv = kv
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @property
    def kv(self) -> KeyValueStore:
        return self._kv

    def exists(self) -> bool:
        """Return True when bytes are stored under the root key."""

        try:
            return self._kv.get(self._key) is not None
        except Exception:
            _LOGGER.error(
                "Failed to probe storage",
                extra={"domain": DOMAIN, "op": "exists", "storage_key": self._key},
                exc_info=True,
            )
            return False

    def load(self) -> dict[str, Any] | None:
        """Load and decode the root document, or None when unavailable."""

        try:
            raw = self._kv.get(self._key)
        except Exception:
            _LOGGER.error(
                "Failed to read from storage",
                extra={"domain": DOMAIN, "op": "load", "storage_key": self._key},
                exc_info=True,
            )
            return None
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except (UnicodeDecodeError, ValueError):
            _LOGGER.error(
                "Failed to decode stored document",
                extra={"domain": DOMAIN, "op": "load_decode", "storage_key": self._key},
                exc_info=True,
            )
            return None

        if not isinstance(payload, dict):
            _LOGGER.error(
                "Corrupted storage payload: expected dict, got %s",
                type(payload).__name__,
                extra={"domain": DOMAIN, "op": "load_decode", "storage_key": self._key},
            )
            return None
        return payload

    def save(self, doc: dict[str, Any]) -> bool:
        """Encode and persist ``doc``. Returns False when the write was dropped."""

        try:
            encoded = json.dumps(doc, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
            self._kv.set(self._key, encoded)
        except Exception:
            _LOGGER.error(
                "Failed to persist document",
                extra={"domain": DOMAIN, "op": "save", "storage_key": self._key},
                exc_info=True,
            )
            return False
        _LOGGER.debug(
            "Document persisted",
            extra={
                "domain": DOMAIN,
                "op": "save",
                "storage_key": self._key,
                "size_bytes": len(encoded),
            },
        )
        return True

    def clear(self) -> None:
        try:
            self._kv.remove(self._key)
        except Exception:
            _LOGGER.error(
                "Failed to clear storage",
                extra={"domain": DOMAIN, "op": "clear", "storage_key": self._key},
                exc_info=True,
            )


# -----------------------------
# Usage estimates
# -----------------------------


def storage_usage_bytes(kv: KeyValueStore) -> int:
    """Estimate bytes used by all keys and values of ``kv``.

    Returns 0 when the store cannot be enumerated.
    """

    total = 0
    try:
        for key in kv.keys():
            value = kv.get(key)
            total += len(key.encode("utf-8")) + (len(value) if value is not None else 0)
    except Exception:
        _LOGGER.debug(
            "Failed to estimate storage usage",
            extra={"domain": DOMAIN, "op": "usage"},
            exc_info=True,
        )
        return 0
    return total


def storage_usage_mb(kv: KeyValueStore) -> float:
    return round(storage_usage_bytes(kv) / BYTES_PER_MB, 2)


def is_storage_near_limit(
    kv: KeyValueStore,
    *,
    limit_bytes: int = STORAGE_LIMIT_BYTES,
    warning_ratio: float = STORAGE_WARNING_RATIO,
) -> bool:
    return storage_usage_bytes(kv) >= limit_bytes * warning_ratio
