"""Expiring key-value cache for fetched user batches."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import structlog

from ..infra.storage import SQLiteManager
from .records import User, users_from_payload, users_to_payload

DEFAULT_TTL_SECONDS = 5 * 60
USERS_CACHE_KEY = "users"


def epoch_ms() -> float:
    return time.time() * 1000


@dataclass(slots=True, frozen=True)
class CacheEntry:
    key: str
    payload: list[User]
    stored_at: float


class CacheBackend(ABC):
    """Raw entry storage; expiry policy lives in :class:`ExpiringCache`."""

    @abstractmethod
    def read(self, key: str) -> CacheEntry | None:
        """Return the stored entry or None."""

    @abstractmethod
    def write(self, entry: CacheEntry) -> None:
        """Store ``entry``, replacing any entry with the same key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


class MemoryCacheBackend(CacheBackend):
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def read(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def write(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class SQLiteCacheBackend(CacheBackend):
    """Persist entries as ``{"data": [...], "timestamp": epoch-ms}`` JSON rows."""

    def __init__(self, manager: SQLiteManager) -> None:
        self.manager = manager

    def read(self, key: str) -> CacheEntry | None:
        row = self.manager.connect().execute(
            "SELECT payload FROM cache_entries WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        document = json.loads(row["payload"])
        return CacheEntry(
            key=key,
            payload=users_from_payload(document["data"]),
            stored_at=float(document["timestamp"]),
        )

    def write(self, entry: CacheEntry) -> None:
        document = {"data": users_to_payload(entry.payload), "timestamp": entry.stored_at}
        conn = self.manager.connect()
        conn.execute(
            "INSERT OR REPLACE INTO cache_entries(key, payload) VALUES (?, ?)",
            (entry.key, json.dumps(document)),
        )
        conn.commit()

    def delete(self, key: str) -> None:
        conn = self.manager.connect()
        conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        conn.commit()


class ExpiringCache:
    """Cache whose entries are valid only while ``now - stored_at < ttl``.

    Reads and writes are not locked; callers run one data operation at a time.
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        self.backend = backend or MemoryCacheBackend()
        self.ttl_ms = ttl_seconds * 1000
        self.clock = clock
        self.logger = structlog.get_logger("user_explorer.cache")

    def put(self, key: str, payload: list[User]) -> None:
        self.backend.write(CacheEntry(key=key, payload=list(payload), stored_at=self.clock()))
        self.logger.debug("cache_stored", key=key, size=len(payload))

    def get(self, key: str) -> list[User] | None:
        try:
            entry = self.backend.read(key)
        except (ValueError, KeyError, TypeError) as exc:
            # Undecodable rows count as absent.
            self.backend.delete(key)
            self.logger.warning("cache_entry_unreadable", key=key, error=str(exc))
            return None
        if entry is None:
            return None
        if self.clock() - entry.stored_at >= self.ttl_ms:
            self.backend.delete(key)
            self.logger.info("cache_expired", key=key)
            return None
        return list(entry.payload)

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)
        self.logger.info("cache_invalidated", key=key)


__all__ = [
    "CacheBackend",
    "CacheEntry",
    "DEFAULT_TTL_SECONDS",
    "ExpiringCache",
    "MemoryCacheBackend",
    "SQLiteCacheBackend",
    "USERS_CACHE_KEY",
    "epoch_ms",
]
