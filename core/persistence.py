"""
Key/value persistence for the shop's collections.

Every collection is one serialized array of records under a stable key, and
every store rewrites its whole collection on each mutation. There is no
partial update, no index and no transaction: two processes writing the same
key can clobber each other. Stores hold an in-process lock around their
read-modify-write, which is as far as consistency goes.
"""

import logging
from typing import Protocol

from clients.valkey_client import ValkeyClient

logger = logging.getLogger(__name__)


class Collection(Protocol):
    """A persisted array of JSON-compatible records."""

    def load(self) -> list[dict]:
        ...

    def save(self, records: list[dict]) -> None:
        ...


class Counter(Protocol):
    """A persisted, monotonically increasing integer."""

    def next(self) -> int:
        """Increment and return the new value. The first call returns 1."""
        ...


class ValkeyCollection:
    """Collection stored as a JSON array under one Valkey key."""

    def __init__(self, valkey: ValkeyClient, key: str):
        self.valkey = valkey
        self.key = key

    def load(self) -> list[dict]:
        """
        Read every record.

        A missing key is an empty collection.

        Raises:
            ValueError: If the key holds something other than a JSON array
        """
        value = self.valkey.get_json(self.key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"Key '{self.key}' does not hold a JSON array")
        return value

    def save(self, records: list[dict]) -> None:
        self.valkey.set_json(self.key, records)


class ValkeyCounter:
    """Counter backed by Valkey INCR."""

    def __init__(self, valkey: ValkeyClient, key: str):
        self.valkey = valkey
        self.key = key

    def next(self) -> int:
        return self.valkey.incr(self.key)


class InMemoryCollection:
    """Process-local collection. Used in tests and for throwaway runs."""

    def __init__(self, records: list[dict] | None = None):
        self._records = [dict(r) for r in records or []]

    def load(self) -> list[dict]:
        return [dict(r) for r in self._records]

    def save(self, records: list[dict]) -> None:
        self._records = [dict(r) for r in records]


class InMemoryCounter:
    """Process-local counter."""

    def __init__(self, start: int = 0):
        self._value = start

    def next(self) -> int:
        self._value += 1
        return self._value


def migrate_key(valkey: ValkeyClient, old_key: str, new_key: str) -> bool:
    """
    Copy a legacy key to its new name, keeping '<old_key>_backup'.

    Nothing happens when the new key already exists or the old one doesn't.
    The old key is left in place.

    Returns:
        True if a value was copied
    """
    if valkey.exists(new_key):
        return False

    value = valkey.get(old_key)
    if value is None:
        return False

    valkey.set(new_key, value)
    valkey.set(f"{old_key}_backup", value)
    logger.info(f"Migrated legacy key {old_key} -> {new_key}")
    return True
