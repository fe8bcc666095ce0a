"""
Valkey (Redis-compatible) client for the persisted shop collections.

Tickets, invoices, payments and notification records each live under one key
as a JSON array; the tracking counter is a plain integer key. Nothing is
given a TTL.

Fail-fast: connection errors propagate, there are no fallback values.
"""

import json
import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Thin wrapper over redis-py for string, JSON and counter keys.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set_json("repairhub_tickets", [])
        tickets = client.get_json("repairhub_tickets")  # None if missing
        number = client.incr("repairhub_ticket_counter")
    """

    def __init__(self, url: str):
        """
        Connect and ping.

        Args:
            url: Connection URL, e.g. redis://localhost:6379/0 (from Vault)

        Raises:
            redis.ConnectionError: If the server can't be reached
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("Connected to Valkey")

    def ping(self) -> bool:
        """True if the server answers; raises redis.ConnectionError otherwise."""
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """Raw string value, or None for a missing key."""
        return self._client.get(key)

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def exists(self, key: str) -> bool:
        return bool(self._client.exists(key))

    def delete(self, key: str) -> bool:
        """Whether the key was there to delete."""
        return bool(self._client.delete(key))

    def incr(self, key: str) -> int:
        """Atomically add one and return the new value (a missing key counts as 0)."""
        return self._client.incr(key)

    def get_json(self, key: str) -> dict | list | None:
        """
        Decode the JSON stored under a key.

        Returns:
            The decoded value, or None when the key is missing

        Raises:
            ValueError: If the stored value isn't valid JSON
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Key '{key}' does not hold valid JSON: {e}")

    def set_json(self, key: str, value: dict | list) -> None:
        self.set(key, json.dumps(value))
