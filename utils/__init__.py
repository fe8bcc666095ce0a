"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, days_from_now, is_past
