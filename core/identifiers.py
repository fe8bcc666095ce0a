"""
Human-facing identifiers: ticket tracking IDs and invoice numbers.

Tracking IDs look like 'CH 0000123 UK': a persisted counter, zero-padded,
between a two-letter prefix and suffix. Numbers are never reused; the
counter is only ever incremented.

Invoice numbers look like 'INV-2025-0042': the year and a per-year
persisted counter, so they are never reused either.
"""

import re
from typing import Callable, Iterable

from core.config import TrackingConfig
from core.persistence import Counter, InMemoryCounter


def format_tracking_id(number: int, prefix: str = "CH", suffix: str = "UK", width: int = 7) -> str:
    """Format a counter value as a tracking ID."""
    if number < 1:
        raise ValueError(f"Tracking number must be positive, got {number}")
    return f"{prefix} {number:0{width}d} {suffix}"


def parse_tracking_number(tracking_id: str) -> int:
    """
    Extract the counter value from a tracking ID.

    Raises:
        ValueError: If the ID is not '<prefix> <digits> <suffix>'
    """
    parts = tracking_id.split()
    if len(parts) != 3 or not parts[1].isdigit():
        raise ValueError(f"Malformed tracking ID: {tracking_id!r}")
    return int(parts[1])


class TrackingIdGenerator:
    """Issues tracking IDs from a persisted counter. Single writer assumed."""

    def __init__(self, counter: Counter, config: TrackingConfig | None = None):
        self.counter = counter
        self.config = config or TrackingConfig()

    def next_tracking_id(self) -> str:
        return format_tracking_id(
            self.counter.next(),
            prefix=self.config.prefix,
            suffix=self.config.suffix,
            width=self.config.width,
        )


def format_invoice_number(sequence: int, year: int, prefix: str = "INV") -> str:
    return f"{prefix}-{year}-{sequence:04d}"


def highest_invoice_sequence(existing: Iterable[str], year: int, prefix: str = "INV") -> int:
    """
    Highest sequence used for a year among `existing`, or 0.

    Numbers that don't match the scheme are ignored.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}-{year}-(\d+)$")

    highest = 0
    for number in existing:
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


class InvoiceNumberGenerator:
    """
    Issues invoice numbers from a persisted counter per year.

    Deleting an invoice never frees its number. Numbers already stored when
    the counter was introduced are skipped over.
    """

    def __init__(self, counter_for_year: Callable[[int], Counter] | None = None, prefix: str = "INV"):
        self.counter_for_year = counter_for_year or (lambda year: InMemoryCounter())
        self.prefix = prefix
        self._counters: dict[int, Counter] = {}

    def _counter(self, year: int) -> Counter:
        if year not in self._counters:
            self._counters[year] = self.counter_for_year(year)
        return self._counters[year]

    def next_invoice_number(self, year: int, existing: Iterable[str] = ()) -> str:
        highest = highest_invoice_sequence(existing, year, self.prefix)
        counter = self._counter(year)

        sequence = counter.next()
        while sequence <= highest:
            sequence = counter.next()

        return format_invoice_number(sequence, year, self.prefix)
