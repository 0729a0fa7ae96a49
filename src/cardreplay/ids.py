"""
Identifier and timestamp helpers.

Event IDs look like ``event-<epochMillis>-<seq>-<random>`` where ``seq`` is a
per-issuer monotonic counter in base 36 and ``random`` is a short base 36
suffix from the ``secrets`` module. The counter keeps IDs issued in the same
millisecond ordered; the suffix keeps IDs from separate processes apart.
"""

import itertools
import secrets
import threading
import time
from datetime import UTC, datetime

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        msg = f"Cannot encode negative value: {value}"
        raise ValueError(msg)
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


class EventIdIssuer:
    """
    Issues unique event IDs.

    Each issuer owns its counter, so tests can create a fresh one instead of
    sharing process-wide state.
    """

    def __init__(self, prefix: str = "event", suffix_length: int = 6) -> None:
        self.prefix = prefix
        self.suffix_length = suffix_length
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        """Return a new unique ID."""
        with self._lock:
            seq = next(self._counter)
        millis = time.time_ns() // 1_000_000
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(self.suffix_length))
        return f"{self.prefix}-{millis}-{to_base36(seq).rjust(4, '0')}-{suffix}"


default_issuer = EventIdIssuer()


def new_event_id() -> str:
    """Issue an event ID from the default issuer."""
    return default_issuer.next_id()


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    now = datetime.now(UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
