"""Expiration records for cached values.

Every cached value carries an ``ExpirationRecord``: the time it was stored
and how long it stays valid, both in milliseconds. A ttl of
``NEVER_EXPIRE`` keeps the value until it is removed explicitly.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Union

from cachevault.shared.constants import Cache
from cachevault.shared.errors import create_validation_error

NEVER_EXPIRE = Cache.NEVER_EXPIRE

Clock = Callable[[], int]
TTL = Union[int, timedelta, None]


def current_millis() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_millis(ttl: TTL) -> int:
    """Normalize a ttl to milliseconds.

    ``None`` and ``NEVER_EXPIRE`` both mean "never expires". A timedelta is
    converted to whole milliseconds.

    Raises:
        DomainError: If the ttl is negative (other than the sentinel) or not
            an int/timedelta.
    """
    if ttl is None:
        return NEVER_EXPIRE
    if isinstance(ttl, timedelta):
        millis = ttl // timedelta(milliseconds=1)
    elif isinstance(ttl, int) and not isinstance(ttl, bool):
        millis = ttl
    else:
        raise create_validation_error(
            f"ttl must be an int (milliseconds) or timedelta, got {type(ttl).__name__}",
            field="ttl",
            operation="normalize_ttl",
        )

    if millis < 0 and millis != NEVER_EXPIRE:
        raise create_validation_error(
            f"ttl must be non-negative or {NEVER_EXPIRE} (never), got {millis}",
            field="ttl",
            operation="normalize_ttl",
        )
    return millis


@dataclass(frozen=True)
class ExpirationRecord:
    """Insertion time and time-to-live of a single cache key.

    Attributes:
        inserted_at: Epoch milliseconds when the value was stored.
        ttl: Lifetime in milliseconds, or ``NEVER_EXPIRE``.
    """

    inserted_at: int
    ttl: int = NEVER_EXPIRE

    def __post_init__(self) -> None:
        """Validate the ttl invariant."""
        if self.ttl < 0 and self.ttl != NEVER_EXPIRE:
            raise create_validation_error(
                f"ttl must be non-negative or {NEVER_EXPIRE} (never), got {self.ttl}",
                field="ttl",
                operation="create_expiration_record",
            )

    @classmethod
    def now(cls, ttl: TTL = None, clock: Clock = current_millis) -> ExpirationRecord:
        """Create a record stamped with the current time."""
        return cls(inserted_at=clock(), ttl=to_millis(ttl))

    @property
    def never_expires(self) -> bool:
        return self.ttl == NEVER_EXPIRE

    @property
    def expires_at(self) -> int | None:
        """Epoch milliseconds at which the value expires, or None."""
        if self.never_expires:
            return None
        return self.inserted_at + self.ttl

    def is_expired(self, now: int) -> bool:
        """Return True once ``now - inserted_at`` reaches the ttl."""
        if self.never_expires:
            return False
        return now - self.inserted_at >= self.ttl

    def remaining(self, now: int) -> int | None:
        """Milliseconds left before expiry (never negative), or None."""
        expires_at = self.expires_at
        if expires_at is None:
            return None
        return max(0, expires_at - now)
