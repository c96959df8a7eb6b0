"""Time-to-live policy: expiry stamping at write time, masking at read time."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def _as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def compute_expiry(ttl: timedelta | None, now: datetime | None = None) -> datetime | None:
    """Return the absolute expiry for a TTL, or None when there is no TTL."""
    if ttl is None:
        return None
    if ttl <= timedelta(0):
        msg = f"ttl must be positive, got {ttl}"
        raise ValueError(msg)
    return _as_aware(now or utc_now()) + ttl


def is_expired(expires_at: datetime | None, now: datetime) -> bool:
    """Check expiry; an absent expiry never expires."""
    if expires_at is None:
        return False
    return _as_aware(now) >= _as_aware(expires_at)
