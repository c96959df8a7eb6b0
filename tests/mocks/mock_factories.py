"""Document types and factory functions used across the test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from couch_cache_core.models.document import CacheDocument


class Car(CacheDocument):
    """Payload type with one extra field."""

    maker: str


class Truck(CacheDocument):
    """Second payload type, used to check type-scoped identifiers."""

    maker: str
    axles: int = 2


def make_car(maker: str = "MakerOne", **overrides: object) -> Car:
    """Create a Car with a generated key."""
    return Car(maker=maker, **overrides)  # type: ignore[arg-type]


def make_truck(maker: str = "HaulCo", **overrides: object) -> Truck:
    """Create a Truck with a generated key."""
    return Truck(maker=maker, **overrides)  # type: ignore[arg-type]


class FakeClock:
    """Manually advanced clock for TTL tests without real waits."""

    def __init__(self, start: datetime | None = None) -> None:
        """Start at a fixed UTC instant."""
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        """Move the clock forward."""
        self.now += timedelta(seconds=seconds)
