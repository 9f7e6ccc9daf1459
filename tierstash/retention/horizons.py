"""Retention horizons, their chain order, and per-project keep-counts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from tierstash.errors import ConfigError


@dataclass(frozen=True)
class Horizon:
    """One retention bucket, stored in its own subdirectory of a project."""

    name: str
    directory: str


DAILY = Horizon("daily", "daily")
WEEKLY = Horizon("weekly", "weekly")
MONTHLY = Horizon("monthly", "monthly")

# Slowest to fastest. Placement walks this order; each horizon's faster
# neighbour is the one after it.
CHAIN: tuple[Horizon, ...] = (MONTHLY, WEEKLY, DAILY)

# daily first: purging faster horizons first frees their links before the
# slower horizons go looking for them.
PURGE_ORDER: tuple[Horizon, ...] = (DAILY, WEEKLY, MONTHLY)

HORIZONS_BY_NAME: dict[str, Horizon] = {h.name: h for h in CHAIN}


def faster_chain(horizon: Horizon) -> list[Horizon]:
    """Return the horizons faster than *horizon*, nearest neighbour first."""
    index = CHAIN.index(horizon)
    return list(CHAIN[index + 1:])


@dataclass(frozen=True)
class Retention:
    """Keep-counts per horizon. Zero or less disables the horizon."""

    daily: int = 0
    weekly: int = 0
    monthly: int = 0

    def keep(self, horizon: Horizon) -> int:
        return getattr(self, horizon.name)

    def enabled(self, horizon: Horizon) -> bool:
        return self.keep(horizon) > 0

    def any_enabled(self) -> bool:
        return any(self.enabled(h) for h in CHAIN)

    @classmethod
    def from_mapping(cls, interval: Mapping[str, Any] | None) -> "Retention":
        """Build from a config ``interval`` mapping, e.g. ``{daily: 7, weekly: 4}``.

        Missing horizons default to 0. Unknown keys and values that are not
        non-negative integers raise :class:`ConfigError`.
        """
        interval = interval or {}
        unknown = set(interval) - set(HORIZONS_BY_NAME)
        if unknown:
            raise ConfigError(f"'interval' has unknown horizons: {sorted(unknown)}")
        counts: dict[str, int] = {}
        for name in HORIZONS_BY_NAME:
            value = interval.get(name, 0)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(
                    f"'interval.{name}' must be a non-negative integer, got {value!r}"
                )
            counts[name] = value
        return cls(**counts)


@dataclass
class DueSet:
    """Per-run decision of which horizons need a new artifact."""

    daily: bool = False
    weekly: bool = False
    monthly: bool = False

    def is_due(self, horizon: Horizon) -> bool:
        return getattr(self, horizon.name)

    def set_due(self, horizon: Horizon, due: bool) -> None:
        setattr(self, horizon.name, due)

    def any(self) -> bool:
        return self.daily or self.weekly or self.monthly

    def due_horizons(self) -> list[Horizon]:
        """Due horizons in chain order (slowest first)."""
        return [h for h in CHAIN if self.is_due(h)]

    def __str__(self) -> str:
        names = [h.name for h in self.due_horizons()]
        return ", ".join(names) if names else "nothing due"
