"""Ordering, filtering and summaries for presenting the archive."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from cineteca.collector.models import Item

RECENT_DAYS = 14
_SECONDS_PER_DAY = 86_400


class WatchFilter(str, Enum):
    """Which items a listing shows."""

    UNWATCHED = "unwatched"
    WATCHED = "watched"
    ALL = "all"

    @property
    def label(self) -> str:
        return {"unwatched": "Not watched", "watched": "Watched", "all": "None"}[self.value]

    def cycle(self) -> "WatchFilter":
        """Return the next filter in the unwatched, watched, all rotation."""
        order = [WatchFilter.UNWATCHED, WatchFilter.WATCHED, WatchFilter.ALL]
        return order[(order.index(self) + 1) % len(order)]

    def matches(self, item: Item) -> bool:
        if self is WatchFilter.UNWATCHED:
            return not item.watched
        if self is WatchFilter.WATCHED:
            return item.watched
        return True


@dataclass(slots=True)
class LibraryStats:
    """Watched counters for a collection of items.

    Attributes:
        total: Number of items.
        watched: Items carrying a watched marker.
        recent: Items watched within the recent window.
        remaining: Items not watched yet.
    """

    total: int
    watched: int
    recent: int
    remaining: int


def order_for_display(items: Iterable[Item]) -> list[Item]:
    """Return unwatched items by name, followed by watched items, newest first."""
    items = list(items)
    unwatched = [item for item in items if not item.watched]
    unwatched.sort(key=lambda item: item.name.lower())
    watched = [item for item in items if item.watched]
    watched.sort(key=_watched_key, reverse=True)
    return unwatched + watched


def visible_items(items: Iterable[Item], watch_filter: WatchFilter = WatchFilter.ALL) -> list[Item]:
    """Return the items a listing shows under ``watch_filter``, in display order."""
    return [item for item in order_for_display(list(items)) if watch_filter.matches(item)]


def days_since(moment: datetime, now: Optional[datetime] = None) -> int:
    """Return whole days elapsed since ``moment``; never negative.

    Naive datetimes are taken to be UTC.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    return max(0, int((now - _as_utc(moment)).total_seconds()) // _SECONDS_PER_DAY)


def describe_watched(item: Item, now: Optional[datetime] = None) -> str:
    """Return a human phrase for when ``item`` was watched."""
    if item.watched_at is None:
        return "Not yet"
    days = days_since(item.watched_at, now)
    if days == 0:
        return "Today"
    if days == 1:
        return "A day ago"
    return f"{days} days ago"


def format_info(item: Item, now: Optional[datetime] = None) -> str:
    """Return the info panel text for ``item``."""
    return f"WATCHED: {describe_watched(item, now)}\n\nLENGTH: {item.duration // 60} minutes"


def compute_stats(
    items: Iterable[Item],
    now: Optional[datetime] = None,
    *,
    recent_days: int = RECENT_DAYS,
) -> LibraryStats:
    """Count total, watched, recently watched and remaining items."""
    items = list(items)
    watched = [item for item in items if item.watched_at is not None]
    recent = sum(1 for item in watched if days_since(item.watched_at, now) <= recent_days)
    return LibraryStats(
        total=len(items),
        watched=len(watched),
        recent=recent,
        remaining=len(items) - len(watched),
    )


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _watched_key(item: Item) -> datetime:
    return _as_utc(item.watched_at or datetime.min)


__all__ = [
    "LibraryStats",
    "RECENT_DAYS",
    "WatchFilter",
    "compute_stats",
    "days_since",
    "describe_watched",
    "format_info",
    "order_for_display",
    "visible_items",
]
