"""Presentation helpers for browsing the archive."""

from .listing import (
    RECENT_DAYS,
    LibraryStats,
    WatchFilter,
    compute_stats,
    describe_watched,
    format_info,
    order_for_display,
    visible_items,
)

__all__ = [
    "LibraryStats",
    "RECENT_DAYS",
    "WatchFilter",
    "compute_stats",
    "describe_watched",
    "format_info",
    "order_for_display",
    "visible_items",
]
