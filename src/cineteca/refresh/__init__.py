"""Background refresh of an archive from library scans."""

from .service import (
    PathTouched,
    RefreshOutcome,
    RefreshService,
    ScanCompleted,
    ScanFailed,
)

__all__ = [
    "PathTouched",
    "RefreshOutcome",
    "RefreshService",
    "ScanCompleted",
    "ScanFailed",
]
