"""Library scanning: discovery, qualification and change signatures."""

from .collector import DEFAULT_EXTENSIONS, MIN_DURATION_SECONDS, Collector, compute_signature
from .discovery import EntryWalker
from .models import Item, ScanResult

__all__ = [
    "Collector",
    "DEFAULT_EXTENSIONS",
    "EntryWalker",
    "Item",
    "MIN_DURATION_SECONDS",
    "ScanResult",
    "compute_signature",
]
