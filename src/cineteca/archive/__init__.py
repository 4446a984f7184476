"""Archive of tracked movies and its persistence."""

from __future__ import annotations

from .archive import Archive
from .errors import (
    ArchiveError,
    ArchiveSaveError,
    CorruptArchiveError,
    ItemNotFoundError,
    MissingArchiveError,
)
from .models import ArchiveDocument
from .repository import DEFAULT_ARCHIVE_FILENAME, ArchiveRepository

__all__ = [
    "Archive",
    "ArchiveDocument",
    "ArchiveError",
    "ArchiveRepository",
    "ArchiveSaveError",
    "CorruptArchiveError",
    "DEFAULT_ARCHIVE_FILENAME",
    "ItemNotFoundError",
    "MissingArchiveError",
]
