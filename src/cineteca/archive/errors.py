"""Archive errors."""


class ArchiveError(Exception):
    """Base exception for archive operations."""


class MissingArchiveError(ArchiveError):
    """Raised when no archive document exists for a library root."""


class CorruptArchiveError(ArchiveError):
    """Raised when an archive document exists but cannot be read."""


class ArchiveSaveError(ArchiveError):
    """Raised when the archive document cannot be written."""


class ItemNotFoundError(ArchiveError, KeyError):
    """Raised when a name is not tracked by the archive."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No movie named {self.name!r} in the archive"
