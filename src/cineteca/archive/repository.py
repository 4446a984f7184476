"""Persistence of archive documents inside a library root."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .errors import ArchiveSaveError, CorruptArchiveError, MissingArchiveError
from .models import ArchiveDocument

DEFAULT_ARCHIVE_FILENAME = ".movies.json"


class ArchiveRepository:
    """Read and write the archive document of a library root."""

    def __init__(self, filename: str = DEFAULT_ARCHIVE_FILENAME) -> None:
        """Initialize the repository.

        Args:
            filename: Name of the document stored inside each library root.
        """
        self._filename = filename

    @property
    def filename(self) -> str:
        """Return the document file name."""
        return self._filename

    def path_for(self, root: Path) -> Path:
        """Return the document location for ``root``."""
        return Path(root) / self._filename

    def load(self, root: Path) -> ArchiveDocument:
        """Load the archive document stored under ``root``.

        Args:
            root: Library root.

        Returns:
            ArchiveDocument: Deserialized document.

        Raises:
            MissingArchiveError: If no document is present.
            CorruptArchiveError: If the document cannot be read or validated.
        """
        path = self.path_for(root)
        if not path.exists():
            raise MissingArchiveError(f"No archive found at {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptArchiveError(f"Unreadable archive {path}: {exc}") from exc

        try:
            return ArchiveDocument.model_validate(data)
        except ValidationError as exc:
            raise CorruptArchiveError(f"Invalid archive data in {path}: {exc}") from exc

    def save(self, root: Path, document: ArchiveDocument) -> Path:
        """Write ``document`` under ``root``.

        The document is written to a sibling temporary file first and moved
        into place, so an interrupted save never leaves a truncated archive.

        Args:
            root: Library root.
            document: Document to persist.

        Returns:
            Path: Location of the written document.

        Raises:
            ArchiveSaveError: If serialization or writing fails.
        """
        path = self.path_for(root)
        document.saved_at = datetime.now(timezone.utc)
        temporary = path.with_name(f"{path.name}.tmp")
        try:
            payload = json.dumps(document.model_dump(mode="json"), indent=2)
            temporary.write_text(payload, encoding="utf-8")
            os.replace(temporary, path)
        except (OSError, TypeError, ValueError) as exc:
            raise ArchiveSaveError(f"Could not save archive to {path}: {exc}") from exc
        return path


__all__ = ["ArchiveRepository", "DEFAULT_ARCHIVE_FILENAME"]
