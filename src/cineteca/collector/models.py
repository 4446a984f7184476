"""Data models produced by a library scan."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Item(BaseModel):
    """A movie file tracked by the archive.

    Only ``watched_at`` may change after creation; naive timestamps are taken
    to be UTC.

    Attributes:
        name: Base file name; unique lookup and display key.
        path: Location of the file on disk.
        duration: Playback length in whole seconds.
        watched_at: When the movie was last marked watched, ``None`` if unwatched.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(frozen=True)
    path: Path = Field(frozen=True)
    duration: int = Field(default=0, frozen=True)
    watched_at: Optional[datetime] = None

    @field_validator("watched_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def watched(self) -> bool:
        """Return whether the item carries a watched marker."""
        return self.watched_at is not None


class ScanResult(BaseModel):
    """Qualifying items of one scan together with its change signature."""

    items: List[Item] = Field(default_factory=list)
    signature: int = 0


__all__ = ["Item", "ScanResult"]
