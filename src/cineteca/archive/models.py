"""Persisted archive document."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field

from cineteca.collector.models import Item


class ArchiveDocument(BaseModel):
    """Serialized form of an archive: its items and the scan signature."""

    items: List[Item] = Field(default_factory=list)
    signature: int = 0
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["ArchiveDocument"]
