"""The archive: authoritative movie list and its reconciliation with scans."""

from __future__ import annotations

import bisect
import logging
import threading
from datetime import datetime, timezone
from operator import attrgetter
from pathlib import Path
from typing import Iterable, Optional, Protocol

from cineteca.collector.models import Item, ScanResult

from .errors import ItemNotFoundError, MissingArchiveError
from .models import ArchiveDocument
from .repository import ArchiveRepository

LOGGER = logging.getLogger(__name__)

_NAME = attrgetter("name")


class Scanner(Protocol):
    """Anything able to produce a scan of a library root."""

    def collect(self, root: Path) -> ScanResult: ...


class Archive:
    """Name-sorted movie collection tied to the scan that produced it.

    Items are kept sorted by name with unique names, so lookups use binary
    search. The signature only changes together with the items it describes.
    Mutations and snapshot reads are serialized by an internal lock; callers
    are still expected to funnel mutations through a single thread.
    """

    def __init__(
        self,
        root: Path,
        items: Iterable[Item] = (),
        signature: int = 0,
        *,
        repository: Optional[ArchiveRepository] = None,
    ) -> None:
        self._root = Path(root)
        self._repository = repository or ArchiveRepository()
        self._items = _sorted_unique(items)
        self._signature = signature
        self._lock = threading.RLock()

    @classmethod
    def init(
        cls,
        root: Path,
        scanner: Scanner,
        *,
        repository: Optional[ArchiveRepository] = None,
    ) -> "Archive":
        """Load the archive of ``root`` or build it with a full scan.

        A saved document is always bound to the current ``root`` and
        repository, regardless of where it was written from.

        Args:
            root: Library root.
            scanner: Collector used when no saved archive exists.
            repository: Repository handling the archive document.

        Returns:
            Archive: Loaded or freshly built archive.

        Raises:
            CorruptArchiveError: If a saved archive exists but is unreadable.
        """
        repository = repository or ArchiveRepository()
        try:
            document = repository.load(root)
        except MissingArchiveError:
            LOGGER.info("No archive under %s; running initial scan", root)
            result = scanner.collect(root)
            return cls(root, result.items, result.signature, repository=repository)
        return cls(root, document.items, document.signature, repository=repository)

    @property
    def root(self) -> Path:
        """Return the library root."""
        return self._root

    @property
    def save_path(self) -> Path:
        """Return the location of the archive document."""
        return self._repository.path_for(self._root)

    @property
    def signature(self) -> int:
        """Return the signature of the scan the items came from."""
        return self._signature

    @property
    def items(self) -> tuple[Item, ...]:
        """Return the items in name order."""
        with self._lock:
            return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._find(name) is not None

    def update(self, items: Iterable[Item], signature: int) -> bool:
        """Reconcile the archive with a new scan.

        Nothing happens when ``signature`` matches the stored one. Otherwise
        existing items still present in the scan are kept ahead of the scanned
        ones, the combined list is stably sorted by name and only the first
        item of each name survives. Watched markers of files that are still
        around are therefore preserved, new files are adopted and vanished
        files are dropped.

        Args:
            items: Items of the new scan.
            signature: Signature of the new scan.

        Returns:
            bool: True if the archive changed.
        """
        with self._lock:
            if signature == self._signature:
                return False

            incoming = [item.model_copy() for item in items]
            present = {item.name for item in incoming}
            before = len(self._items)

            merged = [item for item in self._items if item.name in present]
            retained = len(merged)
            merged.extend(incoming)
            self._items = _sorted_unique(merged)
            self._signature = signature

            LOGGER.info(
                "Archive %s reconciled: %d kept, %d removed, %d added",
                self._root,
                retained,
                before - retained,
                len(self._items) - retained,
            )
            return True

    reconcile = update

    def apply(self, result: ScanResult) -> bool:
        """Reconcile the archive with ``result``; see :meth:`update`."""
        return self.update(result.items, result.signature)

    def get(self, name: str) -> Item:
        """Return the item called ``name``.

        Raises:
            ItemNotFoundError: If no such item exists.
        """
        with self._lock:
            return self._items[self._index(name)]

    def get_path(self, name: str) -> Path:
        """Return the file location of ``name``.

        Raises:
            ItemNotFoundError: If no such item exists.
        """
        return self.get(name).path

    def toggle_watched(self, name: str, *, now: Optional[datetime] = None) -> Item:
        """Flip the watched marker of ``name``.

        Raises:
            ItemNotFoundError: If no such item exists.
        """
        with self._lock:
            item = self._items[self._index(name)]
            item.watched_at = None if item.watched else (now or _utcnow())
            return item

    def set_watched(self, name: str, *, now: Optional[datetime] = None) -> Item:
        """Mark ``name`` watched as of ``now``.

        Raises:
            ItemNotFoundError: If no such item exists.
        """
        with self._lock:
            item = self._items[self._index(name)]
            item.watched_at = now or _utcnow()
            return item

    def to_document(self) -> ArchiveDocument:
        """Return a serializable snapshot of the archive."""
        with self._lock:
            return ArchiveDocument(
                items=[item.model_copy() for item in self._items],
                signature=self._signature,
            )

    def save(self) -> Path:
        """Persist the archive document.

        Returns:
            Path: Location of the written document.

        Raises:
            ArchiveSaveError: If the document cannot be written.
        """
        with self._lock:
            return self._repository.save(self._root, self.to_document())

    def _find(self, name: str) -> Optional[int]:
        index = bisect.bisect_left(self._items, name, key=_NAME)
        if index < len(self._items) and self._items[index].name == name:
            return index
        return None

    def _index(self, name: str) -> int:
        index = self._find(name)
        if index is None:
            raise ItemNotFoundError(name)
        return index


def _sorted_unique(items: Iterable[Item]) -> list[Item]:
    result: list[Item] = []
    for item in sorted(items, key=_NAME):
        if result and result[-1].name == item.name:
            continue
        result.append(item)
    return result


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = ["Archive"]
