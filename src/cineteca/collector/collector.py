"""Concurrent scan that turns a directory tree into archive items."""

from __future__ import annotations

import hashlib
import logging
import math
import os
import queue
import stat
import threading
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

from cineteca.config.models import CinetecaConfig
from cineteca.probe import DurationProber, ProbeError

from .discovery import EntryWalker
from .models import Item, ScanResult

LOGGER = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ("mkv", "mp4", "avi", "mov")
MIN_DURATION_SECONDS = 3600


class Prober(Protocol):
    """Interface the collector expects from a duration prober."""

    def initialize(self) -> object: ...

    def probe(self, path: Path) -> float: ...


class Collector:
    """Scan a library root for movie files using parallel workers.

    The entry list is split into one contiguous chunk per worker. Workers share
    no state; each posts a single batch to a fan-in queue and the collector
    sorts the combined result once every chunk is done.
    """

    def __init__(
        self,
        prober: Prober,
        *,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        min_duration_seconds: int = MIN_DURATION_SECONDS,
        min_size_bytes: int = 0,
        workers: Optional[int] = None,
        walker: Optional[EntryWalker] = None,
    ) -> None:
        self.prober = prober
        self.extensions = frozenset(ext.lower().lstrip(".") for ext in extensions)
        self.min_duration_seconds = min_duration_seconds
        self.min_size_bytes = max(0, min_size_bytes)
        self.workers = workers
        self.walker = walker or EntryWalker()

    @classmethod
    def from_config(cls, config: CinetecaConfig, prober: Optional[Prober] = None) -> "Collector":
        """Build a collector from the scan and probe sections of ``config``."""
        return cls(
            prober or DurationProber(config.probe.ffprobe_path),
            extensions=config.scan.extensions,
            min_duration_seconds=config.scan.min_duration_seconds,
            min_size_bytes=config.scan.min_size_mb * 1024 * 1024,
            workers=config.scan.workers,
            walker=EntryWalker(skip_names=frozenset({config.archive.filename})),
        )

    def collect(self, root: Path) -> ScanResult:
        """Scan ``root`` and return qualifying items with their signature.

        Args:
            root: Library root to scan.

        Returns:
            ScanResult: Items sorted by name and the signature over them.

        Raises:
            ProbeUnavailableError: If the prober cannot be initialized.
        """
        self.prober.initialize()

        entries = self.walker.walk(Path(root))
        chunks = self._partition(entries)
        LOGGER.debug(
            "Scanning %d entries under %s with %d workers", len(entries), root, len(chunks)
        )

        results: queue.Queue[tuple[list[Item], Optional[BaseException]]] = queue.Queue()
        for index, chunk in enumerate(chunks):
            threading.Thread(
                target=self._run_worker,
                args=(chunk, results),
                name=f"cineteca-scan-{index}",
                daemon=True,
            ).start()

        items: list[Item] = []
        failure: Optional[BaseException] = None
        for _ in chunks:
            batch, error = results.get()
            items.extend(batch)
            if error is not None and failure is None:
                failure = error
        if failure is not None:
            raise failure

        items.sort(key=lambda item: (item.name, str(item.path)))
        _warn_duplicates(items)
        return ScanResult(items=items, signature=compute_signature(items))

    def _partition(self, entries: Sequence[Path]) -> list[list[Path]]:
        if not entries:
            return []
        count = self.workers or os.cpu_count() or 1
        size = math.ceil(len(entries) / max(1, count))
        return [list(entries[start : start + size]) for start in range(0, len(entries), size)]

    def _run_worker(
        self,
        chunk: list[Path],
        results: queue.Queue[tuple[list[Item], Optional[BaseException]]],
    ) -> None:
        batch: list[Item] = []
        error: Optional[BaseException] = None
        try:
            for path in chunk:
                item = self._process_entry(path)
                if item is not None:
                    batch.append(item)
        except Exception as exc:
            error = exc
        finally:
            results.put((batch, error))

    def _process_entry(self, path: Path) -> Optional[Item]:
        try:
            info = path.stat()
        except OSError:
            return None
        if not stat.S_ISREG(info.st_mode):
            return None
        if path.suffix.lower().lstrip(".") not in self.extensions:
            return None
        if info.st_size < self.min_size_bytes:
            return None

        try:
            duration = self.prober.probe(path)
        except ProbeError as exc:
            LOGGER.debug("Skipping %s: %s", path, exc)
            return None

        if duration < self.min_duration_seconds:
            return None
        return Item(name=path.name, path=path, duration=int(duration))


def compute_signature(items: Iterable[Item]) -> int:
    """Return a stable 64-bit hash over ``items`` in their given order."""
    digest = hashlib.blake2b(digest_size=8)
    for item in items:
        line = f"{item.name}\0{Path(item.path).as_posix()}\0{item.duration}\n"
        digest.update(line.encode("utf-8", "surrogateescape"))
    return int.from_bytes(digest.digest(), "big")


def _warn_duplicates(items: Sequence[Item]) -> None:
    for previous, current in zip(items, items[1:]):
        if previous.name == current.name:
            LOGGER.warning(
                "Duplicate movie name %s: keeping %s, ignoring %s",
                current.name,
                previous.path,
                current.path,
            )


__all__ = ["Collector", "DEFAULT_EXTENSIONS", "MIN_DURATION_SECONDS", "compute_signature"]
