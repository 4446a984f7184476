"""Background rescans delivered to the archive owner through a message queue."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from cineteca.archive import Archive, ArchiveSaveError
from cineteca.archive.archive import Scanner
from cineteca.collector.models import ScanResult

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanCompleted:
    """Message posted by the scan thread when a pass succeeds."""

    result: ScanResult
    duration_seconds: float


@dataclass(slots=True)
class ScanFailed:
    """Message posted by the scan thread when a pass raises."""

    error: Exception


@dataclass(slots=True)
class PathTouched:
    """Message posted by the filesystem observer."""

    path: Path


Message = Union[ScanCompleted, ScanFailed, PathTouched, None]


@dataclass(slots=True)
class RefreshOutcome:
    """Result of applying one scan to the archive.

    Attributes:
        changed: Whether the archive contents changed.
        total: Number of items after the merge.
        signature: Archive signature after the merge.
        saved_path: Where the archive was written, if it was saved.
        save_error: Save failure, if saving was attempted and failed.
        scan_error: Scan failure; the archive is untouched when set.
        scan_seconds: Wall time spent scanning.
        triggered_paths: Filesystem paths that triggered the pass in watch mode.
    """

    changed: bool
    total: int
    signature: int
    saved_path: Optional[Path] = None
    save_error: Optional[ArchiveSaveError] = None
    scan_error: Optional[Exception] = None
    scan_seconds: float = 0.0
    triggered_paths: list[Path] = field(default_factory=list)


class RefreshService:
    """Run collector passes off-thread and merge results on the caller's thread.

    The scan thread never touches the archive. It posts exactly one message
    per pass; whichever thread calls :meth:`apply_pending` (or runs
    :meth:`watch`) is the only writer. At most one pass is in flight.
    """

    def __init__(
        self,
        archive: Archive,
        collector: Scanner,
        *,
        autosave: bool = True,
        debounce_seconds: float = 5.0,
    ) -> None:
        self._archive = archive
        self._collector = collector
        self._autosave = autosave
        self._debounce_seconds = max(0.1, debounce_seconds)
        self._queue: queue.Queue[Message] = queue.Queue()
        self._in_flight = threading.Event()
        self._stop_event = threading.Event()
        self._watch_lock = threading.Lock()
        self._watching = False
        self._observer: Optional[Observer] = None
        self._touched: set[Path] = set()

    @property
    def busy(self) -> bool:
        """Return whether a pass is running or waiting to be applied."""
        return self._in_flight.is_set()

    def start(self) -> bool:
        """Start a background pass unless one is already in flight.

        Returns:
            bool: True if a new pass was started.
        """
        if self._in_flight.is_set():
            return False
        self._in_flight.set()
        threading.Thread(target=self._scan, name="cineteca-refresh", daemon=True).start()
        return True

    def apply_pending(
        self, *, block: bool = False, timeout: Optional[float] = None
    ) -> Optional[RefreshOutcome]:
        """Apply the result of a finished pass, if any.

        Args:
            block: Wait for a pass to finish.
            timeout: Maximum wait in seconds when blocking.

        Returns:
            Optional[RefreshOutcome]: Outcome of the applied pass, or ``None``
            when nothing was ready.
        """
        while True:
            try:
                message = self._queue.get(block=block, timeout=timeout)
            except queue.Empty:
                return None
            if message is None:
                return None
            if isinstance(message, PathTouched):
                self._touched.add(message.path)
                continue
            return self._handle(message)

    def refresh(self) -> RefreshOutcome:
        """Run one pass and apply it before returning."""
        self.start()
        outcome = None
        while outcome is None:
            outcome = self.apply_pending(block=True)
        return outcome

    def watch(self, callback: Callable[[RefreshOutcome], None]) -> None:
        """Rescan whenever the library root changes, until :meth:`stop`.

        An initial pass runs immediately. Filesystem events are debounced; a
        burst arriving while a pass is running schedules exactly one more pass.

        Args:
            callback: Called on this thread with each applied outcome.
        """
        if self._observer is not None:
            raise RuntimeError("RefreshService is already watching.")

        self._stop_event.clear()
        self._discard_sentinels()
        handler = _LibraryEventHandler(self._queue, self._archive.save_path.name)
        self._observer = Observer()
        self._observer.schedule(handler, str(self._archive.root), recursive=True)
        self._observer.start()
        with self._watch_lock:
            self._watching = True
        try:
            self._run_loop(callback)
        finally:
            with self._watch_lock:
                self._watching = False
                self._discard_sentinels()
            self.stop()

    def stop(self) -> None:
        """Stop watching and unblock the processing loop."""
        self._stop_event.set()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        with self._watch_lock:
            if self._watching:
                self._queue.put(None)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _discard_sentinels(self) -> None:
        pending: list[Message] = []
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                break
            if message is not None:
                pending.append(message)
        for message in pending:
            self._queue.put(message)

    def _scan(self) -> None:
        started = time.monotonic()
        try:
            result = self._collector.collect(self._archive.root)
        except Exception as exc:
            self._queue.put(ScanFailed(exc))
            return
        self._queue.put(ScanCompleted(result, time.monotonic() - started))

    def _handle(self, message: Union[ScanCompleted, ScanFailed]) -> RefreshOutcome:
        self._in_flight.clear()
        triggered = sorted(self._touched)
        self._touched.clear()

        if isinstance(message, ScanFailed):
            LOGGER.error("Library scan of %s failed: %s", self._archive.root, message.error)
            return RefreshOutcome(
                changed=False,
                total=len(self._archive),
                signature=self._archive.signature,
                scan_error=message.error,
                triggered_paths=triggered,
            )

        changed = self._archive.apply(message.result)
        outcome = RefreshOutcome(
            changed=changed,
            total=len(self._archive),
            signature=self._archive.signature,
            scan_seconds=message.duration_seconds,
            triggered_paths=triggered,
        )
        if self._autosave and (changed or not self._archive.save_path.exists()):
            try:
                outcome.saved_path = self._archive.save()
            except ArchiveSaveError as exc:
                LOGGER.warning("%s", exc)
                outcome.save_error = exc
        return outcome

    def _run_loop(self, callback: Callable[[RefreshOutcome], None]) -> None:
        deadline: Optional[float] = None
        rerun = False
        self.start()

        while not self._stop_event.is_set():
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                message = self._queue.get(timeout=timeout)
            except queue.Empty:
                deadline = None
                if not self.start():
                    rerun = True
                continue

            if message is None:
                break
            if isinstance(message, PathTouched):
                self._touched.add(message.path)
                deadline = time.monotonic() + self._debounce_seconds
                continue

            callback(self._handle(message))
            if rerun:
                rerun = False
                self.start()


class _LibraryEventHandler(FileSystemEventHandler):
    """Forward filesystem events below the library root into the service queue."""

    def __init__(self, queue_handle: queue.Queue[Message], archive_filename: str) -> None:
        self._queue = queue_handle
        self._archive_filename = archive_filename

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        self._enqueue(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a filesystem delete event."""
        self._enqueue(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        """Handle a filesystem move event."""
        self._enqueue(event.src_path)
        self._enqueue(event.dest_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        if not event.is_directory:
            self._enqueue(event.src_path)

    def _enqueue(self, raw_path: str | bytes) -> None:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode("utf-8", "surrogateescape")
        path = Path(raw_path)
        if path.name.startswith(self._archive_filename):
            return
        self._queue.put(PathTouched(path))


__all__ = [
    "PathTouched",
    "RefreshOutcome",
    "RefreshService",
    "ScanCompleted",
    "ScanFailed",
]
