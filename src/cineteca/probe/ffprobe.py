"""Duration extraction through the ffprobe executable."""

from __future__ import annotations

import json
import logging
import math
import shutil
import subprocess
import threading
from pathlib import Path

from .errors import ProbeError, ProbeUnavailableError

LOGGER = logging.getLogger(__name__)

_INIT_LOCK = threading.Lock()
_RESOLVED: dict[str, str] = {}


def initialize(binary: str = "ffprobe") -> str:
    """Resolve the ffprobe executable once per process.

    Repeated calls with the same ``binary`` return the cached location without
    touching the filesystem again.

    Args:
        binary: Executable name or path.

    Returns:
        str: Absolute path of the executable.

    Raises:
        ProbeUnavailableError: If the executable cannot be found.
    """
    with _INIT_LOCK:
        resolved = _RESOLVED.get(binary)
        if resolved is None:
            resolved = shutil.which(binary)
            if resolved is None:
                raise ProbeUnavailableError(
                    f"{binary} not found on PATH. Install FFmpeg to enable duration probing."
                )
            LOGGER.debug("Using ffprobe at %s", resolved)
            _RESOLVED[binary] = resolved
        return resolved


class DurationProber:
    """Return the playback duration of media files."""

    def __init__(self, binary: str = "ffprobe") -> None:
        self._binary = binary

    def initialize(self) -> str:
        """Run the process-wide initialization for this prober's executable."""
        return initialize(self._binary)

    def probe(self, path: Path) -> float:
        """Return the duration of ``path`` in seconds.

        ffprobe runs with diagnostics silenced; malformed input only shows up
        as a :class:`ProbeError`.

        Args:
            path: Media file to inspect.

        Returns:
            float: Duration in seconds.

        Raises:
            ProbeError: If the file is not a readable container or has no duration.
        """
        executable = self.initialize()
        cmd = [
            executable,
            "-v",
            "quiet",
            "-show_entries",
            "format=duration",
            "-of",
            "json",
            str(path),
        ]
        try:
            completed = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ProbeError(f"{path}: could not run ffprobe: {exc}") from exc

        if completed.returncode != 0:
            raise ProbeError(f"{path}: ffprobe exited with status {completed.returncode}")

        return _parse_duration(completed.stdout, path)


def _parse_duration(output: str, path: Path) -> float:
    try:
        payload = json.loads(output or "{}")
    except json.JSONDecodeError as exc:
        raise ProbeError(f"{path}: unreadable ffprobe output") from exc

    raw = (payload.get("format") or {}).get("duration") if isinstance(payload, dict) else None
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        raise ProbeError(f"{path}: no duration reported") from None

    if not math.isfinite(seconds) or seconds < 0:
        raise ProbeError(f"{path}: invalid duration {raw!r}")
    return seconds


__all__ = ["DurationProber", "initialize"]
