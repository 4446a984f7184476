"""Fire-and-forget launching of an external viewer."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

LOGGER = logging.getLogger(__name__)

DEFAULT_PLAYER_COMMAND = ("xdg-open",)


class PlayerError(Exception):
    """Raised when the viewer process cannot be spawned."""


def launch(path: Path, command: Sequence[str] = DEFAULT_PLAYER_COMMAND) -> subprocess.Popen:
    """Open ``path`` with ``command`` without waiting for it.

    The child is detached from the terminal and its output discarded; its exit
    status is never inspected.

    Args:
        path: File to open.
        command: Viewer command; the path is appended as the last argument.

    Returns:
        subprocess.Popen: Handle of the spawned process.

    Raises:
        PlayerError: If the command is empty or cannot be executed.
    """
    if not command:
        raise PlayerError("No player command configured.")
    argv = [*command, str(path)]
    try:
        process = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        raise PlayerError(f"Could not start {command[0]}: {exc}") from exc
    LOGGER.debug("Spawned %s (pid %s)", argv, process.pid)
    return process


__all__ = ["DEFAULT_PLAYER_COMMAND", "PlayerError", "launch"]
