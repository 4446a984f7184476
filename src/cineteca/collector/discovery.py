"""Filesystem enumeration for library scans."""

from __future__ import annotations

import os
from pathlib import Path


class EntryWalker:
    """Enumerate every entry below a root without following directory symlinks."""

    def __init__(self, *, skip_names: frozenset[str] = frozenset()) -> None:
        self.skip_names = skip_names

    def walk(self, root: Path) -> list[Path]:
        """Return files and directories found under ``root``.

        Unreadable directories are skipped silently. The order follows the
        walk and carries no meaning.
        """
        root = root.expanduser()
        if not root.exists():
            return []
        if not root.is_dir():
            return [root]

        entries: list[Path] = []
        for current, dirnames, filenames in os.walk(root, followlinks=False):
            base = Path(current)
            entries.extend(base / name for name in dirnames)
            entries.extend(base / name for name in filenames if name not in self.skip_names)
        return entries


__all__ = ["EntryWalker"]
