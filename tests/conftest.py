"""Shared fixtures for the Cineteca test suite."""

from __future__ import annotations

import os
import threading
from pathlib import Path

import pytest

from cineteca.collector import Collector
from cineteca.probe import ProbeError

HOUR = 3600


class FakeProber:
    """Prober returning durations keyed by file name.

    Files without an entry behave like unreadable media.
    """

    def __init__(self, durations: dict[str, float] | None = None) -> None:
        self.durations = dict(durations or {})
        self.initialized = 0
        self.probed: list[Path] = []
        self._lock = threading.Lock()

    def initialize(self) -> str:
        self.initialized += 1
        return "fake-ffprobe"

    def probe(self, path: Path) -> float:
        with self._lock:
            self.probed.append(path)
        try:
            return self.durations[path.name]
        except KeyError:
            raise ProbeError(f"{path}: not media") from None


def make_file(root: Path, relative: str, size: int = 16) -> Path:
    """Create a file of ``size`` bytes at ``root / relative``."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size)
    return path


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def collector(prober: FakeProber) -> Collector:
    return Collector(prober, workers=4)


@pytest.fixture
def library(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("CINETECA__"):
            monkeypatch.delenv(key)
