"""Tests for launching the external viewer."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from cineteca import player


class _FakeProcess:
    pid = 4242


def test_launch_appends_path_and_detaches(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_popen(argv, **kwargs):
        captured["argv"] = argv
        captured.update(kwargs)
        return _FakeProcess()

    monkeypatch.setattr(player.subprocess, "Popen", fake_popen)

    process = player.launch(Path("/movies/Alien.mkv"), ["mpv", "--fs"])

    assert process.pid == 4242
    assert captured["argv"] == ["mpv", "--fs", "/movies/Alien.mkv"]
    assert captured["stdout"] is subprocess.DEVNULL
    assert captured["start_new_session"] is True


def test_launch_defaults_to_xdg_open(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []
    monkeypatch.setattr(
        player.subprocess, "Popen", lambda argv, **kwargs: seen.append(argv) or _FakeProcess()
    )

    player.launch(Path("/movies/Alien.mkv"))

    assert seen == [["xdg-open", "/movies/Alien.mkv"]]


def test_launch_failure_raises_player_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_popen(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(player.subprocess, "Popen", fake_popen)

    with pytest.raises(player.PlayerError):
        player.launch(Path("/movies/Alien.mkv"), ["no-such-player"])


def test_launch_requires_command() -> None:
    with pytest.raises(player.PlayerError):
        player.launch(Path("/movies/Alien.mkv"), [])
