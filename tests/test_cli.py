"""CLI tests for scanning, browsing and watched-state commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import HOUR, FakeProber, make_file

from cineteca.cli import cli
from cineteca.collector import Collector
from cineteca.config import ConfigManager

DURATIONS = {"Alien.mkv": 2 * HOUR, "Brazil.mp4": 2.5 * HOUR, "Clip.mkv": 600, "Dune.mkv": 3 * HOUR}


@pytest.fixture
def fake_prober(monkeypatch: pytest.MonkeyPatch) -> FakeProber:
    prober = FakeProber(DURATIONS)
    monkeypatch.setattr(
        "cineteca.cli._build_collector",
        lambda config: Collector.from_config(config, prober=prober),
    )
    return prober


@pytest.fixture
def populated(library: Path, fake_prober: FakeProber) -> Path:
    make_file(library, "Alien.mkv")
    make_file(library, "extras/Clip.mkv")
    make_file(library, "nested/Brazil.mp4")
    return library


def _invoke(*args: str):
    return CliRunner().invoke(cli, list(args))


def _json(result) -> dict:
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_cli_help_displays_commands() -> None:
    result = _invoke("--help")

    assert result.exit_code == 0
    assert "Cineteca indexes the movies" in result.output
    for command in ("scan", "list", "toggle", "play", "info", "stats", "watch", "config"):
        assert command in result.output


def test_scan_builds_archive(populated: Path) -> None:
    payload = _json(_invoke("scan", "--root", str(populated), "--json"))

    assert payload["counts"] == {"movies": 2, "added": 2, "removed": 0, "changed": True}
    assert (populated / ".movies.json").exists()


def test_scan_reconciles_library_changes(populated: Path) -> None:
    _json(_invoke("scan", "--root", str(populated), "--json"))
    (populated / "Alien.mkv").unlink()
    make_file(populated, "Dune.mkv")

    payload = _json(_invoke("scan", "--root", str(populated), "--json"))

    assert payload["counts"] == {"movies": 2, "added": 1, "removed": 1, "changed": True}
    assert payload["errors"] == {"scan": None, "save": None}


def test_scan_summary_output(populated: Path) -> None:
    result = _invoke("scan", "--root", str(populated), "--summary")

    assert result.exit_code == 0
    assert "Scan summary for" in result.output


def test_scan_rejects_json_with_quiet(populated: Path) -> None:
    result = _invoke("scan", "--root", str(populated), "--json", "--quiet")

    assert result.exit_code != 0
    assert "--json cannot be combined with --quiet" in result.output


def test_list_filters_by_watched_state(populated: Path) -> None:
    toggled = _json(_invoke("toggle", "Brazil.mp4", "--root", str(populated), "--json"))
    assert toggled == {"name": "Brazil.mp4", "watched": True}

    unwatched = _json(_invoke("list", "--root", str(populated), "--filter", "unwatched", "--json"))
    watched = _json(_invoke("list", "--root", str(populated), "--filter", "watched", "--json"))
    everything = _json(_invoke("list", "--root", str(populated), "--json"))

    assert [movie["name"] for movie in unwatched["movies"]] == ["Alien.mkv"]
    assert [movie["name"] for movie in watched["movies"]] == ["Brazil.mp4"]
    assert [movie["name"] for movie in everything["movies"]] == ["Alien.mkv", "Brazil.mp4"]
    assert watched["movies"][0]["path"].endswith("nested/Brazil.mp4")
    assert watched["movies"][0]["watched_at"] is not None


def test_list_refresh_picks_up_new_files(populated: Path) -> None:
    _json(_invoke("scan", "--root", str(populated), "--json"))
    make_file(populated, "Dune.mkv")

    stale = _json(_invoke("list", "--root", str(populated), "--json"))
    fresh = _json(_invoke("list", "--root", str(populated), "--refresh", "--json"))

    assert [movie["name"] for movie in stale["movies"]] == ["Alien.mkv", "Brazil.mp4"]
    assert [movie["name"] for movie in fresh["movies"]] == ["Alien.mkv", "Brazil.mp4", "Dune.mkv"]


def test_list_table_output(populated: Path) -> None:
    result = _invoke("list", "--root", str(populated))

    assert result.exit_code == 0
    assert "Alien.mkv" in result.output
    assert "Not yet" in result.output


def test_toggle_twice_clears_marker(populated: Path) -> None:
    _invoke("toggle", "Alien.mkv", "--root", str(populated))
    result = _invoke("toggle", "Alien.mkv", "--root", str(populated))

    assert result.exit_code == 0
    assert "Alien.mkv marked not watched." in result.output


def test_toggle_unknown_movie_fails(populated: Path) -> None:
    result = _invoke("toggle", "Missing.mkv", "--root", str(populated))

    assert result.exit_code == 1
    assert "No movie named 'Missing.mkv'" in result.output


def test_toggle_unknown_movie_json(populated: Path) -> None:
    result = _invoke("toggle", "Missing.mkv", "--root", str(populated), "--json")

    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "not_found"
    assert payload["error"]["details"] == {"name": "Missing.mkv"}


def test_info_reports_length_and_state(populated: Path) -> None:
    text = _invoke("info", "Brazil.mp4", "--root", str(populated))
    payload = _json(_invoke("info", "Brazil.mp4", "--root", str(populated), "--json"))

    assert text.exit_code == 0
    assert "WATCHED: Not yet" in text.output
    assert "LENGTH: 150 minutes" in text.output
    assert payload["duration"] == 9000
    assert payload["watched"] is False
    assert payload["watched_description"] == "Not yet"


def test_stats_counts_watched(populated: Path) -> None:
    _invoke("toggle", "Alien.mkv", "--root", str(populated))

    payload = _json(_invoke("stats", "--root", str(populated), "--json"))
    text = _invoke("stats", "--root", str(populated))

    assert payload == {"total": 2, "watched": 1, "recent": 1, "remaining": 1}
    assert "MOVIES TOTAL: 2" in text.output
    assert "REMAINING: 1" in text.output


def test_play_launches_player_and_marks_watched(
    populated: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    launched: list[tuple[Path, list[str]]] = []
    monkeypatch.setattr(
        "cineteca.cli.launch", lambda path, command: launched.append((path, list(command)))
    )

    result = _invoke("play", "Alien.mkv", "--root", str(populated))

    assert result.exit_code == 0, result.output
    assert "Playing Alien.mkv." in result.output
    assert launched == [(populated.resolve() / "Alien.mkv", ["xdg-open"])]
    info = _json(_invoke("info", "Alien.mkv", "--root", str(populated), "--json"))
    assert info["watched_description"] == "Today"


def test_corrupt_archive_is_fatal(populated: Path, fake_prober: FakeProber) -> None:
    (populated / ".movies.json").write_text("{broken", encoding="utf-8")

    result = _invoke("list", "--root", str(populated), "--json")

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "archive_corrupt"
    assert (populated / ".movies.json").read_text(encoding="utf-8") == "{broken"
    assert fake_prober.initialized == 0


def test_archive_filename_follows_config(populated: Path) -> None:
    ConfigManager().save({"archive": {"filename": "library.json"}})

    _json(_invoke("scan", "--root", str(populated), "--json"))

    assert (populated / "library.json").exists()
    assert not (populated / ".movies.json").exists()


def test_config_view_creates_and_displays_config(tmp_path: Path) -> None:
    result = _invoke("config", "view")

    assert result.exit_code == 0
    assert "scan:" in result.output
    assert ConfigManager().config_path.exists()


def test_config_set_updates_value_and_writes_diff() -> None:
    result = _invoke("config", "set", "scan.workers", "--value", "3")

    assert result.exit_code == 0
    assert "Updated scan.workers." in result.output

    config = ConfigManager().load(include_env=False)
    assert config.scan.workers == 3


def test_config_set_rejects_invalid_value() -> None:
    result = _invoke("config", "set", "scan.min_duration_seconds", "--value", "soon")

    assert result.exit_code != 0
    assert ConfigManager().load(include_env=False).scan.min_duration_seconds == 3600


def test_list_accepts_hand_edited_timestamps(library: Path, fake_prober: FakeProber) -> None:
    """Archives mixing naive and offset timestamps should list normally."""
    document = {
        "items": [
            {"name": "A.mkv", "path": "/movies/A.mkv", "watched_at": "2024-01-01T00:00:00"},
            {"name": "B.mkv", "path": "/movies/B.mkv", "watched_at": "2024-02-01T00:00:00Z"},
        ],
        "signature": 1,
    }
    (library / ".movies.json").write_text(json.dumps(document), encoding="utf-8")

    payload = _json(_invoke("list", "--root", str(library), "--json"))
    text = _invoke("list", "--root", str(library))

    assert [movie["name"] for movie in payload["movies"]] == ["B.mkv", "A.mkv"]
    assert text.exit_code == 0, text.output
