"""Tests for archive reconciliation and watched-state bookkeeping."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from conftest import HOUR, FakeProber, make_file

from cineteca.archive import Archive, CorruptArchiveError, ItemNotFoundError
from cineteca.collector import Collector, Item, ScanResult

WATCHED_AT = datetime(2024, 5, 1, 20, 30, tzinfo=timezone.utc)


def _item(name: str, folder: str = "/movies", duration: int = 2 * HOUR) -> Item:
    return Item(name=name, path=Path(folder) / name, duration=duration)


def _names(archive: Archive) -> list[str]:
    return [item.name for item in archive.items]


def _assert_strictly_sorted(archive: Archive) -> None:
    names = _names(archive)
    assert all(left < right for left, right in zip(names, names[1:]))


def test_constructor_sorts_and_deduplicates() -> None:
    archive = Archive(
        Path("/movies"),
        [_item("C.mkv"), _item("A.mkv"), _item("C.mkv", "/other"), _item("B.mkv")],
        signature=7,
    )

    assert _names(archive) == ["A.mkv", "B.mkv", "C.mkv"]
    assert archive.get_path("C.mkv") == Path("/movies/C.mkv")
    assert len(archive) == 3
    assert "B.mkv" in archive
    assert "Z.mkv" not in archive


def test_update_with_same_signature_is_noop() -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv")], signature=11)

    changed = archive.update([_item("B.mkv")], 11)

    assert changed is False
    assert _names(archive) == ["A.mkv"]
    assert archive.signature == 11


def test_update_preserves_watched_adds_and_removes() -> None:
    """Kept items keep their markers, new ones arrive unwatched, gone ones vanish."""
    archive = Archive(Path("/movies"), [_item("A.mkv"), _item("B.mkv")], signature=1)
    archive.set_watched("A.mkv", now=WATCHED_AT)
    archive.set_watched("B.mkv", now=WATCHED_AT)

    changed = archive.update([_item("A.mkv"), _item("C.mkv")], 2)

    assert changed is True
    assert archive.signature == 2
    assert _names(archive) == ["A.mkv", "C.mkv"]
    assert archive.get("A.mkv").watched_at == WATCHED_AT
    assert archive.get("C.mkv").watched_at is None


def test_update_keeps_existing_entry_for_retained_name() -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv", duration=HOUR)], signature=1)

    archive.update([_item("A.mkv", "/moved", duration=3 * HOUR)], 2)

    assert archive.get_path("A.mkv") == Path("/movies/A.mkv")
    assert archive.get("A.mkv").duration == HOUR


def test_update_is_idempotent() -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv")], signature=1)
    scan = [_item("B.mkv"), _item("A.mkv")]

    assert archive.update(scan, 5) is True
    snapshot = archive.items

    assert archive.update(scan, 5) is False
    assert archive.items == snapshot


def test_update_to_empty_scan_clears_archive() -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv")], signature=1)

    assert archive.update([], 0) is True
    assert archive.items == ()


def test_update_does_not_alias_scan_items() -> None:
    archive = Archive(Path("/movies"), [], signature=0)
    scanned = _item("A.mkv")

    archive.apply(ScanResult(items=[scanned], signature=3))
    archive.set_watched("A.mkv", now=WATCHED_AT)

    assert scanned.watched_at is None


def test_toggle_and_set_watched() -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv")], signature=1)

    first = archive.toggle_watched("A.mkv", now=WATCHED_AT)
    assert first.watched_at == WATCHED_AT

    second = archive.toggle_watched("A.mkv")
    assert second.watched_at is None

    later = datetime(2024, 6, 1, tzinfo=timezone.utc)
    archive.set_watched("A.mkv", now=WATCHED_AT)
    archive.set_watched("A.mkv", now=later)
    assert archive.get("A.mkv").watched_at == later
    assert archive.signature == 1


def test_set_watched_defaults_to_now() -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv")], signature=1)
    before = datetime.now(timezone.utc)

    item = archive.set_watched("A.mkv")

    assert item.watched_at is not None
    assert item.watched_at >= before


@pytest.mark.parametrize("operation", ["toggle_watched", "set_watched", "get_path", "get"])
def test_unknown_names_raise_not_found(operation: str) -> None:
    archive = Archive(Path("/movies"), [_item("A.mkv")], signature=1)

    with pytest.raises(ItemNotFoundError) as excinfo:
        getattr(archive, operation)("Missing.mkv")

    assert excinfo.value.name == "Missing.mkv"
    assert "Missing.mkv" in str(excinfo.value)
    assert _names(archive) == ["A.mkv"]


def test_items_stay_strictly_sorted_through_mutations() -> None:
    archive = Archive(Path("/movies"), [_item("M.mkv"), _item("C.mkv")], signature=1)
    archive.update([_item("Z.mkv"), _item("C.mkv"), _item("A.mkv"), _item("A.mkv", "/b")], 2)
    archive.toggle_watched("C.mkv")
    archive.update([_item("B.mkv"), _item("Z.mkv")], 3)

    _assert_strictly_sorted(archive)
    assert _names(archive) == ["B.mkv", "Z.mkv"]


def test_init_builds_when_missing_and_loads_when_present(library: Path) -> None:
    make_file(library, "Alien.mkv")
    prober = FakeProber({"Alien.mkv": 2 * HOUR})
    collector = Collector(prober)

    built = Archive.init(library, collector)
    assert _names(built) == ["Alien.mkv"]
    assert not built.save_path.exists()
    built.set_watched("Alien.mkv", now=WATCHED_AT)
    built.save()

    reloaded = Archive.init(library, Collector(FakeProber()))
    assert reloaded.root == library
    assert reloaded.signature == built.signature
    assert reloaded.get("Alien.mkv").watched_at == WATCHED_AT
    assert prober.initialized == 1


def test_init_rebinds_root_of_moved_archive(tmp_path: Path) -> None:
    original = tmp_path / "original"
    original.mkdir()
    Archive(original, [_item("A.mkv")], signature=4).save()
    moved = tmp_path / "moved"
    original.rename(moved)

    archive = Archive.init(moved, Collector(FakeProber()))

    assert archive.root == moved
    assert archive.save_path == moved / ".movies.json"


def test_init_fails_on_corrupt_archive(library: Path) -> None:
    (library / ".movies.json").write_text("{not json", encoding="utf-8")
    prober = FakeProber()

    with pytest.raises(CorruptArchiveError):
        Archive.init(library, Collector(prober))

    assert prober.initialized == 0


def test_library_lifecycle(library: Path) -> None:
    """Scan, watch, change the library and rescan across two sessions."""
    make_file(library, "A.mkv")
    make_file(library, "B.mkv")
    durations = {"A.mkv": 2 * HOUR, "B.mkv": 2 * HOUR, "C.mkv": 2 * HOUR}

    archive = Archive.init(library, Collector(FakeProber(durations)))
    archive.toggle_watched("A.mkv", now=WATCHED_AT)
    archive.save()

    (library / "B.mkv").unlink()
    make_file(library, "C.mkv")

    archive = Archive.init(library, Collector(FakeProber(durations)))
    assert _names(archive) == ["A.mkv", "B.mkv"]

    changed = archive.apply(Collector(FakeProber(durations)).collect(library))

    assert changed is True
    assert _names(archive) == ["A.mkv", "C.mkv"]
    assert archive.get("A.mkv").watched_at == WATCHED_AT
    assert archive.get("C.mkv").watched_at is None

    assert archive.apply(Collector(FakeProber(durations)).collect(library)) is False


def test_rescan_replaces_deleted_watched_movie(library: Path) -> None:
    """A watched movie that disappears is dropped; its replacement starts unwatched."""
    durations = {"A.mkv": 70 * 60, "B.mkv": 10 * 60, "C.mkv": 65 * 60}
    make_file(library, "A.mkv")
    make_file(library, "B.mkv")

    archive = Archive.init(library, Collector(FakeProber(durations)))
    assert _names(archive) == ["A.mkv"]
    archive.set_watched("A.mkv", now=WATCHED_AT)
    archive.save()

    (library / "A.mkv").unlink()
    make_file(library, "C.mkv")
    archive = Archive.init(library, Collector(FakeProber(durations)))
    archive.apply(Collector(FakeProber(durations)).collect(library))

    assert _names(archive) == ["C.mkv"]
    assert archive.get("C.mkv").watched_at is None


def test_item_identity_is_frozen() -> None:
    from pydantic import ValidationError

    archive = Archive(Path("/movies"), [_item("B.mkv")], signature=1)
    item = archive.get("B.mkv")

    with pytest.raises(ValidationError):
        item.name = "A.mkv"
    with pytest.raises(ValidationError):
        item.path = Path("/elsewhere/B.mkv")

    assert archive.get_path("B.mkv") == Path("/movies/B.mkv")
