"""Tests for the replay playlist."""

import pytest

from flightlog.source import SourceUnreadableError
from replay.errors import DuplicateNameError, ReplayErrorCode
from replay.playlist import ReplayPlaylist
from replay.snapshot import ReplayState
from tests.conftest import TEST_START_TIME, linear_fixes


@pytest.fixture
def playlist(source) -> ReplayPlaylist:
    source.add("zulu.igc", linear_fixes(count=20), registration="D-ZULU")
    source.add("alpha.igc", linear_fixes(start=TEST_START_TIME - 30, count=20), registration="D-ALFA")
    source.add("nameless.igc", linear_fixes(count=20))
    return ReplayPlaylist(source)


def test_entries_sorted_by_name(playlist: ReplayPlaylist) -> None:
    playlist.add("zulu.igc")
    playlist.add("alpha.igc")
    playlist.add("nameless.igc")

    assert [entry.name for entry in playlist.entries] == ["D-ALFA", "D-ZULU", "nameless"]
    assert len(playlist) == 3
    assert "D-ZULU" in playlist


def test_duplicate_name_rejected(playlist: ReplayPlaylist) -> None:
    playlist.add("zulu.igc")
    with pytest.raises(DuplicateNameError):
        playlist.add("zulu.igc")
    assert len(playlist) == 1


def test_explicit_name_overrides_header(playlist: ReplayPlaylist) -> None:
    entry = playlist.add("zulu.igc", name="lead")
    assert entry.name == "lead"
    assert entry.to_dict()["path"] == "zulu.igc"


def test_unreadable_file_not_queued(playlist: ReplayPlaylist) -> None:
    with pytest.raises(SourceUnreadableError):
        playlist.add("missing.igc")
    assert len(playlist) == 0


def test_remove_and_clear(playlist: ReplayPlaylist) -> None:
    playlist.add("zulu.igc")
    playlist.add("alpha.igc")

    assert playlist.remove("D-ZULU") is True
    assert playlist.remove("D-ZULU") is False

    playlist.clear()
    assert playlist.entries == []


def test_start_uses_primary_as_reference(playlist: ReplayPlaylist, engine) -> None:
    playlist.add("zulu.igc")
    playlist.add("alpha.igc")
    playlist.add("nameless.igc")

    results = playlist.start(engine, primary_name="D-ZULU")

    assert all(results.values())
    assert engine.reference_name == "D-ZULU"
    assert engine.virtual_time() == TEST_START_TIME
    assert sorted(engine.track_names()) == ["D-ALFA", "D-ZULU", "nameless"]


def test_start_defaults_to_first_entry(playlist: ReplayPlaylist, engine) -> None:
    playlist.add("zulu.igc")
    playlist.add("alpha.igc")

    playlist.start(engine)

    assert engine.reference_name == "D-ALFA"
    assert engine.virtual_time() == TEST_START_TIME - 30


def test_start_replaces_running_replay(playlist: ReplayPlaylist, engine, source) -> None:
    source.add("other.igc", linear_fixes(count=5), registration="OTHER")
    engine.start("other.igc")
    playlist.add("zulu.igc")

    playlist.start(engine)

    assert engine.track_names() == ["D-ZULU"]


def test_start_reports_failed_traffic(playlist: ReplayPlaylist, engine, source) -> None:
    playlist.add("zulu.igc")
    playlist.add("alpha.igc")
    del source.flights["alpha.igc"]

    results = playlist.start(engine, primary_name="D-ZULU")

    assert results["D-ZULU"].ok
    assert results["D-ALFA"].error is ReplayErrorCode.OPEN_FAILED
    assert engine.track_names() == ["D-ZULU"]


def test_failed_primary_adds_no_traffic(playlist: ReplayPlaylist, engine, source) -> None:
    playlist.add("zulu.igc")
    playlist.add("alpha.igc")
    del source.flights["zulu.igc"]

    results = playlist.start(engine, primary_name="D-ZULU")

    assert list(results) == ["D-ZULU"]
    assert engine.state is ReplayState.IDLE


def test_start_empty_playlist(engine) -> None:
    assert ReplayPlaylist().start(engine) == {}
    assert engine.state is ReplayState.IDLE


def test_unknown_primary(playlist: ReplayPlaylist, engine) -> None:
    playlist.add("zulu.igc")
    with pytest.raises(KeyError):
        playlist.start(engine, primary_name="nope")


def test_empty_sized_source_is_kept(source) -> None:
    class SizedSource(type(source)):
        def __len__(self) -> int:
            return len(self.flights)

    sized = SizedSource()
    playlist = ReplayPlaylist(sized)
    sized.add("zulu.igc", linear_fixes(count=5), registration="D-ZULU")

    assert playlist.source is sized
    assert playlist.add("zulu.igc").name == "D-ZULU"
