"""
Tests for replay tracks.
"""

import pytest

from replay.errors import EmptySourceError
from replay.track import Track, ordered_fixes
from tests.conftest import TEST_START_TIME, linear_fixes, make_fix


class TestConstruction:
    """Test building tracks from fix sequences."""

    def test_empty_fixes_raise(self):
        with pytest.raises(EmptySourceError) as exc_info:
            Track("D-1234", "empty.igc", [])
        assert exc_info.value.identifier == "empty.igc"

    def test_ordered_fixes_drops_duplicates_and_reversals(self):
        fixes = [
            make_fix(10.0),
            make_fix(10.0, altitude=1),
            make_fix(12.0),
            make_fix(11.0),
            make_fix(13.0),
        ]
        assert [fix.timestamp for fix in ordered_fixes(fixes)] == [10.0, 12.0, 13.0]

    def test_fix_times(self):
        track = Track("D-1234", "a.igc", linear_fixes(count=5, interval=2.0))
        assert track.first_fix_time == TEST_START_TIME
        assert track.last_fix_time == TEST_START_TIME + 8.0
        assert track.next_fix_time() == TEST_START_TIME
        assert track.last_sample is None

    def test_open_names_from_registration(self, source):
        source.add("a.igc", linear_fixes(), registration="D-1234", competition_id="XY")
        assert Track.open(source, "a.igc").name == "D-1234"

    def test_open_names_from_competition_id(self, source):
        source.add("a.igc", linear_fixes(), competition_id="XY")
        assert Track.open(source, "a.igc").name == "XY"

    def test_open_names_from_file_stem(self, source):
        source.add("flights/unnamed.igc", linear_fixes())
        assert Track.open(source, "flights/unnamed.igc").name == "unnamed"

    def test_explicit_name_wins(self, source):
        source.add("a.igc", linear_fixes(), registration="D-1234")
        assert Track.open(source, "a.igc", name="lead").name == "lead"


class TestAdvance:
    """Test moving a track along the virtual clock."""

    @pytest.fixture
    def track(self):
        return Track("D-1234", "a.igc", linear_fixes(count=5))

    def test_before_first_fix_holds_first_position(self, track):
        sample = track.advance_to(TEST_START_TIME - 30)

        assert sample.timestamp == TEST_START_TIME - 30
        assert sample.location == linear_fixes(count=1)[0].location
        assert not track.is_exhausted()
        assert track.next_fix_time() == TEST_START_TIME

    def test_at_first_fix(self, track):
        sample = track.advance_to(TEST_START_TIME)

        assert sample.timestamp == TEST_START_TIME
        assert sample.location.latitude == pytest.approx(47.0)
        assert sample.altitude == pytest.approx(1000.0)

    def test_between_fixes_is_interpolated(self, track):
        sample = track.advance_to(TEST_START_TIME + 1.5)

        assert sample.name == "D-1234"
        assert sample.timestamp == TEST_START_TIME + 1.5
        assert sample.location.latitude == pytest.approx(47.0015)
        assert sample.altitude == pytest.approx(1003.0)
        assert sample.climb_rate == pytest.approx(2.0)
        assert track.next_fix_time() == TEST_START_TIME + 2

    def test_reaching_last_fix_exhausts_track(self, track):
        sample = track.advance_to(TEST_START_TIME + 100)

        assert track.is_exhausted()
        assert track.next_fix_time() is None
        # Stamped with the fix time, never ahead of it
        assert sample.timestamp == track.last_fix_time
        assert sample.altitude == pytest.approx(1008.0)

    def test_exhausted_track_returns_cached_sample(self, track):
        final = track.advance_to(TEST_START_TIME + 4)
        trace_length = len(track.trace())

        assert track.advance_to(TEST_START_TIME + 50) is final
        assert len(track.trace()) == trace_length

    def test_backwards_time_returns_cached_sample(self, track):
        sample = track.advance_to(TEST_START_TIME + 2.5)

        assert track.advance_to(TEST_START_TIME + 1.0) is sample
        assert track.advance_to(TEST_START_TIME + 2.5) is sample
        assert len(track.trace()) == 1

    def test_samples_never_lead_virtual_time(self, track):
        t = TEST_START_TIME - 2
        while t < TEST_START_TIME + 8:
            assert track.advance_to(t).timestamp <= t
            t += 0.7

    def test_single_fix_track(self):
        track = Track("solo", "solo.igc", [make_fix(TEST_START_TIME)])

        held = track.advance_to(TEST_START_TIME - 1)
        assert held.timestamp == TEST_START_TIME - 1
        assert not track.is_exhausted()

        final = track.advance_to(TEST_START_TIME)
        assert final.timestamp == TEST_START_TIME
        assert track.is_exhausted()


class TestTrace:
    """Test the bounded trail of emitted samples."""

    def test_trace_keeps_most_recent_samples(self):
        track = Track("D-1234", "a.igc", linear_fixes(count=100), trace_length=5)
        for i in range(20):
            track.advance_to(TEST_START_TIME + i * 0.5)

        trace = track.trace()
        assert len(trace) == 5
        assert [sample.timestamp for sample in trace] == [
            TEST_START_TIME + i * 0.5 for i in range(15, 20)
        ]

    def test_view_is_a_copy(self):
        track = Track("D-1234", "a.igc", linear_fixes(count=10))
        track.advance_to(TEST_START_TIME + 1)
        view = track.view(is_reference=True)

        track.advance_to(TEST_START_TIME + 2)

        assert view.is_reference
        assert view.source == "a.igc"
        assert len(view.trace) == 1
        assert view.sample.timestamp == TEST_START_TIME + 1
        assert len(track.view().trace) == 2

    def test_label_shows_rounded_altitude(self):
        track = Track("D-1234", "a.igc", linear_fixes(count=10))
        sample = track.advance_to(TEST_START_TIME + 1.2)
        assert sample.label == "D-1234:1002m"
