"""Replay track: one recorded flight advanced along the virtual clock."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from pathlib import Path

import structlog

from flightlog.fixes import Fix
from flightlog.source import FixSource
from replay.errors import EmptySourceError
from replay.interpolator import DEFAULT_TENSION, interpolate
from replay.snapshot import TrackView, TrafficSample

logger = structlog.get_logger(__name__)

DEFAULT_TRACE_LENGTH = 60


def ordered_fixes(fixes: Iterable[Fix]) -> list[Fix]:
    """Drop duplicate and out-of-order fixes, keeping strictly increasing times."""
    kept: list[Fix] = []
    for fix in fixes:
        if kept and fix.timestamp <= kept[-1].timestamp:
            continue
        kept.append(fix)
    return kept


class Track:
    """A replay target backed by one source's fix sequence.

    The cursor only moves forward. Every emitted sample is appended to a
    bounded trace used for trail display.

    Usage:
        track = Track.open(IGCFixSource(), "flights/d1234.igc")
        sample = track.advance_to(36000.0)
    """

    def __init__(
        self,
        name: str,
        source: str,
        fixes: Iterable[Fix],
        trace_length: int = DEFAULT_TRACE_LENGTH,
        tension: float = DEFAULT_TENSION,
    ) -> None:
        """Initialize a track.

        Args:
            name: Unique label of the track.
            source: Identifier the fixes were read from.
            fixes: Decoded fixes; duplicates and time reversals are skipped.
            trace_length: Maximum number of samples kept in the trace.
            tension: Spline tension used for interpolation.

        Raises:
            EmptySourceError: If no usable fix remains.
        """
        self.name = name
        self.source = source
        self.tension = tension

        raw = list(fixes)
        self._fixes = tuple(ordered_fixes(raw))
        if not self._fixes:
            raise EmptySourceError(source)
        if len(self._fixes) < len(raw):
            logger.debug(
                "fixes_skipped",
                track=name,
                skipped=len(raw) - len(self._fixes),
            )

        self._cursor = 0
        self._last: TrafficSample | None = None
        self._trace: deque[TrafficSample] = deque(maxlen=max(1, trace_length))
        self._exhausted = False

    @classmethod
    def open(
        cls,
        source: FixSource,
        identifier: str,
        name: str | None = None,
        trace_length: int = DEFAULT_TRACE_LENGTH,
        tension: float = DEFAULT_TENSION,
    ) -> Track:
        """Read a source eagerly and build a track from it.

        The name defaults to the flight's registration, then its competition
        id, then the file stem.

        Raises:
            SourceUnreadableError: If the source cannot be read.
            EmptySourceError: If the source yields no usable fixes.
        """
        flight = source.open(identifier)
        label = name or flight.metadata.display_name or Path(identifier).stem
        return cls(label, identifier, flight.fixes, trace_length=trace_length, tension=tension)

    @property
    def first_fix_time(self) -> float:
        """Timestamp of the first recorded fix."""
        return self._fixes[0].timestamp

    @property
    def last_fix_time(self) -> float:
        """Timestamp of the last recorded fix."""
        return self._fixes[-1].timestamp

    @property
    def last_sample(self) -> TrafficSample | None:
        """Most recently emitted sample."""
        return self._last

    def next_fix_time(self) -> float | None:
        """Timestamp of the next unread fix, or None once exhausted."""
        if self._exhausted or self._cursor >= len(self._fixes):
            return None
        return self._fixes[self._cursor].timestamp

    def is_exhausted(self) -> bool:
        """True once the last fix has been emitted."""
        return self._exhausted

    def advance_to(self, virtual_time: float) -> TrafficSample:
        """Produce the sample for ``virtual_time``.

        Calls at or before the last emitted timestamp, and calls after the
        track is exhausted, return the cached sample without touching the
        trace.
        """
        if self._last is not None and (self._exhausted or virtual_time <= self._last.timestamp):
            return self._last

        fixes = self._fixes
        while self._cursor < len(fixes) and fixes[self._cursor].timestamp <= virtual_time:
            self._cursor += 1

        if self._cursor >= len(fixes):
            # Final fix at its own time: never ahead of the virtual clock
            final = fixes[-1]
            sample = self._sample(final.timestamp, final)
            self._exhausted = True
            logger.info("track_exhausted", track=self.name, timestamp=final.timestamp)
        elif self._cursor == 0:
            # Not airborne yet on the shared clock: hold the first fix
            first = fixes[0]
            sample = self._sample(virtual_time, first)
        else:
            window = fixes[max(0, self._cursor - 2) : self._cursor + 2]
            point = interpolate(window, virtual_time, self.tension)
            sample = TrafficSample(
                name=self.name,
                timestamp=virtual_time,
                location=point.location,
                altitude=point.altitude,
                heading=point.heading,
                climb_rate=point.climb_rate,
            )

        self._last = sample
        self._trace.append(sample)
        return sample

    def _sample(self, timestamp: float, fix: Fix) -> TrafficSample:
        return TrafficSample(
            name=self.name,
            timestamp=timestamp,
            location=fix.location,
            altitude=fix.altitude,
            heading=fix.heading,
            climb_rate=fix.climb_rate,
        )

    def trace(self) -> tuple[TrafficSample, ...]:
        """Copy of the trace, oldest first."""
        return tuple(self._trace)

    def view(self, is_reference: bool = False) -> TrackView:
        """Immutable copy of this track's state."""
        return TrackView(
            name=self.name,
            source=self.source,
            sample=self._last,
            trace=tuple(self._trace),
            exhausted=self._exhausted,
            is_reference=is_reference,
        )
