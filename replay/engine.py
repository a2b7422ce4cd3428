"""Multi-track replay engine.

Owns a virtual clock and a name-keyed set of tracks and advances every track
in lockstep with that clock. The clock is seeded from the reference track's
first fix, scaled against wall-clock time on every tick, and can be raced
forward without pacing (fast-forward).

Every control call and every tick runs under one lock. After each mutation a
new immutable ``ReplaySnapshot`` is published; read accessors only look at
that snapshot, so renderers never see a track mid-update.
"""

from __future__ import annotations

import math
import threading

import structlog

from flightlog.igc import IGCFixSource
from flightlog.source import FixSource, SourceUnreadableError
from replay.config import EngineSettings
from replay.errors import (
    ControlResult,
    ReplayError,
    ReplayErrorCode,
    error_code_for,
)
from replay.snapshot import ReplaySnapshot, ReplayState, TrackView, TrafficSample
from replay.track import Track

logger = structlog.get_logger(__name__)


class ReplayEngine:
    """Synchronizes several recorded tracks on one virtual clock.

    States: IDLE (no tracks) -> ACTIVE <-> FAST_FORWARDING -> IDLE (stop or
    last track removed).

    Usage:
        engine = ReplayEngine(IGCFixSource())
        engine.start("flights/lead.igc")
        engine.add_track("flights/wingman.igc")
        engine.set_time_scale(4.0)

        # From a timer:
        engine.tick(elapsed_wall_time)

        for view in engine.snapshot().tracks:
            draw(view.sample, view.trace)
    """

    def __init__(
        self,
        source: FixSource | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        """Initialize an idle engine.

        Args:
            source: Decoder used to open track identifiers. Defaults to IGC files.
            settings: Engine settings (initial time scale, trace length, fast-forward).
        """
        self.source = source if source is not None else IGCFixSource()
        self.settings = settings or EngineSettings()

        self._lock = threading.RLock()
        self._tracks: dict[str, Track] = {}
        self._reference: str | None = None
        self._state = ReplayState.IDLE
        self._virtual_time: float | None = None
        self._time_scale = self.settings.time_scale
        self._fast_forward_target: float | None = None

        self._snapshot = ReplaySnapshot(time_scale=self._time_scale)

    # =========================================================================
    # Control surface
    # =========================================================================

    def start(self, identifier: str, name: str | None = None) -> ControlResult:
        """Start a replay with ``identifier`` as the reference track.

        A running replay is discarded only once the new source opened
        successfully.
        """
        opened = self._open(identifier, name)
        if isinstance(opened, ControlResult):
            return opened
        track = opened

        with self._lock:
            if self._state is not ReplayState.IDLE:
                logger.info("replay_restarting", previous_tracks=len(self._tracks))
            self._reset()
            self._insert_reference(track)
            self._publish()

        logger.info(
            "replay_started",
            track=track.name,
            source=identifier,
            virtual_time=track.first_fix_time,
        )
        return ControlResult.success(track.name)

    def add_track(self, identifier: str, name: str | None = None) -> ControlResult:
        """Open another source and join it at the current virtual time.

        On an idle engine the new track becomes the reference and playback
        starts from its first fix.
        """
        if name is not None:
            with self._lock:
                if name in self._tracks:
                    return self._duplicate(name)

        opened = self._open(identifier, name)
        if isinstance(opened, ControlResult):
            return opened
        track = opened

        with self._lock:
            if track.name in self._tracks:
                return self._duplicate(track.name)

            if self._state is ReplayState.IDLE:
                self._insert_reference(track)
            else:
                self._tracks[track.name] = track
                track.advance_to(self._virtual_time)
            self._publish()
            virtual_time = self._virtual_time
            track_count = len(self._tracks)

        logger.info(
            "track_added",
            track=track.name,
            source=identifier,
            virtual_time=virtual_time,
            track_count=track_count,
        )
        return ControlResult.success(track.name)

    def remove_track(self, name: str) -> ControlResult:
        """Remove a track and its trace.

        Removing the reference promotes the remaining track with the earliest
        next unread fix. Removing the last track stops the replay.
        """
        with self._lock:
            if name not in self._tracks:
                logger.warning("track_remove_rejected", track=name, reason="unknown_track")
                return ControlResult.failure(
                    ReplayErrorCode.UNKNOWN_TRACK, f"no track named {name}"
                )

            del self._tracks[name]
            if not self._tracks:
                self._reset()
                logger.info("track_removed", track=name, state=self._state.value)
            elif name == self._reference:
                self._reference = self._promotion_candidate()
                logger.info("reference_promoted", removed=name, reference=self._reference)
            else:
                logger.info("track_removed", track=name, track_count=len(self._tracks))
            self._publish()

        return ControlResult.success(name)

    def set_time_scale(self, scale: float) -> ControlResult:
        """Set the playback speed multiplier; 0 pauses without stopping."""
        if not math.isfinite(scale) or scale < 0:
            logger.warning("time_scale_rejected", time_scale=scale)
            return ControlResult.failure(
                ReplayErrorCode.INVALID_SCALE, f"time scale must be >= 0, got {scale}"
            )

        with self._lock:
            self._time_scale = float(scale)
            self._publish()

        logger.info("time_scale_changed", time_scale=scale)
        return ControlResult.success()

    def fast_forward(self, delta_s: float) -> bool:
        """Race ``delta_s`` virtual seconds ahead without wall-clock pacing.

        Returns:
            False (and changes nothing) unless the engine is ACTIVE with a
            known virtual time and ``delta_s`` is a positive number.
        """
        with self._lock:
            if (
                self._state is not ReplayState.ACTIVE
                or self._virtual_time is None
                or not math.isfinite(delta_s)
                or delta_s <= 0
            ):
                logger.warning(
                    "fast_forward_rejected", state=self._state.value, delta_s=delta_s
                )
                return False

            target = self._virtual_time + delta_s
            self._fast_forward_target = target
            self._state = ReplayState.FAST_FORWARDING
            self._publish()

        logger.info("fast_forward_started", delta_s=delta_s, target=target)
        return True

    def tick(self, elapsed_s: float) -> ReplaySnapshot:
        """Advance the virtual clock and every track.

        Args:
            elapsed_s: Wall-clock seconds since the previous tick.

        Returns:
            The snapshot published by this tick.
        """
        with self._lock:
            if self._state is ReplayState.ACTIVE:
                if math.isfinite(elapsed_s) and elapsed_s > 0:
                    self._virtual_time += elapsed_s * self._time_scale
                self._advance_all()
            elif self._state is ReplayState.FAST_FORWARDING:
                self._fast_forward_steps()
            else:
                return self._snapshot

            self._publish()
            return self._snapshot

    def stop(self) -> None:
        """Discard every track and return to IDLE. Safe to call repeatedly."""
        with self._lock:
            was_idle = self._state is ReplayState.IDLE
            self._reset()
            self._publish()

        if not was_idle:
            logger.info("replay_stopped")

    # =========================================================================
    # Read accessors (served from the published snapshot)
    # =========================================================================

    @property
    def state(self) -> ReplayState:
        """Current lifecycle state."""
        return self._snapshot.state

    @property
    def time_scale(self) -> float:
        """Current playback speed multiplier."""
        return self._snapshot.time_scale

    @property
    def reference_name(self) -> str | None:
        """Name of the track that seeded the clock."""
        return self._snapshot.reference_name

    @property
    def is_active(self) -> bool:
        """True unless IDLE."""
        return self._snapshot.state is not ReplayState.IDLE

    def snapshot(self) -> ReplaySnapshot:
        """Most recently published snapshot."""
        return self._snapshot

    def virtual_time(self) -> float | None:
        """Replay clock in fix-timestamp units, None while idle."""
        return self._snapshot.virtual_time

    def track_count(self) -> int:
        """Number of active tracks."""
        return self._snapshot.track_count

    def track_names(self) -> list[str]:
        """Names of active tracks in insertion order."""
        return [view.name for view in self._snapshot.tracks]

    def sample(self, key: int | str) -> TrafficSample | None:
        """Current sample of a track, by index or name."""
        view = self._snapshot.find(key)
        return view.sample if view else None

    def trace(self, key: int | str) -> tuple[TrafficSample, ...]:
        """Trail of a track, oldest first; empty for unknown tracks."""
        view = self._snapshot.find(key)
        return view.trace if view else ()

    def is_exhausted(self, key: int | str) -> bool | None:
        """Whether a track has emitted its last fix; None for unknown tracks."""
        view = self._snapshot.find(key)
        return view.exhausted if view else None

    # =========================================================================
    # Internals (callers hold the lock unless noted)
    # =========================================================================

    def _open(self, identifier: str, name: str | None) -> Track | ControlResult:
        """Read a source outside the lock; failures become results."""
        try:
            return Track.open(
                self.source,
                identifier,
                name=name,
                trace_length=self.settings.trace_length,
                tension=self.settings.spline_tension,
            )
        except (SourceUnreadableError, ReplayError) as exc:
            cause = error_code_for(exc)
            logger.warning(
                "track_open_failed",
                source=identifier,
                cause=cause.value,
                error=str(exc),
            )
            return ControlResult.failure(ReplayErrorCode.OPEN_FAILED, str(exc), cause=cause)

    def _duplicate(self, name: str) -> ControlResult:
        logger.warning("track_add_rejected", track=name, reason="duplicate_name")
        return ControlResult.failure(ReplayErrorCode.DUPLICATE_NAME, f"duplicate name: {name}")

    def _insert_reference(self, track: Track) -> None:
        self._tracks[track.name] = track
        self._reference = track.name
        self._virtual_time = track.first_fix_time
        self._fast_forward_target = None
        self._state = ReplayState.ACTIVE
        track.advance_to(self._virtual_time)

    def _promotion_candidate(self) -> str:
        """Earliest next unread fix wins; exhausted tracks last, then insertion order."""
        ranked = sorted(
            enumerate(self._tracks.values()),
            key=lambda item: (
                item[1].next_fix_time() is None,
                item[1].next_fix_time() or 0.0,
                item[0],
            ),
        )
        return ranked[0][1].name

    def _advance_all(self) -> None:
        for track in self._tracks.values():
            track.advance_to(self._virtual_time)

    def _fast_forward_steps(self) -> None:
        target = self._fast_forward_target
        step = self.settings.fast_forward_step_s
        steps = 0
        while self._virtual_time < target and steps < self.settings.fast_forward_max_steps:
            self._virtual_time = min(self._virtual_time + step, target)
            self._advance_all()
            steps += 1

        if self._virtual_time >= target:
            self._virtual_time = target
            self._fast_forward_target = None
            self._state = ReplayState.ACTIVE
            logger.info("fast_forward_completed", virtual_time=target, steps=steps)

    def _reset(self) -> None:
        self._tracks.clear()
        self._reference = None
        self._virtual_time = None
        self._fast_forward_target = None
        self._state = ReplayState.IDLE

    def _publish(self) -> None:
        views: tuple[TrackView, ...] = tuple(
            track.view(is_reference=name == self._reference)
            for name, track in self._tracks.items()
        )
        self._snapshot = ReplaySnapshot(
            state=self._state,
            virtual_time=self._virtual_time,
            time_scale=self._time_scale,
            fast_forward_target=self._fast_forward_target,
            reference_name=self._reference,
            tracks=views,
        )
