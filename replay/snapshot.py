"""
Replay Read Models

Immutable views published by the replay engine for renderers and other
consumers. Nothing here references mutable engine state.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from flightlog.fixes import GeoPoint


class ReplayState(str, Enum):
    """Lifecycle state of a replay engine."""

    IDLE = "idle"
    ACTIVE = "active"
    FAST_FORWARDING = "fast_forwarding"


class TrafficSample(BaseModel):
    """
    Position of one replayed track at one virtual time.

    Attributes:
        name: Track label
        timestamp: Virtual time the sample belongs to (seconds)
        location: Interpolated position
        altitude: Interpolated altitude in meters
        heading: Track over ground in degrees, if known
        climb_rate: Vertical speed in m/s, if known
    """

    model_config = ConfigDict(frozen=True)

    name: str
    timestamp: float
    location: GeoPoint
    altitude: float
    heading: float | None = None
    climb_rate: float | None = None

    @property
    def label(self) -> str:
        """Short display label (name and rounded altitude)."""
        return f"{self.name}:{round(self.altitude)}m"


class TrackView(BaseModel):
    """Copy of one track's state taken under the engine lock."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: str
    sample: TrafficSample | None = None
    trace: tuple[TrafficSample, ...] = ()
    exhausted: bool = False
    is_reference: bool = False


class ReplaySnapshot(BaseModel):
    """Consistent view of the whole engine after a control call or tick."""

    model_config = ConfigDict(frozen=True)

    state: ReplayState = ReplayState.IDLE
    virtual_time: float | None = None
    time_scale: float = 1.0
    fast_forward_target: float | None = None
    reference_name: str | None = None
    tracks: tuple[TrackView, ...] = ()

    @property
    def track_count(self) -> int:
        """Number of active tracks."""
        return len(self.tracks)

    def find(self, key: int | str) -> TrackView | None:
        """Look a track up by position or by name."""
        if isinstance(key, int):
            if 0 <= key < len(self.tracks):
                return self.tracks[key]
            return None
        for view in self.tracks:
            if view.name == key:
                return view
        return None
