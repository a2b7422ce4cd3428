"""Multi-track flight replay.

This module provides:
- Catmull-Rom interpolation between recorded fixes
- Tracks that advance one flight log along a virtual clock
- The replay engine synchronizing many tracks on that clock
- A wall-clock timer, a playlist and HTTP routes around the engine
"""

from replay.config import EngineSettings, ReplayConfig, load_config
from replay.engine import ReplayEngine
from replay.errors import (
    ControlResult,
    DuplicateNameError,
    EmptySourceError,
    ReplayError,
    ReplayErrorCode,
)
from replay.interpolator import InterpolatedPoint, interpolate
from replay.playlist import PlaylistEntry, ReplayPlaylist
from replay.snapshot import ReplaySnapshot, ReplayState, TrackView, TrafficSample
from replay.timer import ReplayTimer
from replay.track import Track

__all__ = [
    # Engine
    "ReplayEngine",
    "ReplayState",
    "ReplayTimer",
    "Track",
    # Read models
    "ReplaySnapshot",
    "TrackView",
    "TrafficSample",
    # Interpolation
    "InterpolatedPoint",
    "interpolate",
    # Errors
    "ControlResult",
    "DuplicateNameError",
    "EmptySourceError",
    "ReplayError",
    "ReplayErrorCode",
    # Playlist
    "PlaylistEntry",
    "ReplayPlaylist",
    # Configuration
    "EngineSettings",
    "ReplayConfig",
    "load_config",
]
