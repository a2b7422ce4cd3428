"""Recorded flight logs.

This module provides:
- Immutable fix and flight metadata models
- The fix source protocol consumed by the replay engine
- An IGC decoder implementing that protocol
"""

from flightlog.fixes import Fix, FlightMetadata, GeoPoint, RecordedFlight
from flightlog.igc import IGCFixSource, parse_fix, parse_location, parse_time
from flightlog.source import FixSource, SourceUnreadableError

__all__ = [
    # Models
    "Fix",
    "FlightMetadata",
    "GeoPoint",
    "RecordedFlight",
    # Sources
    "FixSource",
    "IGCFixSource",
    "SourceUnreadableError",
    # IGC helpers
    "parse_fix",
    "parse_location",
    "parse_time",
]
