"""
Flight Log Data Models

Immutable records decoded from recorded flight logs. These models are
format-agnostic and shared by every fix source and the replay engine.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """
    Geographic location in WGS84 coordinates.

    Attributes:
        latitude: Latitude in degrees (-90 to 90)
        longitude: Longitude in degrees (-180 to 180)
    """

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class Fix(BaseModel):
    """
    One timestamped position sample from a recorded track.

    Attributes:
        timestamp: Seconds on the recording clock (seconds since midnight UTC for IGC)
        location: Recorded position
        altitude: Altitude in meters
        heading: Track over ground in degrees (optional)
        climb_rate: Vertical speed in m/s, positive climbing (optional)
    """

    model_config = ConfigDict(frozen=True)

    timestamp: float
    location: GeoPoint
    altitude: float
    heading: float | None = None
    climb_rate: float | None = None


class FlightMetadata(BaseModel):
    """Header information describing a recorded flight."""

    model_config = ConfigDict(frozen=True)

    flight_date: date | None = None
    pilot: str = ""
    glider_type: str = ""
    registration: str = ""
    competition_id: str = ""
    competition_class: str = ""

    @property
    def display_name(self) -> str:
        """Best available label: registration, then competition id."""
        return self.registration or self.competition_id


class RecordedFlight(BaseModel):
    """A decoded flight log: header metadata plus fixes in file order."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    metadata: FlightMetadata = Field(default_factory=FlightMetadata)
    fixes: tuple[Fix, ...] = ()

    @property
    def fix_count(self) -> int:
        """Number of decoded fixes."""
        return len(self.fixes)
