"""IGC flight log decoder.

Parses the subset of the IGC format needed for replay:
- "H" header records (flight date, pilot, glider, registration, competition data)
- "I" records declaring B-record extensions (true track is used as heading)
- "B" fix records (time, location, validity, pressure and GPS altitude)

Fix times are seconds since midnight UTC. Logs that cross midnight keep a
monotonic clock by shifting later fixes by one day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from pathlib import Path

import structlog

from flightlog.fixes import Fix, FlightMetadata, GeoPoint, RecordedFlight
from flightlog.source import SourceUnreadableError

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400
# A backwards jump larger than this is a midnight roll-over, not a glitch
ROLLOVER_THRESHOLD_S = SECONDS_PER_DAY / 2

B_RECORD_MIN_LENGTH = 35


@dataclass
class IGCExtensions:
    """Byte ranges of optional B-record fields declared by the "I" record.

    Positions are zero-based, end exclusive.
    """

    fields: dict[str, tuple[int, int]] = field(default_factory=dict)

    def extract(self, line: str, code: str) -> str | None:
        """Return the raw text of an extension field, or None if absent."""
        span = self.fields.get(code)
        if span is None:
            return None
        start, end = span
        if end > len(line):
            return None
        return line[start:end]


@dataclass
class IGCFix:
    """A decoded B record before it is placed on the flight's clock."""

    time_of_day: time
    location: GeoPoint
    gps_valid: bool
    pressure_altitude: int
    gps_altitude: int
    true_track: float | None = None

    @property
    def seconds_of_day(self) -> int:
        """Seconds since midnight."""
        return self.time_of_day.hour * 3600 + self.time_of_day.minute * 60 + self.time_of_day.second

    @property
    def altitude(self) -> float:
        """GPS altitude, falling back to pressure altitude when GPS reports zero."""
        return float(self.gps_altitude if self.gps_altitude != 0 else self.pressure_altitude)


def parse_time(buffer: str) -> time | None:
    """Parse a time in IGC format (HHMMSS)."""
    if len(buffer) < 6 or not buffer[:6].isdigit():
        return None

    hour, minute, second = int(buffer[0:2]), int(buffer[2:4]), int(buffer[4:6])
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def parse_location(buffer: str) -> GeoPoint | None:
    """Parse a location in IGC format (DDMMmmm[N/S]DDDMMmmm[E/W])."""
    if len(buffer) < 17:
        return None

    lat_text, ns, lon_text, ew = buffer[0:7], buffer[7], buffer[8:16], buffer[16]
    if not (lat_text.isdigit() and lon_text.isdigit()):
        return None
    if ns not in "NS" or ew not in "EW":
        return None

    lat_minutes = int(lat_text[2:7]) / 1000.0
    lon_minutes = int(lon_text[3:8]) / 1000.0
    if lat_minutes >= 60 or lon_minutes >= 60:
        return None

    latitude = int(lat_text[0:2]) + lat_minutes / 60.0
    longitude = int(lon_text[0:3]) + lon_minutes / 60.0
    if latitude > 90 or longitude > 180:
        return None

    if ns == "S":
        latitude = -latitude
    if ew == "W":
        longitude = -longitude

    return GeoPoint(latitude=latitude, longitude=longitude)


def _parse_altitude(text: str) -> int | None:
    text = text.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_fix(line: str, extensions: IGCExtensions | None = None) -> IGCFix | None:
    """Parse an IGC "B" record.

    Returns:
        The decoded fix, or None if the line is not a well-formed B record.
    """
    if len(line) < B_RECORD_MIN_LENGTH or line[0] != "B":
        return None

    time_of_day = parse_time(line[1:7])
    if time_of_day is None:
        return None

    location = parse_location(line[7:24])
    if location is None:
        return None

    validity = line[24]
    if validity not in "AV":
        return None

    pressure_altitude = _parse_altitude(line[25:30])
    gps_altitude = _parse_altitude(line[30:35])
    if pressure_altitude is None or gps_altitude is None:
        return None

    true_track = None
    if extensions is not None:
        raw = extensions.extract(line, "TRT")
        if raw is not None and raw.strip().isdigit():
            true_track = float(int(raw)) % 360

    return IGCFix(
        time_of_day=time_of_day,
        location=location,
        gps_valid=validity == "A",
        pressure_altitude=pressure_altitude,
        gps_altitude=gps_altitude,
        true_track=true_track,
    )


def parse_extensions(line: str) -> IGCExtensions | None:
    """Parse an IGC "I" record (NN followed by NN x SSFFCCC)."""
    if len(line) < 3 or line[0] != "I" or not line[1:3].isdigit():
        return None

    count = int(line[1:3])
    extensions = IGCExtensions()
    for i in range(count):
        chunk = line[3 + i * 7 : 10 + i * 7]
        if len(chunk) < 7 or not chunk[:4].isdigit():
            return None
        start, finish = int(chunk[0:2]), int(chunk[2:4])
        if start < 1 or finish < start:
            return None
        # IGC byte positions are 1-based and inclusive
        extensions.fields[chunk[4:7].upper()] = (start - 1, finish)
    return extensions


def parse_date_record(line: str) -> date | None:
    """Parse an IGC "HFDTE" record (HFDTEDDMMYY or HFDTEDATE:DDMMYY,NN)."""
    if len(line) < 5 or line[2:5].upper() != "DTE":
        return None

    text = line[5:]
    if ":" in text:
        text = text.split(":", 1)[1]
    text = text.strip()[:6]
    if len(text) != 6 or not text.isdigit():
        return None

    day, month, year = int(text[0:2]), int(text[2:4]), int(text[4:6])
    year += 2000 if year < 80 else 1900
    try:
        return date(year, month, day)
    except ValueError:
        return None


_HEADER_FIELDS = {
    "PLT": "pilot",
    "GTY": "glider_type",
    "GID": "registration",
    "CID": "competition_id",
    "CCL": "competition_class",
}


def parse_header_field(line: str) -> tuple[str, str] | None:
    """Parse a text "H" record into (metadata field, value)."""
    if len(line) < 5 or line[0] != "H":
        return None

    name = _HEADER_FIELDS.get(line[2:5].upper())
    if name is None:
        return None

    value = line.split(":", 1)[1] if ":" in line else line[5:]
    value = value.strip()
    if not value:
        return None
    return name, value


def _read_lines(path: Path) -> list[str]:
    if not path.exists():
        raise SourceUnreadableError(str(path), "file not found")
    if not path.is_file():
        raise SourceUnreadableError(str(path), "not a regular file")

    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SourceUnreadableError(str(path), str(exc)) from exc

    if b"\x00" in raw:
        raise SourceUnreadableError(str(path), "binary content is not an IGC log")

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("latin-1")
    return text.splitlines()


def parse_metadata(lines: list[str]) -> FlightMetadata:
    """Collect header metadata from the lines of a log."""
    values: dict[str, object] = {}
    for line in lines:
        if not line.startswith("H"):
            continue
        flight_date = parse_date_record(line)
        if flight_date is not None:
            values.setdefault("flight_date", flight_date)
            continue
        parsed = parse_header_field(line)
        if parsed is not None:
            values.setdefault(parsed[0], parsed[1])
    return FlightMetadata(**values)


def parse_fixes(lines: list[str], identifier: str = "") -> list[Fix]:
    """Decode every B record into a ``Fix`` on a midnight-safe clock.

    Malformed records are skipped. Ordering is left as recorded.
    """
    fixes: list[Fix] = []
    extensions: IGCExtensions | None = None
    day_offset = 0
    previous_seconds: int | None = None
    skipped = 0

    for line in lines:
        line = line.rstrip()
        if line.startswith("I"):
            extensions = parse_extensions(line)
            continue
        if not line.startswith("B"):
            continue

        igc_fix = parse_fix(line, extensions)
        if igc_fix is None:
            skipped += 1
            continue

        seconds = igc_fix.seconds_of_day
        if previous_seconds is not None and previous_seconds - seconds > ROLLOVER_THRESHOLD_S:
            day_offset += SECONDS_PER_DAY
        previous_seconds = seconds

        fixes.append(
            Fix(
                timestamp=float(seconds + day_offset),
                location=igc_fix.location,
                altitude=igc_fix.altitude,
                heading=igc_fix.true_track,
            )
        )

    if skipped:
        logger.debug("igc_records_skipped", identifier=identifier, skipped=skipped)
    return fixes


class IGCFixSource:
    """``FixSource`` for IGC files on the local filesystem."""

    def open(self, identifier: str) -> RecordedFlight:
        """Read header and fixes of an IGC file."""
        lines = _read_lines(Path(identifier))
        flight = RecordedFlight(
            identifier=identifier,
            metadata=parse_metadata(lines),
            fixes=tuple(parse_fixes(lines, identifier)),
        )
        logger.info(
            "igc_loaded",
            identifier=identifier,
            fix_count=flight.fix_count,
            registration=flight.metadata.registration,
        )
        return flight

    def read_metadata(self, identifier: str) -> FlightMetadata:
        """Read only the header records of an IGC file."""
        return parse_metadata(_read_lines(Path(identifier)))
