"""
Replay test configuration and fixtures.
"""

import logging
import sys
from collections.abc import AsyncGenerator, Callable, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi import FastAPI

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flightlog.fixes import Fix, FlightMetadata, GeoPoint, RecordedFlight  # noqa: E402
from flightlog.source import SourceUnreadableError  # noqa: E402
from replay.config import EngineSettings  # noqa: E402
from replay.engine import ReplayEngine  # noqa: E402

# Test flight parameters
TEST_START_TIME = 36000.0  # 10:00:00 UTC
TEST_ORIGIN = {"lat": 47.0, "lon": 8.0, "alt": 1000.0}
TEST_LAT_STEP = 0.001  # degrees per fix
TEST_ALT_STEP = 2.0  # meters per fix


def make_fix(
    timestamp: float,
    latitude: float = TEST_ORIGIN["lat"],
    longitude: float = TEST_ORIGIN["lon"],
    altitude: float = TEST_ORIGIN["alt"],
    heading: float | None = None,
) -> Fix:
    """Build one fix."""
    return Fix(
        timestamp=timestamp,
        location=GeoPoint(latitude=latitude, longitude=longitude),
        altitude=altitude,
        heading=heading,
    )


def linear_fixes(
    start: float = TEST_START_TIME,
    count: int = 10,
    interval: float = 1.0,
    lat_step: float = TEST_LAT_STEP,
    alt_step: float = TEST_ALT_STEP,
    longitude: float = TEST_ORIGIN["lon"],
) -> list[Fix]:
    """Fixes flying due north at constant speed and climb."""
    return [
        make_fix(
            start + i * interval,
            latitude=TEST_ORIGIN["lat"] + i * lat_step,
            longitude=longitude,
            altitude=TEST_ORIGIN["alt"] + i * alt_step,
        )
        for i in range(count)
    ]


def igc_coordinate(value: float, degree_digits: int, positive: str, negative: str) -> str:
    """Format a coordinate as IGC DDMMmmm / DDDMMmmm text."""
    hemisphere = positive if value >= 0 else negative
    value = abs(value)
    degrees = int(value)
    thousandths = round((value - degrees) * 60000)
    return f"{degrees:0{degree_digits}d}{thousandths:05d}{hemisphere}"


def igc_b_record(
    seconds: int,
    latitude: float,
    longitude: float,
    altitude: int,
    pressure_altitude: int | None = None,
    validity: str = "A",
    extra: str = "",
) -> str:
    """Build an IGC B record line."""
    hours, remainder = divmod(seconds % 86400, 3600)
    minutes, secs = divmod(remainder, 60)
    pressure = altitude if pressure_altitude is None else pressure_altitude
    return (
        f"B{hours:02d}{minutes:02d}{secs:02d}"
        f"{igc_coordinate(latitude, 2, 'N', 'S')}"
        f"{igc_coordinate(longitude, 3, 'E', 'W')}"
        f"{validity}{pressure:05d}{altitude:05d}{extra}"
    )


class MemoryFixSource:
    """In-memory ``FixSource`` keyed by identifier."""

    def __init__(self) -> None:
        self.flights: dict[str, RecordedFlight] = {}
        self.opened: list[str] = []

    def add(
        self,
        identifier: str,
        fixes: Iterable[Fix],
        registration: str = "",
        competition_id: str = "",
    ) -> str:
        self.flights[identifier] = RecordedFlight(
            identifier=identifier,
            metadata=FlightMetadata(registration=registration, competition_id=competition_id),
            fixes=tuple(fixes),
        )
        return identifier

    def open(self, identifier: str) -> RecordedFlight:
        if identifier not in self.flights:
            raise SourceUnreadableError(identifier, "file not found")
        self.opened.append(identifier)
        return self.flights[identifier]

    def read_metadata(self, identifier: str) -> FlightMetadata:
        return self.open(identifier).metadata


# ============================================================================
# Replay Fixtures
# ============================================================================


@pytest.fixture
def source() -> MemoryFixSource:
    """Empty in-memory fix source."""
    return MemoryFixSource()


@pytest.fixture
def engine(source: MemoryFixSource) -> ReplayEngine:
    """Idle engine reading from the in-memory source."""
    return ReplayEngine(source, EngineSettings())


@pytest.fixture
def write_igc(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory fixture that writes an IGC file from header and B record lines.

    Usage:
        path = write_igc("d1234.igc", ["HFGIDGLIDERID:D-1234"], fixes=[(36000, 47.0, 8.0, 1000)])
    """

    def _write(
        name: str,
        headers: Iterable[str] = (),
        fixes: Iterable[tuple[int, float, float, int]] = (),
        lines: Iterable[str] = (),
    ) -> Path:
        content = ["AXXX001 test logger", *headers]
        content.extend(igc_b_record(*fix) for fix in fixes)
        content.extend(lines)
        path = tmp_path / name
        path.write_text("\r\n".join(content) + "\r\n", encoding="ascii")
        return path

    return _write


# ============================================================================
# Async HTTP Client Fixtures
# ============================================================================


@pytest.fixture
def make_async_client() -> Callable[[FastAPI], "AsyncClientContextManager"]:
    """
    Factory fixture that creates httpx.AsyncClient instances for testing FastAPI apps.

    Usage:
        @pytest.mark.asyncio
        async def test_something(make_async_client, my_app):
            async with make_async_client(my_app) as client:
                response = await client.get("/endpoint")
                assert response.status_code == 200
    """

    @asynccontextmanager
    async def _make_client(
        app: FastAPI, base_url: str = "http://test"
    ) -> AsyncGenerator[httpx.AsyncClient, None]:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url=base_url) as client:
            yield client

    return _make_client


# Type alias for the async client context manager
AsyncClientContextManager = Callable[[FastAPI], AsyncGenerator[httpx.AsyncClient, None]]


class ErrorLogCapture(logging.Handler):
    """Handler that captures ERROR and above log records."""

    def __init__(self):
        super().__init__(level=logging.ERROR)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def get_errors(self) -> list[dict[str, Any]]:
        """Return captured errors as dicts for assertion messages."""
        return [
            {
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                "filename": record.filename,
                "lineno": record.lineno,
            }
            for record in self.records
        ]


@pytest.fixture(autouse=True)
def fail_on_error_logs(request):
    """
    Fixture that fails tests if any ERROR level logs are emitted.

    To skip this check for a specific test, mark it with:
        @pytest.mark.allow_error_logs
    """
    if request.node.get_closest_marker("allow_error_logs"):
        yield
        return

    handler = ErrorLogCapture()
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    yield handler

    root_logger.removeHandler(handler)

    errors = handler.get_errors()
    if errors:
        error_details = "\n".join(
            f"  [{e['level']}] {e['logger']}: {e['message']} ({e['filename']}:{e['lineno']})"
            for e in errors
        )
        pytest.fail(
            f"Test emitted {len(errors)} error log(s):\n{error_details}\n\n"
            "If this error is expected, mark the test with @pytest.mark.allow_error_logs"
        )


# Register the custom marker
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "allow_error_logs: mark test to allow ERROR level log messages"
    )
