"""Replay playlist.

The list of flight logs a user has picked for a multi-track replay. One
entry is started as the reference track and every other entry joins as
traffic on the same clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from flightlog.fixes import FlightMetadata
from flightlog.igc import IGCFixSource
from flightlog.source import FixSource
from replay.engine import ReplayEngine
from replay.errors import ControlResult, DuplicateNameError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlaylistEntry:
    """A flight log queued for replay."""

    name: str
    path: str
    metadata: FlightMetadata

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "path": self.path,
            "pilot": self.metadata.pilot,
            "glider_type": self.metadata.glider_type,
            "flight_date": self.metadata.flight_date.isoformat()
            if self.metadata.flight_date
            else None,
        }


class ReplayPlaylist:
    """Candidate flight logs, unique by name and kept sorted by name.

    Usage:
        playlist = ReplayPlaylist()
        playlist.add("flights/d1234.igc")
        playlist.add("flights/d5678.igc")
        results = playlist.start(engine, primary_name="D-1234")
    """

    def __init__(self, source: FixSource | None = None) -> None:
        """Initialize an empty playlist.

        Args:
            source: Decoder used to read flight headers. Defaults to IGC files.
        """
        self.source = source if source is not None else IGCFixSource()
        self._entries: dict[str, PlaylistEntry] = {}

    @property
    def entries(self) -> list[PlaylistEntry]:
        """Entries sorted by name."""
        return [self._entries[name] for name in sorted(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def add(self, path: str | Path, name: str | None = None) -> PlaylistEntry:
        """Queue a flight log, naming it from its header when no name is given.

        Raises:
            SourceUnreadableError: If the header cannot be read.
            DuplicateNameError: If an entry with the same name is queued.
        """
        path = str(path)
        metadata = self.source.read_metadata(path)
        label = name or metadata.display_name or Path(path).stem
        if label in self._entries:
            logger.warning("playlist_duplicate", name=label, path=path)
            raise DuplicateNameError(label)

        entry = PlaylistEntry(name=label, path=path, metadata=metadata)
        self._entries[label] = entry
        logger.info("playlist_entry_added", name=label, path=path)
        return entry

    def remove(self, name: str) -> bool:
        """Drop an entry. Returns False if it was not queued."""
        if self._entries.pop(name, None) is None:
            return False
        logger.info("playlist_entry_removed", name=name)
        return True

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def start(
        self,
        engine: ReplayEngine,
        primary_name: str | None = None,
    ) -> dict[str, ControlResult]:
        """(Re)start ``engine`` with every queued entry.

        Args:
            engine: Engine to load. Any running replay is stopped first.
            primary_name: Entry used as reference; defaults to the first entry.

        Returns:
            Control result per entry name. Traffic is only added when the
            primary entry started. Empty when the playlist is empty.

        Raises:
            KeyError: If ``primary_name`` is not queued.
        """
        entries = self.entries
        if not entries:
            return {}

        primary = self._entries[primary_name] if primary_name else entries[0]

        engine.stop()
        results = {primary.name: engine.start(primary.path, primary.name)}
        if not results[primary.name]:
            return results

        for entry in entries:
            if entry.name != primary.name:
                results[entry.name] = engine.add_track(entry.path, entry.name)

        logger.info(
            "playlist_started",
            primary=primary.name,
            tracks=engine.track_count(),
            failed=[name for name, result in results.items() if not result],
        )
        return results
