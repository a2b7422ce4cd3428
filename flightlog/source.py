"""Fix source boundary.

A fix source turns a file identifier into a decoded ``RecordedFlight``.
The replay engine only depends on this protocol, never on a file format.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from flightlog.fixes import FlightMetadata, RecordedFlight


class SourceUnreadableError(Exception):
    """Raised when a flight log is missing, unreadable or cannot be decoded."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f"{identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason


@runtime_checkable
class FixSource(Protocol):
    """Decoder that yields structured fixes for a file identifier."""

    def open(self, identifier: str) -> RecordedFlight:
        """Read the whole log eagerly.

        Raises:
            SourceUnreadableError: If the log cannot be read or decoded.
        """
        ...

    def read_metadata(self, identifier: str) -> FlightMetadata:
        """Read only the header of a log.

        Raises:
            SourceUnreadableError: If the log cannot be read.
        """
        ...
