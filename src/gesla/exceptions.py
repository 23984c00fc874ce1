"""
Exceptions raised by the GESLA loader.

Parse-level anomalies (bad numeric cells, absent header markers) are
recovered as missing values and never reach these classes. Everything
here is surfaced to the caller.
"""

from typing import List, Optional, Sequence


class GeslaError(Exception):
    """Base exception for all GESLA loader errors."""

    def __init__(self, message: str):
        """Initialize the error.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(GeslaError):
    """Settings file could not be read or is invalid."""


class CatalogError(GeslaError):
    """Metadata catalog could not be loaded or is missing columns."""


class NotFoundError(GeslaError):
    """A selection criterion matched zero catalog entries."""

    def __init__(self, criterion: str, value):
        self.criterion = criterion
        self.value = value
        super().__init__(f"No file name found for {criterion}: {value}")
        # keep constructor arguments so the error survives pickling
        self.args = (criterion, value)


class AmbiguousSelectionError(GeslaError):
    """Several candidates matched and no chooser was supplied."""

    def __init__(self, candidates: Sequence, message: Optional[str] = None):
        self.candidates: List = list(candidates)
        listing = ", ".join(c.filename for c in self.candidates)
        super().__init__(
            message or f"{len(self.candidates)} files match the selection: {listing}"
        )
        self.args = (self.candidates, message)


class ParseError(GeslaError):
    """A station file could not be parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")
        self.args = (source, reason)


class HeaderParseError(ParseError):
    """A required header field (latitude/longitude) is missing or unparsable."""


class RecordParseError(ParseError):
    """The data block of a station file is structurally broken."""


class StationReadError(GeslaError, OSError):
    """A station file is missing or unreadable at its resolved path."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        GeslaError.__init__(self, f"Unable to read station file {path}: {reason}")
        self.args = (path, reason)


class DuplicateStationError(GeslaError):
    """Two distinct inputs map to the same station key."""

    def __init__(self, key: str, first: str, second: str):
        self.key = key
        self.first = first
        self.second = second
        super().__init__(
            f"Station key '{key}' produced by both '{first}' and '{second}'"
        )
        self.args = (key, first, second)
