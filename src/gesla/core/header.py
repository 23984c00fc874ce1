"""
GESLA-3 header extraction.

Every GESLA-3 station file opens with a fixed block of 41 header lines.
Most of them have the form ``# KEY<spaces>value``, for example::

    # SITE NAME                   Aberdeen
    # LATITUDE                    57.14400
    # LONGITUDE                   -2.08000
    # DATUM INFORMATION           Admiralty Chart Datum (ACD)
    # INSTRUMENT                  Unspecified
    # GAUGE TYPE                  Coastal
    # NULL VALUE                  -99.9999

The header closes with a free-text legend for the contributor QC flags in
column 4, starting at ``# Quality-control (QC) flags for column 4``.

Missing markers are not errors: text fields come back empty and numeric
fields come back as NaN so a batch load is never aborted by one odd header.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..exceptions import HeaderParseError

logger = logging.getLogger(__name__)

HEADER_LENGTH = 41

LATITUDE_MARKER = "LATITUDE"
LONGITUDE_MARKER = "LONGITUDE"
DATUM_MARKER = "DATUM INFORMATION"
INSTRUMENT_MARKER = "INSTRUMENT"
GAUGE_TYPE_MARKER = "GAUGE TYPE"
NULL_VALUE_MARKER = "NULL VALUE"
FLAG_LEGEND_START = "# Quality-control (QC) flags for column 4"

# "# KEY   value" with at least two spaces separating key and value
_KEY_VALUE_PATTERN = re.compile(r"^#\s*(?P<key>\S.*?)\s{2,}(?P<value>\S.*)$")


@dataclass(frozen=True)
class StationHeader:
    """Metadata parsed from the header block of one station file."""
    latitude: float = math.nan
    longitude: float = math.nan
    datum: str = ""
    instrument: str = ""
    gauge_type: str = ""
    null_value: float = math.nan
    contributor_flag_legend: Tuple[str, ...] = ()
    fields: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def gauge_description(self) -> str:
        """Instrument and gauge type, e.g. ``'Float - Coastal'``."""
        return f"{self.instrument} - {self.gauge_type}"

    @property
    def has_coordinates(self) -> bool:
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)

    def require_coordinates(self, source: str) -> None:
        """Raise if latitude or longitude could not be parsed.

        Args:
            source: File name used in the error message

        Raises:
            HeaderParseError: If either coordinate is missing
        """
        missing = [
            name for name, value in (
                (LATITUDE_MARKER, self.latitude),
                (LONGITUDE_MARKER, self.longitude)
            )
            if not math.isfinite(value)
        ]
        if missing:
            logger.error(f"Missing {', '.join(missing)} in header of {source}")
            raise HeaderParseError(source, f"missing or unparsable {', '.join(missing)}")


def _find_marker_line(lines: List[str], marker: str) -> Optional[str]:
    for line in lines:
        if marker in line:
            return line
    return None


def extract_marker_value(lines: List[str], marker: str) -> str:
    """Return the trimmed text following ``# <marker>`` on its header line.

    The first line containing ``marker`` anywhere is used. If the marker is
    absent, or that line does not carry the ``# <marker>`` literal, an empty
    string is returned.

    Args:
        lines: Header lines
        marker: Marker keyword, e.g. ``'LATITUDE'``

    Returns:
        Value text, or ``''`` if not found
    """
    line = _find_marker_line(lines, marker)
    if line is None:
        logger.debug(f"Header marker '{marker}' not found")
        return ""

    literal = f"# {marker}"
    position = line.find(literal)
    if position < 0:
        logger.debug(f"Header line for '{marker}' lacks '{literal}': {line!r}")
        return ""
    return line[position + len(literal):].strip()


def _to_float(text: str, marker: str) -> float:
    if not text:
        return math.nan
    try:
        return float(text.split()[0])
    except ValueError:
        logger.warning(f"Could not parse {marker} value {text!r}")
        return math.nan


def _parse_key_values(lines: Iterable[str]) -> Dict[str, str]:
    fields = {}
    for line in lines:
        match = _KEY_VALUE_PATTERN.match(line)
        if match:
            fields.setdefault(match.group("key").strip(), match.group("value").strip())
    return fields


def extract_flag_legend(lines: List[str]) -> Tuple[str, ...]:
    """Return the contributor flag legend block, or an empty tuple."""
    for index, line in enumerate(lines):
        if line == FLAG_LEGEND_START:
            return tuple(lines[index:])
    return ()


def extract_header(lines: Iterable[str]) -> StationHeader:
    """Parse the header block of a station file.

    Args:
        lines: The header lines (normally the first 41 lines of the file)

    Returns:
        StationHeader with coordinates, datum, gauge information and the
        contributor flag legend
    """
    lines = [line.rstrip("\r\n") for line in lines]

    return StationHeader(
        latitude=_to_float(extract_marker_value(lines, LATITUDE_MARKER), LATITUDE_MARKER),
        longitude=_to_float(extract_marker_value(lines, LONGITUDE_MARKER), LONGITUDE_MARKER),
        datum=extract_marker_value(lines, DATUM_MARKER),
        instrument=extract_marker_value(lines, INSTRUMENT_MARKER),
        gauge_type=extract_marker_value(lines, GAUGE_TYPE_MARKER),
        null_value=_to_float(extract_marker_value(lines, NULL_VALUE_MARKER), NULL_VALUE_MARKER),
        contributor_flag_legend=extract_flag_legend(lines),
        fields=_parse_key_values(lines)
    )
