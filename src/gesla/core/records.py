"""
GESLA-3 data block parsing.

After the header, each line of a station file holds one observation::

    1846/01/04 04:00:00     0.7090    1    1

i.e. date (``yyyy/MM/dd``), time (``HH:mm:ss``), sea level, contributor QC
flag and GESLA QC flag, separated by whitespace. Fields may be double quoted.

Rows are kept in file order. Bad cells are turned into sentinels (NaN for
values, NaT for timestamps, -1 for flags) rather than dropped so the four
columns always stay index aligned.
"""

import io
import logging
import math
from dataclasses import dataclass
from typing import Iterable, TextIO, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import RecordParseError

logger = logging.getLogger(__name__)

DATA_COLUMNS = ['date', 'time', 'sea_level', 'contributor_flag', 'gesla_flag']
DATE_FORMAT = '%Y/%m/%d'
MISSING_FLAG = -1
FLAG_LIMIT = np.iinfo(np.int32).max


def station_key(filename: str) -> str:
    """Normalise a file name into a station key (``-`` becomes ``_``)."""
    return filename.replace('-', '_')


@dataclass(frozen=True)
class ObservationTable:
    """The four index-aligned columns of a station's data block."""
    timestamps: np.ndarray
    sea_level: np.ndarray
    contributor_flag: np.ndarray
    gesla_flag: np.ndarray

    def __post_init__(self):
        lengths = {
            len(self.timestamps),
            len(self.sea_level),
            len(self.contributor_flag),
            len(self.gesla_flag)
        }
        if len(lengths) != 1:
            raise ValueError(f"Observation columns are not aligned: lengths {sorted(lengths)}")

    def __len__(self) -> int:
        return len(self.timestamps)

    @classmethod
    def empty(cls) -> 'ObservationTable':
        return cls(
            timestamps=np.array([], dtype='datetime64[ns]'),
            sea_level=np.array([], dtype=float),
            contributor_flag=np.array([], dtype=np.int64),
            gesla_flag=np.array([], dtype=np.int64)
        )


def _flag_column(column: pd.Series) -> np.ndarray:
    values = pd.to_numeric(column, errors='coerce').to_numpy(dtype=float)
    # fractional, non-finite or oversized cells are not flag codes
    valid = np.isfinite(values) & (values == np.floor(values)) & (np.abs(values) <= FLAG_LIMIT)
    return np.where(valid, values, MISSING_FLAG).astype(np.int64)


def _normalise_lines(lines: Iterable[str], source: str) -> io.StringIO:
    """Drop blank lines and cut every row down to the five data fields."""
    rows = []
    truncated = 0
    for line in lines:
        fields = line.split()
        if not fields:
            continue
        if len(fields) > len(DATA_COLUMNS):
            truncated += 1
            fields = fields[:len(DATA_COLUMNS)]
        rows.append(' '.join(fields))

    if truncated:
        logger.warning(f"Ignored extra fields on {truncated} rows of {source}")
    return io.StringIO('\n'.join(rows) + '\n' if rows else '')


def parse_records(
    data: Union[TextIO, Iterable[str]],
    source: str = '<data>'
) -> ObservationTable:
    """Parse the data block of a station file.

    Rows with more than five fields keep the first five; rows with fewer are
    padded with missing cells.

    Args:
        data: Open text stream positioned at the first data line, or an
            iterable of data lines
        source: Name used in log and error messages

    Returns:
        ObservationTable with timestamps, sea level and both flag columns

    Raises:
        RecordParseError: If pandas cannot tokenise the data block
    """
    try:
        frame = pd.read_csv(
            _normalise_lines(data, source),
            sep=r'\s+',
            header=None,
            names=DATA_COLUMNS,
            index_col=False,
            dtype=str,
            quotechar='"',
            skip_blank_lines=True
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"No observations found in {source}")
        return ObservationTable.empty()
    except pd.errors.ParserError as e:
        logger.error(f"Failed to parse data block of {source}: {e}")
        raise RecordParseError(source, f"unreadable data block: {e}")

    dates = pd.to_datetime(frame['date'], format=DATE_FORMAT, errors='coerce')
    times = pd.to_timedelta(frame['time'], errors='coerce')
    timestamps = (dates + times).to_numpy(dtype='datetime64[ns]')

    sea_level = pd.to_numeric(frame['sea_level'], errors='coerce').to_numpy(dtype=float)

    bad_times = int(np.isnat(timestamps).sum())
    if bad_times:
        logger.warning(f"{bad_times} rows in {source} have unparsable date/time")
    logger.debug(f"Parsed {len(frame)} observations from {source}")

    return ObservationTable(
        timestamps=timestamps,
        sea_level=sea_level,
        contributor_flag=_flag_column(frame['contributor_flag']),
        gesla_flag=_flag_column(frame['gesla_flag'])
    )


def _same_float(a: float, b: float) -> bool:
    return a == b or (math.isnan(a) and math.isnan(b))


@dataclass(frozen=True, eq=False)
class StationRecord:
    """One parsed and filtered GESLA-3 station file.

    ``sea_level`` holds the values after flag filtering. Both flag columns
    are kept as read so removed values can still be traced back.
    """
    station_id: str
    filename: str
    timestamps: np.ndarray
    sea_level: np.ndarray
    contributor_flag: np.ndarray
    gesla_flag: np.ndarray
    latitude: float
    longitude: float
    datum: str
    gauge_description: str
    contributor_flag_legend: Tuple[str, ...] = ()

    def __post_init__(self):
        # re-check alignment for records built outside the loader
        ObservationTable(
            self.timestamps,
            self.sea_level,
            self.contributor_flag,
            self.gesla_flag
        )

    def __len__(self) -> int:
        return len(self.timestamps)

    def __eq__(self, other) -> bool:
        if not isinstance(other, StationRecord):
            return NotImplemented
        return (
            self.station_id == other.station_id
            and self.filename == other.filename
            and _same_float(self.latitude, other.latitude)
            and _same_float(self.longitude, other.longitude)
            and self.datum == other.datum
            and self.gauge_description == other.gauge_description
            and self.contributor_flag_legend == other.contributor_flag_legend
            and np.array_equal(self.timestamps, other.timestamps, equal_nan=True)
            and np.array_equal(self.sea_level, other.sea_level, equal_nan=True)
            and np.array_equal(self.contributor_flag, other.contributor_flag)
            and np.array_equal(self.gesla_flag, other.gesla_flag)
        )

    __hash__ = None

    @property
    def has_coordinates(self) -> bool:
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)

    def to_frame(self) -> pd.DataFrame:
        """Return the observations as a DataFrame indexed by timestamp."""
        return pd.DataFrame(
            {
                'sea_level': self.sea_level,
                'contributor_flag': self.contributor_flag,
                'gesla_flag': self.gesla_flag
            },
            index=pd.DatetimeIndex(self.timestamps, name='timestamp')
        )
