"""Tests for GESLA-3 data block parsing and StationRecord."""

import io

import numpy as np
import pandas as pd
import pytest

from gesla.core.records import (
    MISSING_FLAG,
    ObservationTable,
    StationRecord,
    parse_records,
    station_key,
)

SAMPLE_LINES = [
    '1930/01/01 00:00:00     1.2340    1    1',
    '1930/01/01 01:00:00     1.5000    3    1',
    '1930/01/01 02:30:15     1.7500    0    0',
]


def make_record(**overrides):
    values = {
        'station_id': 'brest_822a_fra_uhslc',
        'filename': 'brest-822a-fra-uhslc',
        'timestamps': np.array(['2000-01-01T00:00', 'NaT'], dtype='datetime64[ns]'),
        'sea_level': np.array([1.0, np.nan]),
        'contributor_flag': np.array([1, 5]),
        'gesla_flag': np.array([1, 0]),
        'latitude': 48.383,
        'longitude': -4.495,
        'datum': 'Chart Datum',
        'gauge_description': 'Float - Coastal',
        'contributor_flag_legend': ('# Quality-control (QC) flags for column 4',),
    }
    values.update(overrides)
    return StationRecord(**values)


class TestParseRecords:
    """Test suite for parse_records."""

    def test_columns_are_aligned(self):
        table = parse_records(SAMPLE_LINES)
        assert len(table) == 3
        assert len(table.timestamps) == len(table.sea_level) == len(table.contributor_flag) == len(table.gesla_flag)

    def test_timestamps_combine_date_and_time(self):
        """Test date at midnight plus the time-of-day offset."""
        table = parse_records(SAMPLE_LINES)
        assert table.timestamps[2] == np.datetime64('1930-01-01T02:30:15')
        assert table.timestamps.dtype == np.dtype('datetime64[ns]')

    def test_values_and_flags(self):
        table = parse_records(SAMPLE_LINES)
        np.testing.assert_allclose(table.sea_level, [1.234, 1.5, 1.75])
        assert table.contributor_flag.tolist() == [1, 3, 0]
        assert table.gesla_flag.tolist() == [1, 1, 0]

    def test_file_order_is_preserved(self):
        """Test rows are not re-sorted even when out of order."""
        lines = [
            '2001/01/01 00:00:00 1.0 1 1',
            '2000/01/01 00:00:00 2.0 1 1',
        ]
        table = parse_records(lines)
        assert table.timestamps[0] > table.timestamps[1]
        assert table.sea_level.tolist() == [1.0, 2.0]

    def test_chronological_rows_stay_non_decreasing(self):
        table = parse_records(SAMPLE_LINES)
        assert (np.diff(table.timestamps.astype('int64')) >= 0).all()

    def test_malformed_value_kept_as_nan(self):
        """Test a bad value cell counts as a row with a NaN value."""
        lines = [
            '2000/01/01 00:00:00 1.0 1 1',
            '2000/01/01 01:00:00 abc 2 1',
            '2000/01/01 02:00:00 3.0 1 1',
        ]
        table = parse_records(lines)
        assert len(table) == 3
        assert np.isnan(table.sea_level[1])
        assert table.contributor_flag[1] == 2

    def test_malformed_date_kept_as_nat(self):
        lines = [
            '2000/13/45 00:00:00 1.0 1 1',
            '2000/01/01 01:00:00 2.0 1 1',
        ]
        table = parse_records(lines)
        assert len(table) == 2
        assert np.isnat(table.timestamps[0])
        assert not np.isnat(table.timestamps[1])

    def test_missing_flag_cells(self):
        """Test missing flags become the sentinel and the row is kept."""
        lines = [
            '2000/01/01 00:00:00 1.0 1 1',
            '2000/01/01 01:00:00 2.0',
        ]
        table = parse_records(lines)
        assert table.contributor_flag.tolist() == [1, MISSING_FLAG]
        assert table.gesla_flag.tolist() == [1, MISSING_FLAG]

    def test_extra_fields_ignored_on_any_row(self):
        """Test a six-field row keeps its first five fields wherever it sits."""
        lines = [
            '2000/01/01 00:00:00 1.0 1 1',
            '2000/01/01 01:00:00 2.0 3 0 9',
            '2000/01/01 02:00:00 3.0 1 1',
        ]
        for rows in (lines, [lines[1], lines[0], lines[2]]):
            table = parse_records(rows)
            assert len(table) == 3
            assert sorted(table.sea_level.tolist()) == [1.0, 2.0, 3.0]

        table = parse_records(lines)
        assert table.contributor_flag.tolist() == [1, 3, 1]
        assert table.gesla_flag.tolist() == [1, 0, 1]

    @pytest.mark.parametrize('cell', ['3.7', '1e30', 'inf', '-2.5'])
    def test_non_integral_flags_become_missing(self, cell):
        """Test fractional or oversized flag cells never turn into real codes."""
        table = parse_records([f"2000/01/01 00:00:00 1.0 {cell} {cell}"])
        assert table.contributor_flag.tolist() == [MISSING_FLAG]
        assert table.gesla_flag.tolist() == [MISSING_FLAG]

    def test_integral_float_flags_accepted(self):
        table = parse_records(['2000/01/01 00:00:00 1.0 3.0 1.0'])
        assert table.contributor_flag.tolist() == [3]
        assert table.gesla_flag.tolist() == [1]

    def test_out_of_legend_flags_pass_through(self):
        table = parse_records(['2000/01/01 00:00:00 1.0 9 7'])
        assert table.contributor_flag.tolist() == [9]
        assert table.gesla_flag.tolist() == [7]

    def test_quoted_fields(self):
        table = parse_records(['"2000/01/01" "06:00:00" 1.5 1 1'])
        assert table.timestamps[0] == np.datetime64('2000-01-01T06:00:00')
        assert table.sea_level[0] == 1.5

    def test_blank_lines_are_skipped(self):
        table = parse_records(['', SAMPLE_LINES[0], '   ', SAMPLE_LINES[1]])
        assert len(table) == 2

    def test_empty_input(self):
        table = parse_records([])
        assert len(table) == 0
        assert table.sea_level.dtype == float

    def test_reads_from_stream(self):
        table = parse_records(io.StringIO('\n'.join(SAMPLE_LINES) + '\n'))
        assert len(table) == 3


class TestObservationTable:
    """Test suite for ObservationTable."""

    def test_misaligned_columns_rejected(self):
        with pytest.raises(ValueError, match='not aligned'):
            ObservationTable(
                timestamps=np.array([], dtype='datetime64[ns]'),
                sea_level=np.array([1.0]),
                contributor_flag=np.array([1]),
                gesla_flag=np.array([1])
            )


class TestStationRecord:
    """Test suite for StationRecord."""

    def test_station_key(self):
        assert station_key('aberdeen-abe-gbr-bodc') == 'aberdeen_abe_gbr_bodc'

    def test_equality_treats_nan_as_equal(self):
        assert make_record() == make_record()

    def test_equality_detects_changes(self):
        assert make_record() != make_record(sea_level=np.array([2.0, np.nan]))
        assert make_record() != make_record(datum='Other')
        assert make_record() != make_record(latitude=np.nan)

    def test_misaligned_record_rejected(self):
        with pytest.raises(ValueError):
            make_record(gesla_flag=np.array([1]))

    def test_to_frame(self):
        frame = make_record().to_frame()
        assert list(frame.columns) == ['sea_level', 'contributor_flag', 'gesla_flag']
        assert isinstance(frame.index, pd.DatetimeIndex)
        assert frame.index.name == 'timestamp'
        assert len(frame) == 2

    def test_has_coordinates(self):
        assert make_record().has_coordinates
        assert not make_record(longitude=np.nan).has_coordinates
