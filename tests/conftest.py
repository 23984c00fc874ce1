"""Shared fixtures: sample GESLA-3 station files and metadata catalogs."""

import logging

import pandas as pd
import pytest

from gesla.catalog import MetadataCatalog, clear_catalog_cache
from gesla.loader import shutdown_worker_pool

HEADER_LENGTH = 41

HEADER_FIELDS = [
    ('SITE NAME', 'Aberdeen'),
    ('SITE CODE', 'abe'),
    ('COUNTRY', 'GBR'),
    ('CONTRIBUTOR (ABBREVIATED)', 'BODC'),
    ('CONTRIBUTOR (FULL)', 'British Oceanographic Data Centre'),
    ('CONTRIBUTOR WEBSITE', 'https://www.bodc.ac.uk'),
    ('ORIGINATOR TIDE GAUGE ID', 'ABE'),
    ('DATUM INFORMATION', 'Admiralty Chart Datum (ACD)'),
    ('LATITUDE', '57.14400'),
    ('LONGITUDE', '-2.08000'),
    ('COORDINATE SYSTEM', 'WGS84'),
    ('START DATE/TIME', '1930/01/01 00:00:00'),
    ('END DATE/TIME', '1930/01/01 04:00:00'),
    ('NUMBER OF YEARS', '1'),
    ('TIME ZONE HOURS', '0'),
    ('INSTRUMENT', 'Float'),
    ('PRECISION', '0.001'),
    ('NULL VALUE', '-99.9999'),
    ('GAUGE TYPE', 'Coastal'),
    ('OVERALL RECORD QUALITY', 'No obvious issues'),
]

FLAG_LEGEND = [
    '# Quality-control (QC) flags for column 4',
    '# 0 - no quality control',
    '# 1 - correct value',
    '# 2 - interpolated value',
    '# 3 - doubtful value',
    '# 4 - isolated spike or wrong value',
    '# 5 - missing value',
]

SAMPLE_ROWS = [
    '1930/01/01 00:00:00     1.2340    1    1',
    '1930/01/01 01:00:00     1.5000    3    1',
    '1930/01/01 02:00:00   -99.9999    5    0',
    '1930/01/01 03:00:00     1.8000    4    0',
    '1930/01/01 04:00:00     2.0000    2    1',
]

SAMPLE_CATALOG = pd.DataFrame({
    'FILE NAME': [
        'aberdeen-abe-gbr-bodc',
        'aberdeen_harbour-abh-gbr-cmems',
        'lerwick-ler-gbr-bodc',
        'brest-822a-fra-uhslc',
        'tokyo-tky-jpn-jma',
    ],
    'SITE NAME': ['Aberdeen', 'Aberdeen Harbour', 'Lerwick', 'Brest', 'Tokyo'],
    'SITE CODE': ['abe', 'abh', 'ler', '822a', 'tky'],
    'COUNTRY': ['GBR', 'GBR', 'GBR', 'FRA', 'JPN'],
    'CONTRIBUTOR (ABBREVIATED)': ['BODC', 'CMEMS', 'BODC', 'UHSLC', 'JMA'],
    'LATITUDE': [57.144, 57.143, 60.154, 48.383, 35.650],
    'LONGITUDE': [-2.080, -2.078, -1.140, -4.495, 139.767],
})


def build_header_lines(overrides=None, remove=(), legend=True, length=HEADER_LENGTH):
    """Build a GESLA-3 header block padded to ``length`` lines."""
    overrides = overrides or {}
    lines = [
        f"# {key:<27}{overrides.get(key, value)}"
        for key, value in HEADER_FIELDS
        if key not in remove
    ]
    tail = FLAG_LEGEND if legend else []
    filler = ['#'] * (length - len(lines) - len(tail))
    return lines + filler + tail


@pytest.fixture
def make_header():
    """Factory for header line blocks."""
    return build_header_lines


@pytest.fixture
def header_lines():
    return build_header_lines()


@pytest.fixture
def data_dir(tmp_path):
    directory = tmp_path / 'gesla3'
    directory.mkdir()
    return directory


@pytest.fixture
def write_station(data_dir):
    """Factory writing a station file into ``data_dir``."""
    def _write(filename, rows=None, header=None):
        header = build_header_lines() if header is None else header
        rows = SAMPLE_ROWS if rows is None else rows
        path = data_dir / filename
        path.write_text('\n'.join(list(header) + list(rows)) + '\n')
        return path
    return _write


@pytest.fixture
def catalog():
    return MetadataCatalog(SAMPLE_CATALOG.copy())


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / 'GESLA3_ALL.csv'
    SAMPLE_CATALOG.to_csv(path, index=False)
    return path


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Drop cached catalogs and the shared worker pool between tests."""
    clear_catalog_cache()
    yield
    clear_catalog_cache()
    shutdown_worker_pool()


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() so later tests keep pytest's log capture."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
