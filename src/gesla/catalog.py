"""
GESLA-3 metadata catalog.

The GESLA-3 release ships a metadata table (``GESLA3_ALL.csv``) with one row
per station file. Column headers in that file contain spaces and brackets
(``FILE NAME``, ``CONTRIBUTOR (ABBREVIATED)``), so they are normalised on
load to ``FILENAME``, ``CONTRIBUTOR_ABBREVIATED`` and so on.

Catalogs read from disk are cached per process. The cache key includes the
file's modification time and size, so an edited file is read again.
"""

import logging
from pathlib import Path
from threading import Lock
from typing import Dict, List, Tuple, Union

import pandas as pd

from .exceptions import CatalogError

logger = logging.getLogger(__name__)

FILENAME = 'FILENAME'
SITENAME = 'SITENAME'
COUNTRY = 'COUNTRY'
LATITUDE = 'LATITUDE'
LONGITUDE = 'LONGITUDE'
CONTRIBUTOR = 'CONTRIBUTOR_ABBREVIATED'
SITECODE = 'SITECODE'

REQUIRED_COLUMNS = [FILENAME, SITENAME, COUNTRY, LATITUDE, LONGITUDE, CONTRIBUTOR, SITECODE]
TEXT_COLUMNS = [FILENAME, SITENAME, COUNTRY, CONTRIBUTOR, SITECODE]


def normalize_column_name(name: str) -> str:
    """Normalise a metadata column header.

    ``'FILE NAME'`` -> ``'FILENAME'``,
    ``'CONTRIBUTOR (ABBREVIATED)'`` -> ``'CONTRIBUTOR_ABBREVIATED'``
    """
    name = str(name).strip().upper()
    name = name.replace(' (', '_').replace('(', '_').replace(')', '')
    return name.replace(' ', '')


class MetadataCatalog:
    """Read-only view of the GESLA-3 station metadata table."""

    def __init__(self, frame: pd.DataFrame, source: str = '<memory>'):
        """Initialize the catalog.

        Args:
            frame: Metadata table, one row per station file
            source: Where the table came from, for messages

        Raises:
            CatalogError: If required columns are missing
        """
        frame = frame.rename(columns=normalize_column_name)
        missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
        if missing:
            logger.error(f"Metadata catalog {source} is missing columns: {missing}")
            raise CatalogError(f"Metadata catalog {source} is missing columns: {missing}")

        frame = frame.reset_index(drop=True).copy()
        for column in TEXT_COLUMNS:
            frame[column] = frame[column].fillna('').astype(str).str.strip()
        for column in (LATITUDE, LONGITUDE):
            frame[column] = pd.to_numeric(frame[column], errors='coerce')

        self._frame = frame
        self.source = source
        logger.debug(f"Catalog {source} holds {len(frame)} stations")

    def __len__(self) -> int:
        return len(self._frame)

    def __contains__(self, filename: str) -> bool:
        return bool((self._frame[FILENAME] == filename).any())

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the underlying table."""
        return self._frame.copy()

    @property
    def filenames(self) -> List[str]:
        return self._frame[FILENAME].tolist()

    def rows(self, mask: pd.Series) -> pd.DataFrame:
        """Rows selected by a boolean mask aligned with the catalog."""
        return self._frame.loc[mask.to_numpy()]

    def lookup(self, filename: str) -> pd.Series:
        """Return the catalog row for a file name.

        Raises:
            KeyError: If the file is not in the catalog
        """
        matches = self._frame[self._frame[FILENAME] == filename]
        if matches.empty:
            raise KeyError(filename)
        return matches.iloc[0]

    def column(self, name: str) -> pd.Series:
        return self._frame[name]


_cache: Dict[Path, Tuple[Tuple[int, int], MetadataCatalog]] = {}
_cache_lock = Lock()


def read_catalog(path: Union[str, Path]) -> MetadataCatalog:
    """Read a metadata CSV from disk without caching.

    Raises:
        CatalogError: If the file cannot be read
    """
    path = Path(path)
    try:
        frame = pd.read_csv(path, skipinitialspace=True)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"Error loading metadata catalog {path}: {e}")
        raise CatalogError(f"Unable to read metadata catalog {path}: {e}")
    logger.info(f"Loaded metadata for {len(frame)} stations from {path}")
    return MetadataCatalog(frame, source=str(path))


def load_catalog(path: Union[str, Path]) -> MetadataCatalog:
    """Load a metadata CSV, reusing a cached copy if the file is unchanged.

    Args:
        path: Path to the metadata CSV (e.g. ``GESLA3_ALL.csv``)

    Returns:
        MetadataCatalog

    Raises:
        CatalogError: If the file is missing or unreadable
    """
    path = Path(path).resolve()
    try:
        stat = path.stat()
    except OSError as e:
        logger.error(f"Metadata catalog not found: {path}")
        raise CatalogError(f"Unable to read metadata catalog {path}: {e}")
    signature = (stat.st_mtime_ns, stat.st_size)

    with _cache_lock:
        cached = _cache.get(path)
        if cached and cached[0] == signature:
            logger.debug(f"Using cached metadata catalog {path}")
            return cached[1]

        catalog = read_catalog(path)
        _cache[path] = (signature, catalog)
        return catalog


def clear_catalog_cache() -> None:
    """Forget all cached catalogs."""
    with _cache_lock:
        _cache.clear()
