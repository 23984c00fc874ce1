"""
Convenience functions for loading GESLA-3 data.

Each loader takes the data directory, the metadata catalog (a path or an
already loaded MetadataCatalog) and the flag removal options:

    gesla_removal       True or 'y' to remove values flagged by GESLA
    contributor_removal contributor flags to remove, e.g. [2, 4, 5]
                          0 - no quality control
                          1 - correct value
                          2 - interpolated value
                          3 - doubtful value
                          4 - isolated spike or wrong value
                          5 - missing value

and returns a ResultSet mapping station ids to StationRecords holding
timestamps, sea level (after removal), both flag columns, latitude,
longitude, datum, gauge description and the contributor flag legend.

Extra keyword arguments are passed to StationLoader (collision, on_error,
executor, max_workers, ...).

Example:
    >>> from gesla import api
    >>> data = api.load_country('GBR', 'data/gesla3', 'data/GESLA3_ALL.csv',
    ...                         gesla_removal=True, contributor_removal=[3, 4, 5])
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .catalog import MetadataCatalog, load_catalog
from .core.flags import FlagPolicy
from .loader import ResultSet, StationLoader
from .naming import FieldChooser, rename_stations
from .resolver import Chooser, SiteResolver

logger = logging.getLogger(__name__)

CatalogSource = Union[str, Path, MetadataCatalog]
FlagOption = Union[bool, str, None]


def _catalog(metadata: CatalogSource) -> MetadataCatalog:
    if isinstance(metadata, MetadataCatalog):
        return metadata
    return load_catalog(metadata)


def load_file(
    files: Union[str, Iterable[str]],
    path: Union[str, Path],
    gesla_removal: FlagOption = False,
    contributor_removal: Optional[Iterable[int]] = None,
    **loader_options
) -> ResultSet:
    """Load GESLA-3 files by file name.

    Args:
        files: One file name or several
        path: Directory holding the GESLA-3 data files
        gesla_removal: Remove values flagged by GESLA
        contributor_removal: Contributor flags to remove

    Returns:
        ResultSet keyed by station id
    """
    policy = FlagPolicy.from_options(gesla_removal, contributor_removal)
    loader = StationLoader(path, policy=policy, **loader_options)
    return loader.load(files)


def site_to_file(
    site_names: Union[str, Iterable[str]],
    metadata: CatalogSource,
    chooser: Optional[Chooser] = None
) -> List[str]:
    """Get the file names for one or more site names.

    Args:
        site_names: Site name substrings
        metadata: Path to the metadata CSV, or a loaded catalog
        chooser: Picks among several matching files

    Returns:
        Selected file names

    Raises:
        NotFoundError: If no site matches
        AmbiguousSelectionError: If several match and no chooser is given
    """
    return SiteResolver(_catalog(metadata), chooser=chooser).by_site_name(site_names)


def load_site(
    site_names: Union[str, Iterable[str]],
    path: Union[str, Path],
    metadata: CatalogSource,
    gesla_removal: FlagOption = False,
    contributor_removal: Optional[Iterable[int]] = None,
    chooser: Optional[Chooser] = None,
    **loader_options
) -> ResultSet:
    """Load the files for one or more site names."""
    files = site_to_file(site_names, metadata, chooser=chooser)
    return load_file(files, path, gesla_removal, contributor_removal, **loader_options)


def load_bbox(
    bounding_box: Sequence[float],
    path: Union[str, Path],
    metadata: CatalogSource,
    gesla_removal: FlagOption = False,
    contributor_removal: Optional[Iterable[int]] = None,
    **loader_options
) -> ResultSet:
    """Load every station inside ``[north, south, west, east]``."""
    files = SiteResolver(_catalog(metadata)).by_bbox(bounding_box)
    if not files:
        logger.warning(f"No stations found in bounding box {list(bounding_box)}")
    return load_file(files, path, gesla_removal, contributor_removal, **loader_options)


def load_nearest(
    coords: Tuple[float, float],
    n: int,
    path: Union[str, Path],
    metadata: CatalogSource,
    gesla_removal: FlagOption = False,
    contributor_removal: Optional[Iterable[int]] = None,
    **loader_options
) -> ResultSet:
    """Load the n stations nearest to ``(longitude, latitude)``.

    Distance is Euclidean in degrees. Stations tied at the n-th distance are
    all included.
    """
    files = SiteResolver(_catalog(metadata)).nearest(coords, n)
    return load_file(files, path, gesla_removal, contributor_removal, **loader_options)


def load_country(
    country: Union[str, Iterable[str]],
    path: Union[str, Path],
    metadata: CatalogSource,
    gesla_removal: FlagOption = False,
    contributor_removal: Optional[Iterable[int]] = None,
    **loader_options
) -> ResultSet:
    """Load every station for one or more GESLA country codes (e.g. 'GBR')."""
    files = SiteResolver(_catalog(metadata)).by_country(country)
    return load_file(files, path, gesla_removal, contributor_removal, **loader_options)


def change_field_names(
    data: ResultSet,
    metadata: CatalogSource,
    fields: Optional[Sequence[str]] = None,
    field_chooser: Optional[FieldChooser] = None
) -> ResultSet:
    """Re-key loaded stations by site name, country, contributor and/or code."""
    return rename_stations(data, _catalog(metadata), fields=fields, field_chooser=field_chooser)
