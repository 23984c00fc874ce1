"""
Renaming loaded stations after catalog fields.

Station keys default to the normalised file name (``aberdeen_abe_gbr_bodc``).
For reports it is often nicer to key stations by site name, site code,
country or contributor instead. The fields to use can be given directly or
picked through a chooser callback.
"""

import dataclasses
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .catalog import CONTRIBUTOR, COUNTRY, FILENAME, SITECODE, SITENAME, MetadataCatalog
from .core.records import StationRecord
from .exceptions import DuplicateStationError
from .loader import ResultSet

logger = logging.getLogger(__name__)

# Canonical order of name parts
NAME_FIELDS = {
    'site': SITENAME,
    'country': COUNTRY,
    'contributor': CONTRIBUTOR,
    'code': SITECODE,
}

FieldChooser = Callable[[List[str]], Iterable[str]]


def _strip_separators(name: str) -> str:
    return name.replace('_', '').replace('-', '')


def _clean_part(value: str) -> str:
    return re.sub(r'[\s\-]+', '_', str(value).strip())


def _validate_fields(fields: Iterable[str]) -> List[str]:
    fields = [field.strip().lower() for field in fields]
    unknown = [field for field in fields if field not in NAME_FIELDS]
    if unknown:
        raise ValueError(f"Unknown name fields {unknown}; choose from {list(NAME_FIELDS)}")
    if not fields:
        raise ValueError("At least one name field is required")
    return [field for field in NAME_FIELDS if field in fields]


def _catalog_row(catalog: MetadataCatalog, by_stripped: Dict[str, int], key: str, record: StationRecord):
    try:
        return catalog.lookup(record.filename)
    except KeyError:
        position = by_stripped.get(_strip_separators(key))
        if position is None:
            return None
        return catalog.frame.iloc[position]


def rename_stations(
    results: ResultSet,
    catalog: MetadataCatalog,
    fields: Optional[Sequence[str]] = None,
    field_chooser: Optional[FieldChooser] = None
) -> ResultSet:
    """Re-key a ResultSet by catalog fields.

    Args:
        results: Loaded stations
        catalog: Metadata catalog to take names from
        fields: Any of 'site', 'country', 'contributor', 'code'. Parts are
            always joined in that order with '_'.
        field_chooser: Called with the available field names when ``fields``
            is not given

    Returns:
        New ResultSet with renamed keys. Stations missing from the catalog
        keep their key.

    Raises:
        ValueError: If no fields or unknown fields are selected
        DuplicateStationError: If two stations end up with the same name
    """
    if fields is None:
        if field_chooser is None:
            raise ValueError("Either fields or field_chooser is required")
        fields = list(field_chooser(list(NAME_FIELDS)))
    selected = _validate_fields(fields)
    columns = [NAME_FIELDS[field] for field in selected]
    logger.info(f"Renaming {len(results)} stations by {selected}")

    by_stripped = {
        _strip_separators(filename): position
        for position, filename in enumerate(catalog.column(FILENAME))
    }

    renamed: Dict[str, StationRecord] = {}
    sources: Dict[str, str] = {}
    for key, record in results.items():
        row = _catalog_row(catalog, by_stripped, key, record)
        if row is None:
            logger.warning(f"Station {key} not found in catalog, keeping its name")
            new_key = key
        else:
            new_key = '_'.join(_clean_part(row[column]) for column in columns)

        if new_key in renamed:
            logger.error(f"Renaming maps {sources[new_key]} and {key} to {new_key}")
            raise DuplicateStationError(new_key, sources[new_key], key)

        renamed[new_key] = dataclasses.replace(record, station_id=new_key)
        sources[new_key] = key

    return ResultSet(renamed, results.failures)
