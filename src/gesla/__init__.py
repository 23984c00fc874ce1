"""GESLA-3 tide gauge data loading package."""

__version__ = "0.2.0"

from .catalog import MetadataCatalog, load_catalog
from .core import ContributorFlag, FlagPolicy, StationHeader, StationRecord
from .exceptions import (
    AmbiguousSelectionError,
    DuplicateStationError,
    GeslaError,
    NotFoundError,
    ParseError,
    StationReadError,
)
from .loader import ResultSet, StationLoader
from .resolver import Candidate, SiteResolver
from .api import (
    change_field_names,
    load_bbox,
    load_country,
    load_file,
    load_nearest,
    load_site,
    site_to_file,
)

__all__ = [
    'MetadataCatalog',
    'load_catalog',
    'ContributorFlag',
    'FlagPolicy',
    'StationHeader',
    'StationRecord',
    'AmbiguousSelectionError',
    'DuplicateStationError',
    'GeslaError',
    'NotFoundError',
    'ParseError',
    'StationReadError',
    'ResultSet',
    'StationLoader',
    'Candidate',
    'SiteResolver',
    'change_field_names',
    'load_bbox',
    'load_country',
    'load_file',
    'load_nearest',
    'load_site',
    'site_to_file',
]
