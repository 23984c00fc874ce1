"""
GESLA-3 file parsing core.

This module provides the per-file pipeline: header extraction, data block
parsing and quality-control flag filtering.
"""

from .header import HEADER_LENGTH, StationHeader, extract_header
from .records import ObservationTable, StationRecord, parse_records, station_key
from .flags import ContributorFlag, FlagPolicy, apply_flag_policy

__all__ = [
    'HEADER_LENGTH',
    'StationHeader',
    'extract_header',
    'ObservationTable',
    'StationRecord',
    'parse_records',
    'station_key',
    'ContributorFlag',
    'FlagPolicy',
    'apply_flag_policy'
]
