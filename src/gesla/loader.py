"""
Station loading orchestration.

Runs the per-file pipeline (header extraction, data parsing, null-value and
flag masking) for a list of GESLA-3 files and collects the records into a
ResultSet keyed by station id.

Files are independent, so the same pipeline can run sequentially or on a
``concurrent.futures`` executor. A process-wide thread pool is available via
``get_worker_pool()``; callers who want full control pass their own
executor (for example a ``ProcessPoolExecutor``).
"""

import dataclasses
import logging
import os
from collections.abc import Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Iterator, List, Optional, Union

import numpy as np
import pandas as pd

from .core.flags import FlagPolicy, apply_flag_policy
from .core.header import HEADER_LENGTH, extract_header
from .core.records import StationRecord, parse_records, station_key
from .exceptions import DuplicateStationError, GeslaError, StationReadError

logger = logging.getLogger(__name__)

COLLISION_POLICIES = ('raise', 'warn', 'suffix')
ERROR_POLICIES = ('raise', 'collect')


class ResultSet(Mapping):
    """Loaded stations keyed by station id, in input file order.

    ``failures`` maps file names to the error that stopped them loading. It
    is only populated when the loader runs with ``on_error='collect'``.
    """

    def __init__(
        self,
        records: Optional[Dict[str, StationRecord]] = None,
        failures: Optional[Dict[str, GeslaError]] = None
    ):
        self._records: Dict[str, StationRecord] = dict(records or {})
        self._failures: Dict[str, GeslaError] = dict(failures or {})

    def __getitem__(self, key: str) -> StationRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResultSet):
            return NotImplemented
        return (
            list(self._records) == list(other._records)
            and all(self._records[key] == other._records[key] for key in self._records)
            and self._failure_signature() == other._failure_signature()
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"ResultSet(stations={list(self._records)}, failures={list(self._failures)})"

    def _failure_signature(self):
        return [(name, type(error), str(error)) for name, error in self._failures.items()]

    @property
    def failures(self) -> Dict[str, GeslaError]:
        return dict(self._failures)

    @property
    def ok(self) -> bool:
        return not self._failures

    def to_frame(self) -> pd.DataFrame:
        """All observations in long format with a ``station_id`` column."""
        frames = []
        for key, record in self._records.items():
            frame = record.to_frame().reset_index()
            frame.insert(0, 'station_id', key)
            frames.append(frame)
        if not frames:
            return pd.DataFrame(
                columns=['station_id', 'timestamp', 'sea_level', 'contributor_flag', 'gesla_flag']
            )
        return pd.concat(frames, ignore_index=True)

    def summary(self) -> pd.DataFrame:
        """One row per station with coordinates, coverage and valid counts."""
        rows = []
        for key, record in self._records.items():
            timestamps = record.timestamps[~np.isnat(record.timestamps)]
            rows.append({
                'station_id': key,
                'filename': record.filename,
                'latitude': record.latitude,
                'longitude': record.longitude,
                'observations': len(record),
                'valid': int(np.count_nonzero(~np.isnan(record.sea_level))),
                'start': pd.Timestamp(timestamps.min()) if len(timestamps) else pd.NaT,
                'end': pd.Timestamp(timestamps.max()) if len(timestamps) else pd.NaT,
                'datum': record.datum,
                'gauge': record.gauge_description
            })
        return pd.DataFrame(rows)


_pool: Optional[ThreadPoolExecutor] = None
_pool_size: Optional[int] = None
_pool_lock = Lock()


def get_worker_pool(max_workers: Optional[int] = None) -> ThreadPoolExecutor:
    """Return the shared worker pool, creating it on first use.

    An existing pool is reused as is. A request for a different size does
    not resize it; shut it down first if a new size is needed.
    """
    global _pool, _pool_size
    with _pool_lock:
        if _pool is None:
            _pool_size = max_workers or min(32, (os.cpu_count() or 1) + 4)
            _pool = ThreadPoolExecutor(max_workers=_pool_size, thread_name_prefix='gesla')
            logger.debug(f"Created shared worker pool with {_pool_size} workers")
        elif max_workers is not None and max_workers != _pool_size:
            logger.debug(
                f"Reusing shared worker pool with {_pool_size} workers "
                f"(requested {max_workers})"
            )
        return _pool


def shutdown_worker_pool(wait: bool = True) -> None:
    """Shut down the shared worker pool, if one exists."""
    global _pool, _pool_size
    with _pool_lock:
        if _pool is not None:
            _pool.shutdown(wait=wait)
            logger.debug("Shut down shared worker pool")
        _pool = None
        _pool_size = None


def _read_lines(handle, count: int) -> List[str]:
    lines = []
    for _ in range(count):
        line = handle.readline()
        if not line:
            break
        lines.append(line)
    return lines


def read_station_file(
    path: Union[str, Path],
    policy: Optional[FlagPolicy] = None,
    header_length: int = HEADER_LENGTH,
    mask_null_values: bool = True,
    require_coordinates: bool = False,
    filename: Optional[str] = None
) -> StationRecord:
    """Read, parse and filter one GESLA-3 station file.

    Args:
        path: Full path to the station file
        policy: Flag removal policy; defaults to removing nothing
        header_length: Number of header lines before the data block
        mask_null_values: Replace the header's NULL VALUE with NaN
        require_coordinates: Fail if latitude/longitude are missing
        filename: File name used for the station key (defaults to the path's name)

    Returns:
        StationRecord

    Raises:
        StationReadError: If the file is missing or unreadable
        HeaderParseError: If coordinates are required but missing
        RecordParseError: If the data block cannot be parsed
    """
    path = Path(path)
    filename = filename or path.name
    policy = policy or FlagPolicy()

    logger.debug(f"Reading station file: {path}")
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as handle:
            header_lines = _read_lines(handle, header_length)
            table = parse_records(handle, source=filename)
    except OSError as e:
        logger.error(f"Error reading station file {path}: {e}")
        raise StationReadError(path, e.strerror or str(e))

    if len(header_lines) < header_length:
        logger.warning(f"{filename} has only {len(header_lines)} of {header_length} header lines")

    header = extract_header(header_lines)
    if require_coordinates:
        header.require_coordinates(filename)
    elif not header.has_coordinates:
        logger.warning(f"{filename} has no usable coordinates; spatial selection will skip it")

    sea_level = table.sea_level
    if mask_null_values and np.isfinite(header.null_value):
        sea_level = sea_level.copy()
        null_rows = np.isclose(sea_level, header.null_value, rtol=0.0, atol=1e-6)
        sea_level[null_rows] = np.nan
        logger.debug(f"Masked {int(null_rows.sum())} null values ({header.null_value}) in {filename}")

    sea_level = apply_flag_policy(sea_level, table.contributor_flag, table.gesla_flag, policy)

    return StationRecord(
        station_id=station_key(filename),
        filename=filename,
        timestamps=table.timestamps,
        sea_level=sea_level,
        contributor_flag=table.contributor_flag,
        gesla_flag=table.gesla_flag,
        latitude=header.latitude,
        longitude=header.longitude,
        datum=header.datum,
        gauge_description=header.gauge_description,
        contributor_flag_legend=header.contributor_flag_legend
    )


class StationLoader:
    """Loads GESLA-3 station files into a ResultSet."""

    def __init__(
        self,
        data_dir: Union[str, Path],
        policy: Optional[FlagPolicy] = None,
        header_length: int = HEADER_LENGTH,
        collision: str = 'raise',
        on_error: str = 'raise',
        executor: Optional[Executor] = None,
        max_workers: Optional[int] = None,
        mask_null_values: bool = True,
        require_coordinates: bool = False
    ):
        """Initialize the loader.

        Args:
            data_dir: Directory holding the GESLA-3 station files
            policy: Flag removal policy; defaults to removing nothing
            header_length: Number of header lines in each file
            collision: What to do when two files map to the same station key:
                'raise', 'warn' (overwrite) or 'suffix' (store as key_2, ...)
            on_error: 'raise' to abort on the first failing file, 'collect' to
                record failures in ResultSet.failures and carry on
            executor: Executor to run files on; overrides max_workers
            max_workers: Run on the shared worker pool (see get_worker_pool)
            mask_null_values: Replace each file's NULL VALUE with NaN
            require_coordinates: Treat missing latitude/longitude as an error

        Raises:
            ValueError: If collision or on_error is not a known policy
        """
        if collision not in COLLISION_POLICIES:
            raise ValueError(f"Unknown collision policy '{collision}', expected one of {COLLISION_POLICIES}")
        if on_error not in ERROR_POLICIES:
            raise ValueError(f"Unknown error policy '{on_error}', expected one of {ERROR_POLICIES}")

        self.data_dir = Path(data_dir)
        self.policy = policy or FlagPolicy()
        self.header_length = header_length
        self.collision = collision
        self.on_error = on_error
        self.executor = executor
        self.max_workers = max_workers
        self.mask_null_values = mask_null_values
        self.require_coordinates = require_coordinates

    def path_for(self, filename: str) -> Path:
        return self.data_dir / filename

    def _read_kwargs(self, filename: str) -> dict:
        return {
            'path': self.path_for(filename),
            'policy': self.policy,
            'header_length': self.header_length,
            'mask_null_values': self.mask_null_values,
            'require_coordinates': self.require_coordinates,
            'filename': filename
        }

    def _check_collisions(self, filenames: List[str]) -> None:
        seen: Dict[str, str] = {}
        for filename in filenames:
            key = station_key(filename)
            if key in seen:
                logger.error(f"Station key {key} produced by {seen[key]} and {filename}")
                raise DuplicateStationError(key, seen[key], filename)
            seen[key] = filename

    def _store(self, records: Dict[str, StationRecord], owners: Dict[str, str], record: StationRecord) -> None:
        key = record.station_id
        if key in records:
            if self.collision == 'warn':
                logger.warning(f"Station key {key} from {record.filename} overwrites {owners[key]}")
            else:
                suffix = 2
                while f"{key}_{suffix}" in records:
                    suffix += 1
                new_key = f"{key}_{suffix}"
                logger.warning(f"Station key {key} already used by {owners[key]}; storing {record.filename} as {new_key}")
                record = dataclasses.replace(record, station_id=new_key)
                key = new_key
        records[key] = record
        owners[key] = record.filename

    def _resolve_executor(self) -> Optional[Executor]:
        if self.executor is not None:
            return self.executor
        if self.max_workers is not None:
            return get_worker_pool(self.max_workers)
        return None

    def load(self, filenames: Union[str, Iterable[str]]) -> ResultSet:
        """Load station files.

        Args:
            filenames: File names relative to the data directory

        Returns:
            ResultSet keyed by station id in input order

        Raises:
            DuplicateStationError: On a key collision with collision='raise'
            StationReadError: On a missing/unreadable file with on_error='raise'
            ParseError: On an unparsable file with on_error='raise'
        """
        if isinstance(filenames, str):
            filenames = [filenames]
        requested = [str(name).strip() for name in filenames]
        unique = list(dict.fromkeys(requested))
        if len(unique) < len(requested):
            logger.info(f"Ignoring {len(requested) - len(unique)} repeated file names")

        if self.collision == 'raise':
            self._check_collisions(unique)

        executor = self._resolve_executor()
        mode = 'sequentially' if executor is None else f"on {type(executor).__name__}"
        logger.info(f"Loading {len(unique)} station files from {self.data_dir} {mode} ({self.policy.describe()})")

        if executor is None:
            outcomes = (self._run_inline(filename) for filename in unique)
        else:
            futures = [executor.submit(read_station_file, **self._read_kwargs(filename)) for filename in unique]
            outcomes = self._collect(futures)

        records: Dict[str, StationRecord] = {}
        owners: Dict[str, str] = {}
        failures: Dict[str, GeslaError] = {}
        for filename, outcome in zip(unique, outcomes):
            if isinstance(outcome, GeslaError):
                logger.warning(f"Skipping {filename}: {outcome}")
                failures[filename] = outcome
            else:
                self._store(records, owners, outcome)

        logger.info(f"Loaded {len(records)} stations ({len(failures)} failures)")
        return ResultSet(records, failures)

    def _run_inline(self, filename: str):
        try:
            return read_station_file(**self._read_kwargs(filename))
        except GeslaError as e:
            if self.on_error == 'raise':
                raise
            return e

    def _collect(self, futures: List[Future]) -> Iterator:
        for index, future in enumerate(futures):
            try:
                yield future.result()
            except GeslaError as e:
                if self.on_error == 'raise':
                    for pending in futures[index + 1:]:
                        pending.cancel()
                    raise
                yield e
