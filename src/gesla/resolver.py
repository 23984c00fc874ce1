"""
Site selection against the GESLA-3 metadata catalog.

Translates human selection criteria into the file names of station files:

- site name substrings (with interactive disambiguation)
- a latitude/longitude bounding box
- the n nearest stations to a point
- country codes

Nearest-station search uses plain Euclidean distance in (longitude,
latitude) degrees. It is not a geodesic distance.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist

from .catalog import COUNTRY, FILENAME, LATITUDE, LONGITUDE, SITENAME, MetadataCatalog
from .exceptions import AmbiguousSelectionError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A catalog row offered for disambiguation."""
    filename: str
    site_name: str
    country: str

    def label(self) -> str:
        return f"-Site: {self.site_name} -Country: {self.country} -File: {self.filename}"


# Receives the candidate list and returns the chosen file names.
Chooser = Callable[[List[Candidate]], Iterable[str]]


def select_all(candidates: List[Candidate]) -> List[str]:
    """Chooser that keeps every candidate."""
    return [candidate.filename for candidate in candidates]


def preselected(filenames: Iterable[str]) -> Chooser:
    """Chooser that keeps the candidates among a fixed set of file names."""
    wanted = set(filenames)

    def choose(candidates: List[Candidate]) -> List[str]:
        return [c.filename for c in candidates if c.filename in wanted]

    return choose


def prompt_chooser(
    candidates: List[Candidate],
    input_func: Callable[[str], str] = input,
    output_func: Callable[[str], None] = print
) -> List[str]:
    """Ask on the terminal which candidates to keep.

    The user answers with space or comma separated numbers, ``all``, or an
    empty line for none. End of input also selects none.
    """
    output_func("Multiple files found: select which file names you wish to output")
    for number, candidate in enumerate(candidates, start=1):
        output_func(f"  [{number}] {candidate.label()}")

    while True:
        try:
            answer = input_func("Selection (numbers, 'all' or blank for none): ").strip()
        except EOFError:
            logger.warning("No selection read from input; selecting no files")
            return []
        if not answer:
            return []
        if answer.lower() == 'all':
            return select_all(candidates)
        try:
            picks = [int(token) for token in answer.replace(',', ' ').split()]
        except ValueError:
            output_func(f"Invalid selection: {answer}")
            continue
        if all(1 <= pick <= len(candidates) for pick in picks):
            return [candidates[pick - 1].filename for pick in dict.fromkeys(picks)]
        output_func(f"Selection out of range 1-{len(candidates)}: {answer}")


def _as_list(values: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(values, str):
        return [values.strip()]
    return [str(value).strip() for value in values]


def _unique(filenames: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(filenames))


def _contains_any(column: pd.Series, needles: Sequence[str]) -> pd.Series:
    mask = pd.Series(False, index=column.index)
    for needle in needles:
        mask |= column.str.contains(needle, regex=False)
    return mask


class SiteResolver:
    """Resolves selection criteria into station file names."""

    def __init__(self, catalog: MetadataCatalog, chooser: Optional[Chooser] = None):
        """Initialize the resolver.

        Args:
            catalog: Loaded metadata catalog
            chooser: Called with the candidates when a site name search
                matches several files. Without one, ambiguous searches raise
                AmbiguousSelectionError.
        """
        self.catalog = catalog
        self.chooser = chooser

    def by_site_name(self, site_names: Union[str, Iterable[str]]) -> List[str]:
        """Find files whose site name contains any of the given substrings.

        Args:
            site_names: One or more case-sensitive substrings

        Returns:
            Selected file names in catalog order

        Raises:
            NotFoundError: If no site matches
            AmbiguousSelectionError: If several sites match and there is no chooser
        """
        names = _as_list(site_names)
        rows = self.catalog.rows(_contains_any(self.catalog.column(SITENAME), names))
        filenames = _unique(rows[FILENAME])

        if not filenames:
            logger.error(f"No file name found for site name: {names}")
            raise NotFoundError('site name', ', '.join(names))

        if len(filenames) == 1:
            logger.info(f"Site name {names} resolved to {filenames[0]}")
            return filenames

        candidates = [
            Candidate(filename=row[FILENAME], site_name=row[SITENAME], country=row[COUNTRY])
            for _, row in rows.drop_duplicates(subset=FILENAME).iterrows()
        ]
        logger.info(f"Site name {names} matched {len(candidates)} files")
        return self._disambiguate(candidates)

    def _disambiguate(self, candidates: List[Candidate]) -> List[str]:
        if self.chooser is None:
            raise AmbiguousSelectionError(candidates)

        offered = {candidate.filename for candidate in candidates}
        chosen = _unique(self.chooser(candidates))
        unknown = [filename for filename in chosen if filename not in offered]
        if unknown:
            raise ValueError(f"Chooser returned files that were not offered: {unknown}")

        # keep catalog order regardless of the order the chooser answered in
        selected = [c.filename for c in candidates if c.filename in set(chosen)]
        logger.info(f"Selected {len(selected)} of {len(candidates)} candidate files")
        return selected

    def by_bbox(self, bounding_box: Sequence[float]) -> List[str]:
        """Find files inside a bounding box.

        Args:
            bounding_box: ``[north, south, west, east]`` in degrees

        Returns:
            File names in catalog order (possibly empty, e.g. for a box whose
            north is below its south)

        Raises:
            ValueError: If the box does not have four values
        """
        if len(bounding_box) != 4:
            raise ValueError(f"Bounding box must be [north, south, west, east], got {bounding_box}")
        north, south, west, east = (float(value) for value in bounding_box)
        if north < south:
            logger.warning(f"Northern extent {north} is south of southern extent {south}; box is empty")
            return []

        latitude = self.catalog.column(LATITUDE)
        longitude = self.catalog.column(LONGITUDE)
        mask = latitude.between(south, north) & longitude.between(west, east)

        filenames = _unique(self.catalog.rows(mask)[FILENAME])
        logger.info(f"Found {len(filenames)} stations in bounding box {[north, south, west, east]}")
        return filenames

    def nearest(self, coords: Tuple[float, float], n: int = 1) -> List[str]:
        """Find the n stations nearest to a point, including ties.

        Args:
            coords: Query point as ``(longitude, latitude)``
            n: Number of stations; more are returned if several stations tie
                at the n-th distance

        Returns:
            File names ordered by distance, then catalog order

        Raises:
            ValueError: If n is less than 1
        """
        if n < 1:
            raise ValueError(f"Number of nearest stations must be at least 1, got {n}")

        frame = self.catalog.frame
        frame = frame[frame[LONGITUDE].notna() & frame[LATITUDE].notna()]
        if frame.empty:
            logger.warning("No catalog stations have coordinates")
            return []

        points = frame[[LONGITUDE, LATITUDE]].to_numpy(dtype=float)
        query = np.asarray([coords], dtype=float)
        distances = cdist(points, query).ravel()

        k = min(n, len(distances))
        cutoff = np.partition(distances, k - 1)[k - 1]
        selected = np.flatnonzero(distances <= cutoff)
        order = selected[np.argsort(distances[selected], kind='stable')]

        filenames = _unique(frame[FILENAME].iloc[order])
        logger.info(
            f"Found {len(filenames)} stations nearest to {tuple(coords)} "
            f"(requested {n}, cutoff distance {cutoff:.4f})"
        )
        return filenames

    def by_country(self, countries: Union[str, Iterable[str]]) -> List[str]:
        """Find files whose country field contains any of the given codes.

        Args:
            countries: GESLA country codes, e.g. ``'GBR'`` or ``['GBR', 'JPN']``

        Returns:
            File names in catalog order

        Raises:
            NotFoundError: If no station matches
        """
        codes = _as_list(countries)
        filenames = _unique(
            self.catalog.rows(_contains_any(self.catalog.column(COUNTRY), codes))[FILENAME]
        )
        if not filenames:
            logger.error(f"No file name found for country: {codes}")
            raise NotFoundError('country', ', '.join(codes))
        logger.info(f"Found {len(filenames)} stations for countries {codes}")
        return filenames
