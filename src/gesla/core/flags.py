"""
Quality-control flag filtering.

GESLA-3 files carry two flag columns next to each sea level value:

Contributor flag (column 4), supplied by the data contributor:
    0 - no quality control
    1 - correct value
    2 - interpolated value
    3 - doubtful value
    4 - isolated spike or wrong value
    5 - missing value

GESLA flag (column 5), assigned by the dataset curators:
    0 - value flagged by the GESLA checks
    1 - value passed the GESLA checks

Filtering never deletes rows. Removed values are replaced with NaN and the
flag columns are left untouched, so the reason for every gap stays visible.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import FrozenSet, Iterable, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)

GESLA_FLAGGED = 0
GESLA_PASSED = 1


class ContributorFlag(IntEnum):
    """Contributor quality-control codes."""
    NO_QC = 0
    CORRECT = 1
    INTERPOLATED = 2
    DOUBTFUL = 3
    SPIKE = 4
    MISSING = 5

    def describe(self) -> str:
        return _CONTRIBUTOR_FLAG_LABELS[self]


_CONTRIBUTOR_FLAG_LABELS = {
    ContributorFlag.NO_QC: 'no quality control',
    ContributorFlag.CORRECT: 'correct value',
    ContributorFlag.INTERPOLATED: 'interpolated value',
    ContributorFlag.DOUBTFUL: 'doubtful value',
    ContributorFlag.SPIKE: 'isolated spike or wrong value',
    ContributorFlag.MISSING: 'missing value',
}

VALID_CONTRIBUTOR_FLAGS = frozenset(int(flag) for flag in ContributorFlag)


def _parse_yes_no(value: Union[bool, str, None]) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        answer = value.strip().lower()
        if answer in ('y', 'yes', 'true'):
            return True
        if answer in ('n', 'no', 'false', ''):
            return False
        raise ValueError(f"Expected 'y' or 'n' for GESLA flag removal, got {value!r}")
    return bool(value)


@dataclass(frozen=True)
class FlagPolicy:
    """Which flagged values to remove from the sea level column.

    Attributes:
        gesla_removal: Remove every value the GESLA checks flagged (flag 0)
        contributor_removal: Contributor flag codes whose values are removed
    """
    gesla_removal: bool = False
    contributor_removal: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self):
        codes = frozenset(int(code) for code in self.contributor_removal)
        invalid = codes - VALID_CONTRIBUTOR_FLAGS
        if invalid:
            raise ValueError(
                f"Invalid contributor flag codes {sorted(invalid)}; "
                f"valid codes are {sorted(VALID_CONTRIBUTOR_FLAGS)}"
            )
        object.__setattr__(self, 'contributor_removal', codes)

    @classmethod
    def from_options(
        cls,
        gesla_removal: Union[bool, str, None] = False,
        contributor_removal: Optional[Iterable[int]] = None
    ) -> 'FlagPolicy':
        """Build a policy from loosely typed options.

        Args:
            gesla_removal: True/False, or ``'y'``/``'n'``
            contributor_removal: Contributor codes to remove, e.g. ``[2, 4, 5]``
                or a single code

        Returns:
            FlagPolicy
        """
        if contributor_removal is None:
            codes = frozenset()
        elif isinstance(contributor_removal, (int, np.integer)):
            codes = frozenset([int(contributor_removal)])
        else:
            codes = frozenset(int(code) for code in contributor_removal)
        return cls(gesla_removal=_parse_yes_no(gesla_removal), contributor_removal=codes)

    @property
    def is_noop(self) -> bool:
        return not self.gesla_removal and not self.contributor_removal

    def describe(self) -> str:
        parts = []
        if self.gesla_removal:
            parts.append('GESLA-flagged values')
        for code in sorted(self.contributor_removal):
            parts.append(ContributorFlag(code).describe())
        return 'removing ' + ', '.join(parts) if parts else 'no removal'


def removal_mask(
    contributor_flag: np.ndarray,
    gesla_flag: np.ndarray,
    policy: FlagPolicy
) -> np.ndarray:
    """Boolean mask of rows the policy removes."""
    contributor_flag = np.asarray(contributor_flag)
    gesla_flag = np.asarray(gesla_flag)

    mask = np.zeros(len(contributor_flag), dtype=bool)
    if policy.gesla_removal:
        mask |= gesla_flag == GESLA_FLAGGED
    if policy.contributor_removal:
        mask |= np.isin(contributor_flag, list(policy.contributor_removal))
    return mask


def apply_flag_policy(
    sea_level: np.ndarray,
    contributor_flag: np.ndarray,
    gesla_flag: np.ndarray,
    policy: FlagPolicy
) -> np.ndarray:
    """Mask flagged sea level values with NaN.

    Args:
        sea_level: Sea level values
        contributor_flag: Contributor QC flags, aligned with ``sea_level``
        gesla_flag: GESLA QC flags, aligned with ``sea_level``
        policy: Which flags to remove

    Returns:
        New float array of the same length with removed values set to NaN.
        The input arrays are not modified.

    Raises:
        ValueError: If the arrays are not the same length
    """
    filtered = np.array(sea_level, dtype=float, copy=True)
    if not (len(filtered) == len(contributor_flag) == len(gesla_flag)):
        raise ValueError(
            f"Flag columns not aligned with sea level: {len(filtered)}, "
            f"{len(contributor_flag)}, {len(gesla_flag)}"
        )

    mask = removal_mask(contributor_flag, gesla_flag, policy)
    filtered[mask] = np.nan
    logger.debug(f"Flag filter ({policy.describe()}) removed {int(mask.sum())} of {len(filtered)} values")
    return filtered
