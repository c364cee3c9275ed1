"""Scored spectra collection with a precursor mass index.

The library search does not look at peaks. Each spectrum is reduced to a
scorer object (peak matching lives in the scorer) keyed by spectrum index
and precursor charge. This module defines the scorer interface and the
collection that the candidate matcher queries by peptide mass.

Design principles:
1. Mass-sorted index for binary search (half-open range queries)
2. Read-only after construction (thread-safe)
3. One index entry per admissible C13 isotope error
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numba
import numpy as np

from ..constants import H2O_MASS, ISOTOPE_MASS_DIFFERENCE
from ..tolerance import Tolerance, resolve_tolerance

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class SpectrumKey:
    """Identifies one (spectrum index, charge) pair.

    A key may stand for several merged acquisitions sharing one precursor
    (e.g. CID and ETD scans of the same ion). Their scan indices are kept in
    ``spec_index_list``, which does not take part in equality or hashing.
    """

    spec_index: int
    charge: int
    spec_index_list: Tuple[int, ...] = field(default=(), compare=False, hash=False)


@runtime_checkable
class SpectrumScorer(Protocol):
    """Interface of a preprocessed spectrum.

    ``score`` and ``node_scores`` must agree: the score of a peptide equals
    the sum of ``node_scores(nominal_prm[-1])`` over its interior nominal
    prefix masses ``nominal_prm[from_index:to_index - 1]``, plus any
    modification-dependent term the scorer chooses to add.
    """

    precursor_mz: float
    precursor_mass: float  # neutral mass, including water
    scan_numbers: Sequence[int]
    activation_methods: Sequence[str]

    def score(
        self,
        prm: np.ndarray,
        nominal_prm: np.ndarray,
        from_index: int,
        to_index: int,
        num_mods: int,
    ) -> int:
        ...

    def node_scores(self, nominal_peptide_mass: int) -> np.ndarray:
        ...


# =============================================================================
# Numba-Accelerated Binary Search
# =============================================================================

@numba.jit(nopython=True, cache=True)
def search_mass_range_numba(
    masses: np.ndarray,
    lower: float,
    upper: float,
) -> Tuple[int, int]:
    """Binary search for a half-open mass range (Numba-compiled).

    Parameters
    ----------
    masses : np.ndarray (float64)
        Sorted masses
    lower : float
        Inclusive lower bound
    upper : float
        Exclusive upper bound

    Returns
    -------
    start_idx : int
        First index with ``masses[i] >= lower``
    end_idx : int
        First index with ``masses[i] >= upper``

    Examples
    --------
    >>> masses = np.array([100.0, 200.0, 300.0])
    >>> search_mass_range_numba(masses, 100.0, 300.0)
    (0, 2)
    """
    n = len(masses)

    # first mass >= lower
    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        if masses[mid] < lower:
            left = mid + 1
        else:
            right = mid
    start_idx = left

    # first mass >= upper
    left, right = start_idx, n
    while left < right:
        mid = (left + right) // 2
        if masses[mid] < upper:
            left = mid + 1
        else:
            right = mid
    end_idx = left

    return (start_idx, end_idx)


# =============================================================================
# Scored Spectra Map
# =============================================================================

class ScoredSpectraMap:
    """Scorers of all spectra of a run, indexed by peptide mass.

    Attributes
    ----------
    spec_keys : List[SpectrumKey]
        All keys, sorted by spectrum index then charge. Probability
        computation is partitioned over ranges of this list.
    left_tolerance, right_tolerance : Tolerance
        Precursor tolerances
    num_allowed_c13 : int
        C13 isotope errors allowed for tight tolerances
    index_masses : np.ndarray (float64)
        Sorted peptide masses (precursor mass minus water, isotope-shifted)

    Examples
    --------
    >>> spectra = ScoredSpectraMap(
    ...     {SpectrumKey(0, 2): scorer},
    ...     left_tolerance=Tolerance(10, is_ppm=True),
    ...     right_tolerance=Tolerance(10, is_ppm=True),
    ... )
    >>> spectra.get_matching_keys(999.99, 1000.01)
    """

    def __init__(
        self,
        scorers: Dict[SpectrumKey, SpectrumScorer],
        left_tolerance: Tolerance,
        right_tolerance: Tolerance,
        num_allowed_c13: int = 0,
    ):
        self.left_tolerance = left_tolerance
        self.right_tolerance = right_tolerance
        self.num_allowed_c13 = num_allowed_c13

        self._scorers = dict(scorers)
        self.spec_keys = sorted(self._scorers)
        self._keys_by_index = {(key.spec_index, key.charge): key for key in self.spec_keys}

        masses = []
        keys = []
        for key in self.spec_keys:
            peptide_mass = self._scorers[key].precursor_mass - H2O_MASS
            window = resolve_tolerance(
                peptide_mass, left_tolerance, right_tolerance, num_allowed_c13
            )
            for num_isotopes in range(window.num_c13 + 1):
                masses.append(peptide_mass - ISOTOPE_MASS_DIFFERENCE * num_isotopes)
                keys.append(key)

        order = np.argsort(np.asarray(masses, dtype=np.float64), kind='stable')
        self.index_masses = np.asarray(masses, dtype=np.float64)[order]
        self._index_keys = [keys[i] for i in order]

        logger.info(
            f"✓ Indexed {len(self.spec_keys):,} spectra "
            f"({len(self._index_keys):,} mass entries)"
        )

    @classmethod
    def from_config(
        cls,
        scorers: Dict[SpectrumKey, SpectrumScorer],
        config,
    ) -> 'ScoredSpectraMap':
        """Build from a ``SearchConfig``."""
        return cls(
            scorers,
            left_tolerance=config.left_tolerance,
            right_tolerance=config.right_tolerance,
            num_allowed_c13=config.num_allowed_c13,
        )

    def get_matching_keys(self, lower: float, upper: float) -> List[SpectrumKey]:
        """Keys whose indexed peptide mass lies in ``[lower, upper)``.

        A key appears once per matching isotope entry.
        """
        start, end = search_mass_range_numba(self.index_masses, lower, upper)
        return self._index_keys[start:end]

    def get_scorer(self, key: SpectrumKey) -> SpectrumScorer:
        return self._scorers[key]

    def get_spec_key(self, spec_index: int, charge: int) -> Optional[SpectrumKey]:
        return self._keys_by_index.get((spec_index, charge))

    def get_spec_index_list(self, spec_index: int, charge: int) -> List[int]:
        """Scan indices merged into a spectrum, ``[spec_index]`` if none recorded."""
        key = self.get_spec_key(spec_index, charge)
        if key is None or not key.spec_index_list:
            return [spec_index]
        return list(key.spec_index_list)

    def iter_keys(self, from_index: int = 0, to_index: Optional[int] = None) -> Iterable[SpectrumKey]:
        return iter(self.spec_keys[from_index:to_index])

    def __contains__(self, key: SpectrumKey) -> bool:
        return key in self._scorers

    def __len__(self) -> int:
        return len(self.spec_keys)

    def __repr__(self) -> str:
        return (
            f"ScoredSpectraMap(n_spectra={len(self.spec_keys):,}, "
            f"tolerance=[{self.left_tolerance}, {self.right_tolerance}], "
            f"num_allowed_c13={self.num_allowed_c13})"
        )
