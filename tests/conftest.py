"""Pytest configuration for alphalibsearch tests.

Spectra are represented by ``ToyScorer`` objects: the score of a peptide is
the number of its interior nominal prefix masses that appear in the
scorer's node table. ``score`` and ``node_scores`` are consistent, so
spectral probabilities computed from the score graph apply to the scores
the matcher reports.
"""

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pytest

from alphalibsearch.config import SearchConfig
from alphalibsearch.constants import H2O_MASS, PROTON_MASS
from alphalibsearch.modifications import ModificationTable, build_modified_peptide
from alphalibsearch.search.spectra import ScoredSpectraMap, SpectrumKey
from alphalibsearch.tolerance import Tolerance


@dataclass
class ToyScorer:
    """Minimal ``SpectrumScorer`` for tests."""

    precursor_mass: float
    charge: int
    node_table: Dict[int, int] = field(default_factory=dict)
    scan_numbers: List[int] = field(default_factory=lambda: [1])
    activation_methods: List[str] = field(default_factory=lambda: ["HCD"])

    @property
    def precursor_mz(self) -> float:
        return (self.precursor_mass + self.charge * PROTON_MASS) / self.charge

    def score(self, prm, nominal_prm, from_index, to_index, num_mods) -> int:
        return int(sum(self.node_table.get(int(m), 0) for m in nominal_prm[from_index:to_index - 1]))

    def node_scores(self, nominal_peptide_mass: int) -> np.ndarray:
        scores = np.zeros(nominal_peptide_mass + 1, dtype=np.int64)
        for mass, score in self.node_table.items():
            if 0 <= mass <= nominal_peptide_mass:
                scores[mass] = score
        return scores

    @classmethod
    def for_peptide(cls, sequence: str, charge: int = 2, mass_shift: float = 0.0, **kwargs) -> 'ToyScorer':
        """Scorer whose spectrum explains every prefix of ``sequence``."""
        peptide = build_modified_peptide(sequence, [], ModificationTable.default())
        node_table = {int(m): 1 for m in peptide.nominal_prm[1:-1]}
        return cls(
            precursor_mass=peptide.mass + H2O_MASS + mass_shift,
            charge=charge,
            node_table=node_table,
            **kwargs,
        )


@pytest.fixture
def toy_scorer_cls():
    return ToyScorer


@pytest.fixture
def config():
    """Default search settings with 20 ppm tolerances and K=10."""
    return SearchConfig()


@pytest.fixture
def da_config():
    """0.5 Da tolerances (no C13 correction)."""
    return SearchConfig(
        left_tolerance=Tolerance(0.5),
        right_tolerance=Tolerance(0.5),
    )


@pytest.fixture
def acdefghik_spectra(config):
    """One charge-2 spectrum of ACDEFGHIK."""
    scorers = {SpectrumKey(0, 2): ToyScorer.for_peptide("ACDEFGHIK", charge=2)}
    return ScoredSpectraMap.from_config(scorers, config)


@pytest.fixture
def library_lines():
    """Small library in the pepidx layout."""
    return [
        "# Library test file\n",
        "# Total number of distinct ions in library 4\n",
        "# ===\n",
        "ACDEFGHIK\t2|0\tprot1\n",
        "ACDEFGHIK\t3|0\tprot1\n",
        "PEPTIDEK\t2|1/3,T,Phospho\tprot2\n",
        "LMNPQRK\t2|1/1,M,Oxidation\tprot3\n",
    ]


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
