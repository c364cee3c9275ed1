"""Peptide-spectrum match containers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import numpy as np

if TYPE_CHECKING:
    from ..scoring.generating_function import ScoreDistribution

# Reported de novo score of matches without a spectral probability
UNSCORED_DE_NOVO_SCORE = int(np.iinfo(np.int32).min)

# Reported spectral probability of matches without a spectral probability
UNSCORED_SPEC_PROB = 1.0


@dataclass(frozen=True)
class SpectralSignificance:
    """Outcome of the spectral probability computation for one match.

    Attributes
    ----------
    de_novo_score : int
        Best score any peptide in the admissible mass window can reach
    spec_prob : float
        Probability that a random peptide scores at least the match score
    score_dist : ScoreDistribution, optional
        Full grouped score distribution (diagnostics only)
    """

    de_novo_score: int
    spec_prob: float
    score_dist: Optional['ScoreDistribution'] = None


@dataclass(eq=False)
class CandidateMatch:
    """One library candidate scored against one spectrum.

    Matches carry no natural ordering. Top-K containers rank them with an
    explicit ``RankingOrder`` (see ``search.topk``).

    Attributes
    ----------
    index : int
        Library offset of the candidate (ordinal of its library record)
    length : int
        Peptide length in residues
    score : int
        Scorer output
    nominal_peptide_mass : int
        Nominal residue mass sum
    peptide : str
        Residues with inline modification tags
    peptide_mass : float
        Accurate residue mass sum (no water)
    charge : int, optional
        Precursor charge, attached when matches are merged per spectrum
    significance : SpectralSignificance, optional
        ``None`` until (and unless) a spectral probability was computed
    """

    index: int
    length: int
    score: int
    nominal_peptide_mass: int
    peptide: str
    peptide_mass: float = 0.0
    charge: Optional[int] = None
    significance: Optional[SpectralSignificance] = None

    @property
    def is_scored(self) -> bool:
        return self.significance is not None

    @property
    def spec_prob(self) -> float:
        if self.significance is None:
            return UNSCORED_SPEC_PROB
        return self.significance.spec_prob

    @property
    def de_novo_score(self) -> int:
        if self.significance is None:
            return UNSCORED_DE_NOVO_SCORE
        return self.significance.de_novo_score

    @property
    def score_dist(self) -> Optional['ScoreDistribution']:
        if self.significance is None:
            return None
        return self.significance.score_dist

    def mark_unscored(self) -> None:
        self.significance = None
