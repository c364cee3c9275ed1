"""Spectral probabilities of retained peptide-spectrum matches.

For each spectrum the engine builds one score graph per nominal peptide mass
in the tolerance window, groups their score distributions and converts
every retained match score into P(random peptide score >= match score).

Partitions of the spectrum key list can be processed by different workers
without locking: each partition only touches the matches of its own keys.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from ..config import SearchConfig
from ..constants import H2O_MASS
from ..exceptions import SpectralProbabilityError
from ..search.matches import SpectralSignificance
from ..search.spectra import ScoredSpectraMap, SpectrumKey
from ..search.topk import MatchAggregator
from ..tolerance import nominal_mass_window
from .generating_function import ResidueAlphabet, compute_grouped_distribution

logger = logging.getLogger(__name__)

# Spectra between two progress messages
PROGRESS_INTERVAL = 1_000


def compute_p_value(spec_prob: float, num_peptides: int) -> float:
    """Probability that at least one of ``num_peptides`` random peptides
    scores as well as the match.

    ``1 - (1 - spec_prob) ** num_peptides``, evaluated with ``log1p``/``expm1``
    so that tiny spectral probabilities keep their precision.

    Parameters
    ----------
    spec_prob : float
        Spectral probability in (0, 1]
    num_peptides : int
        Number of distinct peptides of the match's length

    Returns
    -------
    float
        p-value in [0, 1], non-decreasing in ``spec_prob``

    Examples
    --------
    >>> round(compute_p_value(0.01, 2), 4)
    0.0199
    >>> compute_p_value(1.0, 100)
    1.0
    """
    if spec_prob >= 1.0:
        return 1.0
    if num_peptides <= 0:
        return spec_prob
    return min(-math.expm1(num_peptides * math.log1p(-spec_prob)), 1.0)


class SpectralProbabilityEngine:
    """Assigns ``SpectralSignificance`` to matches held by an aggregator.

    Parameters
    ----------
    spectra : ScoredSpectraMap
        Scorers and tolerances
    aggregator : MatchAggregator
        Shared store filled by the candidate matcher
    config : SearchConfig
        Enzyme, modifications and C13 allowance
    """

    def __init__(
        self,
        spectra: ScoredSpectraMap,
        aggregator: MatchAggregator,
        config: SearchConfig,
    ):
        self.spectra = spectra
        self.aggregator = aggregator
        self.config = config
        self.alphabet = ResidueAlphabet.build(config.modifications, config.enzyme)

    def score_distribution(self, key: SpectrumKey, score_threshold: int):
        """Grouped score distribution of a spectrum and its nominal mass window.

        Returns
        -------
        distribution : ScoreDistribution or None
            None if no graph reaches the threshold
        min_mass, max_mass : int
            Inclusive nominal mass window
        """
        scorer = self.spectra.get_scorer(key)
        min_mass, max_mass = nominal_mass_window(
            scorer.precursor_mass - H2O_MASS,
            self.spectra.left_tolerance,
            self.spectra.right_tolerance,
            self.spectra.num_allowed_c13,
        )
        distribution = compute_grouped_distribution(
            scorer, min_mass, max_mass, self.alphabet, score_threshold
        )
        return distribution, min_mass, max_mass

    def score_spectrum(self, key: SpectrumKey, store_score_dist: bool = False) -> int:
        """Annotate the retained matches of one spectrum.

        Returns
        -------
        int
            Number of matches that received a spectral probability

        Raises
        ------
        SpectralProbabilityError
            If a computed spectral probability is not positive
        """
        matches = self.aggregator.get(key)
        if not matches:
            return 0

        score_threshold = min(match.score for match in matches)
        distribution, min_mass, max_mass = self.score_distribution(key, score_threshold)

        num_scored = 0
        for match in matches:
            if distribution is None or not min_mass <= match.nominal_peptide_mass <= max_mass:
                match.mark_unscored()
                continue

            spec_prob = min(distribution.spectral_probability(match.score), 1.0)
            if spec_prob <= 0:
                raise SpectralProbabilityError(
                    f"Spectral probability {spec_prob} for {match.peptide} "
                    f"(score {match.score}) on spectrum {key.spec_index}, charge {key.charge}"
                )
            match.significance = SpectralSignificance(
                de_novo_score=distribution.max_score - 1,
                spec_prob=spec_prob,
                score_dist=distribution if store_score_dist else None,
            )
            num_scored += 1
        return num_scored

    def compute(
        self,
        from_index: int = 0,
        to_index: Optional[int] = None,
        store_score_dist: bool = False,
        verbose: bool = True,
    ) -> int:
        """Annotate all spectra in ``spec_keys[from_index:to_index]``.

        Returns
        -------
        int
            Number of scored matches in the partition
        """
        keys = list(self.spectra.iter_keys(from_index, to_index))
        num_scored = 0
        for i, key in enumerate(keys):
            if verbose and i % PROGRESS_INTERVAL == 0 and i > 0:
                logger.info(
                    f"Spectral probability progress [{from_index}:{to_index}]... "
                    f"{i / len(keys) * 100:.1f}% complete"
                )
            num_scored += self.score_spectrum(key, store_score_dist)

        logger.info(
            f"✓ Computed spectral probabilities for {num_scored:,} matches "
            f"({len(keys):,} spectra)"
        )
        return num_scored


def compute_spectral_probabilities(
    spectra: ScoredSpectraMap,
    aggregator: MatchAggregator,
    config: SearchConfig,
    from_index: int = 0,
    to_index: Optional[int] = None,
    store_score_dist: Optional[bool] = None,
) -> int:
    """Functional entry point, see ``SpectralProbabilityEngine.compute``.

    ``store_score_dist`` defaults to ``config.store_score_dist``.

    Examples
    --------
    >>> compute_spectral_probabilities(spectra, aggregator, config)
    """
    if store_score_dist is None:
        store_score_dist = config.store_score_dist
    engine = SpectralProbabilityEngine(spectra, aggregator, config)
    return engine.compute(from_index, to_index, store_score_dist)
