"""Score distributions of random peptides via generating functions.

For a spectrum and a nominal peptide mass M the score graph has one node per
nominal prefix mass 0..M and one edge per residue whose nominal mass fits.
Every source-to-sink path is a peptide of mass M; its score is the sum of the
spectrum's node scores over the interior nodes it visits, and its
probability is the product of residue probabilities (the last residue
weighted by the enzyme rule).

The generating function propagates score distributions along the graph
instead of enumerating paths. A backward pass computes the best score still
reachable from every node, so score values that cannot end at or above the
threshold are dropped on the way. Distributions of several masses (the
tolerance window) are summed into one grouped distribution.

Performance
-----------
- O(M * n_residues * score_width) per graph, Numba-compiled
- Memory: flat per-node score ranges, no (M x width) matrix
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional, Tuple

import numba
import numpy as np

from ..config import Enzyme
from ..constants import AA_NOMINAL_MASSES_DICT
from ..modifications import ModificationTable

_NEG_INF = -(2 ** 62)
_POS_INF = 2 ** 62

# Weight of a modified residue variant relative to an unmodified residue
MODIFIED_RESIDUE_WEIGHT = 0.1


# =============================================================================
# Residue Alphabet
# =============================================================================

class ResidueAlphabet(NamedTuple):
    """Edge masses and probabilities of score graphs.

    Attributes
    ----------
    nominal_masses : np.ndarray (int64)
        Distinct nominal residue masses (modified variants included)
    probabilities : np.ndarray (float64)
        Probability of each mass for an interior residue (sums to 1)
    final_probabilities : np.ndarray (float64)
        Probability of each mass for the C-terminal residue (sums to 1)
    """
    nominal_masses: np.ndarray
    probabilities: np.ndarray
    final_probabilities: np.ndarray

    @classmethod
    def build(cls, modifications: ModificationTable, enzyme: Enzyme) -> 'ResidueAlphabet':
        """Residue model with modified variants and enzyme C-termini.

        Standard residues have weight 1 and every (residue, modification)
        variant ``MODIFIED_RESIDUE_WEIGHT``; N-terminal-only modifications
        are not edges. For a specific enzyme, residues it cleaves after share
        ``cleavage_probability`` of the C-terminal position.
        """
        entries = []  # (nominal mass, residue, weight)
        for aa, nominal in AA_NOMINAL_MASSES_DICT.items():
            entries.append((nominal, aa, 1.0))
        for mod in modifications:
            if mod.n_term:
                continue
            for aa in (mod.residues or "".join(AA_NOMINAL_MASSES_DICT)):
                nominal = AA_NOMINAL_MASSES_DICT[aa] + mod.nominal_mass_delta
                if nominal > 0:
                    entries.append((nominal, aa, MODIFIED_RESIDUE_WEIGHT))

        weights = np.array([weight for _, _, weight in entries])
        weights /= weights.sum()
        final_weights = weights.copy()
        if enzyme.is_specific:
            is_cleavage = np.array([aa in enzyme.residues for _, aa, _ in entries])
            if is_cleavage.any() and not is_cleavage.all():
                final_weights = np.where(
                    is_cleavage,
                    enzyme.cleavage_probability * weights / weights[is_cleavage].sum(),
                    (1.0 - enzyme.cleavage_probability) * weights / weights[~is_cleavage].sum(),
                )

        masses = np.array([mass for mass, _, _ in entries], dtype=np.int64)
        unique_masses, inverse = np.unique(masses, return_inverse=True)
        probabilities = np.bincount(inverse, weights=weights, minlength=len(unique_masses))
        final_probabilities = np.bincount(inverse, weights=final_weights, minlength=len(unique_masses))

        return cls(unique_masses, probabilities, final_probabilities)


# =============================================================================
# Score Distribution
# =============================================================================

@dataclass(frozen=True)
class ScoreDistribution:
    """Probability of each score of random peptides, for scores >= min_score.

    Attributes
    ----------
    min_score : int
        Score of ``probabilities[0]``
    probabilities : np.ndarray (float64)
        ``probabilities[i]`` is P(score == min_score + i); the last entry is
        non-zero
    """

    min_score: int
    probabilities: np.ndarray

    @property
    def max_score(self) -> int:
        """Exclusive upper score bound."""
        return self.min_score + len(self.probabilities)

    def spectral_probability(self, score: int) -> float:
        """P(score of a random peptide >= ``score``)."""
        offset = max(score - self.min_score, 0)
        if offset >= len(self.probabilities):
            return 0.0
        return float(self.probabilities[offset:].sum())

    @classmethod
    def from_array(cls, min_score: int, probabilities: np.ndarray) -> Optional['ScoreDistribution']:
        """Trim zero tails; None if all probabilities are zero."""
        nonzero = np.flatnonzero(probabilities > 0)
        if len(nonzero) == 0:
            return None
        first, last = nonzero[0], nonzero[-1]
        return cls(int(min_score + first), probabilities[first:last + 1].copy())

    @classmethod
    def group(cls, distributions: Iterable[Optional['ScoreDistribution']]) -> Optional['ScoreDistribution']:
        """Sum distributions of several peptide masses into one."""
        distributions = [d for d in distributions if d is not None]
        if not distributions:
            return None
        min_score = min(d.min_score for d in distributions)
        max_score = max(d.max_score for d in distributions)
        grouped = np.zeros(max_score - min_score, dtype=np.float64)
        for d in distributions:
            start = d.min_score - min_score
            grouped[start:start + len(d.probabilities)] += d.probabilities
        return cls(min_score, grouped)

    def to_dict(self) -> dict:
        """``{score: probability}`` for non-zero entries."""
        return {
            self.min_score + i: float(p)
            for i, p in enumerate(self.probabilities) if p > 0
        }


# =============================================================================
# Generating Function (Numba-Compiled)
# =============================================================================

@numba.jit(nopython=True, cache=True)
def _best_scores_to_sink(
    peptide_mass: int,
    edge_masses: np.ndarray,
    edge_probs: np.ndarray,
    final_probs: np.ndarray,
    node_scores: np.ndarray,
) -> np.ndarray:
    """Highest score collectible after each node on the way to the sink."""
    best = np.full(peptide_mass + 1, _NEG_INF, dtype=np.int64)
    best[peptide_mass] = 0
    for node in range(peptide_mass - 1, -1, -1):
        node_best = _NEG_INF
        for e in range(len(edge_masses)):
            target = node + edge_masses[e]
            if target == peptide_mass:
                if final_probs[e] > 0 and node_best < 0:
                    node_best = 0
            elif target < peptide_mass:
                if edge_probs[e] > 0 and best[target] != _NEG_INF:
                    candidate = node_scores[target] + best[target]
                    if candidate > node_best:
                        node_best = candidate
        best[node] = node_best
    return best


@numba.jit(nopython=True, cache=True)
def compute_score_distribution(
    peptide_mass: int,
    edge_masses: np.ndarray,
    edge_probs: np.ndarray,
    final_probs: np.ndarray,
    node_scores: np.ndarray,
    score_threshold: int,
) -> Tuple[int, np.ndarray]:
    """Score distribution at the sink of one score graph (Numba-compiled).

    Parameters
    ----------
    peptide_mass : int
        Nominal peptide mass M (sink node)
    edge_masses : np.ndarray (int64)
        Nominal residue masses, all positive
    edge_probs : np.ndarray (float64)
        Residue probabilities for interior positions
    final_probs : np.ndarray (float64)
        Residue probabilities for the C-terminal position
    node_scores : np.ndarray (int64), shape (M + 1,)
        Score of each prefix mass node; nodes 0 and M are not scored
    score_threshold : int
        Scores below this are not tracked

    Returns
    -------
    min_score : int
        Score of the first entry of ``probabilities``
    probabilities : np.ndarray (float64)
        P(path score == min_score + i) for paths ending at the sink.
        Empty if no path reaches the threshold.
    """
    n_nodes = peptide_mass + 1
    best = _best_scores_to_sink(peptide_mass, edge_masses, edge_probs, final_probs, node_scores)

    # Forward score bounds of nodes that can still reach the sink
    fwd_min = np.full(n_nodes, _POS_INF, dtype=np.int64)
    fwd_max = np.full(n_nodes, _NEG_INF, dtype=np.int64)
    if best[0] != _NEG_INF:
        fwd_min[0] = 0
        fwd_max[0] = 0
    for node in range(peptide_mass):
        if fwd_max[node] == _NEG_INF:
            continue
        for e in range(len(edge_masses)):
            target = node + edge_masses[e]
            if target > peptide_mass:
                continue
            if target == peptide_mass:
                if final_probs[e] <= 0:
                    continue
                lo = fwd_min[node]
                hi = fwd_max[node]
            else:
                if edge_probs[e] <= 0 or best[target] == _NEG_INF:
                    continue
                lo = fwd_min[node] + node_scores[target]
                hi = fwd_max[node] + node_scores[target]
            if lo < fwd_min[target]:
                fwd_min[target] = lo
            if hi > fwd_max[target]:
                fwd_max[target] = hi

    # Per-node tracked score range [node_lo, node_lo + width)
    node_lo = np.zeros(n_nodes, dtype=np.int64)
    width = np.zeros(n_nodes, dtype=np.int64)
    start = np.zeros(n_nodes + 1, dtype=np.int64)
    for node in range(n_nodes):
        if fwd_max[node] != _NEG_INF:
            lo = max(fwd_min[node], score_threshold - best[node])
            if fwd_max[node] >= lo:
                node_lo[node] = lo
                width[node] = fwd_max[node] - lo + 1
        start[node + 1] = start[node] + width[node]

    dist = np.zeros(start[n_nodes], dtype=np.float64)
    if width[0] > 0:
        dist[start[0] - node_lo[0]] = 1.0

    for node in range(peptide_mass):
        if width[node] == 0:
            continue
        for e in range(len(edge_masses)):
            target = node + edge_masses[e]
            if target > peptide_mass or width[target] == 0:
                continue
            if target == peptide_mass:
                prob = final_probs[e]
                gain = 0
            else:
                prob = edge_probs[e]
                gain = node_scores[target]
            if prob <= 0:
                continue
            for k in range(width[node]):
                p = dist[start[node] + k]
                if p == 0.0:
                    continue
                new_score = node_lo[node] + k + gain
                offset = new_score - node_lo[target]
                if 0 <= offset < width[target]:
                    dist[start[target] + offset] += p * prob

    sink = peptide_mass
    if width[sink] == 0:
        return score_threshold, np.zeros(0, dtype=np.float64)
    return node_lo[sink], dist[start[sink]:start[sink] + width[sink]].copy()


class ScoreGraph:
    """Score graph of one spectrum at one nominal peptide mass.

    Parameters
    ----------
    peptide_mass : int
        Nominal peptide mass (sink node)
    node_scores : np.ndarray
        Scores of prefix mass nodes ``0..peptide_mass``
    alphabet : ResidueAlphabet
        Edge masses and probabilities
    """

    def __init__(self, peptide_mass: int, node_scores: np.ndarray, alphabet: ResidueAlphabet):
        node_scores = np.asarray(node_scores, dtype=np.int64)
        if len(node_scores) != peptide_mass + 1:
            raise ValueError(
                f"Expected {peptide_mass + 1} node scores, got {len(node_scores)}"
            )
        self.peptide_mass = peptide_mass
        self.node_scores = node_scores
        self.alphabet = alphabet

    @classmethod
    def from_scorer(cls, scorer, peptide_mass: int, alphabet: ResidueAlphabet) -> 'ScoreGraph':
        return cls(peptide_mass, scorer.node_scores(peptide_mass), alphabet)

    def score_distribution(self, score_threshold: int) -> Optional[ScoreDistribution]:
        """Distribution of path scores >= ``score_threshold`` (None if no path)."""
        min_score, probabilities = compute_score_distribution(
            self.peptide_mass,
            self.alphabet.nominal_masses,
            self.alphabet.probabilities,
            self.alphabet.final_probabilities,
            self.node_scores,
            score_threshold,
        )
        return ScoreDistribution.from_array(min_score, probabilities)


def compute_grouped_distribution(
    scorer,
    min_mass: int,
    max_mass: int,
    alphabet: ResidueAlphabet,
    score_threshold: int,
) -> Optional[ScoreDistribution]:
    """Grouped score distribution over nominal masses ``min_mass..max_mass``.

    Returns
    -------
    ScoreDistribution or None
        None if no graph in the window has a path at or above the threshold
    """
    distributions = []
    for peptide_mass in range(max(min_mass, 1), max_mass + 1):
        graph = ScoreGraph.from_scorer(scorer, peptide_mass, alphabet)
        distributions.append(graph.score_distribution(score_threshold))
    return ScoreDistribution.group(distributions)
