"""Unit tests for score graph generating functions.

The dynamic program is checked against brute-force enumeration of all
peptides of a small residue alphabet.
"""

import numpy as np
import pytest

from alphalibsearch.config import NON_SPECIFIC, TRYPSIN
from alphalibsearch.constants import AA_NOMINAL_MASSES_DICT
from alphalibsearch.modifications import ModificationTable
from alphalibsearch.scoring.generating_function import (
    MODIFIED_RESIDUE_WEIGHT,
    ResidueAlphabet,
    ScoreDistribution,
    ScoreGraph,
    compute_grouped_distribution,
    compute_score_distribution,
)


def toy_alphabet():
    """Residues of nominal mass 2 and 3, C-terminal 3 favoured."""
    return ResidueAlphabet(
        nominal_masses=np.array([2, 3], dtype=np.int64),
        probabilities=np.array([0.6, 0.4]),
        final_probabilities=np.array([0.1, 0.9]),
    )


def brute_force_distribution(peptide_mass, alphabet, node_scores):
    """Enumerate all residue paths of ``peptide_mass``: score -> probability."""
    distribution = {}

    def walk(node, score, prob):
        for mass, p, p_final in zip(
            alphabet.nominal_masses, alphabet.probabilities, alphabet.final_probabilities
        ):
            target = node + int(mass)
            if target == peptide_mass:
                distribution[score] = distribution.get(score, 0.0) + prob * p_final
            elif target < peptide_mass:
                walk(target, score + int(node_scores[target]), prob * p)

    walk(0, 0, 1.0)
    return distribution


class TestResidueAlphabet:
    """Test the residue null model."""

    def test_probabilities_normalized(self):
        alphabet = ResidueAlphabet.build(ModificationTable.default(), TRYPSIN)
        assert alphabet.probabilities.sum() == pytest.approx(1.0)
        assert alphabet.final_probabilities.sum() == pytest.approx(1.0)
        assert np.all(np.diff(alphabet.nominal_masses) > 0)

    def test_standard_residues_present(self):
        alphabet = ResidueAlphabet.build(ModificationTable.default(), NON_SPECIFIC)
        for mass in AA_NOMINAL_MASSES_DICT.values():
            assert mass in alphabet.nominal_masses

    def test_modified_variants_present(self):
        """Carbamidomethyl-C (160) and oxidized M (147) are edges."""
        alphabet = ResidueAlphabet.build(ModificationTable.default(), NON_SPECIFIC)
        assert 160 in alphabet.nominal_masses
        assert 147 in alphabet.nominal_masses

    def test_n_terminal_modifications_not_edges(self):
        """Acetylated residues (e.g. P+42, W+42) are not interior edges."""
        alphabet = ResidueAlphabet.build(ModificationTable.default(), NON_SPECIFIC)
        for aa in "PW":
            assert AA_NOMINAL_MASSES_DICT[aa] + 42 not in alphabet.nominal_masses
        assert len(alphabet.nominal_masses) < 30

    def test_modified_variants_weighted_below_residues(self):
        alphabet = ResidueAlphabet.build(ModificationTable.default(), NON_SPECIFIC)
        masses = list(alphabet.nominal_masses)
        carbamidomethyl_c = alphabet.probabilities[masses.index(160)]
        glycine = alphabet.probabilities[masses.index(AA_NOMINAL_MASSES_DICT['G'])]
        assert carbamidomethyl_c == pytest.approx(MODIFIED_RESIDUE_WEIGHT * glycine)

    def test_non_specific_final_equals_interior(self):
        alphabet = ResidueAlphabet.build(ModificationTable.default(), NON_SPECIFIC)
        assert np.allclose(alphabet.final_probabilities, alphabet.probabilities)

    def test_trypsin_favours_k_and_r(self):
        """K/R C-termini carry most of the final residue probability."""
        alphabet = ResidueAlphabet.build(ModificationTable.from_masses({}), TRYPSIN)
        r_index = np.searchsorted(alphabet.nominal_masses, AA_NOMINAL_MASSES_DICT['R'])
        k_index = np.searchsorted(alphabet.nominal_masses, AA_NOMINAL_MASSES_DICT['K'])
        assert alphabet.final_probabilities[r_index] > alphabet.probabilities[r_index]
        assert alphabet.final_probabilities[r_index] + alphabet.final_probabilities[k_index] > 0.99


class TestScoreDistributionDP:
    """Test the Numba dynamic program against enumeration."""

    @pytest.mark.parametrize("peptide_mass", [7, 10, 13])
    def test_matches_brute_force(self, peptide_mass):
        alphabet = toy_alphabet()
        node_scores = np.random.randint(-2, 4, peptide_mass + 1).astype(np.int64)
        expected = brute_force_distribution(peptide_mass, alphabet, node_scores)

        min_score, probabilities = compute_score_distribution(
            peptide_mass, alphabet.nominal_masses, alphabet.probabilities,
            alphabet.final_probabilities, node_scores, -1000,
        )
        computed = {
            int(min_score) + i: p for i, p in enumerate(probabilities) if p > 0
        }
        assert computed.keys() == expected.keys()
        for score, prob in expected.items():
            assert computed[score] == pytest.approx(prob)

    @pytest.mark.parametrize("threshold", [0, 2, 4])
    def test_threshold_pruning_keeps_tail(self, threshold):
        """Scores at or above the threshold are exact after pruning."""
        alphabet = toy_alphabet()
        peptide_mass = 14
        node_scores = np.random.randint(-1, 3, peptide_mass + 1).astype(np.int64)
        expected = brute_force_distribution(peptide_mass, alphabet, node_scores)

        graph = ScoreGraph(peptide_mass, node_scores, alphabet)
        distribution = graph.score_distribution(threshold)
        expected_tail = {s: p for s, p in expected.items() if s >= threshold}

        if not expected_tail:
            assert distribution is None
            return
        assert distribution.min_score >= threshold
        assert distribution.to_dict().keys() == expected_tail.keys()
        for score, prob in expected_tail.items():
            assert distribution.spectral_probability(score) == pytest.approx(
                sum(p for s, p in expected_tail.items() if s >= score)
            )

    def test_unreachable_mass(self):
        """No residue combination of mass 1: no distribution."""
        graph = ScoreGraph(1, np.zeros(2, dtype=np.int64), toy_alphabet())
        assert graph.score_distribution(0) is None

    def test_threshold_above_max(self):
        graph = ScoreGraph(6, np.ones(7, dtype=np.int64), toy_alphabet())
        assert graph.score_distribution(100) is None

    def test_node_score_length_validated(self):
        with pytest.raises(ValueError, match="node scores"):
            ScoreGraph(10, np.zeros(5, dtype=np.int64), toy_alphabet())

    def test_zero_scores_give_mass_probability(self):
        """With zero node scores all probability sits at score 0."""
        alphabet = toy_alphabet()
        expected = brute_force_distribution(9, alphabet, np.zeros(10))
        distribution = ScoreGraph(9, np.zeros(10, dtype=np.int64), alphabet).score_distribution(0)
        assert distribution.min_score == 0
        assert distribution.max_score == 1
        assert distribution.spectral_probability(0) == pytest.approx(expected[0])


class TestScoreDistribution:
    """Test distribution arithmetic."""

    def test_spectral_probability_bounds(self):
        distribution = ScoreDistribution(2, np.array([0.1, 0.2, 0.3]))
        assert distribution.max_score == 5
        assert distribution.spectral_probability(0) == pytest.approx(0.6)
        assert distribution.spectral_probability(3) == pytest.approx(0.5)
        assert distribution.spectral_probability(4) == pytest.approx(0.3)
        assert distribution.spectral_probability(5) == 0.0

    def test_from_array_trims_zeros(self):
        distribution = ScoreDistribution.from_array(0, np.array([0.0, 0.0, 0.5, 0.25, 0.0]))
        assert distribution.min_score == 2
        assert list(distribution.probabilities) == [0.5, 0.25]
        assert ScoreDistribution.from_array(0, np.zeros(3)) is None

    def test_group_adds_aligned(self):
        grouped = ScoreDistribution.group([
            ScoreDistribution(1, np.array([0.1, 0.2])),
            None,
            ScoreDistribution(2, np.array([0.3, 0.4])),
        ])
        assert grouped.min_score == 1
        assert np.allclose(grouped.probabilities, [0.1, 0.5, 0.4])
        assert ScoreDistribution.group([None, None]) is None


class TestGroupedDistribution:
    """Test grouping over a nominal mass window."""

    def test_window_sums_graphs(self, toy_scorer_cls):
        scorer = toy_scorer_cls(precursor_mass=0.0, charge=2)
        alphabet = toy_alphabet()
        single = [
            ScoreGraph.from_scorer(scorer, m, alphabet).score_distribution(0)
            for m in (7, 8, 9)
        ]
        grouped = compute_grouped_distribution(scorer, 7, 9, alphabet, 0)
        assert grouped.spectral_probability(0) == pytest.approx(
            sum(d.spectral_probability(0) for d in single)
        )

    def test_true_peptide_is_significant(self, toy_scorer_cls):
        """A spectrum explaining every prefix of ACDEFGHIK gives its own
        sequence a small spectral probability."""
        from alphalibsearch.modifications import build_modified_peptide

        peptide = build_modified_peptide("ACDEFGHIK", [], ModificationTable.default())
        scorer = toy_scorer_cls.for_peptide("ACDEFGHIK")
        alphabet = ResidueAlphabet.build(ModificationTable.default(), TRYPSIN)
        distribution = compute_grouped_distribution(
            scorer, peptide.nominal_mass, peptide.nominal_mass, alphabet, 0
        )

        spec_prob = distribution.spectral_probability(8)
        assert 0 < spec_prob < 1e-3
        assert distribution.max_score - 1 == 8
