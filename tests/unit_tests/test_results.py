"""Unit tests for result assembly and TSV output."""

import pytest

from alphalibsearch.config import SearchConfig
from alphalibsearch.constants import FLOAT32_MIN_NORMAL, H2O_MASS, ISOTOPE_MASS_DIFFERENCE
from alphalibsearch.database.annotation import PeptideAnnotation
from alphalibsearch.search.matches import CandidateMatch, SpectralSignificance
from alphalibsearch.search.spectra import ScoredSpectraMap, SpectrumKey
from alphalibsearch.search.topk import SCORE_ORDER, TopKStore
from alphalibsearch.scoring.results import (
    PSMResult,
    ResultAssembler,
    format_probability,
    parse_result_line,
    read_results,
    result_header,
    write_results,
)
from alphalibsearch.scoring.spectral_probability import compute_p_value
from alphalibsearch.tolerance import Tolerance


def scored_match(index, score, spec_prob, peptide_mass=1000.0, length=9):
    return CandidateMatch(
        index=index,
        length=length,
        score=score,
        nominal_peptide_mass=1000,
        peptide=f"PEPTIDE{index}",
        peptide_mass=peptide_mass,
        significance=SpectralSignificance(de_novo_score=20, spec_prob=spec_prob),
    )


@pytest.fixture
def annotation():
    return PeptideAnnotation({0: "P1", 1: "P2;P3"}, {9: 1000})


class TestFormatting:
    """Test number formatting of probabilities."""

    def test_single_precision(self):
        assert format_probability(0.001, 0.001) == "0.001"
        assert format_probability(1.0, 1.0) == "1.0"

    def test_double_precision_below_float32_normal(self):
        value = FLOAT32_MIN_NORMAL / 10
        text = format_probability(value, value)
        assert float(text) == value

    def test_header_units(self):
        assert "PMError(ppm)" in result_header(True)
        assert "PMError(Da)" in result_header(False)
        assert result_header(True).startswith("#SpecFile\tSpecIndex\tScan#\tFragMethod")


class TestResultAssembler:
    """Test ranking and record formatting."""

    def _spectra(self, toy_scorer_cls, config, precursor_masses, spec_index_list=()):
        scorers = {}
        for (spec_index, charge), mass in precursor_masses.items():
            key = SpectrumKey(spec_index, charge, spec_index_list=spec_index_list)
            scorers[key] = toy_scorer_cls(
                precursor_mass=mass,
                charge=charge,
                scan_numbers=[100 + i for i in range(max(len(spec_index_list), 1))],
                activation_methods=["CID", "ETD"][:max(len(spec_index_list), 1)],
            )
        return ScoredSpectraMap.from_config(scorers, config)

    def test_cross_charge_ranking(self, toy_scorer_cls, annotation):
        """Charges of one spectrum index compete for the same K slots."""
        config = SearchConfig(num_peptides_per_spec=2)
        spectra = self._spectra(toy_scorer_cls, config, {(0, 2): 1018.0, (0, 3): 1018.0})

        store = TopKStore(2, SCORE_ORDER)
        store.offer(SpectrumKey(0, 2), scored_match(0, 10, 1e-5))
        store.offer(SpectrumKey(0, 2), scored_match(1, 8, 1e-2))
        store.offer(SpectrumKey(0, 3), scored_match(2, 12, 1e-8))

        assembler = ResultAssembler(spectra, annotation, config)
        ranked = assembler.rank_by_spectrum(store)
        best = ranked[0].best_first()
        assert [m.index for m in best] == [2, 0]
        assert [m.charge for m in best] == [3, 2]

        results = assembler.assemble(store, "run.mzML")
        assert len(results) == 2
        assert [r.spec_prob for r in results] == [1e-8, 1e-5]

    def test_unscored_excluded(self, toy_scorer_cls, annotation, config):
        spectra = self._spectra(toy_scorer_cls, config, {(0, 2): 1018.0})
        store = TopKStore(10, SCORE_ORDER)
        store.offer(SpectrumKey(0, 2), scored_match(0, 10, 1e-5))
        unscored = scored_match(1, 9, 1e-3)
        unscored.mark_unscored()
        store.offer(SpectrumKey(0, 2), unscored)

        results = ResultAssembler(spectra, annotation, config).assemble(store, "run.mzML")
        assert len(results) == 1
        assert "PEPTIDE0" in results[0].line

    def test_record_fields(self, toy_scorer_cls, annotation, config):
        """Record carries the numbers the match and scorer provide."""
        theoretical = 1000.0 + H2O_MASS
        spectra = self._spectra(toy_scorer_cls, config, {(7, 2): theoretical + 0.005})
        store = TopKStore(10, SCORE_ORDER)
        store.offer(SpectrumKey(7, 2), scored_match(1, 42, 1e-12))

        results = ResultAssembler(spectra, annotation, config).assemble(store, "run.mzML")
        fields = results[0].line.split("\t")
        assert fields[:4] == ["run.mzML", "7", "100", "CID"]
        assert fields[6] == "2"
        assert fields[8] == "P2;P3"

        parsed = parse_result_line(results[0].line)
        assert parsed["score"] == 42
        assert parsed["de_novo_score"] == 20
        assert parsed["charge"] == 2
        assert parsed["spec_prob"] == pytest.approx(1e-12, rel=1e-6)
        assert parsed["p_value"] == pytest.approx(compute_p_value(1e-12, 1000), rel=1e-6)
        assert parsed["pm_error"] == pytest.approx(0.005 / theoretical * 1e6, rel=1e-5)
        assert parsed["precursor"] == pytest.approx(spectra.get_scorer(SpectrumKey(7, 2)).precursor_mz, rel=1e-6)
        assert results[0].num_peptides == 1000
        assert results[0].p_value == pytest.approx(compute_p_value(1e-12, 1000))

    def test_isotope_corrected_error_in_da(self, toy_scorer_cls, annotation):
        """Da tolerances report Da errors after the best C13 shift."""
        config = SearchConfig(
            left_tolerance=Tolerance(0.4),
            right_tolerance=Tolerance(0.4),
            num_allowed_c13=1,
        )
        theoretical = 1000.0 + H2O_MASS
        spectra = self._spectra(
            toy_scorer_cls, config, {(0, 2): theoretical + ISOTOPE_MASS_DIFFERENCE + 0.01}
        )
        store = TopKStore(10, SCORE_ORDER)
        store.offer(SpectrumKey(0, 2), scored_match(0, 10, 1e-5))

        results = ResultAssembler(spectra, annotation, config).assemble(store, "run.mzML")
        assert parse_result_line(results[0].line)["pm_error"] == pytest.approx(0.01, abs=1e-5)

    def test_merged_scans_joined(self, toy_scorer_cls, annotation, config):
        spectra = self._spectra(toy_scorer_cls, config, {(4, 2): 1018.0}, spec_index_list=(4, 5))
        store = TopKStore(10, SCORE_ORDER)
        store.offer(SpectrumKey(4, 2), scored_match(0, 10, 1e-5))

        results = ResultAssembler(spectra, annotation, config).assemble(store, "run.mzML")
        assert len(results) == 1
        assert results[0].line.split("\t")[1:4] == ["4/5", "100/101", "CID/ETD"]

    def test_merged_scans_replicated(self, toy_scorer_cls, annotation, config):
        spectra = self._spectra(toy_scorer_cls, config, {(4, 2): 1018.0}, spec_index_list=(4, 5))
        store = TopKStore(10, SCORE_ORDER)
        store.offer(SpectrumKey(4, 2), scored_match(0, 10, 1e-5))

        results = ResultAssembler(spectra, annotation, config).assemble(
            store, "run.mzML", replicate_merged=True
        )
        assert [r.line.split("\t")[1:4] for r in results] == [
            ["4", "100", "CID"],
            ["5", "101", "ETD"],
        ]
        assert results[0].line.split("\t")[4:] == results[1].line.split("\t")[4:]

    def _unmerged_multi_scan(self, toy_scorer_cls, config, methods=("CID", "ETD")):
        scorers = {SpectrumKey(0, 2): toy_scorer_cls(
            precursor_mass=1018.0, charge=2, scan_numbers=[10, 11], activation_methods=list(methods),
        )}
        spectra = ScoredSpectraMap.from_config(scorers, config)
        store = TopKStore(10, SCORE_ORDER)
        store.offer(SpectrumKey(0, 2), scored_match(0, 10, 1e-5))
        return spectra, store

    def test_scans_without_merged_indices(self, toy_scorer_cls, annotation, config):
        """Every scan of the scorer is reported when no merged indices exist."""
        spectra, store = self._unmerged_multi_scan(toy_scorer_cls, config)
        assembler = ResultAssembler(spectra, annotation, config)

        replicated = assembler.assemble(store, "f", replicate_merged=True)
        assert [r.line.split("\t")[1:4] for r in replicated] == [
            ["0", "10", "CID"],
            ["0", "11", "ETD"],
        ]
        joined = assembler.assemble(store, "f", replicate_merged=False)
        assert joined[0].line.split("\t")[1:4] == ["0/0", "10/11", "CID/ETD"]

    def test_mismatched_scan_metadata(self, toy_scorer_cls, annotation, config):
        spectra, store = self._unmerged_multi_scan(toy_scorer_cls, config, methods=("CID",))
        with pytest.raises(ValueError, match="activation methods"):
            ResultAssembler(spectra, annotation, config).assemble(store, "f", replicate_merged=True)


class TestRoundTrip:
    """Test formatting then parsing of numeric fields."""

    @pytest.mark.parametrize("spec_prob", [0.5, 1e-3, 3.14159e-20, 1e-40, 5e-300])
    def test_probability_round_trip(self, spec_prob):
        text = format_probability(spec_prob, spec_prob)
        if spec_prob < FLOAT32_MIN_NORMAL:
            assert float(text) == spec_prob
        else:
            assert float(text) == pytest.approx(spec_prob, rel=1e-6)

    def test_write_and_read(self, tmp_path):
        line = "\t".join([
            "run.mzML", "3", "12", "HCD", "500.25", "1.5", "2", "PEPTIDEK", "P1",
            "30", "25", "1e-10", "1e-07",
        ])
        worse = line.replace("1e-10", "0.001").replace("PEPTIDEK", "PEPTIDER")
        results = [PSMResult(1e-3, 100, worse), PSMResult(1e-10, 100, line)]
        path = tmp_path / "results.tsv"

        assert write_results(results, path) == 2
        df = read_results(path)
        assert list(df.columns[:2]) == ["SpecFile", "SpecIndex"]
        assert "PMError" in df.columns
        assert list(df["Peptide"]) == ["PEPTIDEK", "PEPTIDER"]
        assert df["SpecProb"].iloc[0] == pytest.approx(1e-10)
        assert df["MSGFScore"].iloc[0] == 25

    def test_parse_rejects_short_line(self):
        with pytest.raises(ValueError):
            parse_result_line("a\tb\tc")
