"""Result assembly and tab-separated PSM output.

After spectral probabilities are known, matches retained per
(spectrum index, charge) are re-ranked per spectrum index by spectral
probability, so that charge states of one spectrum compete for the same K
slots. Each surviving scored match becomes one tab-separated record.

Output columns
--------------
SpecFile, SpecIndex, Scan#, FragMethod, Precursor, PMError(ppm|Da), Charge,
Peptide, Protein, DeNovoScore, MSGFScore, SpecProb, P-value
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Optional, Union

import numpy as np

from ..config import SearchConfig
from ..constants import FLOAT32_MIN_NORMAL, H2O_MASS
from ..search.matches import CandidateMatch
from ..search.spectra import ScoredSpectraMap
from ..search.topk import SPEC_PROB_ORDER, BoundedTopK, TopKStore
from ..tolerance import isotope_corrected_error, resolve_tolerance
from .spectral_probability import compute_p_value

if TYPE_CHECKING:
    import pandas as pd

    from ..database.annotation import SequenceAnnotation
    from .generating_function import ScoreDistribution

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "#SpecFile", "SpecIndex", "Scan#", "FragMethod", "Precursor", "PMError",
    "Charge", "Peptide", "Protein", "DeNovoScore", "MSGFScore", "SpecProb", "P-value",
]

MERGED_SEPARATOR = "/"


def result_header(ppm: bool) -> str:
    """Header line; the mass error column names its unit."""
    columns = list(RESULT_COLUMNS)
    columns[5] = f"PMError({'ppm' if ppm else 'Da'})"
    return "\t".join(columns)


class PSMResult(NamedTuple):
    """One formatted result record.

    Attributes
    ----------
    spec_prob : float
        Spectral probability of the match
    num_peptides : int
        Distinct peptides of the match's length (p-value denominator)
    line : str
        Tab-separated record (no newline)
    score_dist : ScoreDistribution, optional
        Grouped score distribution if it was retained
    """
    spec_prob: float
    num_peptides: int
    line: str
    score_dist: Optional['ScoreDistribution'] = None

    @property
    def p_value(self) -> float:
        return compute_p_value(self.spec_prob, self.num_peptides)


# =============================================================================
# Number Formatting
# =============================================================================

def format_float32(value: float) -> str:
    """Shortest single-precision representation, e.g. ``'0.0123'``."""
    return str(np.float32(value))


def format_probability(value: float, spec_prob: float) -> str:
    """Format a spectral probability or p-value.

    Single precision is used unless the spectral probability is below the
    smallest normal float32, where double precision keeps the digits.

    Examples
    --------
    >>> format_probability(0.25, 0.25)
    '0.25'
    >>> format_probability(1e-45, 1e-45)
    '1e-45'
    """
    if spec_prob < FLOAT32_MIN_NORMAL:
        return repr(float(value))
    return format_float32(value)


def parse_result_line(line: str) -> Dict[str, Union[str, int, float]]:
    """Parse the numeric fields of one record back.

    Returns
    -------
    dict
        ``precursor``, ``pm_error``, ``charge``, ``de_novo_score``,
        ``score``, ``spec_prob``, ``p_value`` plus ``peptide`` and
        ``protein``
    """
    fields = line.rstrip("\n").split("\t")
    if len(fields) != len(RESULT_COLUMNS):
        raise ValueError(f"Expected {len(RESULT_COLUMNS)} fields, got {len(fields)}")
    return {
        'precursor': float(fields[4]),
        'pm_error': float(fields[5]),
        'charge': int(fields[6]),
        'peptide': fields[7],
        'protein': fields[8],
        'de_novo_score': int(fields[9]),
        'score': int(fields[10]),
        'spec_prob': float(fields[11]),
        'p_value': float(fields[12]),
    }


# =============================================================================
# Result Assembler
# =============================================================================

class ResultAssembler:
    """Turns annotated matches into ``PSMResult`` records.

    Parameters
    ----------
    spectra : ScoredSpectraMap
        Scorers, merged scan lists and tolerances
    annotation : SequenceAnnotation
        Protein lookup by library offset and p-value denominators
    config : SearchConfig
        K and C13 allowance
    """

    def __init__(
        self,
        spectra: ScoredSpectraMap,
        annotation: 'SequenceAnnotation',
        config: SearchConfig,
    ):
        self.spectra = spectra
        self.annotation = annotation
        self.config = config

    def rank_by_spectrum(self, store: TopKStore) -> Dict[int, BoundedTopK]:
        """Re-rank (spectrum index, charge) heaps per spectrum index.

        Charges of one spectrum index share the K slots. The charge of the
        originating key is attached to each match.
        """
        ranked: Dict[int, BoundedTopK] = {}
        for key in sorted(store.keys()):
            for match in store.get(key).best_first():
                match.charge = key.charge
                queue = ranked.get(key.spec_index)
                if queue is None:
                    queue = BoundedTopK(self.config.num_peptides_per_spec, SPEC_PROB_ORDER)
                    ranked[key.spec_index] = queue
                queue.offer(match)
        return ranked

    def precursor_error(self, match: CandidateMatch, precursor_mass: float) -> float:
        """Isotope-corrected precursor mass error in ppm or Da."""
        theoretical_mass = match.peptide_mass + H2O_MASS
        window = resolve_tolerance(
            precursor_mass - H2O_MASS,
            self.spectra.left_tolerance,
            self.spectra.right_tolerance,
            self.spectra.num_allowed_c13,
        )
        error = isotope_corrected_error(precursor_mass, theoretical_mass, window.num_c13)
        if self.spectra.right_tolerance.is_ppm:
            error = error / theoretical_mass * 1e6
        return error

    def format_records(
        self,
        spec_index: int,
        match: CandidateMatch,
        spec_file_name: str,
        replicate_merged: bool,
    ) -> List[str]:
        """Tab-separated records of one scored match.

        Raises
        ------
        ValueError
            If merged indices, scan numbers and activation methods differ in
            length
        """
        key = self.spectra.get_spec_key(spec_index, match.charge)
        scorer = self.spectra.get_scorer(key)
        spec_indices = self.spectra.get_spec_index_list(spec_index, match.charge)
        scan_numbers = [str(scan) for scan in scorer.scan_numbers]
        methods = [str(method) for method in scorer.activation_methods]
        if len(spec_indices) == 1 and len(scan_numbers) > 1:
            # no merged indices recorded: one index per scan
            spec_indices = spec_indices * len(scan_numbers)
        if not len(spec_indices) == len(scan_numbers) == len(methods):
            raise ValueError(
                f"Spectrum {spec_index} has {len(spec_indices)} indices, "
                f"{len(scan_numbers)} scans and {len(methods)} activation methods"
            )

        num_peptides = self.annotation.get_num_distinct_peptides(match.length)
        p_value = compute_p_value(match.spec_prob, num_peptides)
        tail = [
            format_float32(scorer.precursor_mz),
            format_float32(self.precursor_error(match, scorer.precursor_mass)),
            str(match.charge),
            match.peptide,
            self.annotation.get_annotation(match.index),
            str(match.de_novo_score),
            str(match.score),
            format_probability(match.spec_prob, match.spec_prob),
            format_probability(p_value, match.spec_prob),
        ]

        if replicate_merged:
            return [
                "\t".join([spec_file_name, str(index), scan, method] + tail)
                for index, scan, method in zip(spec_indices, scan_numbers, methods)
            ]
        head = [
            spec_file_name,
            MERGED_SEPARATOR.join(str(index) for index in spec_indices),
            MERGED_SEPARATOR.join(scan_numbers),
            MERGED_SEPARATOR.join(methods),
        ]
        return ["\t".join(head + tail)]

    def assemble(
        self,
        store: TopKStore,
        spec_file_name: str,
        replicate_merged: Optional[bool] = None,
    ) -> List[PSMResult]:
        """Build result records from a drained match store.

        Unscored matches are left out.

        Parameters
        ----------
        store : TopKStore
            Annotated matches keyed by ``SpectrumKey``
        spec_file_name : str
            Value of the SpecFile column
        replicate_merged : bool, optional
            One record per merged scan; defaults to
            ``config.replicate_merged_results``

        Returns
        -------
        List[PSMResult]
            Records grouped by spectrum index, best first
        """
        if replicate_merged is None:
            replicate_merged = self.config.replicate_merged_results

        results = []
        ranked = self.rank_by_spectrum(store)
        for spec_index in sorted(ranked):
            for match in ranked[spec_index].best_first():
                if not match.is_scored:
                    continue
                num_peptides = self.annotation.get_num_distinct_peptides(match.length)
                for line in self.format_records(spec_index, match, spec_file_name, replicate_merged):
                    results.append(PSMResult(match.spec_prob, num_peptides, line, match.score_dist))

        logger.info(f"✓ Assembled {len(results):,} PSM records for {len(ranked):,} spectra")
        return results


# =============================================================================
# TSV Output
# =============================================================================

def write_results(
    results: Iterable[PSMResult],
    output_path: Union[str, Path],
    ppm: bool = True,
) -> int:
    """Write records sorted by ascending spectral probability.

    Returns
    -------
    int
        Number of records written
    """
    records = sorted(results, key=lambda result: result.spec_prob)
    with open(output_path, 'w') as f:
        f.write(result_header(ppm) + "\n")
        for result in records:
            f.write(result.line + "\n")

    logger.info(f"✓ Wrote {len(records):,} PSMs to {output_path}")
    return len(records)


def read_results(input_path: Union[str, Path]) -> 'pd.DataFrame':
    """Load a result file into a DataFrame.

    The leading ``#`` of the first column and the unit suffix of the mass
    error column are stripped from the column names.
    """
    import pandas as pd

    df = pd.read_csv(input_path, sep="\t", dtype={"SpecIndex": str, "Scan#": str})
    df.columns = [
        "SpecFile" if column == "#SpecFile"
        else "PMError" if column.startswith("PMError")
        else column
        for column in df.columns
    ]
    return df
