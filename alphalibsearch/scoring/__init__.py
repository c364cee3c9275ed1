"""Spectral probabilities and result assembly.

- Generating function over score graphs (Numba-compiled DP)
- Spectral probability and p-value of retained matches
- Per-spectrum re-ranking and tab-separated PSM records
"""

from .generating_function import (
    ResidueAlphabet,
    ScoreDistribution,
    ScoreGraph,
    compute_score_distribution,
    compute_grouped_distribution,
)

from .spectral_probability import (
    SpectralProbabilityEngine,
    compute_spectral_probabilities,
    compute_p_value,
)

from .results import (
    PSMResult,
    ResultAssembler,
    format_probability,
    parse_result_line,
    result_header,
    write_results,
    read_results,
)

__all__ = [
    # Generating function
    'ResidueAlphabet',
    'ScoreDistribution',
    'ScoreGraph',
    'compute_score_distribution',
    'compute_grouped_distribution',
    # Spectral probability
    'SpectralProbabilityEngine',
    'compute_spectral_probabilities',
    'compute_p_value',
    # Results
    'PSMResult',
    'ResultAssembler',
    'format_probability',
    'parse_result_line',
    'result_header',
    'write_results',
    'read_results',
]
