"""Candidate matching of library peptides against scored spectra.

Core pieces:
1. Library stream reader (header, ``charge|modifications`` records)
2. Mass-indexed spectra with half-open range queries (O(log n))
3. Bounded top-K stores with injected ranking orders
4. Thread-safe aggregation of per-pass stores
"""

from .spectra import (
    SpectrumKey,
    SpectrumScorer,
    ScoredSpectraMap,
    search_mass_range_numba,
)

from .matches import (
    CandidateMatch,
    SpectralSignificance,
    UNSCORED_DE_NOVO_SCORE,
    UNSCORED_SPEC_PROB,
)

from .topk import (
    RankingOrder,
    SCORE_ORDER,
    SPEC_PROB_ORDER,
    BoundedTopK,
    TopKStore,
    MatchAggregator,
    merge_stores,
)

from .library_reader import (
    LibraryRecord,
    read_library,
    read_library_header,
    iter_library_records,
)

from .candidate_matching import (
    LibraryMatcher,
    candidate_mass_range,
)

__all__ = [
    # Spectra
    'SpectrumKey',
    'SpectrumScorer',
    'ScoredSpectraMap',
    'search_mass_range_numba',
    # Matches
    'CandidateMatch',
    'SpectralSignificance',
    'UNSCORED_DE_NOVO_SCORE',
    'UNSCORED_SPEC_PROB',
    # Top-K
    'RankingOrder',
    'SCORE_ORDER',
    'SPEC_PROB_ORDER',
    'BoundedTopK',
    'TopKStore',
    'MatchAggregator',
    'merge_stores',
    # Library
    'LibraryRecord',
    'read_library',
    'read_library_header',
    'iter_library_records',
    # Matching
    'LibraryMatcher',
    'candidate_mass_range',
]
