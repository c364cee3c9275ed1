"""alphalibsearch - Spectral library peptide search with spectral probabilities.

Matches library peptide ions against scored MS/MS spectra within a precursor
mass tolerance, keeps the best candidates per spectrum and converts their
scores into spectral probabilities and p-values with a generating function
over the score graph of each spectrum.

Numba-compiled kernels for prefix masses, mass range queries and the score
distribution dynamic program.
"""

__version__ = "0.1.0"

from alphalibsearch import search
from alphalibsearch import scoring
from alphalibsearch import database
from alphalibsearch.config import SearchConfig, Enzyme, TRYPSIN, LYS_C, NON_SPECIFIC
from alphalibsearch.tolerance import Tolerance
from alphalibsearch.modifications import Modification, ModificationTable
from alphalibsearch.pipeline import LibrarySearch, run_library_search

__all__ = [
    "search",
    "scoring",
    "database",
    "SearchConfig",
    "Enzyme",
    "TRYPSIN",
    "LYS_C",
    "NON_SPECIFIC",
    "Tolerance",
    "Modification",
    "ModificationTable",
    "LibrarySearch",
    "run_library_search",
]
