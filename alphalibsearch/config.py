"""Search configuration.

All settings of a library search live in one immutable ``SearchConfig``
object that is built once at start-up and handed to every component.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import (
    DEFAULT_NUM_ALLOWED_C13,
    DEFAULT_NUM_PEPTIDES_PER_SPEC,
    DEFAULT_PRECURSOR_TOLERANCE_PPM,
)
from .modifications import ModificationTable
from .tolerance import Tolerance


@dataclass(frozen=True)
class Enzyme:
    """C-terminal cleavage rule used by the score graph null model.

    Attributes
    ----------
    name : str
        Enzyme name
    residues : str
        Residues after which the enzyme cleaves (empty for non-specific)
    cleavage_probability : float
        Probability that a random peptide ends with one of ``residues``.
        The remaining probability is shared by the other residues.
    """

    name: str
    residues: str = ""
    cleavage_probability: float = 0.0

    def __post_init__(self):
        if self.residues and not 0.0 < self.cleavage_probability < 1.0:
            raise ValueError(
                f"cleavage_probability must be in (0, 1) for {self.name}, "
                f"got {self.cleavage_probability}"
            )

    @property
    def is_specific(self) -> bool:
        return bool(self.residues)


TRYPSIN = Enzyme("Trypsin", residues="KR", cleavage_probability=0.99)
LYS_C = Enzyme("LysC", residues="K", cleavage_probability=0.99)
NON_SPECIFIC = Enzyme("NoCleavage")

ENZYMES = {enzyme.name.lower(): enzyme for enzyme in (TRYPSIN, LYS_C, NON_SPECIFIC)}


def get_enzyme(name: str) -> Enzyme:
    """Look up an enzyme by (case-insensitive) name."""
    try:
        return ENZYMES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown enzyme: {name}. Use one of {sorted(ENZYMES)}."
        ) from None


@dataclass(frozen=True)
class SearchConfig:
    """Settings of one library search run.

    Attributes
    ----------
    left_tolerance, right_tolerance : Tolerance
        Precursor tolerances (spectrum-relative)
    num_allowed_c13 : int
        C13 isotope errors allowed when the right tolerance is below 0.5 Da
    num_peptides_per_spec : int
        Candidates retained per spectrum (K)
    enzyme : Enzyme
        Cleavage rule of the spectral probability null model
    modifications : ModificationTable
        Modifications that may appear in the library
    num_threads : int
        Worker threads for matching and spectral probabilities
    store_score_dist : bool
        Keep the full score distribution on every scored match
    replicate_merged_results : bool
        Emit one result line per merged scan instead of one per spectrum

    Examples
    --------
    >>> config = SearchConfig.from_strings("10ppm", "10ppm", num_threads=4)
    >>> config.left_tolerance
    Tolerance(value=10.0, is_ppm=True)
    """

    left_tolerance: Tolerance = Tolerance(DEFAULT_PRECURSOR_TOLERANCE_PPM, is_ppm=True)
    right_tolerance: Tolerance = Tolerance(DEFAULT_PRECURSOR_TOLERANCE_PPM, is_ppm=True)
    num_allowed_c13: int = DEFAULT_NUM_ALLOWED_C13
    num_peptides_per_spec: int = DEFAULT_NUM_PEPTIDES_PER_SPEC
    enzyme: Enzyme = TRYPSIN
    modifications: ModificationTable = field(default_factory=ModificationTable.default)
    num_threads: int = 1
    store_score_dist: bool = False
    replicate_merged_results: bool = False

    def __post_init__(self):
        if self.num_peptides_per_spec < 1:
            raise ValueError(
                f"num_peptides_per_spec must be >= 1, got {self.num_peptides_per_spec}"
            )
        if self.num_allowed_c13 < 0:
            raise ValueError(f"num_allowed_c13 must be >= 0, got {self.num_allowed_c13}")
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {self.num_threads}")

    @classmethod
    def from_strings(
        cls,
        left_tolerance: str,
        right_tolerance: str,
        enzyme: str = "trypsin",
        **kwargs,
    ) -> 'SearchConfig':
        """Build a config from tolerance and enzyme strings.

        Parameters
        ----------
        left_tolerance, right_tolerance : str
            e.g. ``"10ppm"`` or ``"0.5Da"``
        enzyme : str
            Enzyme name (default: ``"trypsin"``)
        **kwargs
            Other ``SearchConfig`` fields
        """
        return cls(
            left_tolerance=Tolerance.parse(left_tolerance),
            right_tolerance=Tolerance.parse(right_tolerance),
            enzyme=get_enzyme(enzyme),
            **kwargs,
        )
