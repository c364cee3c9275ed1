"""Modification table and prefix residue masses for library peptides.

This module maps modification names found in library files to mass deltas
and display tokens, parses the per-peptide modification annotation of the
library format, and builds the prefix residue mass (PRM) arrays that the
spectrum scorers consume.

Key Features
------------
- Immutable ``ModificationTable`` built once and shared by all workers
- Parsing of ``modcount/location,residue,name/...`` annotations
- Accurate (float64) and nominal (int) PRM arrays in one pass (Numba)
- Peptide display strings with inline mass tags, e.g. ``AC+57.021DEK``

Examples
--------
>>> table = ModificationTable.default()
>>> num_mods, mods = parse_modification_annotation("1/1,C,Carbamidomethyl")
>>> peptide = build_modified_peptide("ACDEK", mods, table)
>>> peptide.formatted
'AC+57.021DEK'
>>> peptide.prm[-1]  # residue mass sum, no water
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Tuple

import numba
import numpy as np

from .constants import (
    AA_MASSES,
    AA_NOMINAL_MASSES,
    ACETYL_MASS,
    CARBAMIDOMETHYL_MASS,
    DEAMIDATION_MASS,
    MAX_LIBRARY_PEPTIDE_LENGTH,
    OXIDATION_MASS,
    PHOSPHO_MASS,
    PYRO_CARBAMIDOMETHYL_MASS,
    PYRO_GLU_E_MASS,
    PYRO_GLU_Q_MASS,
    to_nominal_mass,
)

# Location used by library files for N-terminal modifications
N_TERM_LOCATION = -1


# =============================================================================
# Modification Table
# =============================================================================

@dataclass(frozen=True)
class Modification:
    """A named mass shift.

    Attributes
    ----------
    name : str
        Name as written in library files (e.g. ``"Oxidation"``)
    mass_delta : float
        Accurate mass shift in Da
    display : str
        Token appended after the modified residue in peptide strings
    residues : str
        Residues the modification can occur on (empty: any residue). Used
        only to build the residue alphabet of score graphs.
    n_term : bool
        True for modifications that only occur on the peptide N-terminus;
        they are left out of the residue alphabet
    """

    name: str
    mass_delta: float
    display: str
    residues: str = ""
    n_term: bool = False

    @property
    def nominal_mass_delta(self) -> int:
        return to_nominal_mass(self.mass_delta)

    @classmethod
    def from_mass(
        cls, name: str, mass_delta: float, residues: str = "", n_term: bool = False
    ) -> 'Modification':
        """Create a modification whose display token is the signed mass."""
        return cls(
            name=name, mass_delta=mass_delta, display=f"{mass_delta:+.3f}",
            residues=residues, n_term=n_term,
        )


# Names follow the library file conventions: name -> (mass delta, residues, N-terminal only)
DEFAULT_MODIFICATIONS = {
    'Carbamidomethyl': (CARBAMIDOMETHYL_MASS, "C", False),
    'Oxidation': (OXIDATION_MASS, "M", False),
    'Acetyl': (ACETYL_MASS, "", True),
    'Gln->pyro-Glu': (PYRO_GLU_Q_MASS, "Q", True),
    'Glu->pyro-Glu': (PYRO_GLU_E_MASS, "E", True),
    'Pyro-carbamidomethyl': (PYRO_CARBAMIDOMETHYL_MASS, "C", True),
    'Phospho': (PHOSPHO_MASS, "STY", False),
    'Deamidation': (DEAMIDATION_MASS, "NQ", False),
}


@dataclass(frozen=True, eq=False)
class ModificationTable:
    """Read-only mapping from modification name to ``Modification``.

    Constructed once at start-up and passed to every component that needs
    it. Safe to share between threads.
    """

    _modifications: Mapping[str, Modification] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the mapping itself, not just the attribute
        object.__setattr__(
            self, '_modifications', MappingProxyType(dict(self._modifications))
        )

    @classmethod
    def from_masses(cls, masses: Dict[str, float]) -> 'ModificationTable':
        """Build a table from ``{name: mass_delta}`` (any residue)."""
        return cls({name: Modification.from_mass(name, mass) for name, mass in masses.items()})

    @classmethod
    def default(cls) -> 'ModificationTable':
        """Table with the modifications found in common spectral libraries."""
        return cls({
            name: Modification.from_mass(name, mass, residues, n_term)
            for name, (mass, residues, n_term) in DEFAULT_MODIFICATIONS.items()
        })

    def get(self, name: str) -> Modification:
        """Look up a modification by name.

        Raises
        ------
        KeyError
            If the name is not in the table
        """
        try:
            return self._modifications[name]
        except KeyError:
            raise KeyError(f"Unknown modification: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._modifications

    def __iter__(self):
        return iter(self._modifications.values())

    def __len__(self) -> int:
        return len(self._modifications)


# =============================================================================
# Library Annotation Parsing
# =============================================================================

def parse_modification_annotation(mod_info: str) -> Tuple[int, List[Tuple[int, str, str]]]:
    """Parse the modification part of a library annotation.

    Parameters
    ----------
    mod_info : str
        ``"modcount/location,residue,name/..."``. Locations are 0-based,
        ``-1`` marks an N-terminal modification.

    Returns
    -------
    num_mods : int
        Declared number of modifications
    modifications : List[Tuple[int, str, str]]
        ``(location, residue, name)`` per modification

    Raises
    ------
    ValueError
        If the count or a location is not an integer

    Examples
    --------
    >>> parse_modification_annotation("0")
    (0, [])
    >>> parse_modification_annotation("2/-1,A,Acetyl/4,M,Oxidation")
    (2, [(-1, 'A', 'Acetyl'), (4, 'M', 'Oxidation')])
    """
    tokens = mod_info.split("/")
    num_mods = int(tokens[0])

    modifications = []
    for token in tokens[1:]:
        location, residue, name = token.split(",", 2)
        modifications.append((int(location), residue, name))

    return num_mods, modifications


# =============================================================================
# Prefix Residue Masses (Numba-Compiled)
# =============================================================================

def encode_peptide_to_ord(peptide: str) -> np.ndarray:
    """Encode peptide string to ord() array for Numba processing.

    Examples
    --------
    >>> encode_peptide_to_ord("PEPTIDE")
    array([80, 69, 80, 84, 73, 68, 69], dtype=uint8)
    """
    return np.array([ord(c) for c in peptide], dtype=np.uint8)


@numba.jit(nopython=True, cache=True)
def compute_prefix_masses(
    peptide_ord: np.ndarray,
    mod_masses: np.ndarray,
    mod_nominal_masses: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Cumulative accurate and nominal residue masses (Numba-compiled).

    Parameters
    ----------
    peptide_ord : np.ndarray (uint8)
        Peptide sequence as ord() values
    mod_masses : np.ndarray (float64)
        Modification mass shift per residue position (0 if unmodified)
    mod_nominal_masses : np.ndarray (int64)
        Nominal modification mass shift per residue position

    Returns
    -------
    prm : np.ndarray (float64), shape (n + 1,)
        ``prm[0] = 0``, ``prm[i]`` is the mass of the first i residues
    nominal_prm : np.ndarray (int64), shape (n + 1,)
        Same in the nominal mass domain

    Notes
    -----
    ``prm[-1]`` is the peptide residue mass, without terminal water.
    """
    n = len(peptide_ord)
    prm = np.zeros(n + 1, dtype=np.float64)
    nominal_prm = np.zeros(n + 1, dtype=np.int64)

    for i in range(n):
        residue = peptide_ord[i]
        prm[i + 1] = prm[i] + AA_MASSES[residue] + mod_masses[i]
        nominal_prm[i + 1] = nominal_prm[i] + AA_NOMINAL_MASSES[residue] + mod_nominal_masses[i]

    return prm, nominal_prm


class ModifiedPeptide(NamedTuple):
    """A library peptide with modifications applied.

    Attributes
    ----------
    sequence : str
        Plain residue sequence
    formatted : str
        Residues with inline modification tags
    prm : np.ndarray (float64)
        Accurate prefix residue masses, length ``len(sequence) + 1``
    nominal_prm : np.ndarray (int64)
        Nominal prefix residue masses
    num_mods : int
        Number of modifications
    """
    sequence: str
    formatted: str
    prm: np.ndarray
    nominal_prm: np.ndarray
    num_mods: int

    @property
    def mass(self) -> float:
        """Residue mass sum (no water)."""
        return float(self.prm[-1])

    @property
    def nominal_mass(self) -> int:
        return int(self.nominal_prm[-1])


def build_modified_peptide(
    sequence: str,
    modifications: List[Tuple[int, str, str]],
    mod_table: ModificationTable,
) -> ModifiedPeptide:
    """Apply modifications to a sequence and compute its prefix masses.

    Parameters
    ----------
    sequence : str
        Peptide sequence (uppercase one-letter codes)
    modifications : List[Tuple[int, str, str]]
        ``(location, residue, name)`` from ``parse_modification_annotation``
    mod_table : ModificationTable
        Known modifications

    Returns
    -------
    ModifiedPeptide

    Raises
    ------
    KeyError
        If a modification name is not in ``mod_table``
    ValueError
        If the sequence contains an unknown residue, is too long, or a
        modification location is outside the sequence

    Notes
    -----
    N-terminal modifications (location -1) add their mass to the first
    residue and are displayed before it. Several modifications on one
    residue add up.
    """
    if not sequence or any(ord(aa) > 255 for aa in sequence):
        raise ValueError(f"Invalid peptide sequence: {sequence!r}")
    if len(sequence) > MAX_LIBRARY_PEPTIDE_LENGTH:
        raise ValueError(f"Peptide longer than {MAX_LIBRARY_PEPTIDE_LENGTH} residues: {sequence!r}")
    peptide_ord = encode_peptide_to_ord(sequence)
    if np.any(AA_MASSES[peptide_ord] < 0):
        raise ValueError(f"Invalid peptide sequence: {sequence!r}")

    n = len(sequence)
    mod_masses = np.zeros(n, dtype=np.float64)
    mod_nominal_masses = np.zeros(n, dtype=np.int64)
    n_term_tokens = []
    residue_tokens = [[] for _ in range(n)]

    for location, _, name in modifications:
        mod = mod_table.get(name)
        if location == N_TERM_LOCATION:
            position = 0
            n_term_tokens.append(mod.display)
        else:
            position = location
            if not 0 <= position < n:
                raise ValueError(
                    f"Modification {name} at {location} outside {sequence!r}"
                )
            residue_tokens[position].append(mod.display)
        mod_masses[position] += mod.mass_delta
        mod_nominal_masses[position] += mod.nominal_mass_delta

    prm, nominal_prm = compute_prefix_masses(peptide_ord, mod_masses, mod_nominal_masses)

    formatted = "".join(n_term_tokens) + "".join(
        aa + "".join(tokens) for aa, tokens in zip(sequence, residue_tokens)
    )

    return ModifiedPeptide(
        sequence=sequence,
        formatted=formatted,
        prm=prm,
        nominal_prm=nominal_prm,
        num_mods=len(modifications),
    )
