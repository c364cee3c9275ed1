"""Physical constants and amino acid masses for library search.

This module provides the residue mass tables and physical constants used
throughout AlphaLibSearch. Values follow NIST and Unimod.

Masses are provided in two domains:

- accurate (float64) monoisotopic residue masses
- nominal (integer) masses, used to index score graphs

Both are available as dictionaries and as ord()-indexed arrays so that
Numba-compiled code can look them up without string handling.

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
- Unimod masses: https://www.unimod.org/masses.html
"""

import numpy as np

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
PROTON_MASS = 1.007276466622  # Da

# Water mass (H2O)
# Calculated: 2*1.007825 + 15.994915 = 18.010564684
H2O_MASS = 18.010564684  # Da

# Mass difference between C12 and C13
# Used for isotope (C13) error correction of the precursor
ISOTOPE_MASS_DIFFERENCE = 1.00335483  # Da

# =============================================================================
# Nominal Mass Conversion
# =============================================================================

# Scaling factor applied before rounding accurate masses to integers.
# Keeps the mass defect of peptides up to ~2 kDa below 0.5 Da.
INTEGER_MASS_SCALER = 0.999497

# Smallest positive normal float32. Probabilities below this are printed
# with full double precision.
FLOAT32_MIN_NORMAL = float(np.finfo(np.float32).tiny)


def to_nominal_mass(mass: float) -> int:
    """Convert an accurate mass to its nominal (integer) mass.

    Parameters
    ----------
    mass : float
        Accurate mass in Da (may be negative for modification deltas)

    Returns
    -------
    int
        Nominal mass

    Examples
    --------
    >>> to_nominal_mass(71.037114)
    71
    >>> to_nominal_mass(-17.026549)
    -17
    """
    return int(np.floor(mass * INTEGER_MASS_SCALER + 0.5))


# =============================================================================
# Amino Acid Monoisotopic Masses (Da)
# =============================================================================

# Standard 20 amino acids (unmodified residue masses)
AA_MASSES_DICT = {
    'A': 71.037114,   # Alanine
    'R': 156.101111,  # Arginine
    'N': 114.042927,  # Asparagine
    'D': 115.026943,  # Aspartic acid
    'C': 103.009185,  # Cysteine (unmodified)
    'E': 129.042593,  # Glutamic acid
    'Q': 128.058578,  # Glutamine
    'G': 57.021464,   # Glycine
    'H': 137.058912,  # Histidine
    'I': 113.084064,  # Isoleucine
    'L': 113.084064,  # Leucine
    'K': 128.094963,  # Lysine
    'M': 131.040485,  # Methionine
    'F': 147.068414,  # Phenylalanine
    'P': 97.052764,   # Proline
    'S': 87.032028,   # Serine
    'T': 101.047679,  # Threonine
    'W': 186.079313,  # Tryptophan
    'Y': 163.063320,  # Tyrosine
    'V': 99.068414,   # Valine
}

# Non-standard amino acids mapped to the mass of a standard equivalent
AA_MASSES_NONSTANDARD = {
    'X': 113.084064,  # Unknown → Leu/Ile
    'Z': 128.058578,  # Glu/Gln → Gln
    'B': 114.042927,  # Asp/Asn → Asn
    'J': 113.084064,  # Leu/Ile → Leu
    'U': 103.009185,  # Selenocysteine → Cys
    'O': 131.040485,  # Pyrrolysine → Met
}

# Nominal residue masses, derived once from the accurate table
AA_NOMINAL_MASSES_DICT = {
    aa: to_nominal_mass(mass) for aa, mass in AA_MASSES_DICT.items()
}

# =============================================================================
# ord()-Indexed Arrays for Numba
# =============================================================================

# Access via: AA_MASSES[ord('A')] → 71.037114
# Unknown residues stay at -1 so that lookups can be validated.
AA_MASSES = np.full(256, -1.0, dtype=np.float64)
AA_NOMINAL_MASSES = np.full(256, -1, dtype=np.int64)

for aa, mass in AA_MASSES_DICT.items():
    AA_MASSES[ord(aa)] = mass
    AA_NOMINAL_MASSES[ord(aa)] = to_nominal_mass(mass)

for aa, mass in AA_MASSES_NONSTANDARD.items():
    AA_MASSES[ord(aa)] = mass
    AA_NOMINAL_MASSES[ord(aa)] = to_nominal_mass(mass)

# =============================================================================
# Common Modification Masses (Unimod)
# =============================================================================

# Carbamidomethylation of Cysteine (Unimod:4)
CARBAMIDOMETHYL_MASS = 57.021464

# Oxidation of Methionine (Unimod:35)
OXIDATION_MASS = 15.994915

# Acetylation (Protein N-term, Unimod:1)
ACETYL_MASS = 42.010565

# Pyro-glu from Q (Unimod:28): loss of NH3
PYRO_GLU_Q_MASS = -17.026549

# Pyro-glu from E (Unimod:27): loss of H2O
PYRO_GLU_E_MASS = -18.010565

# Pyro-carbamidomethyl on N-terminal C (Unimod:26)
PYRO_CARBAMIDOMETHYL_MASS = 39.994915

# Phosphorylation (Unimod:21)
PHOSPHO_MASS = 79.966331

# Deamidation (Unimod:7)
DEAMIDATION_MASS = 0.984016

# =============================================================================
# Default Search Settings
# =============================================================================

# Default precursor tolerance in PPM (both sides)
DEFAULT_PRECURSOR_TOLERANCE_PPM = 20.0

# Default number of C13 isotope errors allowed for tight tolerances
DEFAULT_NUM_ALLOWED_C13 = 1

# Default number of candidates retained per spectrum
DEFAULT_NUM_PEPTIDES_PER_SPEC = 10

# Longest library peptide accepted
MAX_LIBRARY_PEPTIDE_LENGTH = 100
