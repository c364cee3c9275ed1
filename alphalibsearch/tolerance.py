"""Precursor mass tolerances.

Tolerances are given separately for both sides of the precursor mass, either
in Da or in ppm. "Left" and "right" are relative to the spectrum: a library
candidate of mass M matches a spectrum of peptide mass P when
``M - tol_right <= P < M + tol_left``.

Tight tolerances (right side below 0.5 Da) admit C13 isotope errors: the
instrument may have picked the first or second isotope peak as precursor.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import NamedTuple, Tuple

from .constants import ISOTOPE_MASS_DIFFERENCE, to_nominal_mass

# Tolerances narrower than this (in Da) enable C13 correction
ISOTOPE_CORRECTION_THRESHOLD_DA = 0.5

_TOLERANCE_PATTERN = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(ppm|da)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class Tolerance:
    """Mass tolerance in Da or ppm.

    Examples
    --------
    >>> Tolerance.parse("20ppm")
    Tolerance(value=20.0, is_ppm=True)
    >>> Tolerance.parse("0.5Da")
    Tolerance(value=0.5, is_ppm=False)
    """

    value: float
    is_ppm: bool = False

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.value}")

    def to_da(self, mass: float) -> float:
        """Tolerance in Da at the given mass."""
        if self.is_ppm:
            return mass * self.value * 1e-6
        return self.value

    @classmethod
    def parse(cls, tolerance: str) -> 'Tolerance':
        """Parse ``"10ppm"``, ``"10 ppm"``, ``"0.5Da"`` (case-insensitive).

        Raises
        ------
        ValueError
            If the string is not a number followed by ``ppm`` or ``Da``
        """
        match = _TOLERANCE_PATTERN.match(tolerance)
        if match is None:
            raise ValueError(f"Cannot parse tolerance: {tolerance!r}")
        return cls(float(match.group(1)), is_ppm=match.group(2).lower() == "ppm")

    def __str__(self) -> str:
        return f"{self.value:g}{'ppm' if self.is_ppm else 'Da'}"


class ToleranceWindow(NamedTuple):
    """Tolerances resolved at one mass.

    Attributes
    ----------
    left_da : float
        Left tolerance in Da
    right_da : float
        Right tolerance in Da
    num_c13 : int
        Number of C13 isotope errors to consider (0 for wide tolerances)
    """
    left_da: float
    right_da: float
    num_c13: int


def resolve_tolerance(
    mass: float,
    left: Tolerance,
    right: Tolerance,
    num_allowed_c13: int = 0,
) -> ToleranceWindow:
    """Resolve left/right tolerances to Da at ``mass``.

    Parameters
    ----------
    mass : float
        Peptide mass the ppm tolerances refer to
    left, right : Tolerance
        Tolerance specifications
    num_allowed_c13 : int
        Maximum C13 isotope error

    Returns
    -------
    ToleranceWindow
        ``num_c13`` is ``num_allowed_c13`` when the right tolerance is below
        0.5 Da, otherwise 0
    """
    left_da = left.to_da(mass)
    right_da = right.to_da(mass)
    num_c13 = num_allowed_c13 if right_da < ISOTOPE_CORRECTION_THRESHOLD_DA else 0
    return ToleranceWindow(left_da, right_da, num_c13)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def nominal_mass_window(
    peptide_mass: float,
    left: Tolerance,
    right: Tolerance,
    num_allowed_c13: int = 0,
) -> Tuple[int, int]:
    """Nominal peptide masses admissible for a spectrum.

    Parameters
    ----------
    peptide_mass : float
        Precursor neutral mass minus water (residue mass sum)
    left, right : Tolerance
        Tolerance specifications
    num_allowed_c13 : int
        Maximum C13 isotope error, applied to the lower bound when the
        right tolerance is tight

    Returns
    -------
    min_mass, max_mass : int
        Inclusive nominal mass bounds

    Examples
    --------
    >>> nominal_mass_window(1000.5, Tolerance(0.1), Tolerance(0.1), 1)
    (999, 1000)
    >>> nominal_mass_window(1000.5, Tolerance(2.5), Tolerance(2.5), 1)
    (998, 1002)
    """
    window = resolve_tolerance(peptide_mass, left, right, num_allowed_c13)
    nominal_mass = to_nominal_mass(peptide_mass)
    max_mass = nominal_mass + _round_half_up(window.left_da - 0.4999)
    min_mass = nominal_mass - _round_half_up(window.right_da - 0.4999)
    min_mass -= window.num_c13
    return min_mass, max_mass


def isotope_corrected_error(
    experimental_mass: float,
    theoretical_mass: float,
    num_c13: int,
) -> float:
    """Precursor mass error after the best C13 correction.

    Tries shifts of ``0..num_c13`` isotopes and keeps the error with the
    smallest absolute value. On ties the smaller shift wins.

    Parameters
    ----------
    experimental_mass : float
        Measured neutral precursor mass
    theoretical_mass : float
        Theoretical neutral peptide mass (with water)
    num_c13 : int
        Largest isotope shift to try

    Returns
    -------
    float
        ``experimental - theoretical - k * 1.00335`` in Da

    Examples
    --------
    >>> round(isotope_corrected_error(1001.01, 1000.0, 1), 4)
    0.0066
    """
    best_error = math.inf
    for num_isotopes in range(num_c13 + 1):
        error = experimental_mass - theoretical_mass - ISOTOPE_MASS_DIFFERENCE * num_isotopes
        if abs(error) < abs(best_error):
            best_error = error
    return best_error
