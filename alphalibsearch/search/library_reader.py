"""Streaming reader for peptide library index files.

Library files are line oriented::

    # Total number of distinct ions in library 2
    # ===
    ACDEFGHIK   2|0        <opaque>
    AC+57.021DEK  2|1/1,C,Carbamidomethyl  <opaque>

The header declares the number of distinct peptide ions. Data lines carry
three whitespace-separated fields: the peptide, ``charge|modifications``
and a third column this reader does not interpret.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, NamedTuple, Tuple

from ..exceptions import LibraryFormatError
from ..modifications import parse_modification_annotation

logger = logging.getLogger(__name__)

HEADER_KEYWORD = "Total number of distinct ions in library"
HEADER_END = "==="

N_FIELDS = 3


class LibraryRecord(NamedTuple):
    """One candidate peptide ion of the library.

    Attributes
    ----------
    index : int
        Ordinal of the record among well-formed data lines (library offset)
    sequence : str
        Plain peptide sequence
    charge : int
        Precursor charge
    num_mods : int
        Declared number of modifications
    modifications : List[Tuple[int, str, str]]
        ``(location, residue, name)``, location 0-based or -1 for N-term
    """
    index: int
    sequence: str
    charge: int
    num_mods: int
    modifications: List[Tuple[int, str, str]]


def read_library_header(lines: Iterator[str]) -> int:
    """Consume header lines and return the declared number of ions.

    Reading stops after the count line or at a ``#`` line containing
    ``===``, whichever comes first.

    Parameters
    ----------
    lines : Iterator[str]
        Library lines; advanced past the header

    Returns
    -------
    int
        Number of distinct peptide ions in the library

    Raises
    ------
    LibraryFormatError
        If no count is declared or the count is zero
    """
    num_ions = 0
    for line in lines:
        if line.startswith("#") and HEADER_KEYWORD in line:
            num_ions = int(line.split()[-1])
            break
        if line.startswith("#") and HEADER_END in line:
            break

    if num_ions == 0:
        raise LibraryFormatError(
            f"Library header must declare '{HEADER_KEYWORD} <n>' with n > 0"
        )
    return num_ions


def parse_library_line(line: str, index: int) -> LibraryRecord:
    """Parse one data line (exactly three fields).

    Raises
    ------
    ValueError
        If charge, modification count or a location is not an integer
    """
    sequence, info, _ = line.split()
    charge_str, sep, mod_info = info.partition("|")
    if not sep:
        raise ValueError(f"Missing '|' in library annotation: {info!r}")
    num_mods, modifications = parse_modification_annotation(mod_info)
    return LibraryRecord(index, sequence, int(charge_str), num_mods, modifications)


def iter_library_records(lines: Iterable[str]) -> Iterator[LibraryRecord]:
    """Yield records from data lines that follow the header.

    Empty lines and ``#`` comments are ignored. Lines with a field count
    other than three are skipped.
    """
    index = 0
    for line in lines:
        line = line.rstrip("\n")
        if not line or line.startswith("#"):
            continue
        if len(line.split()) != N_FIELDS:
            logger.debug(f"Skipping malformed library line: {line!r}")
            continue
        yield parse_library_line(line, index)
        index += 1


def read_library(lines: Iterable[str]) -> Tuple[int, Iterator[LibraryRecord]]:
    """Read the header and return the count plus a lazy record iterator.

    Examples
    --------
    >>> with open("library.pepidx") as f:
    ...     num_ions, records = read_library(f)
    ...     for record in records:
    ...         print(record.sequence, record.charge)
    """
    line_iter = iter(lines)
    num_ions = read_library_header(line_iter)
    return num_ions, iter_library_records(line_iter)
