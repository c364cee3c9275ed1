"""Protein annotation of library candidates and p-value denominators.

Results need two lookups that the library file itself does not answer:
the protein(s) a candidate (identified by its library offset) comes from,
and how many distinct peptides of a given length the search space holds.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Union, runtime_checkable

from ..config import TRYPSIN, Enzyme
from ..search.library_reader import LibraryRecord, read_library
from .digestion import count_peptides_by_length, digest_proteins
from .fasta_reader import read_fasta

logger = logging.getLogger(__name__)

PROTEIN_SEPARATOR = ";"


@runtime_checkable
class SequenceAnnotation(Protocol):
    """Lookup interface used by the result assembler."""

    def get_annotation(self, offset: int) -> str:
        ...

    def get_num_distinct_peptides(self, length: int) -> int:
        ...


class PeptideAnnotation:
    """In-memory ``SequenceAnnotation``.

    Parameters
    ----------
    annotations : Mapping[int, str]
        Library offset -> protein string
    num_distinct_peptides : Mapping[int, int]
        Peptide length -> number of distinct peptides
    default_annotation : str
        Returned for offsets without an entry

    Examples
    --------
    >>> with open("library.pepidx") as f:
    ...     annotation = PeptideAnnotation.from_library(f)
    >>> annotation.get_num_distinct_peptides(9)
    """

    def __init__(
        self,
        annotations: Mapping[int, str],
        num_distinct_peptides: Mapping[int, int],
        default_annotation: str = "",
    ):
        self.annotations = dict(annotations)
        self.num_distinct_peptides = dict(num_distinct_peptides)
        self.default_annotation = default_annotation

    def get_annotation(self, offset: int) -> str:
        return self.annotations.get(offset, self.default_annotation)

    def get_num_distinct_peptides(self, length: int) -> int:
        """Distinct peptides of ``length`` residues (at least 1)."""
        return max(self.num_distinct_peptides.get(length, 0), 1)

    @classmethod
    def from_records(
        cls,
        records: Iterable[LibraryRecord],
        peptide_to_proteins: Optional[Mapping[str, List[str]]] = None,
    ) -> 'PeptideAnnotation':
        """Annotate library records, counting distinct library sequences.

        Parameters
        ----------
        records : Iterable[LibraryRecord]
            Library candidates; offsets are their record indices
        peptide_to_proteins : Mapping[str, List[str]], optional
            Protein IDs per plain sequence. Without it every candidate is
            annotated with an empty string.
        """
        peptide_to_proteins = peptide_to_proteins or {}
        annotations: Dict[int, str] = {}
        sequences = set()
        for record in records:
            sequences.add(record.sequence)
            proteins = peptide_to_proteins.get(record.sequence)
            if proteins:
                annotations[record.index] = PROTEIN_SEPARATOR.join(proteins)

        logger.info(
            f"✓ Annotated {len(annotations):,} library records "
            f"({len(sequences):,} distinct sequences)"
        )
        return cls(annotations, count_peptides_by_length(sequences))

    @classmethod
    def from_library(
        cls,
        lines: Iterable[str],
        peptide_to_proteins: Optional[Mapping[str, List[str]]] = None,
    ) -> 'PeptideAnnotation':
        """Read a library stream and annotate its records."""
        _, records = read_library(lines)
        return cls.from_records(records, peptide_to_proteins)

    @classmethod
    def from_fasta(
        cls,
        fasta_path: Union[str, Path],
        library_lines: Iterable[str],
        enzyme: Enzyme = TRYPSIN,
        min_length: int = 6,
        max_length: int = 40,
        missed_cleavages: int = 2,
    ) -> 'PeptideAnnotation':
        """Annotate a library from a FASTA digest.

        Proteins come from the digest; distinct peptide counts per length
        come from the digest as well, so p-values refer to the whole
        protein database rather than to the library.

        Parameters
        ----------
        fasta_path : str or Path
            Protein database
        library_lines : Iterable[str]
            Library stream (header first)
        enzyme : Enzyme
            Digestion rule (default: trypsin)
        min_length, max_length : int
            Peptide length range of the digest
        missed_cleavages : int
            Missed cleavages of the digest

        Raises
        ------
        FileNotFoundError
            If the FASTA file does not exist
        LibraryFormatError
            If the library header is invalid
        """
        proteins = read_fasta(fasta_path)
        peptide_to_proteins = digest_proteins(
            proteins, enzyme, min_length, max_length, missed_cleavages
        )
        annotation = cls.from_library(library_lines, peptide_to_proteins)
        annotation.num_distinct_peptides = count_peptides_by_length(peptide_to_proteins)
        return annotation
