"""In silico digestion for protein annotation and p-value denominators.

Specific enzymes cleave after their residues (``Enzyme.residues``) with up
to ``missed_cleavages`` missed sites. A non-specific enzyme yields every
subsequence in the length range. Peptides with residues outside the
standard alphabet are dropped.

Performance
-----------
Non-specific digestion is O(protein_length * max_length) per protein.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List

from ..config import Enzyme
from ..constants import AA_MASSES_DICT
from .fasta_reader import FastaProtein

logger = logging.getLogger(__name__)


def cleavage_sites(sequence: str, enzyme: Enzyme) -> List[int]:
    """Peptide boundaries: 0, every position after a cleavage residue, and
    ``len(sequence)``.

    Examples
    --------
    >>> from alphalibsearch.config import TRYPSIN
    >>> cleavage_sites("AAAKGGGRCCC", TRYPSIN)
    [0, 4, 8, 11]
    """
    sites = [0]
    for i, aa in enumerate(sequence[:-1]):
        if aa in enzyme.residues:
            sites.append(i + 1)
    sites.append(len(sequence))
    return sites


def digest_protein(
    sequence: str,
    enzyme: Enzyme,
    min_length: int = 7,
    max_length: int = 35,
    missed_cleavages: int = 2,
) -> List[str]:
    """Digest one protein.

    Parameters
    ----------
    sequence : str
        Protein sequence
    enzyme : Enzyme
        Cleavage rule; non-specific enzymes produce all subsequences
    min_length, max_length : int
        Peptide length range (inclusive)
    missed_cleavages : int
        Missed cleavages allowed for specific enzymes

    Returns
    -------
    List[str]
        Peptides in order of appearance (may contain repeats)

    Examples
    --------
    >>> from alphalibsearch.config import TRYPSIN
    >>> digest_protein("AAAKGGGRCCC", TRYPSIN, min_length=1, missed_cleavages=1)
    ['AAAK', 'GGGR', 'CCC', 'AAAKGGGR', 'GGGRCCC']
    """
    peptides = []
    if enzyme.is_specific:
        sites = cleavage_sites(sequence, enzyme)
        for mc in range(missed_cleavages + 1):
            for i in range(len(sites) - mc - 1):
                peptides.append(sequence[sites[i]:sites[i + mc + 1]])
    else:
        for start in range(len(sequence)):
            for end in range(start + min_length, min(start + max_length, len(sequence)) + 1):
                peptides.append(sequence[start:end])

    return [
        peptide for peptide in peptides
        if min_length <= len(peptide) <= max_length
        and all(aa in AA_MASSES_DICT for aa in peptide)
    ]


def digest_proteins(
    proteins: Iterable[FastaProtein],
    enzyme: Enzyme,
    min_length: int = 7,
    max_length: int = 35,
    missed_cleavages: int = 2,
) -> Dict[str, List[str]]:
    """Digest proteins and map each distinct peptide to its proteins.

    Returns
    -------
    Dict[str, List[str]]
        peptide sequence -> protein IDs (order of first appearance, no repeats)
    """
    peptide_to_proteins: Dict[str, List[str]] = defaultdict(list)
    num_proteins = 0
    for num_proteins, protein in enumerate(proteins, start=1):
        for peptide in dict.fromkeys(digest_protein(
            protein.sequence, enzyme, min_length, max_length, missed_cleavages
        )):
            peptide_to_proteins[peptide].append(protein.protein_id)

        if num_proteins % 5000 == 0:
            logger.info(
                f"  Processed {num_proteins:,} proteins: "
                f"{len(peptide_to_proteins):,} unique peptides"
            )

    logger.info(
        f"✓ Digested {num_proteins:,} proteins with {enzyme.name}: "
        f"{len(peptide_to_proteins):,} unique peptides"
    )
    return dict(peptide_to_proteins)


def count_peptides_by_length(peptides: Iterable[str]) -> Dict[int, int]:
    """Number of distinct peptides per length.

    Examples
    --------
    >>> count_peptides_by_length(["PEPTIDE", "PEPTIDE", "PROTEIN", "K"])
    {1: 1, 7: 2}
    """
    return dict(sorted(Counter(len(peptide) for peptide in set(peptides)).items()))
