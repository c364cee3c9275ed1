"""Protein annotation of library matches.

- FASTA reading (UniProt and generic headers)
- In silico digestion with the search enzyme
- Library offset -> protein lookup and distinct peptide counts per length
"""

from .fasta_reader import (
    FastaProtein,
    read_fasta,
    iter_fasta,
    parse_protein_id,
)

from .digestion import (
    cleavage_sites,
    digest_protein,
    digest_proteins,
    count_peptides_by_length,
)

from .annotation import (
    SequenceAnnotation,
    PeptideAnnotation,
)

__all__ = [
    # FASTA reading
    'FastaProtein',
    'read_fasta',
    'iter_fasta',
    'parse_protein_id',
    # Digestion
    'cleavage_sites',
    'digest_protein',
    'digest_proteins',
    'count_peptides_by_length',
    # Annotation
    'SequenceAnnotation',
    'PeptideAnnotation',
]
