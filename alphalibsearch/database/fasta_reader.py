"""FASTA reading for protein annotation of library matches.

Supports UniProt (``>sp|P12345|NAME_HUMAN ...``) and generic
(``>PROTEIN_ID ...``) headers. Parsing is streaming; ``read_fasta`` only
collects the stream into a list.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, NamedTuple, Tuple, Union

logger = logging.getLogger(__name__)


class FastaProtein(NamedTuple):
    """One FASTA entry.

    Attributes
    ----------
    protein_id : str
        Accession (UniProt) or first header token
    sequence : str
        Residues, line breaks removed
    description : str
        Full header without ``>``
    """
    protein_id: str
    sequence: str
    description: str


def parse_protein_id(header: str) -> Tuple[str, str]:
    """Extract protein ID and description from a FASTA header.

    Examples
    --------
    >>> parse_protein_id("sp|P12345|NAME_HUMAN Some protein")
    ('P12345', 'sp|P12345|NAME_HUMAN Some protein')
    >>> parse_protein_id("PROT123 Description here")
    ('PROT123', 'PROT123 Description here')
    """
    description = header.strip()
    parts = description.split('|')
    if len(parts) >= 2 and parts[1]:
        return parts[1], description
    return description.split()[0], description


def iter_fasta(lines: Iterable[str], min_length: int = 0) -> Iterator[FastaProtein]:
    """Yield proteins from FASTA lines.

    Entries with an empty sequence or fewer than ``min_length`` residues are
    dropped.
    """
    protein_id = None
    description = ""
    chunks: List[str] = []

    for line in lines:
        line = line.strip()
        if line.startswith('>'):
            if protein_id is not None:
                sequence = ''.join(chunks)
                if sequence and len(sequence) >= min_length:
                    yield FastaProtein(protein_id, sequence, description)
            protein_id, description = parse_protein_id(line[1:])
            chunks = []
        elif line:
            chunks.append(line)

    if protein_id is not None:
        sequence = ''.join(chunks)
        if sequence and len(sequence) >= min_length:
            yield FastaProtein(protein_id, sequence, description)


def read_fasta(
    fasta_path: Union[str, Path],
    min_length: int = 0,
) -> List[FastaProtein]:
    """Read all proteins of a FASTA file.

    Parameters
    ----------
    fasta_path : str or Path
        Path to FASTA file
    min_length : int
        Minimum protein length (default: 0, no filter)

    Returns
    -------
    List[FastaProtein]

    Raises
    ------
    FileNotFoundError
        If the file does not exist

    Examples
    --------
    >>> proteins = read_fasta("human.fasta", min_length=7)
    >>> proteins[0].protein_id
    """
    fasta_path = Path(fasta_path)
    if not fasta_path.exists():
        raise FileNotFoundError(f"FASTA file not found: {fasta_path}")

    logger.info(f"Reading FASTA file: {fasta_path.name}")
    with open(fasta_path) as f:
        proteins = list(iter_fasta(f, min_length=min_length))

    logger.info(f"✓ Read {len(proteins):,} proteins from {fasta_path.name}")
    return proteins
