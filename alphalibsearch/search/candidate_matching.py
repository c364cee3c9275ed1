"""Matching of library candidates against scored spectra.

For every library peptide ion the matcher computes prefix residue masses,
looks up all spectra whose precursor falls into the tolerance window, scores
the candidate with each spectrum of the same charge and keeps the K best
candidates per spectrum.

Key Features
------------
- Half-open precursor window ``[M - tol_right, M + tol_left)``
- Accurate and nominal prefix masses computed once per candidate (Numba)
- Per-pass ``TopKStore`` ranked by score, merged into a shared aggregator
- Library sharding by record ordinal for multi-threaded scanning

Examples
--------
>>> matcher = LibraryMatcher(spectra, config)
>>> with open("library.pepidx") as f:
...     store = matcher.match_against_library(f)
>>> aggregator.merge_into(store)
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from ..config import SearchConfig
from ..exceptions import LibraryFormatError
from ..modifications import ModifiedPeptide, build_modified_peptide
from ..tolerance import resolve_tolerance
from .library_reader import LibraryRecord, read_library
from .matches import CandidateMatch
from .spectra import ScoredSpectraMap, SpectrumKey
from .topk import SCORE_ORDER, TopKStore

logger = logging.getLogger(__name__)

# Candidates between two progress messages
PROGRESS_INTERVAL = 100_000


def candidate_mass_range(
    peptide_mass: float,
    spectra: ScoredSpectraMap,
) -> Tuple[float, float]:
    """Half-open window of spectrum peptide masses matching a candidate.

    The right tolerance widens the lower bound and the left tolerance the
    upper bound, because tolerances are defined relative to the spectrum.

    Parameters
    ----------
    peptide_mass : float
        Candidate residue mass sum (no water)
    spectra : ScoredSpectraMap
        Provides the tolerances

    Returns
    -------
    lower, upper : float
        ``[peptide_mass - tol_right, peptide_mass + tol_left)``
    """
    window = resolve_tolerance(peptide_mass, spectra.left_tolerance, spectra.right_tolerance)
    return peptide_mass - window.right_da, peptide_mass + window.left_da


class LibraryMatcher:
    """Scans library candidates against a ``ScoredSpectraMap``.

    Parameters
    ----------
    spectra : ScoredSpectraMap
        Spectra with their scorers and mass index
    config : SearchConfig
        Supplies K and the modification table
    thread_name : str
        Prefix for progress messages
    """

    def __init__(
        self,
        spectra: ScoredSpectraMap,
        config: SearchConfig,
        thread_name: str = "",
    ):
        self.spectra = spectra
        self.config = config
        self.thread_name = thread_name

    def prepare_candidate(self, record: LibraryRecord) -> Optional[ModifiedPeptide]:
        """Prefix masses and display string of a library record.

        Returns None for sequences with unknown residues or out-of-range
        modification sites.

        Raises
        ------
        LibraryFormatError
            If the record uses a modification missing from the table
        """
        try:
            return build_modified_peptide(
                record.sequence, record.modifications, self.config.modifications
            )
        except KeyError as e:
            raise LibraryFormatError(f"{e.args[0]} (record {record.index}: {record.sequence})") from e
        except ValueError as e:
            logger.debug(f"Skipping library record {record.index}: {e}")
            return None

    def score_candidate(
        self,
        record: LibraryRecord,
        peptide: ModifiedPeptide,
    ) -> List[Tuple[SpectrumKey, CandidateMatch]]:
        """Score one candidate against every spectrum in its mass window.

        Spectra with another charge are ignored. A spectrum reached through
        several isotope index entries is scored once.
        """
        lower, upper = candidate_mass_range(peptide.mass, self.spectra)
        length = len(peptide.sequence)

        matches = []
        seen = set()
        for key in self.spectra.get_matching_keys(lower, upper):
            if key.charge != record.charge or key in seen:
                continue
            seen.add(key)

            scorer = self.spectra.get_scorer(key)
            score = int(scorer.score(
                peptide.prm, peptide.nominal_prm, 1, length + 1, record.num_mods
            ))
            matches.append((key, CandidateMatch(
                index=record.index,
                length=length,
                score=score,
                nominal_peptide_mass=peptide.nominal_mass,
                peptide=peptide.formatted,
                peptide_mass=peptide.mass,
            )))
        return matches

    def match_records(
        self,
        records: Iterable[LibraryRecord],
        num_ions: int = 0,
        shard: int = 0,
        num_shards: int = 1,
        verbose: bool = True,
    ) -> TopKStore:
        """Scan records and return this pass's top-K store.

        Parameters
        ----------
        records : Iterable[LibraryRecord]
            Library candidates
        num_ions : int
            Declared library size, used for progress messages only
        shard, num_shards : int
            Only records with ``index % num_shards == shard`` are scanned
        verbose : bool
            Log progress every 100,000 candidates

        Returns
        -------
        TopKStore
            Best ``num_peptides_per_spec`` matches per ``SpectrumKey`` by score
        """
        store = TopKStore(self.config.num_peptides_per_spec, SCORE_ORDER)

        num_scanned = 0
        num_matches = 0
        for record in records:
            if record.index % num_shards != shard:
                continue

            if verbose and num_scanned % PROGRESS_INTERVAL == 0 and num_ions > 0:
                logger.info(
                    f"{self.thread_name}: Database search progress... "
                    f"{num_scanned / num_ions * 100:.1f}% complete"
                )
            num_scanned += 1

            peptide = self.prepare_candidate(record)
            if peptide is None:
                continue

            for key, match in self.score_candidate(record, peptide):
                store.offer(key, match)
                num_matches += 1

        logger.info(
            f"✓ {self.thread_name}: scanned {num_scanned:,} candidates, "
            f"{num_matches:,} matches to {len(store):,} spectra"
        )
        return store

    def match_against_library(
        self,
        lines: Iterable[str],
        shard: int = 0,
        num_shards: int = 1,
        verbose: bool = True,
    ) -> TopKStore:
        """Read a library stream (header first) and scan all its candidates.

        Raises
        ------
        LibraryFormatError
            If the header does not declare a positive number of ions
        """
        num_ions, records = read_library(lines)
        return self.match_records(
            records,
            num_ions=num_ions,
            shard=shard,
            num_shards=num_shards,
            verbose=verbose,
        )
