"""Library search driver.

Runs the three stages of a library search over a worker pool:

1. Candidate matching: the library is split into ``num_threads`` shards by
   record ordinal. Each worker scans its shard into a private store and
   merges it into the shared ``MatchAggregator``.
2. Spectral probabilities: the spectrum key list is split into contiguous
   partitions, one per worker.
3. Result assembly: the aggregator is drained once and turned into records.

Examples
--------
>>> config = SearchConfig.from_strings("20ppm", "20ppm", num_threads=4)
>>> spectra = ScoredSpectraMap.from_config(scorers, config)
>>> with open("library.pepidx") as f:
...     annotation = PeptideAnnotation.from_library(f)
>>> results = run_library_search(spectra, "library.pepidx", annotation, config,
...                              spec_file_name="run1.mzML", output_path="run1.tsv")
"""

from __future__ import annotations

import logging
import multiprocessing.pool
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import SearchConfig
from .database.annotation import SequenceAnnotation
from .scoring.results import PSMResult, ResultAssembler, write_results
from .scoring.spectral_probability import SpectralProbabilityEngine
from .search.candidate_matching import LibraryMatcher
from .search.spectra import ScoredSpectraMap
from .search.topk import SCORE_ORDER, MatchAggregator

logger = logging.getLogger(__name__)

LibrarySource = Union[str, Path, Iterable[str]]


def partition_range(n: int, num_parts: int) -> List[Tuple[int, int]]:
    """Split ``range(n)`` into at most ``num_parts`` contiguous ``[from, to)``.

    Examples
    --------
    >>> partition_range(10, 3)
    [(0, 4), (4, 7), (7, 10)]
    >>> partition_range(2, 4)
    [(0, 1), (1, 2)]
    """
    num_parts = max(min(num_parts, n), 1)
    size, remainder = divmod(n, num_parts)
    bounds = []
    start = 0
    for i in range(num_parts):
        end = start + size + (1 if i < remainder else 0)
        bounds.append((start, end))
        start = end
    return bounds


class LibrarySearch:
    """One library search run over a fixed set of spectra.

    Parameters
    ----------
    spectra : ScoredSpectraMap
        Scored spectra with their mass index
    config : SearchConfig
        Search settings
    annotation : SequenceAnnotation
        Protein lookup and p-value denominators
    """

    def __init__(
        self,
        spectra: ScoredSpectraMap,
        config: SearchConfig,
        annotation: SequenceAnnotation,
    ):
        self.spectra = spectra
        self.config = config
        self.annotation = annotation
        self.aggregator = MatchAggregator(config.num_peptides_per_spec, SCORE_ORDER)

    def _scan_shard(self, library: LibrarySource, shard: int, num_shards: int) -> None:
        matcher = LibraryMatcher(self.spectra, self.config, thread_name=f"Thread {shard}")
        if isinstance(library, (str, Path)):
            with open(library) as f:
                store = matcher.match_against_library(
                    f, shard=shard, num_shards=num_shards, verbose=shard == 0
                )
        else:
            store = matcher.match_against_library(
                library, shard=shard, num_shards=num_shards, verbose=shard == 0
            )
        self.aggregator.merge_into(store)

    def scan_library(self, library: LibrarySource) -> None:
        """Match all library candidates against the spectra.

        Parameters
        ----------
        library : str, Path or Iterable[str]
            Library file, or its lines. One-pass iterables such as open file
            handles are read into a list when several threads scan them.

        Raises
        ------
        LibraryFormatError
            If the library header is invalid or a modification is unknown
        """
        num_shards = self.config.num_threads
        logger.info(f"Scanning library with {num_shards} thread(s)...")

        if num_shards == 1:
            self._scan_shard(library, 0, 1)
        else:
            if not isinstance(library, (str, Path, Sequence)):
                library = list(library)
            with multiprocessing.pool.ThreadPool(num_shards) as pool:
                pool.starmap(
                    self._scan_shard,
                    [(library, shard, num_shards) for shard in range(num_shards)],
                )

        logger.info(f"✓ Library scan complete: matches for {len(self.aggregator):,} spectra")

    def compute_spectral_probabilities(self, store_score_dist: Optional[bool] = None) -> int:
        """Annotate retained matches with spectral probabilities.

        Returns
        -------
        int
            Number of scored matches
        """
        if store_score_dist is None:
            store_score_dist = self.config.store_score_dist
        engine = SpectralProbabilityEngine(self.spectra, self.aggregator, self.config)
        partitions = partition_range(len(self.spectra), self.config.num_threads)

        if len(partitions) == 1:
            from_index, to_index = partitions[0]
            return engine.compute(from_index, to_index, store_score_dist)

        with multiprocessing.pool.ThreadPool(len(partitions)) as pool:
            counts = pool.starmap(
                engine.compute,
                [(from_index, to_index, store_score_dist) for from_index, to_index in partitions],
            )
        return sum(counts)

    def collect_results(
        self,
        sink: Optional[List[PSMResult]] = None,
        spec_file_name: str = "",
        replicate_merged: Optional[bool] = None,
    ) -> List[PSMResult]:
        """Drain the aggregator into result records appended to ``sink``."""
        if sink is None:
            sink = []
        assembler = ResultAssembler(self.spectra, self.annotation, self.config)
        sink.extend(assembler.assemble(self.aggregator.drain(), spec_file_name, replicate_merged))
        return sink

    def run(self, library: LibrarySource, spec_file_name: str = "") -> List[PSMResult]:
        """Scan, score and assemble."""
        self.scan_library(library)
        self.compute_spectral_probabilities()
        return self.collect_results(spec_file_name=spec_file_name)


def run_library_search(
    spectra: ScoredSpectraMap,
    library: LibrarySource,
    annotation: SequenceAnnotation,
    config: SearchConfig,
    spec_file_name: str = "",
    output_path: Optional[Union[str, Path]] = None,
) -> List[PSMResult]:
    """Run a complete library search and optionally write the TSV.

    Nothing is written if any stage raises.

    Returns
    -------
    List[PSMResult]
        Records grouped by spectrum index, best first
    """
    logger.info(
        f"Library search: {len(spectra):,} spectra, K={config.num_peptides_per_spec}, "
        f"tolerance=[{config.left_tolerance}, {config.right_tolerance}]"
    )
    results = LibrarySearch(spectra, config, annotation).run(library, spec_file_name)
    if output_path is not None:
        write_results(results, output_path, ppm=config.right_tolerance.is_ppm)
    return results
