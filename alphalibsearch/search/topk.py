"""Bounded top-K retention of peptide-spectrum matches.

Two different rankings are applied to the same matches:

- ``SCORE_ORDER``: higher scorer output is better (library scanning)
- ``SPEC_PROB_ORDER``: lower spectral probability is better (final ranking)

Rankings are injected into ``BoundedTopK`` rather than defined on the match
type. ``MatchAggregator`` is the only shared mutable state of a search; it
owns its lock and exposes merge operations only.

Tie-break
---------
Among matches with equal rank key the one with the lower library index ranks
higher (then the peptide string). The tie-break depends only on the match, so
the retained set is the same whatever order items and passes arrive in. An
item that only ties the current worst on the full key is rejected.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Callable, Dict, Generic, Hashable, Iterable, Iterator, List, NamedTuple, Optional, Tuple, TypeVar

from .matches import CandidateMatch

T = TypeVar('T')
K = TypeVar('K', bound=Hashable)


def library_order(match: CandidateMatch) -> Tuple[int, str]:
    """Tie-break key: lower library index first."""
    return -match.index, match.peptide


class RankingOrder(NamedTuple):
    """Named rank key; a larger key is better.

    ``tie_key`` orders items with equal ``key`` (larger is better).
    """
    name: str
    key: Callable[[CandidateMatch], float]
    tie_key: Callable[[CandidateMatch], Tuple] = library_order


SCORE_ORDER = RankingOrder('score', lambda match: match.score)
SPEC_PROB_ORDER = RankingOrder('spec_prob', lambda match: -match.spec_prob)


class BoundedTopK(Generic[T]):
    """Keeps the K best items offered so far.

    Backed by a min-heap of ``(key, tie_key, -insertion_number, item)`` so
    that the heap root is the current worst item. The insertion number only
    separates items that are equal on both keys.

    Examples
    --------
    >>> store = BoundedTopK(2, SCORE_ORDER)
    >>> for match in matches:
    ...     store.offer(match)
    >>> [m.score for m in store.best_first()]
    """

    def __init__(self, capacity: int, order: RankingOrder):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.order = order
        self._heap: List = []
        self._counter = itertools.count()

    def offer(self, item: T) -> bool:
        """Insert ``item`` if there is room or it beats the current worst.

        Returns
        -------
        bool
            True if the item was retained
        """
        entry = (self.order.key(item), self.order.tie_key(item), -next(self._counter), item)
        if len(self._heap) < self.capacity:
            heapq.heappush(self._heap, entry)
            return True
        if entry[:2] > self._heap[0][:2]:
            heapq.heapreplace(self._heap, entry)
            return True
        return False

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.offer(item)

    def worst(self) -> Optional[T]:
        """Current minimum (next to be evicted), None if empty."""
        return self._heap[0][-1] if self._heap else None

    def best_first(self) -> List[T]:
        """Items from best to worst."""
        return [entry[-1] for entry in sorted(self._heap, key=lambda e: e[:3], reverse=True)]

    def __iter__(self) -> Iterator[T]:
        return (entry[-1] for entry in self._heap)

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def __repr__(self) -> str:
        return f"BoundedTopK(capacity={self.capacity}, order={self.order.name}, size={len(self)})"


class TopKStore(Generic[K]):
    """Mapping from key to ``BoundedTopK``, created on first use.

    Not thread-safe. One store per scanning pass; pass results are combined
    through ``MatchAggregator``.
    """

    def __init__(self, capacity: int, order: RankingOrder):
        self.capacity = capacity
        self.order = order
        self._queues: Dict[K, BoundedTopK] = {}

    def offer(self, key: K, item) -> bool:
        queue = self._queues.get(key)
        if queue is None:
            queue = BoundedTopK(self.capacity, self.order)
            self._queues[key] = queue
        return queue.offer(item)

    def get(self, key: K) -> Optional[BoundedTopK]:
        return self._queues.get(key)

    def keys(self):
        return self._queues.keys()

    def items(self):
        return self._queues.items()

    def __contains__(self, key: K) -> bool:
        return key in self._queues

    def __len__(self) -> int:
        return len(self._queues)


def merge_stores(target: TopKStore, source: TopKStore) -> None:
    """Offer every item of ``source`` to ``target`` (key by key)."""
    for key, queue in source.items():
        for item in queue.best_first():
            target.offer(key, item)


class MatchAggregator:
    """Thread-safe accumulator of per-pass ``TopKStore`` results.

    Workers call ``merge_into`` with their private store when a pass is
    done. After all passes ``get`` gives read access for the probability
    computation and ``drain`` hands the accumulated store out once.

    Parameters
    ----------
    capacity : int
        K, the number of matches retained per key
    order : RankingOrder
        Ranking used when passes compete for the K slots
    """

    def __init__(self, capacity: int, order: RankingOrder = SCORE_ORDER):
        self._lock = threading.Lock()  # guards _store
        self._store: TopKStore = TopKStore(capacity, order)

    def merge_into(self, store: Optional[TopKStore]) -> None:
        """Merge a finished pass into the shared store."""
        if store is None:
            return
        with self._lock:
            merge_stores(self._store, store)

    def get(self, key) -> List[CandidateMatch]:
        """Matches retained for ``key`` (empty list if none)."""
        with self._lock:
            queue = self._store.get(key)
            return list(queue) if queue is not None else []

    def drain(self) -> TopKStore:
        """Hand out the accumulated store and start a new, empty one."""
        with self._lock:
            store = self._store
            self._store = TopKStore(store.capacity, store.order)
            return store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
