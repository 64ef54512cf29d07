"""
Per-Scan Memoization

The forward scan revisits the same windows many times (every index in a
base re-derives the same prior move, ADR and range bounds). ScanCache
memoizes those results for one symbol's scan.

Keys are index-relative and carry no symbol, so a cache must be owned by
exactly one scan. SetupScanner creates a fresh instance per call; never
share one across symbols or threads.
"""

import logging
from typing import Any, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class ScanCache:
    """Memo table keyed by tuples such as ("adr", index, window)."""

    def __init__(self):
        self._entries: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = compute()
        self._entries[key] = value
        return value

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def clear_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix; returns the number removed."""
        stale = [k for k in self._entries if isinstance(k, tuple) and k and k[0] == prefix]
        for k in stale:
            del self._entries[k]
        return len(stale)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
