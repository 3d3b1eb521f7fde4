"""Content-addressed narrative cache.

Keys are a 32-bit rolling hash of the exact prompt text, computed the same
way a browser computes `hash = ((hash << 5) - hash) + charCodeAt(i)` so keys
stay stable across front ends. Collisions are possible and silently return
the colliding entry.

The cache is unbounded unless `max_entries` is given, in which case the least
recently used entry is evicted on overflow.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def cache_key(prompt: str) -> str:
    """Deterministic, order-sensitive key for a prompt."""
    h = 0
    # Iterate UTF-16 code units so astral characters and lone surrogates
    # hash like charCodeAt.
    data = prompt.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = _to_int32((h << 5) - h + unit)
    return str(h)


class NarrativeCache:
    """Prompt-key → response text. Last writer wins."""

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max = max_entries
        self._entries: OrderedDict[str, str] = OrderedDict()

    def get(self, key: str) -> str | None:
        value = self._entries.get(key)
        if value is not None and self._max is not None:
            self._entries.move_to_end(key)
        return value

    def put(self, key: str, value: str) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        if self._max is not None:
            while len(self._entries) > self._max:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("cache evict key=%s", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
