"""
Request-scoped deduplication cache.

One ``RequestCache`` lives for exactly one inbound request: the app creates
it in ``before_request`` and clears it in ``teardown_request``. Within that
scope identical content reads collapse to a single upstream call, including
calls that arrive while the first one is still in flight.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


def cache_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Canonical key for an endpoint and its parameters.

    Keys are sorted before serialization so mappings that are equal as sets of
    key/value pairs yield the same key. ``None`` values are dropped because
    they are never sent upstream.
    """
    cleaned = {k: v for k, v in (params or {}).items() if v is not None}
    encoded = json.dumps(cleaned, sort_keys=True, separators=(',', ':'), default=str, ensure_ascii=False)
    return f"{endpoint}:{encoded}"


@dataclass
class CacheEntry:
    """A pending or completed fetch shared by every caller in scope."""
    key: str
    future: "asyncio.Future[Any]"
    created_at: float


class RequestCache:
    """In-memory map from canonical request key to a shared fetch.

    The first caller for a key starts ``producer()``; everyone else awaits the
    same task. Entries are never replaced, so failures stay cached for the rest
    of the scope instead of re-triggering the call.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get_or_fetch(self, key: str, producer: Callable[[], Awaitable[Any]]) -> Any:
        """Return the shared result for ``key``, starting ``producer`` on first use."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            entry = CacheEntry(
                key=key,
                future=asyncio.ensure_future(producer()),
                created_at=time.time(),
            )
            self._entries[key] = entry
        else:
            self.hits += 1
            logger.debug("request cache hit: %s", key)
        # Shielded so a cancelled caller does not cancel the fetch for the others.
        return await asyncio.shield(entry.future)

    def clear(self) -> None:
        """Drop every entry, cancelling fetches that are still pending."""
        if self._entries:
            logger.debug("request cache cleared: %d entries, %d hits, %d misses",
                         len(self._entries), self.hits, self.misses)
        for entry in self._entries.values():
            if not entry.future.done():
                entry.future.cancel()
            elif not entry.future.cancelled():
                # Mark stored exceptions as retrieved so they are not reported at GC.
                entry.future.exception()
        self._entries.clear()
        self.hits = 0
        self.misses = 0
