# src/kamuro/search/service.py
"""
Place search service.

Wraps a `PlaceSearchBackend` and keeps the one piece of state the UI needs: the current
result list.

Ordering rule:
- every call is tagged with a monotonically increasing generation number;
- a response whose generation is no longer the latest is dropped, so a slow, stale
  response can never overwrite fresher results.

Failure rule:
- `SearchFailed` is swallowed here; the previous valid list stays visible ("fail-open").
"""

from __future__ import annotations

import logging
from typing import Protocol

from kamuro.core.errors import SearchFailed
from kamuro.core.events import EventEmitter
from kamuro.domain.models import MapViewport, SearchResult

logger = logging.getLogger(__name__)


class PlaceSearchBackend(Protocol):
    async def search(self, query: str, bias: MapViewport) -> list[SearchResult]:
        """Resolve free text to candidates, weighted toward `bias`.

        Raises:
            SearchFailed: On transport or service errors.
        """
        ...


class PlaceSearchService:
    def __init__(self, backend: PlaceSearchBackend):
        self._backend = backend
        self._results: list[SearchResult] = []
        self._generation = 0
        self.events = EventEmitter()

    @property
    def results(self) -> list[SearchResult]:
        return list(self._results)

    @property
    def generation(self) -> int:
        return self._generation

    async def search(self, query: str, bias: MapViewport) -> list[SearchResult]:
        """Search `query` near `bias`; returns the result list visible afterwards."""
        query = query.strip()
        if not query:
            return self.results

        self._generation += 1
        generation = self._generation
        logger.info("Searching places query=%r generation=%d", query, generation)

        try:
            results = await self._backend.search(query, bias)
        except SearchFailed as exc:
            logger.warning("Place search failed for %r: %s", query, exc)
            return self.results

        if generation != self._generation:
            logger.debug(
                "Discarding stale search response generation=%d latest=%d",
                generation,
                self._generation,
            )
            return self.results

        self._results = list(results)
        self.events.emit("results_changed", self.results)
        return self.results

    def clear(self) -> None:
        """Empty the list and invalidate any in-flight request."""
        self._generation += 1
        if not self._results:
            return
        self._results = []
        self.events.emit("results_changed", [])
