"""
Nominatim place-search backend (OpenStreetMap).

Calls the `/search` endpoint with the picker viewport as a non-binding `viewbox`, so
nearby matches rank higher but distant ones are still returned. Order is Nominatim's.

Usage policy: Nominatim requires an identifying User-Agent (`settings.search.user_agent`).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from kamuro.config.settings import Settings
from kamuro.core.errors import SearchFailed
from kamuro.core.http import get_json_async
from kamuro.domain.models import Coordinate, MapViewport, SearchResult

logger = logging.getLogger(__name__)


def _parse_item(item: Any) -> SearchResult | None:
    if not isinstance(item, dict):
        return None
    try:
        coordinate = Coordinate(latitude=float(item["lat"]), longitude=float(item["lon"]))
    except (KeyError, TypeError, ValueError):
        return None
    display_name = str(item.get("display_name") or "").strip()
    name = str(item.get("name") or "").strip() or display_name.split(",")[0].strip()
    if not name:
        return None
    return SearchResult(name=name, address=display_name or None, coordinate=coordinate)


def parse_search_response(payload: Any) -> list[SearchResult]:
    """Turn a Nominatim JSON list into `SearchResult`s, skipping malformed items.

    Raises:
        SearchFailed: If the payload is not a list.
    """
    if not isinstance(payload, list):
        raise SearchFailed("Nominatim response is not a list")
    results: list[SearchResult] = []
    for item in payload:
        parsed = _parse_item(item)
        if parsed is not None:
            results.append(parsed)
    return results


class NominatimPlaceSearch:
    """`PlaceSearchBackend` over the Nominatim HTTP API."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def _params(self, query: str, bias: MapViewport) -> dict[str, Any]:
        south, west, north, east = bias.bounds()
        params: dict[str, Any] = {
            "q": query,
            "format": "jsonv2",
            "limit": self._settings.search.limit,
            # left,top,right,bottom
            "viewbox": f"{west},{north},{east},{south}",
            "bounded": 0,
        }
        if self._settings.search.accept_language:
            params["accept-language"] = self._settings.search.accept_language
        return params

    async def search(self, query: str, bias: MapViewport) -> list[SearchResult]:
        cfg = self._settings.search
        try:
            payload = await get_json_async(
                cfg.base_url,
                params=self._params(query, bias),
                headers={"User-Agent": cfg.user_agent},
                timeout_seconds=cfg.timeout_seconds,
            )
        except (httpx.HTTPError, ValueError) as exc:
            raise SearchFailed(f"Nominatim request failed: {exc}") from exc

        results = parse_search_response(payload)
        logger.info("Nominatim returned %d results for %r", len(results), query)
        return results
