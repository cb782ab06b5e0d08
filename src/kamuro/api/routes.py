"""
API routes.

Endpoints:
- GET  `/api/health`: liveness probe.
- POST `/api/distance`: flash-to-bang calculation (+ result viewport when a launch point is given).
- GET  `/api/viewport`: picker or result viewport for a point.
- GET  `/api/search`: place search biased toward a point.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from kamuro.acoustics.distance import estimate
from kamuro.config.settings import get_settings
from kamuro.core.errors import InvalidInput, SearchFailed
from kamuro.domain.models import Coordinate, DistanceEstimate, MapViewport, SearchResult
from kamuro.mapview.viewport import result_viewport, selection_viewport
from kamuro.search.nominatim import NominatimPlaceSearch
from kamuro.search.service import PlaceSearchBackend

router = APIRouter()


class DistanceRequest(BaseModel):
    time_lag_seconds: float
    temperature_celsius: float = 15.0
    launch: Coordinate | None = None


class DistanceResponse(BaseModel):
    estimate: DistanceEstimate
    viewport: MapViewport | None = None


def _invalid(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"code": "INVALID_INPUT", "message": str(exc)},
    )


def _center(lat: float | None, lon: float | None) -> Coordinate:
    if lat is None and lon is None:
        return get_settings().viewport.default_center
    if lat is None or lon is None:
        raise _invalid(InvalidInput("lat and lon must be given together"))
    try:
        return Coordinate(latitude=lat, longitude=lon)
    except ValueError as e:
        raise _invalid(e) from e


@lru_cache
def _search_backend() -> PlaceSearchBackend:
    return NominatimPlaceSearch(get_settings())


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok", "app": get_settings().app.name}


@router.post("/api/distance", response_model=DistanceResponse)
def post_distance(request: DistanceRequest) -> DistanceResponse:
    """Compute the distance for a time lag and temperature."""
    settings = get_settings()
    try:
        result = estimate(
            request.time_lag_seconds,
            request.temperature_celsius,
            base_mps=settings.acoustics.base_sound_speed_mps,
            per_celsius=settings.acoustics.sound_speed_per_celsius,
        )
    except InvalidInput as e:
        raise _invalid(e) from e

    viewport = None
    if request.launch is not None:
        cfg = settings.viewport
        viewport = result_viewport(
            request.launch,
            result.distance_m,
            meters_per_degree=cfg.meters_per_degree,
            margin=cfg.result_margin,
            min_span_deg=cfg.min_span_deg,
        )
    return DistanceResponse(estimate=result, viewport=viewport)


@router.get("/api/viewport", response_model=MapViewport)
def get_viewport(
    lat: float | None = None, lon: float | None = None, distance: float | None = None
) -> MapViewport:
    """Return the picker viewport, or the result viewport when `distance` is given."""
    cfg = get_settings().viewport
    center = _center(lat, lon)
    if distance is None:
        return selection_viewport(center, span_deg=cfg.picking_span_deg)
    try:
        return result_viewport(
            center,
            distance,
            meters_per_degree=cfg.meters_per_degree,
            margin=cfg.result_margin,
            min_span_deg=cfg.min_span_deg,
        )
    except InvalidInput as e:
        raise _invalid(e) from e


@router.get("/api/search", response_model=list[SearchResult])
async def get_search(
    q: str = Query(..., min_length=1), lat: float | None = None, lon: float | None = None
) -> list[SearchResult]:
    """Search places near (`lat`, `lon`), defaulting to the configured map center."""
    settings = get_settings()
    bias = selection_viewport(_center(lat, lon), span_deg=settings.viewport.picking_span_deg)
    try:
        return await _search_backend().search(q, bias)
    except SearchFailed as e:
        raise HTTPException(
            status_code=502,
            detail={"code": "SEARCH_FAILED", "message": str(e)},
        ) from e
