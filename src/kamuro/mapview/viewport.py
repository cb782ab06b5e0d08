"""
Map viewport sizing.

Two framing policies:
- selection-centered: fixed spans while the user picks a point (0.05°, or 0.01° right
  after jumping to a search result);
- result-centered: sized from the computed distance so both the launch point and the
  distance circle fit, `span = distance / 111000 * 2.5` per axis.

A zero distance would give a zero-area viewport, so spans are clamped to a small floor.
"""

from __future__ import annotations

import math

from kamuro.core.errors import InvalidInput
from kamuro.domain.models import Coordinate, MapViewport

DEFAULT_PICKING_SPAN_DEG = 0.05
DEFAULT_SEARCH_RESULT_SPAN_DEG = 0.01
METERS_PER_DEGREE = 111_000
RESULT_MARGIN = 2.5
MIN_SPAN_DEG = 0.001

MAX_LATITUDE_SPAN_DEG = 180.0
MAX_LONGITUDE_SPAN_DEG = 360.0


def _square(center: Coordinate, span_deg: float) -> MapViewport:
    return MapViewport(
        center=center,
        latitude_delta=min(span_deg, MAX_LATITUDE_SPAN_DEG),
        longitude_delta=min(span_deg, MAX_LONGITUDE_SPAN_DEG),
    )


def selection_viewport(center: Coordinate, *, span_deg: float = DEFAULT_PICKING_SPAN_DEG) -> MapViewport:
    """Viewport used while the user is picking a point on the map."""
    return _square(center, span_deg)


def search_result_viewport(
    center: Coordinate, *, span_deg: float = DEFAULT_SEARCH_RESULT_SPAN_DEG
) -> MapViewport:
    """Zoomed-in viewport after jumping to a chosen search result."""
    return _square(center, span_deg)


def result_span_deg(
    distance_m: float,
    *,
    meters_per_degree: float = METERS_PER_DEGREE,
    margin: float = RESULT_MARGIN,
    min_span_deg: float = MIN_SPAN_DEG,
) -> float:
    """Angular span (degrees, per axis) that frames a circle of radius `distance_m`.

    Raises:
        InvalidInput: If the distance is negative or not finite.
    """
    if isinstance(distance_m, bool) or not isinstance(distance_m, (int, float)):
        raise InvalidInput(f"distance_m must be a number, got {type(distance_m).__name__}")
    if not math.isfinite(distance_m) or distance_m < 0:
        raise InvalidInput(f"distance_m must be a finite number >= 0, got {distance_m}")
    span = distance_m / meters_per_degree * margin
    return max(span, min_span_deg)


def result_viewport(
    center: Coordinate,
    distance_m: float,
    *,
    meters_per_degree: float = METERS_PER_DEGREE,
    margin: float = RESULT_MARGIN,
    min_span_deg: float = MIN_SPAN_DEG,
) -> MapViewport:
    """Viewport centered on the launch point, sized from the computed distance."""
    span = result_span_deg(
        distance_m, meters_per_degree=meters_per_degree, margin=margin, min_span_deg=min_span_deg
    )
    return _square(center, span)
