"""
Domain models (Pydantic).

These types are the contract between the core and its collaborators:
- inputs picked by the user (`Coordinate`)
- collaborator outputs (`LocationFix`, `SearchResult`)
- map framing handed to the renderer (`MapViewport`, `Marker`, `CircleOverlay`)
- the read model for the presentation layer (`FlowSnapshot`)

None of these are persisted.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

PermissionState = Literal["not_determined", "requesting", "authorized", "denied"]

# What the platform reports; mapped onto `PermissionState` by the location controller.
AuthorizationStatus = Literal[
    "not_determined",
    "authorized_when_in_use",
    "authorized_always",
    "denied",
    "restricted",
]

FlowState = Literal[
    "idle",
    "picking_on_map",
    "coordinate_selected",
    "inputs_pending",
    "calculated",
    "result_shown",
    "circle_shown",
]


class Coordinate(BaseModel):
    """A geographic point in signed decimal degrees."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class MapViewport(BaseModel):
    """Visible map region: a center plus angular span per axis (degrees)."""

    center: Coordinate
    latitude_delta: float = Field(..., gt=0, le=180)
    longitude_delta: float = Field(..., gt=0, le=360)

    def bounds(self) -> tuple[float, float, float, float]:
        """Return `(south, west, north, east)`, clipped to valid coordinate ranges."""
        half_lat = self.latitude_delta / 2
        half_lon = self.longitude_delta / 2
        south = max(-90.0, self.center.latitude - half_lat)
        north = min(90.0, self.center.latitude + half_lat)
        west = max(-180.0, self.center.longitude - half_lon)
        east = min(180.0, self.center.longitude + half_lon)
        return south, west, north, east

    def recentered(self, center: Coordinate) -> "MapViewport":
        return self.model_copy(update={"center": center})


class LocationFix(BaseModel):
    """A single device location with its accuracy tolerance."""

    coordinate: Coordinate
    accuracy_m: float = Field(100, gt=0)


class SearchResult(BaseModel):
    """One place-search candidate, in collaborator order."""

    name: str
    address: str | None = None
    coordinate: Coordinate


class DistanceEstimate(BaseModel):
    """A finished flash-to-bang calculation."""

    time_lag_seconds: float
    temperature_celsius: float
    sound_speed_mps: float
    distance_m: float


class Marker(BaseModel):
    coordinate: Coordinate
    title: str


class CircleOverlay(BaseModel):
    """The computed distance drawn as a circle around the launch point."""

    center: Coordinate
    radius_m: float = Field(..., ge=0)


class FlowSnapshot(BaseModel):
    """Everything the presentation layer needs to render the selection workflow."""

    state: FlowState
    coordinate: Coordinate | None = None
    picker_viewport: MapViewport | None = None
    result_viewport: MapViewport | None = None
    time_lag_text: str = ""
    temperature_text: str = ""
    distance_m: float | None = None
    can_calculate: bool = False
    search_text: str = ""
    search_results: list[SearchResult] = Field(default_factory=list)
    permission_state: PermissionState = "not_determined"
    error_message: str | None = None
