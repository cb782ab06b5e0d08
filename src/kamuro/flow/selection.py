# src/kamuro/flow/selection.py
"""
Selection workflow.

Orchestrates the user-visible steps:

    idle -> picking_on_map -> coordinate_selected -> inputs_pending
         -> calculated -> result_shown -> circle_shown

- A launch coordinate comes from the map picker (search or drag, then confirm) or from
  the cached location fix ("use current location").
- "Calculate" is gated by one predicate (`can_calculate`); invalid input disables the
  action instead of raising.
- Every coordinate/distance change re-frames the map through the viewport helpers and,
  when a renderer is attached, is pushed to it.

Dependencies are passed in explicitly (`build_flow` wires the default graph).
"""

from __future__ import annotations

import logging

from kamuro.acoustics.distance import compute_distance, parse_number
from kamuro.config.settings import Settings, get_settings
from kamuro.core.dispatch import MutationContext
from kamuro.core.errors import InvalidInput
from kamuro.core.events import EventEmitter
from kamuro.domain.models import (
    CircleOverlay,
    Coordinate,
    FlowSnapshot,
    FlowState,
    MapViewport,
    Marker,
    SearchResult,
)
from kamuro.location.controller import LocationPermissionController
from kamuro.location.service import GeolocationService
from kamuro.mapview.renderer import MapRenderer
from kamuro.mapview.viewport import result_viewport, search_result_viewport, selection_viewport
from kamuro.search.service import PlaceSearchBackend, PlaceSearchService

logger = logging.getLogger(__name__)

LAUNCH_MARKER_TITLE = "Launch point"


class SelectionFlow:
    def __init__(
        self,
        location: LocationPermissionController,
        search: PlaceSearchService,
        *,
        settings: Settings | None = None,
        renderer: MapRenderer | None = None,
    ):
        self._location = location
        self._search = search
        self._settings = settings or get_settings()
        self._renderer = renderer

        self._state: FlowState = "idle"
        self._state_before_picking: FlowState = "idle"
        self._coordinate: Coordinate | None = None
        self._picker_viewport: MapViewport | None = None
        self._result_viewport: MapViewport | None = None
        self._time_lag_text = ""
        self._temperature_text = ""
        self._distance_m: float | None = None
        self._search_text = ""

        self.events = EventEmitter()
        self._location.events.subscribe(self._on_upstream_event)
        self._search.events.subscribe(self._on_upstream_event)

    # --- read model ---

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def coordinate(self) -> Coordinate | None:
        return self._coordinate

    @property
    def distance_m(self) -> float | None:
        return self._distance_m

    @property
    def picker_viewport(self) -> MapViewport | None:
        return self._picker_viewport

    @property
    def result_viewport(self) -> MapViewport | None:
        return self._result_viewport

    @property
    def can_calculate(self) -> bool:
        return self._pending_distance() is not None

    def snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            state=self._state,
            coordinate=self._coordinate,
            picker_viewport=self._picker_viewport,
            result_viewport=self._result_viewport,
            time_lag_text=self._time_lag_text,
            temperature_text=self._temperature_text,
            distance_m=self._distance_m,
            can_calculate=self.can_calculate,
            search_text=self._search_text,
            search_results=self._search.results,
            permission_state=self._location.state,
            error_message=self._location.error_message,
        )

    # --- input screen ---

    def open_input(self) -> None:
        """Input screen appeared: warm up location so "use current location" is ready."""
        self._location.start_continuous_updates()
        self._changed()

    def close_input(self) -> None:
        """Input screen went away. Committed coordinate and distance are kept."""
        self._location.stop_continuous_updates()
        self._set_state("idle")

    def use_current_location(self) -> bool:
        """Copy the cached fix into the launch coordinate; no-op without a fix."""
        if self._state == "picking_on_map":
            return False
        fix = self._location.fix
        if fix is None:
            logger.debug("No cached fix; ignoring use_current_location")
            return False
        self._commit_coordinate(fix.coordinate)
        return True

    def set_time_lag(self, text: str) -> None:
        self._time_lag_text = text
        self._settle_input_state()

    def set_temperature(self, text: str) -> None:
        self._temperature_text = text
        self._settle_input_state()

    def calculate(self) -> float | None:
        """Compute and show the distance; returns None (no-op) while inputs are invalid."""
        distance = self._pending_distance()
        if distance is None or self._coordinate is None:
            logger.debug("Calculate is disabled; inputs incomplete or invalid")
            return None

        self._distance_m = distance
        self._set_state("calculated")
        cfg = self._settings.viewport
        self._result_viewport = result_viewport(
            self._coordinate,
            distance,
            meters_per_degree=cfg.meters_per_degree,
            margin=cfg.result_margin,
            min_span_deg=cfg.min_span_deg,
        )
        logger.info("Calculated distance %.1fm", distance)
        if self._renderer is not None:
            self._renderer.set_viewport(self._result_viewport)
            self._renderer.set_markers([Marker(coordinate=self._coordinate, title=LAUNCH_MARKER_TITLE)])
            self._renderer.set_overlay_circle(None)
        self._set_state("result_shown")
        return distance

    def restart_input(self) -> None:
        """Explicit restart: clears both inputs and the computed distance."""
        self._time_lag_text = ""
        self._temperature_text = ""
        self._distance_m = None
        self._result_viewport = None
        self._set_state("coordinate_selected" if self._coordinate is not None else "idle")

    def acknowledge_error(self) -> None:
        self._location.clear_error()

    # --- map picker ---

    def open_map_picker(self, initial_center: Coordinate | None = None) -> MapViewport:
        cfg = self._settings.viewport
        center = self._coordinate or initial_center or cfg.default_center
        self._picker_viewport = selection_viewport(center, span_deg=cfg.picking_span_deg)
        if self._state != "picking_on_map":
            self._state_before_picking = self._state
        self._search_text = ""
        self._search.clear()
        if self._renderer is not None:
            self._renderer.set_viewport(self._picker_viewport)
        self._set_state("picking_on_map")
        return self._picker_viewport

    def move_map(self, center: Coordinate) -> MapViewport:
        """Drag-equivalent: recenter the picker keeping its span."""
        viewport = self._require_picker()
        self._picker_viewport = viewport.recentered(center)
        self._changed()
        return self._picker_viewport

    async def search(self, query: str) -> list[SearchResult]:
        viewport = self._require_picker()
        self._search_text = query
        return await self._search.search(query, viewport)

    def select_search_result(self, result: SearchResult) -> MapViewport:
        self._require_picker()
        self._picker_viewport = search_result_viewport(
            result.coordinate, span_deg=self._settings.viewport.search_result_span_deg
        )
        self._search.clear()
        self._search_text = result.name
        if self._renderer is not None:
            self._renderer.set_viewport(self._picker_viewport)
        self._changed()
        return self._picker_viewport

    def clear_search(self) -> None:
        self._search_text = ""
        self._search.clear()
        self._changed()

    def confirm_map_selection(self) -> Coordinate:
        viewport = self._require_picker()
        self._picker_viewport = None
        self._commit_coordinate(viewport.center)
        return viewport.center

    def cancel_map_selection(self) -> None:
        self._require_picker()
        self._picker_viewport = None
        self._search.clear()
        self._set_state(self._state_before_picking)

    # --- result screens ---

    def show_circle(self) -> CircleOverlay:
        if self._state != "result_shown" or self._coordinate is None or self._distance_m is None:
            raise InvalidInput(f"No result to draw a circle for (state={self._state})")
        circle = CircleOverlay(center=self._coordinate, radius_m=self._distance_m)
        if self._renderer is not None:
            self._renderer.set_overlay_circle(circle)
        self._set_state("circle_shown")
        return circle

    def hide_circle(self) -> None:
        if self._state != "circle_shown":
            return
        if self._renderer is not None:
            self._renderer.set_overlay_circle(None)
        self._set_state("result_shown")

    def dismiss(self) -> None:
        """Close whichever screen is up; committed coordinate/distance survive."""
        if self._state == "picking_on_map":
            self._picker_viewport = None
            self._search.clear()
        if self._state == "circle_shown" and self._renderer is not None:
            self._renderer.set_overlay_circle(None)
        self._set_state("idle")

    # --- internals ---

    def _pending_distance(self) -> float | None:
        if self._coordinate is None:
            return None
        time_lag = parse_number(self._time_lag_text)
        temperature = parse_number(self._temperature_text)
        if time_lag is None or time_lag <= 0 or temperature is None:
            return None
        cfg = self._settings.acoustics
        try:
            return compute_distance(
                time_lag,
                temperature,
                base_mps=cfg.base_sound_speed_mps,
                per_celsius=cfg.sound_speed_per_celsius,
            )
        except InvalidInput:
            return None

    def _require_picker(self) -> MapViewport:
        if self._state != "picking_on_map" or self._picker_viewport is None:
            raise InvalidInput(f"Map picker is not open (state={self._state})")
        return self._picker_viewport

    def _commit_coordinate(self, coordinate: Coordinate) -> None:
        if coordinate != self._coordinate and self._distance_m is not None:
            # A distance belongs to the launch point it was computed for.
            logger.debug("New launch coordinate supersedes distance %.1fm", self._distance_m)
            self._distance_m = None
            self._result_viewport = None
        self._coordinate = coordinate
        logger.info(
            "Launch coordinate set lat=%.5f lon=%.5f", coordinate.latitude, coordinate.longitude
        )
        self._settle_input_state(force=True)

    def _settle_input_state(self, *, force: bool = False) -> None:
        if self._coordinate is None:
            self._changed()
            return
        if not force and self._state not in ("idle", "coordinate_selected", "inputs_pending"):
            # Editing inputs from a result screen keeps that screen up.
            self._changed()
            return
        has_input = bool(self._time_lag_text.strip() or self._temperature_text.strip())
        self._set_state("inputs_pending" if has_input else "coordinate_selected")

    def _set_state(self, state: FlowState) -> None:
        if state != self._state:
            logger.debug("Selection flow %s -> %s", self._state, state)
            self._state = state
        self._changed()

    def _changed(self) -> None:
        self.events.emit("state_changed", self.snapshot())

    def _on_upstream_event(self, event: str, payload: object) -> None:
        self._changed()


def build_flow(
    settings: Settings,
    geolocation: GeolocationService,
    backend: PlaceSearchBackend,
    *,
    context: MutationContext | None = None,
    renderer: MapRenderer | None = None,
) -> SelectionFlow:
    """Wire controller, search service and flow from settings."""
    context = context or MutationContext(maxsize=settings.dispatch.queue_maxsize)
    controller = LocationPermissionController(
        geolocation,
        context=context,
        accuracy_m=settings.location.accuracy_m,
        denied_message=settings.location.permission_denied_message,
    )
    return SelectionFlow(controller, PlaceSearchService(backend), settings=settings, renderer=renderer)
