# src/kamuro/location/controller.py
"""
Location permission controller.

Wraps a `GeolocationService` in a small state machine:

    not_determined -> requesting -> authorized | denied

The platform may report a new authorization status at any time, so the machine can
re-enter any state. The controller owns the only mutable location state in the core:
- the permission state,
- the cached fix (last-fix-wins, no history),
- the pending error (kept until the consumer calls `clear_error()`).

Collaborator callbacks arrive on arbitrary threads and are marshalled through the
`MutationContext`; state only changes while that context drains.
"""

from __future__ import annotations

import logging
from typing import Sequence

from kamuro.core.dispatch import MutationContext
from kamuro.core.errors import LocationError, LocationFixFailed, PermissionDenied
from kamuro.core.events import EventEmitter
from kamuro.domain.models import AuthorizationStatus, Coordinate, LocationFix, PermissionState
from kamuro.location.service import GeolocationService

logger = logging.getLogger(__name__)

DEFAULT_ACCURACY_M = 100.0
DEFAULT_DENIED_MESSAGE = "Location access is not permitted"

_AUTHORIZED = {"authorized_when_in_use", "authorized_always"}
_DENIED = {"denied", "restricted"}


class LocationPermissionController:
    """Owns permission state, the cached fix and the pending location error."""

    def __init__(
        self,
        service: GeolocationService,
        *,
        context: MutationContext,
        accuracy_m: float = DEFAULT_ACCURACY_M,
        denied_message: str = DEFAULT_DENIED_MESSAGE,
    ):
        self._service = service
        self._context = context
        self._accuracy_m = float(accuracy_m)
        self._denied_message = denied_message

        self._state: PermissionState = "not_determined"
        self._fix: LocationFix | None = None
        self._error: LocationError | None = None
        self._updating = False

        self.events = EventEmitter()

    @property
    def state(self) -> PermissionState:
        return self._state

    @property
    def fix(self) -> LocationFix | None:
        return self._fix

    @property
    def error(self) -> LocationError | None:
        return self._error

    @property
    def error_message(self) -> str | None:
        return str(self._error) if self._error is not None else None

    @property
    def is_updating(self) -> bool:
        return self._updating

    # --- commands (called from the mutation context) ---

    def request_authorization(self) -> None:
        """Ask the platform for permission. Only meaningful from `not_determined`."""
        if self._state != "not_determined":
            return
        self._set_state("requesting")
        self._service.request_permission(self)

    def start_continuous_updates(self) -> None:
        """Start streaming fixes unless a fix is already cached or the stream is running."""
        if self._fix is not None:
            logger.debug("Fix already cached; not starting location updates")
            return
        if self._updating:
            return
        self._updating = True
        logger.info("Starting location updates (accuracy=%.0fm)", self._accuracy_m)
        self._service.start_updates(self._accuracy_m, self)

    def stop_continuous_updates(self) -> None:
        """Stop the fix stream. Keeps the cached fix."""
        if not self._updating:
            return
        self._updating = False
        logger.info("Stopping location updates")
        self._service.stop_updates()

    def request_single_fix(self) -> None:
        """Request one fix on a channel independent of the continuous stream."""
        self._service.request_one_shot_fix(self._accuracy_m, self)

    def clear_error(self) -> None:
        """Acknowledge the pending error."""
        if self._error is None:
            return
        self._error = None
        self.events.emit("error_changed", None)

    # --- LocationSink (any thread) ---

    def on_authorization_change(self, status: AuthorizationStatus) -> None:
        self._context.post(self._apply_authorization, status)

    def on_locations(self, coordinates: Sequence[Coordinate]) -> None:
        self._context.post(self._apply_locations, list(coordinates))

    def on_error(self, message: str) -> None:
        self._context.post(self._apply_error, message)

    # --- transitions (mutation context only) ---

    def _apply_authorization(self, status: AuthorizationStatus) -> None:
        logger.info("Location authorization changed: %s", status)
        if status in _AUTHORIZED:
            if self._state == "authorized":
                return
            self._set_state("authorized")
            self.start_continuous_updates()
        elif status in _DENIED:
            if self._state == "denied":
                return
            self._set_state("denied")
            self._set_error(PermissionDenied(self._denied_message))
            self.stop_continuous_updates()
        elif status == "not_determined":
            was_requesting = self._state == "requesting"
            self._set_state("not_determined")
            # The prompt we issued came back undecided; wait for an explicit retry.
            if not was_requesting:
                self.request_authorization()
        else:
            logger.warning("Ignoring unknown authorization status %r", status)

    def _apply_locations(self, coordinates: list[Coordinate]) -> None:
        if not coordinates:
            return
        self._fix = LocationFix(coordinate=coordinates[-1], accuracy_m=self._accuracy_m)
        self.events.emit("fix_changed", self._fix)

    def _apply_error(self, message: str) -> None:
        logger.warning("Location fix failed: %s", message)
        self._set_error(LocationFixFailed(message))

    def _set_state(self, state: PermissionState) -> None:
        if state == self._state:
            return
        self._state = state
        self.events.emit("permission_changed", state)

    def _set_error(self, error: LocationError) -> None:
        self._error = error
        self.events.emit("error_changed", error)
