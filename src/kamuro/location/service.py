"""
Geolocation collaborator interfaces.

A `GeolocationService` reports back through a `LocationSink`, possibly from another
thread and at an arbitrary later time. The sink (the location controller) only enqueues
work; it never mutates state from inside these callbacks.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from kamuro.domain.models import AuthorizationStatus, Coordinate


class LocationSink(Protocol):
    def on_authorization_change(self, status: AuthorizationStatus) -> None: ...

    def on_locations(self, coordinates: Sequence[Coordinate]) -> None: ...

    def on_error(self, message: str) -> None: ...


class GeolocationService(Protocol):
    def request_permission(self, sink: LocationSink) -> None:
        """Prompt for permission; the outcome arrives via `sink.on_authorization_change`."""
        ...

    def start_updates(self, accuracy_m: float, sink: LocationSink) -> None:
        """Begin streaming fixes (or errors) to `sink` until `stop_updates()`."""
        ...

    def stop_updates(self) -> None: ...

    def request_one_shot_fix(self, accuracy_m: float, sink: LocationSink) -> None:
        """Deliver exactly one fix or error to `sink`, then stop."""
        ...
