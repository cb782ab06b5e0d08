"""Rendering collaborator seam. The core never reaches past these three calls."""

from __future__ import annotations

from typing import Protocol, Sequence

from kamuro.domain.models import CircleOverlay, MapViewport, Marker


class MapRenderer(Protocol):
    def set_viewport(self, viewport: MapViewport) -> None: ...

    def set_markers(self, markers: Sequence[Marker]) -> None: ...

    def set_overlay_circle(self, circle: CircleOverlay | None) -> None: ...
