"""
IP-based geolocation service.

Desktop and server hosts have no GPS, so "current location" is resolved from the public
IP via a JSON lookup endpoint (`settings.location.ip_lookup_url`, ipapi.co by default).
The fix is coarse; the accuracy hint is accepted for interface parity only.

Runs on the caller's asyncio loop: `start_updates` polls on an interval,
`request_one_shot_fix` does a single lookup. Results go to the sink, which marshals them
into the mutation context.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from kamuro.config.settings import Settings
from kamuro.core.http import get_json_async
from kamuro.domain.models import Coordinate
from kamuro.location.service import LocationSink

logger = logging.getLogger(__name__)


def parse_ip_lookup(payload: Any) -> Coordinate:
    """Extract a coordinate from an ipapi-style payload.

    Raises:
        ValueError: If the payload has no usable latitude/longitude.
    """
    if not isinstance(payload, dict):
        raise ValueError("IP lookup response is not an object")
    if payload.get("error"):
        raise ValueError(str(payload.get("reason") or "IP lookup refused the request"))
    lat = payload.get("latitude", payload.get("lat"))
    lon = payload.get("longitude", payload.get("lon"))
    if lat is None or lon is None:
        raise ValueError("IP lookup response has no coordinates")
    try:
        return Coordinate(latitude=float(lat), longitude=float(lon))
    except TypeError as e:
        raise ValueError(f"IP lookup coordinates are not numeric: {e}") from e


class IpGeolocationService:
    """`GeolocationService` backed by an IP-geolocation HTTP endpoint."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._updates: asyncio.Task[None] | None = None
        self._one_shots: set[asyncio.Task[None]] = set()

    def _refuse_if_disabled(self, sink: LocationSink) -> bool:
        if self._settings.location.enabled:
            return False
        logger.info("Location is disabled; refusing lookup")
        sink.on_authorization_change("denied")
        return True

    def request_permission(self, sink: LocationSink) -> None:
        if self._refuse_if_disabled(sink):
            return
        sink.on_authorization_change("authorized_when_in_use")

    def start_updates(self, accuracy_m: float, sink: LocationSink) -> None:
        if self._refuse_if_disabled(sink):
            return
        if self._updates is not None and not self._updates.done():
            return
        self._updates = asyncio.get_running_loop().create_task(self._poll(sink))

    def stop_updates(self) -> None:
        if self._updates is None:
            return
        self._updates.cancel()
        self._updates = None

    def request_one_shot_fix(self, accuracy_m: float, sink: LocationSink) -> None:
        if self._refuse_if_disabled(sink):
            return
        task = asyncio.get_running_loop().create_task(self._deliver_once(sink))
        # Hold a reference until done so the task is not garbage-collected mid-flight.
        self._one_shots.add(task)
        task.add_done_callback(self._one_shots.discard)

    async def _lookup(self) -> Coordinate:
        cfg = self._settings.location
        payload = await get_json_async(cfg.ip_lookup_url, timeout_seconds=cfg.http_timeout_seconds)
        return parse_ip_lookup(payload)

    async def _deliver_once(self, sink: LocationSink) -> None:
        try:
            coordinate = await self._lookup()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("IP geolocation failed: %s", exc)
            sink.on_error(f"Unable to determine current location: {exc}")
            return
        logger.info(
            "IP geolocation fix lat=%.4f lon=%.4f", coordinate.latitude, coordinate.longitude
        )
        sink.on_locations([coordinate])

    async def _poll(self, sink: LocationSink) -> None:
        interval = float(self._settings.location.poll_interval_seconds)
        while True:
            await self._deliver_once(sink)
            await asyncio.sleep(interval)
