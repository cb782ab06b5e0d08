"""
Kamuro CLI entrypoint.

Quick local use without a map UI:
- `distance`: flash-to-bang distance from a time lag and temperature
- `viewport`: map framing for a launch point (and optional distance)
- `search`: free-text place search (Nominatim), biased toward a point
- `locate`: coarse current location through the IP-geolocation service
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from kamuro.acoustics.distance import estimate
from kamuro.config.settings import Settings, get_settings
from kamuro.core.dispatch import MutationContext
from kamuro.core.errors import InvalidInput
from kamuro.core.logging import configure_logging
from kamuro.domain.models import Coordinate, LocationFix
from kamuro.location.controller import LocationPermissionController
from kamuro.location.ip_geolocation import IpGeolocationService
from kamuro.mapview.viewport import result_viewport, selection_viewport
from kamuro.search.nominatim import NominatimPlaceSearch
from kamuro.search.service import PlaceSearchService


def format_distance(distance_m: float) -> str:
    """Human display: whole meters, matching how the app shows results."""
    return f"Distance: Approx. {distance_m:.0f}m"


def _coordinate_from_args(args: argparse.Namespace, settings: Settings) -> Coordinate:
    if args.lat is None and args.lon is None:
        return settings.viewport.default_center
    if args.lat is None or args.lon is None:
        raise InvalidInput("--lat and --lon must be given together")
    try:
        return Coordinate(latitude=float(args.lat), longitude=float(args.lon))
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc


def _cmd_distance(args: argparse.Namespace) -> int:
    settings = get_settings()
    result = estimate(
        args.time_lag,
        args.temperature,
        base_mps=settings.acoustics.base_sound_speed_mps,
        per_celsius=settings.acoustics.sound_speed_per_celsius,
    )
    if args.json:
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return 0
    print(f"Sound speed: {result.sound_speed_mps:.1f} m/s")
    print(format_distance(result.distance_m))
    return 0


def _cmd_viewport(args: argparse.Namespace) -> int:
    settings = get_settings()
    cfg = settings.viewport
    center = _coordinate_from_args(args, settings)
    if args.distance is None:
        viewport = selection_viewport(center, span_deg=cfg.picking_span_deg)
    else:
        viewport = result_viewport(
            center,
            args.distance,
            meters_per_degree=cfg.meters_per_degree,
            margin=cfg.result_margin,
            min_span_deg=cfg.min_span_deg,
        )
    print(json.dumps(viewport.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    settings = get_settings()
    center = _coordinate_from_args(args, settings)
    bias = selection_viewport(center, span_deg=settings.viewport.picking_span_deg)
    service = PlaceSearchService(NominatimPlaceSearch(settings))
    results = asyncio.run(service.search(args.query, bias))

    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in results], ensure_ascii=False, indent=2))
        return 0
    if not results:
        print("No results.")
        return 0
    for i, r in enumerate(results, start=1):
        print(f"{i:>2}. {r.name}  ({r.coordinate.latitude:.5f}, {r.coordinate.longitude:.5f})")
        if r.address:
            print(f"    {r.address}")
    return 0


async def _locate(settings: Settings, timeout_seconds: float) -> LocationFix | str:
    loop = asyncio.get_running_loop()
    context = MutationContext.for_loop(loop, maxsize=settings.dispatch.queue_maxsize)
    controller = LocationPermissionController(
        IpGeolocationService(settings),
        context=context,
        accuracy_m=settings.location.accuracy_m,
        denied_message=settings.location.permission_denied_message,
    )
    done = asyncio.Event()
    controller.events.subscribe(
        lambda event, _payload: done.set() if event in ("fix_changed", "error_changed") else None
    )
    controller.request_authorization()
    try:
        await asyncio.wait_for(done.wait(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        return "Timed out waiting for a location fix"
    finally:
        controller.stop_continuous_updates()

    if controller.fix is not None:
        return controller.fix
    return controller.error_message or "Location unavailable"


def _cmd_locate(args: argparse.Namespace) -> int:
    settings = get_settings()
    outcome = asyncio.run(_locate(settings, float(args.timeout)))
    if isinstance(outcome, str):
        print(f"Error: {outcome}")
        return 1
    c = outcome.coordinate
    print(f"Latitude: {c.latitude:.5f}")
    print(f"Longitude: {c.longitude:.5f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the Kamuro CLI."""
    parser = argparse.ArgumentParser(prog="kamuro")
    sub = parser.add_subparsers(dest="command", required=True)

    dist = sub.add_parser("distance", help="Distance to an event from the flash-to-bang delay.")
    dist.add_argument("--time-lag", required=True, type=float, help="Seconds between flash and bang.")
    dist.add_argument("--temperature", type=float, default=15.0, help="Air temperature in °C.")
    dist.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    dist.set_defaults(func=_cmd_distance)

    vp = sub.add_parser("viewport", help="Map viewport for a launch point and optional distance.")
    vp.add_argument("--lat", type=float, default=None)
    vp.add_argument("--lon", type=float, default=None)
    vp.add_argument("--distance", type=float, default=None, help="Computed distance in meters.")
    vp.set_defaults(func=_cmd_viewport)

    s = sub.add_parser("search", help="Search places by name near a point.")
    s.add_argument("query")
    s.add_argument("--lat", type=float, default=None)
    s.add_argument("--lon", type=float, default=None)
    s.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    s.set_defaults(func=_cmd_search)

    loc = sub.add_parser("locate", help="Coarse current location via IP geolocation.")
    loc.add_argument("--timeout", type=float, default=15.0)
    loc.set_defaults(func=_cmd_locate)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m kamuro.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except InvalidInput as exc:
        parser.error(str(exc))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
