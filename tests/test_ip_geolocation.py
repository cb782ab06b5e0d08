import asyncio

import httpx
import pytest

from kamuro.config.settings import get_settings
from kamuro.core.dispatch import MutationContext
from kamuro.flow.selection import build_flow
from kamuro.location.controller import LocationPermissionController
from kamuro.location.ip_geolocation import IpGeolocationService, parse_ip_lookup


def test_parse_ip_lookup_variants():
    assert parse_ip_lookup({"latitude": 35.6, "longitude": 139.7}).latitude == 35.6
    assert parse_ip_lookup({"lat": "34.7", "lon": "135.5"}).longitude == 135.5
    with pytest.raises(ValueError):
        parse_ip_lookup({"error": True, "reason": "RateLimited"})
    with pytest.raises(ValueError):
        parse_ip_lookup({"city": "Tokyo"})
    with pytest.raises(ValueError):
        parse_ip_lookup([])
    with pytest.raises(ValueError):
        parse_ip_lookup({"latitude": {"v": 1}, "longitude": 139.0})
    with pytest.raises(ValueError):
        parse_ip_lookup({"lat": [35.6], "lon": 139.7})


def _run_until_settled(monkeypatch, lookup) -> LocationPermissionController:
    monkeypatch.setattr("kamuro.location.ip_geolocation.get_json_async", lookup)

    async def scenario():
        loop = asyncio.get_running_loop()
        controller = LocationPermissionController(
            IpGeolocationService(get_settings()), context=MutationContext.for_loop(loop)
        )
        controller.request_authorization()
        for _ in range(20):
            await asyncio.sleep(0)
            if controller.fix is not None or controller.error is not None:
                break
        controller.stop_continuous_updates()
        return controller

    return asyncio.run(scenario())


def test_authorization_then_fix_through_controller(monkeypatch):
    async def lookup(url, **_kwargs):
        return {"latitude": 35.6812, "longitude": 139.7671}

    controller = _run_until_settled(monkeypatch, lookup)

    assert controller.state == "authorized"
    assert controller.fix.coordinate.latitude == pytest.approx(35.6812)
    assert not controller.is_updating


def test_lookup_failure_is_reported_as_error(monkeypatch):
    async def lookup(url, **_kwargs):
        raise httpx.ConnectError("offline")

    controller = _run_until_settled(monkeypatch, lookup)

    assert controller.fix is None
    assert "Unable to determine current location" in controller.error_message


def test_disabled_location_is_denied(monkeypatch):
    settings = get_settings()
    disabled = settings.model_copy(
        update={"location": settings.location.model_copy(update={"enabled": False})}
    )
    context = MutationContext()
    controller = LocationPermissionController(IpGeolocationService(disabled), context=context)

    controller.request_authorization()
    context.drain()

    assert controller.state == "denied"
    assert controller.error_message == "Location access is not permitted"


def test_malformed_coordinates_are_reported_as_error(monkeypatch):
    async def lookup(url, **_kwargs):
        return {"latitude": {"v": 1}, "longitude": 139.0}

    controller = _run_until_settled(monkeypatch, lookup)

    assert controller.fix is None
    assert "Unable to determine current location" in controller.error_message


class _NoSearch:
    async def search(self, query, bias):
        return []


def test_disabled_location_blocks_updates_and_current_location(monkeypatch):
    lookups = []

    async def lookup(url, **_kwargs):
        lookups.append(url)
        return {"latitude": 35.6812, "longitude": 139.7671}

    monkeypatch.setattr("kamuro.location.ip_geolocation.get_json_async", lookup)
    settings = get_settings()
    disabled = settings.model_copy(
        update={"location": settings.location.model_copy(update={"enabled": False})}
    )
    context = MutationContext()
    flow = build_flow(disabled, IpGeolocationService(disabled), _NoSearch(), context=context)

    flow.open_input()
    context.drain()
    flow._location.request_single_fix()
    context.drain()

    assert flow.use_current_location() is False
    assert flow.coordinate is None
    assert flow.snapshot().permission_state == "denied"
    assert flow.snapshot().error_message == "Location access is not permitted"
    assert not flow._location.is_updating
    assert lookups == []
