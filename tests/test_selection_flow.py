import asyncio

import pytest

from kamuro.config.settings import get_settings
from kamuro.core.dispatch import MutationContext
from kamuro.core.errors import InvalidInput, SearchFailed
from kamuro.domain.models import Coordinate, SearchResult
from kamuro.flow.selection import SelectionFlow, build_flow

TOKYO_STATION = Coordinate(latitude=35.6812, longitude=139.7671)
SUMIDA = Coordinate(latitude=35.7100, longitude=139.8107)
HOME = Coordinate(latitude=35.6500, longitude=139.7000)


class _FakeGeolocation:
    def __init__(self):
        self.calls: list[str] = []

    def request_permission(self, sink):
        self.calls.append("request_permission")

    def start_updates(self, accuracy_m, sink):
        self.calls.append("start_updates")

    def stop_updates(self):
        self.calls.append("stop_updates")

    def request_one_shot_fix(self, accuracy_m, sink):
        self.calls.append("one_shot")


class _Backend:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.biases = []

    async def search(self, query, bias):
        self.biases.append(bias)
        if self.error is not None:
            raise self.error
        return list(self.results)


class _RecordingRenderer:
    def __init__(self):
        self.viewports = []
        self.markers = []
        self.circles = []

    def set_viewport(self, viewport):
        self.viewports.append(viewport)

    def set_markers(self, markers):
        self.markers.append(list(markers))

    def set_overlay_circle(self, circle):
        self.circles.append(circle)


def _flow(results=None, error=None):
    geo = _FakeGeolocation()
    backend = _Backend(results, error)
    renderer = _RecordingRenderer()
    context = MutationContext()
    flow = build_flow(get_settings(), geo, backend, context=context, renderer=renderer)
    return flow, geo, backend, renderer, context


def _fireworks_result() -> SearchResult:
    return SearchResult(name="Sumida River Fireworks", address="Sumida, Tokyo", coordinate=SUMIDA)


def test_full_workflow_via_search():
    flow, _, backend, renderer, _ = _flow(results=[_fireworks_result()])

    picker = flow.open_map_picker()
    assert flow.state == "picking_on_map"
    assert picker.center == TOKYO_STATION
    assert picker.latitude_delta == pytest.approx(0.05)

    results = asyncio.run(flow.search("sumida fireworks"))
    assert [r.name for r in results] == ["Sumida River Fireworks"]
    assert backend.biases == [picker]

    zoomed = flow.select_search_result(results[0])
    assert zoomed.center == SUMIDA
    assert zoomed.latitude_delta == pytest.approx(0.01)
    snap = flow.snapshot()
    assert snap.search_results == []
    assert snap.search_text == "Sumida River Fireworks"

    assert flow.confirm_map_selection() == SUMIDA
    assert flow.state == "coordinate_selected"

    flow.set_time_lag("3")
    assert flow.state == "inputs_pending"
    assert not flow.can_calculate
    flow.set_temperature("15")
    assert flow.can_calculate

    assert flow.calculate() == pytest.approx(1021.5)
    assert flow.state == "result_shown"
    assert flow.result_viewport.center == SUMIDA
    assert flow.result_viewport.latitude_delta == pytest.approx(1021.5 / 111000 * 2.5)
    assert renderer.viewports[-1] == flow.result_viewport
    assert renderer.markers[-1][0].coordinate == SUMIDA

    circle = flow.show_circle()
    assert flow.state == "circle_shown"
    assert circle.center == SUMIDA and circle.radius_m == pytest.approx(1021.5)
    assert renderer.circles[-1] == circle

    flow.hide_circle()
    assert flow.state == "result_shown"
    assert renderer.circles[-1] is None


def test_use_current_location_without_fix_is_noop():
    flow, _, _, _, _ = _flow()
    seen = []
    flow.events.subscribe(lambda e, p: seen.append(e))

    assert flow.use_current_location() is False
    assert flow.coordinate is None
    assert flow.state == "idle"
    assert seen == []


def test_use_current_location_copies_cached_fix():
    flow, _, _, _, context = _flow()
    flow._location.on_locations([HOME])
    context.drain()

    assert flow.use_current_location() is True
    assert flow.coordinate == HOME
    assert flow.state == "coordinate_selected"


def test_open_and_close_input_drive_location_updates():
    flow, geo, _, _, _ = _flow()
    flow.open_input()
    flow.open_input()
    flow.close_input()
    flow.close_input()
    assert geo.calls == ["start_updates", "stop_updates"]


def test_cancel_keeps_existing_coordinate():
    flow, _, _, _, _ = _flow()
    flow.open_map_picker(initial_center=HOME)
    flow.confirm_map_selection()
    assert flow.coordinate == HOME

    picker = flow.open_map_picker()
    assert picker.center == HOME
    flow.move_map(SUMIDA)
    flow.cancel_map_selection()

    assert flow.coordinate == HOME
    assert flow.state == "coordinate_selected"


def test_move_map_keeps_span():
    flow, _, _, _, _ = _flow()
    flow.open_map_picker()
    moved = flow.move_map(SUMIDA)
    assert moved.center == SUMIDA
    assert moved.latitude_delta == pytest.approx(0.05)
    assert flow.confirm_map_selection() == SUMIDA


@pytest.mark.parametrize(
    "time_lag, temperature",
    [("", "15"), ("0", "15"), ("-1", "15"), ("abc", "15"), ("3", ""), ("3", "warm"), ("3", "nan"), ("3", "-600")],
)
def test_calculate_is_disabled_for_invalid_inputs(time_lag, temperature):
    flow, _, _, _, _ = _flow()
    flow.open_map_picker()
    flow.confirm_map_selection()
    flow.set_time_lag(time_lag)
    flow.set_temperature(temperature)

    assert not flow.can_calculate
    assert flow.calculate() is None
    assert flow.distance_m is None
    assert flow.state == "inputs_pending"


def test_calculate_requires_coordinate():
    flow, _, _, _, _ = _flow()
    flow.set_time_lag("3")
    flow.set_temperature("15")
    assert not flow.can_calculate
    assert flow.calculate() is None
    assert flow.state == "idle"


def test_dismiss_keeps_committed_distance():
    flow, _, _, _, _ = _flow()
    flow.open_map_picker()
    flow.confirm_map_selection()
    flow.set_time_lag("2")
    flow.set_temperature("20")
    distance = flow.calculate()

    flow.dismiss()
    assert flow.state == "idle"
    assert flow.distance_m == distance
    assert flow.coordinate == TOKYO_STATION

    flow.restart_input()
    assert flow.distance_m is None
    assert flow.snapshot().time_lag_text == ""
    assert flow.state == "coordinate_selected"


def test_new_coordinate_supersedes_distance_and_result_frame():
    flow, _, _, _, _ = _flow()
    flow.open_map_picker(initial_center=SUMIDA)
    flow.confirm_map_selection()
    flow.set_time_lag("3")
    flow.set_temperature("15")
    assert flow.calculate() == pytest.approx(1021.5)
    flow.dismiss()

    flow.open_map_picker()
    flow.move_map(HOME)
    flow.confirm_map_selection()

    assert flow.coordinate == HOME
    assert flow.distance_m is None
    assert flow.result_viewport is None
    assert flow.snapshot().distance_m is None
    assert flow.state == "inputs_pending"

    flow.calculate()
    assert flow.result_viewport.center == HOME


def test_reconfirming_same_coordinate_keeps_distance():
    flow, _, _, _, _ = _flow()
    flow.open_map_picker(initial_center=SUMIDA)
    flow.confirm_map_selection()
    flow.set_time_lag("3")
    flow.set_temperature("15")
    distance = flow.calculate()
    flow.dismiss()

    flow.open_map_picker()
    flow.confirm_map_selection()

    assert flow.distance_m == distance
    assert flow.result_viewport.center == SUMIDA


def test_search_failure_keeps_previous_results():
    flow, _, backend, _, _ = _flow(results=[_fireworks_result()])
    flow.open_map_picker()
    asyncio.run(flow.search("fireworks"))

    backend.error = SearchFailed("offline")
    results = asyncio.run(flow.search("fireworks 2"))

    assert [r.name for r in results] == ["Sumida River Fireworks"]


def test_picker_operations_require_open_picker():
    flow, _, _, _, _ = _flow()
    with pytest.raises(InvalidInput):
        flow.confirm_map_selection()
    with pytest.raises(InvalidInput):
        flow.move_map(SUMIDA)


def test_show_circle_requires_result():
    flow, _, _, _, _ = _flow()
    with pytest.raises(InvalidInput):
        flow.show_circle()


def test_snapshot_reflects_permission_error_until_acknowledged():
    flow, _, _, _, context = _flow()
    flow._location.on_authorization_change("denied")
    context.drain()

    snap = flow.snapshot()
    assert snap.permission_state == "denied"
    assert snap.error_message == "Location access is not permitted"

    flow.acknowledge_error()
    assert flow.snapshot().error_message is None


def test_state_changed_events_carry_snapshots():
    flow, _, _, _, _ = _flow()
    snapshots = []
    flow.events.subscribe(lambda e, p: snapshots.append(p) if e == "state_changed" else None)

    flow.open_map_picker()
    flow.confirm_map_selection()

    assert snapshots[-1].state == "coordinate_selected"
    assert snapshots[-1].coordinate == TOKYO_STATION


def test_flow_accepts_injected_components():
    from kamuro.location.controller import LocationPermissionController
    from kamuro.search.service import PlaceSearchService

    controller = LocationPermissionController(_FakeGeolocation(), context=MutationContext())
    flow = SelectionFlow(controller, PlaceSearchService(_Backend()))
    assert flow.snapshot().state == "idle"
