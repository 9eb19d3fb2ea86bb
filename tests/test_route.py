from __future__ import annotations

import pytest

from conftest import loc, note, photo
from trail_tracker.core.models import LocationPoint, TrackingState
from trail_tracker.core.route import RouteStore, haversine_km
from trail_tracker.errors import InvalidPoint


def test_haversine_one_degree_of_latitude():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


def test_same_coordinate_adds_no_distance():
    store = RouteStore()
    store.append_point(loc(1000, 45.1, 7.6))
    res = store.append_point(loc(2000, 45.1, 7.6))
    assert res.total_distance_km == pytest.approx(0.0, abs=1e-9)
    assert res.point_count == 2


def test_zero_or_one_location_point_has_no_distance():
    store = RouteStore()
    assert store.get_total_distance() == 0
    store.append_point(loc(1000))
    assert store.get_total_distance() == 0


def test_distance_sums_consecutive_location_legs():
    store = RouteStore()
    for i, lat in enumerate([0.0, 1.0, 2.0, 3.0]):
        store.append_point(loc(1000 * i, lat, 0.0))
    expected = 3 * haversine_km(0.0, 0.0, 1.0, 0.0)
    assert store.get_total_distance() == pytest.approx(expected, rel=1e-9)


def test_annotations_do_not_break_or_join_legs():
    store = RouteStore()
    store.append_point(loc(1000, 0.0, 0.0))
    store.append_point(photo(1500, lat=10.0, lon=10.0))
    store.append_point(note(1600, lat=-10.0, lon=-10.0))
    res = store.append_point(loc(2000, 1.0, 0.0))
    assert res.point_count == 4
    assert res.total_distance_km == pytest.approx(111.19, abs=0.01)


def test_location_without_coordinates_is_rejected_unchanged():
    store = RouteStore()
    store.append_point(loc(1000, 0.0, 0.0))
    with pytest.raises(InvalidPoint):
        store.append_point({"type": "location", "timestamp": 2000, "lon": 1.0})
    with pytest.raises(InvalidPoint):
        store.append_point({"type": "location", "timestamp": 2000, "lat": None, "lon": 1.0})
    assert store.point_count == 1
    assert store.get_total_distance() == 0


@pytest.mark.parametrize(
    "bad",
    [
        {"type": "location", "lat": 91.0, "lon": 0.0, "timestamp": 1},
        {"type": "location", "lat": 0.0, "lon": 200.0, "timestamp": 1},
        {"type": "video", "timestamp": 1},
        {"lat": 1.0, "lon": 1.0, "timestamp": 1},
        {"type": "photo", "timestamp": 1},
        {"type": "text", "timestamp": 1},
    ],
)
def test_malformed_points_raise_invalid_point(bad):
    store = RouteStore()
    with pytest.raises(InvalidPoint):
        store.append_point(bad)
    assert store.get_route_data() == []


def test_non_point_objects_are_rejected():
    with pytest.raises(InvalidPoint):
        RouteStore().append_point(42)


def test_timestamps_must_not_go_backwards():
    store = RouteStore()
    store.append_point(loc(5000))
    store.append_point(note(5000))  # equal is fine
    with pytest.raises(InvalidPoint):
        store.append_point(loc(4999, 46.0, 7.0))
    assert store.point_count == 2


def test_accepts_models_as_well_as_mappings():
    store = RouteStore()
    store.append_point(LocationPoint(lat=1.0, lon=2.0, timestamp=10))
    data = store.get_route_data()
    assert isinstance(data[0], LocationPoint)
    assert data[0].lat == 1.0


def test_accessors_do_not_mutate():
    store = RouteStore()
    store.append_point(loc(1))
    data = store.get_route_data()
    data.clear()
    assert store.point_count == 1


def test_tick_only_counts_while_tracking():
    store = RouteStore()
    assert store.tick(1000, TrackingState.PAUSED) is False
    assert store.tick(1000, TrackingState.IDLE) is False
    assert store.get_elapsed_time() == 0
    assert store.tick(1000, TrackingState.TRACKING) is True
    assert store.tick(250, TrackingState.TRACKING) is True
    assert store.get_elapsed_time() == 1250


@pytest.mark.parametrize("delta", [-1, float("nan"), float("inf"), float("-inf")])
def test_tick_rejects_negative_or_non_finite_delta(delta):
    store = RouteStore()
    with pytest.raises(ValueError):
        store.tick(delta, TrackingState.TRACKING)
    assert store.get_elapsed_time() == 0


def test_clear_twice_is_safe():
    store = RouteStore()
    store.append_point(loc(1, 0.0, 0.0))
    store.append_point(loc(2, 1.0, 0.0))
    store.tick(500, TrackingState.TRACKING)
    for _ in range(2):
        store.clear()
        assert store.get_route_data() == []
        assert store.get_total_distance() == 0
        assert store.get_elapsed_time() == 0


def test_load_continues_distance_from_last_location():
    store = RouteStore()
    store.append_point(loc(1, 0.0, 0.0))
    points = store.get_route_data()
    other = RouteStore()
    other.load(points, total_distance_km=5.0, elapsed_ms=1000)
    res = other.append_point(loc(2, 1.0, 0.0))
    assert res.total_distance_km == pytest.approx(5.0 + 111.19, abs=0.01)
    assert other.get_elapsed_time() == 1000


def test_observers_see_every_append_and_can_unsubscribe():
    store = RouteStore()
    events = []
    unsubscribe = store.subscribe(events.append)

    store.append_point(loc(1, 0.0, 0.0))
    store.append_point(loc(2, 1.0, 0.0))
    assert [e.kind for e in events] == ["point", "point"]
    assert events[-1].point_count == 2
    assert events[-1].total_distance_km == pytest.approx(111.19, abs=0.01)

    store.clear()
    assert events[-1].kind == "clear"

    unsubscribe()
    unsubscribe()
    store.append_point(loc(3))
    assert len(events) == 3


def test_failing_observer_does_not_block_append():
    store = RouteStore()
    seen = []

    def broken(event):
        raise RuntimeError("ui went away")

    store.subscribe(broken)
    store.subscribe(seen.append)
    res = store.append_point(loc(1))
    assert res.point_count == 1
    assert len(seen) == 1


def test_rejected_point_does_not_notify():
    store = RouteStore()
    events = []
    store.subscribe(events.append)
    with pytest.raises(InvalidPoint):
        store.append_point({"type": "location", "timestamp": 1})
    assert events == []
