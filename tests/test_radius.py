import random

from sugvoyage.core.geo import GeoPoint, haversine_m
from sugvoyage.domain.models import Spot
from sugvoyage.proximity.radius import filter_in_radius, recommend_nearby

CENTER = GeoPoint(lat=10.3157, lon=123.8854)
M_PER_DEG_LAT = 111_194.93


def _spot(spot_id: str, lat: float, lon: float, name: str | None = None) -> Spot:
    return Spot(id=spot_id, name=name or spot_id, latitude=lat, longitude=lon, category="heritage")


def _random_spots(seed: int, n: int = 200) -> list[Spot]:
    rng = random.Random(seed)
    return [
        _spot(f"s{i}", CENTER.lat + rng.uniform(-0.05, 0.05), CENTER.lon + rng.uniform(-0.05, 0.05))
        for i in range(n)
    ]


def test_filter_returns_exactly_the_spots_within_radius():
    for seed in range(5):
        spots = _random_spots(seed)
        for radius in (0, 250, 1000, 3000, 10_000):
            result = filter_in_radius(CENTER, radius, spots)
            ids = [m.spot.id for m in result]
            expected = {s.id for s in spots if haversine_m(CENTER, s.location) <= radius}

            assert all(m.distance_m <= radius for m in result)
            assert len(ids) == len(set(ids))
            assert set(ids) == expected


def test_filter_orders_nearest_first():
    result = filter_in_radius(CENTER, 5000, _random_spots(42))
    distances = [m.distance_m for m in result]
    assert distances == sorted(distances)
    assert len(result) > 1


def test_filter_on_empty_catalog_returns_empty_list():
    assert filter_in_radius(CENTER, 1000, []) == []


def test_zero_radius_keeps_only_coincident_spots():
    spots = [_spot("here", CENTER.lat, CENTER.lon), _spot("near", CENTER.lat + 0.0001, CENTER.lon)]
    result = filter_in_radius(CENTER, 0, spots)
    assert [m.spot.id for m in result] == ["here"]
    assert result[0].distance_m == 0


def test_scenario_one_spot_in_range_one_out():
    a = _spot("A", CENTER.lat + 500 / M_PER_DEG_LAT, CENTER.lon)
    b = _spot("B", CENTER.lat + 1500 / M_PER_DEG_LAT, CENTER.lon)

    result = filter_in_radius(CENTER, 1000, [b, a])

    assert [m.spot.id for m in result] == ["A"]
    assert abs(result[0].distance_m - 500) < 1


def test_recommend_nearby_without_fallback_reports_empty():
    far = [_spot("far", 9.8038, 123.3743)]
    result = recommend_nearby(CENTER, 1000, far)
    assert result.matches == []
    assert result.has_no_spot_nearby is True


def test_recommend_nearby_fallback_is_first_n_in_catalog_order():
    far = [_spot(f"far{i}", 9.8 + i * 0.01, 123.37) for i in range(15)]
    result = recommend_nearby(CENTER, 1000, far, fallback_limit=10)

    assert result.has_no_spot_nearby is True
    assert [m.spot.id for m in result.matches] == [f"far{i}" for i in range(10)]
    assert all(m.distance_m > 1000 for m in result.matches)


def test_recommend_nearby_ignores_fallback_when_something_is_in_range():
    spots = [_spot("far", 9.8038, 123.3743), _spot("near", CENTER.lat, CENTER.lon + 0.001)]
    result = recommend_nearby(CENTER, 1000, spots, fallback_limit=10)
    assert [m.spot.id for m in result.matches] == ["near"]
    assert result.has_no_spot_nearby is False
