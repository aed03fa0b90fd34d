import pytest

from core.spatial import GeometryService, route_from_geojson, route_to_feature


def test_validate_coordinate_pair() -> None:
    valid, coords = GeometryService.validate_coordinate_pair([-97.0, 32.0])
    assert valid
    assert coords == [-97.0, 32.0]

    invalid, coords = GeometryService.validate_coordinate_pair([200.0, 0.0])
    assert not invalid
    assert coords is None


def test_haversine_distance_is_meters_on_mean_earth_radius() -> None:
    meters = GeometryService.haversine_distance(0.0, 0.0, 0.0, 1.0)

    assert meters == pytest.approx(111_194.9, abs=0.5)
    assert GeometryService.haversine_distance(7.0, 45.0, 7.0, 45.0) == 0.0


def test_parse_geojson_accepts_strings_and_features() -> None:
    geometry = {"type": "Point", "coordinates": [1.0, 2.0]}

    assert GeometryService.parse_geojson(geometry) == geometry
    assert GeometryService.parse_geojson('{"type": "Point", "coordinates": [1, 2]}')
    assert GeometryService.parse_geojson({"type": "Feature", "geometry": geometry}) == (
        geometry
    )
    assert GeometryService.parse_geojson("{broken") is None
    assert GeometryService.parse_geojson(None) is None


def test_route_to_feature_single_point_is_still_a_line() -> None:
    feature = route_to_feature([(51.5, -0.12)])

    assert feature["geometry"] == {
        "type": "LineString",
        "coordinates": [[-0.12, 51.5]],
    }
    assert feature["properties"] == {}


def test_route_from_geojson_flips_to_lat_lon_and_skips_bad_pairs() -> None:
    feature = {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [[-0.12, 51.5], [500, 1], [-0.13, 51.6]],
        },
    }

    assert route_from_geojson(feature) == [(51.5, -0.12), (51.6, -0.13)]


def test_route_from_geojson_point_and_garbage() -> None:
    assert route_from_geojson({"type": "Point", "coordinates": [2.0, 1.0]}) == [
        (1.0, 2.0),
    ]
    assert route_from_geojson(None) == []
    assert route_from_geojson({"type": "LineString", "coordinates": "nope"}) == []
