import json

import pytest

from uniclaim.services import location_service

SQUARE = [(0, 0), (4, 0), (4, 4), (0, 4)]


@pytest.mark.parametrize(
    ("point", "expected"),
    [
        ((2, 2), True),
        ((5, 2), False),
        ((-1, -1), False),
        ((0, 0), True),
        ((4, 4), True),
        ((2, 0), True),
        ((2, 4), True),
    ],
)
def test_is_point_in_polygon(point, expected):
    assert location_service.is_point_in_polygon(point, SQUARE) is expected


def test_degenerate_polygon_contains_nothing():
    assert location_service.is_point_in_polygon((0, 0), [(0, 0), (1, 1)]) is False
    assert location_service.is_point_in_polygon((0, 0), []) is False


def test_point_inside_building():
    result = location_service.detect_location_from_coordinates(8.48515, 124.6562)

    assert result == {"location": "ICT Building", "confidence": 95, "alternatives": []}


def test_point_next_to_building_is_near_it():
    result = location_service.detect_location_from_coordinates(8.48515, 124.6565)

    assert result["location"] == "Near ICT Building"
    assert 50 <= result["confidence"] <= 80
    assert result["alternatives"] == []


def test_point_far_from_buildings_has_no_confident_location():
    result = location_service.detect_location_from_coordinates(8.4842, 124.6545)

    assert result["location"] is None
    assert result["confidence"] == 10


def test_point_off_campus_only_suggests_nearest_building():
    result = location_service.detect_location_from_coordinates(8.4830, 124.6583)

    assert result["location"] is None
    assert 5 <= result["confidence"] <= 50
    assert [alt["location"] for alt in result["alternatives"]] == ["Gymnasium"]


def test_point_very_far_off_campus_has_floor_confidence():
    result = location_service.detect_location_from_coordinates(0.0, 0.0)

    assert result["location"] is None
    assert result["confidence"] == 5


def test_building_lookup():
    building = location_service.get_building_polygon("University Library")

    assert building["name"] == "University Library"
    assert len(building["coordinates"]) == 4
    assert location_service.get_building_polygon("Hogwarts") is None
    assert len(location_service.get_all_building_polygons()) >= 6


def test_locations_path_can_be_overridden(tmp_path, monkeypatch):
    table = {
        "campus_boundary": [[0, 0], [10, 0], [10, 10], [0, 10]],
        "buildings": [
            {"name": "Hall A", "coordinates": [[1, 1], [3, 1], [3, 3], [1, 3]]},
            {"name": "Hall B", "coordinates": [[1, 1], [2, 1], [2, 2], [1, 2]]},
        ],
    }
    path = tmp_path / "campus.json"
    path.write_text(json.dumps(table), encoding="utf-8")
    monkeypatch.setenv("CAMPUS_LOCATIONS_PATH", str(path))

    result = location_service.detect_location_from_coordinates(1.5, 1.5)

    assert result["location"] == "Hall A"
    assert result["confidence"] == 95
    assert result["alternatives"] == [{"location": "Hall B", "confidence": 95}]
    assert location_service.get_building_polygon("ICT Building") is None
