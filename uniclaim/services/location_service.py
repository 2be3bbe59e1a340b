"""
Location service: detects which campus building a map pin falls in.

Coordinates are [lng, lat] pairs. Building polygons and the campus boundary
are loaded from a JSON table (uniclaim/data/campus_locations.json by default,
overridable with CAMPUS_LOCATIONS_PATH).
"""
import os
import json
import math
import logging

_logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'data', 'campus_locations.json')

INSIDE_BUILDING_CONFIDENCE = 95
MIN_CONFIDENT_MATCH = 50
# ~100 meters in degrees
NEAR_MAX_DISTANCE = 0.001
# ~1 km in degrees
OFF_CAMPUS_MAX_DISTANCE = 0.01
MAX_ALTERNATIVES = 3

# { path: {'campus_boundary': [...], 'buildings': [...]} }
_CAMPUS_CACHE = {}

def _locations_path():
    return os.environ.get('CAMPUS_LOCATIONS_PATH') or DEFAULT_LOCATIONS_PATH

def load_campus_locations():
    """Load (and cache) the campus coordinate table"""
    path = _locations_path()
    cached = _CAMPUS_CACHE.get(path)
    if cached is not None:
        return cached
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    table = {
        'campus_boundary': [tuple(p) for p in data.get('campus_boundary', [])],
        'buildings': [
            {'name': b['name'], 'coordinates': [tuple(p) for p in b.get('coordinates', [])]}
            for b in data.get('buildings', [])
        ],
    }
    _CAMPUS_CACHE[path] = table
    _logger.info(f"Loaded {len(table['buildings'])} campus buildings from {path}")
    return table

def clear_location_cache():
    _CAMPUS_CACHE.clear()

def is_point_in_polygon(point, polygon):
    """
    Ray casting point-in-polygon test.
    Points on a vertex or on a horizontal edge count as inside.
    """
    x, y = point
    n = len(polygon)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]

        if (xi == x and yi == y) or (xj == x and yj == y):
            return True
        if yi == yj == y and min(xi, xj) <= x <= max(xi, xj):
            return True

        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i

    return inside

def is_within_campus(point):
    return is_point_in_polygon(point, load_campus_locations()['campus_boundary'])

def _centroid(coordinates):
    n = len(coordinates)
    return (sum(p[0] for p in coordinates) / n, sum(p[1] for p in coordinates) / n)

def _closest_building(point):
    """Return (building, distance) for the building whose centroid is nearest"""
    closest, min_distance = None, math.inf
    for building in load_campus_locations()['buildings']:
        if not building['coordinates']:
            continue
        cx, cy = _centroid(building['coordinates'])
        distance = math.hypot(cx - point[0], cy - point[1])
        if distance < min_distance:
            closest, min_distance = building, distance
    return closest, min_distance

def _distance_confidence(distance, max_distance, ceiling, floor):
    return round(max(floor, ceiling * (1 - min(distance, max_distance) / max_distance)))

def detect_location_from_coordinates(lat, lng):
    """
    Detect the campus location for a coordinate.

    Returns:
        dict: {'location': str | None, 'confidence': int, 'alternatives': [{'location', 'confidence'}]}
    """
    point = (lng, lat)

    if not is_within_campus(point):
        # Off campus: suggest the nearest building but never pick one
        building, distance = _closest_building(point)
        if not building:
            return {'location': None, 'confidence': 0, 'alternatives': []}
        confidence = _distance_confidence(distance, OFF_CAMPUS_MAX_DISTANCE, 50, 5)
        return {
            'location': None,
            'confidence': confidence,
            'alternatives': [{'location': building['name'], 'confidence': confidence}],
        }

    results = [
        {'location': building['name'], 'confidence': INSIDE_BUILDING_CONFIDENCE}
        for building in load_campus_locations()['buildings']
        if is_point_in_polygon(point, building['coordinates'])
    ]

    if not results:
        building, distance = _closest_building(point)
        if building:
            results.append({
                'location': f"Near {building['name']}",
                'confidence': _distance_confidence(distance, NEAR_MAX_DISTANCE, 80, 10),
            })

    results.sort(key=lambda r: r['confidence'], reverse=True)
    primary = results[0] if results else None
    result = {
        'location': primary['location'] if primary and primary['confidence'] >= MIN_CONFIDENT_MATCH else None,
        'confidence': primary['confidence'] if primary else 0,
        'alternatives': results[1:1 + MAX_ALTERNATIVES],
    }
    _logger.debug(f"Location detection for [{lng}, {lat}]: {result}")
    return result

def get_building_polygon(location_name):
    for building in load_campus_locations()['buildings']:
        if building['name'] == location_name:
            return building
    return None

def get_all_building_polygons():
    return list(load_campus_locations()['buildings'])
