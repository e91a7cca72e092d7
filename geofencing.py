"""
Geofencing Module
Reference helpers for circular no-fly zones
Zones are rendered and reported only; they never alter a simulated route
"""

from typing import Dict, List, Sequence
from models import CanvasPoint, GeoPosition, NoFlyZone, Waypoint
import config
import route_geometry


def distance_to_zone_m(position: GeoPosition, zone: NoFlyZone) -> float:
    """
    Great-circle distance from a position to a zone centre

    Args:
        position: Position to check
        zone: No-fly zone

    Returns:
        Distance in meters
    """
    return route_geometry.haversine_distance(
        position.latitude, position.longitude,
        zone.latitude, zone.longitude
    )


def zones_near(position: GeoPosition, zones: Sequence[NoFlyZone],
               threshold_m: float = config.NO_FLY_ZONE_WARNING_DISTANCE) -> List[NoFlyZone]:
    """
    Find zones whose centre lies within a distance of a position

    Args:
        position: Position to check
        zones: Candidate zones
        threshold_m: Warning distance in meters

    Returns:
        Zones within the threshold, nearest first
    """
    nearby = [zone for zone in zones if distance_to_zone_m(position, zone) <= threshold_m]
    return sorted(nearby, key=lambda zone: distance_to_zone_m(position, zone))


def place_zones_on_canvas(zones: Sequence[NoFlyZone], waypoints: Sequence[Waypoint],
                          points: Sequence[CanvasPoint]) -> Dict[str, CanvasPoint]:
    """
    Give each zone a canvas centre next to the waypoint nearest to it

    The canvas layout is not geographic, so zones borrow the projected
    point of their nearest waypoint.

    Returns:
        Mapping of zone id to (x, y); empty when there are no waypoints
    """
    if not waypoints or not points:
        return {}

    placements = {}
    for zone in zones:
        nearest = min(
            range(len(waypoints)),
            key=lambda i: distance_to_zone_m(waypoints[i], zone)
        )
        placements[zone.id] = tuple(points[nearest])

    return placements


def get_geofence_info(zones: Sequence[NoFlyZone], waypoints: Sequence[Waypoint] = ()) -> dict:
    """
    Get information about no-fly zones for visualization

    Returns:
        Dictionary containing zones and their canvas placement
    """
    points = route_geometry.project_to_canvas(waypoints)
    placements = place_zones_on_canvas(zones, waypoints, points)

    return {
        'no_fly_zones': [
            {**zone.model_dump(), 'canvas_center': placements.get(zone.id)}
            for zone in zones
        ],
        'warning_distance_m': config.NO_FLY_ZONE_WARNING_DISTANCE
    }
