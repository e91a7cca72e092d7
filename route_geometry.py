"""
Route Geometry Module
Converts ordered waypoints into canvas coordinates and smooth path descriptors
Layout is a fixed-viewport heuristic, not a geographic projection
"""

import math
from typing import Any, List, Optional, Sequence, Tuple
from pydantic import BaseModel
from models import (
    CanvasPoint, GeoPosition, NoFlyZone, PathCommand, PathCommandType,
    PathDescriptor, PathSegment, RouteConfig, Waypoint, WaypointRole
)
import config


def project_to_canvas(waypoints: Sequence[Any],
                      width: float = config.CANVAS_WIDTH,
                      height: float = config.CANVAS_HEIGHT) -> List[CanvasPoint]:
    """
    Spread waypoints evenly across the canvas with a sinusoidal vertical offset

    Args:
        waypoints: Ordered waypoints (only their count and order matter)
        width, height: Canvas size in canvas units

    Returns:
        One (x, y) point per waypoint, in route order
    """
    n = len(waypoints)
    if n == 0:
        return []

    margin = config.CANVAS_MARGIN
    spacing = (width - 2 * margin) / max(n - 1, 1)

    points = []
    for i in range(n):
        x = margin + i * spacing
        y = height / 2 + config.CANVAS_AMPLITUDE * math.sin(i * math.pi / 4)
        points.append((x, y))

    return points


def build_path(points: Sequence[CanvasPoint]) -> PathDescriptor:
    """
    Build a smooth curve through canvas points

    Two points give a straight line. Longer sequences give one cubic
    segment per pair of consecutive points; the first segment bends at the
    horizontal midpoint, later ones use 1/3 and 2/3 horizontal ratios with
    a 1/6 vertical ease at each end.

    Args:
        points: Ordered canvas points

    Returns:
        Path descriptor (empty for fewer than two points)
    """
    if len(points) < 2:
        return PathDescriptor()

    x0, y0 = points[0]
    commands = [PathCommand(type=PathCommandType.MOVE, end=(x0, y0))]

    if len(points) == 2:
        commands.append(PathCommand(type=PathCommandType.LINE, end=tuple(points[1])))
        return PathDescriptor(commands=commands)

    for i in range(1, len(points)):
        px, py = points[i - 1]
        x, y = points[i]

        if i == 1:
            mid_x = px + (x - px) / 2
            control1 = (mid_x, py)
            control2 = (mid_x, y)
        else:
            control1 = (px + (x - px) / 3, py + (y - py) / 6)
            control2 = (px + 2 * (x - px) / 3, y - (y - py) / 6)

        commands.append(PathCommand(
            type=PathCommandType.CUBIC,
            end=(x, y),
            control1=control1,
            control2=control2
        ))

    return PathDescriptor(commands=commands)


def _role_for_index(index: int, count: int) -> WaypointRole:
    if index == 0:
        return WaypointRole.START
    if index == count - 1:
        return WaypointRole.END
    return WaypointRole.INTERMEDIATE


def _as_dict(item: Any) -> dict:
    if isinstance(item, BaseModel):
        return item.model_dump()
    return dict(item)


def build_route_from_waypoints(waypoints: Sequence[Any]) -> RouteConfig:
    """
    Tag waypoints by position and derive the route path

    Args:
        waypoints: Waypoint models, input models or dicts with
            latitude/longitude and optional id/description

    Returns:
        RouteConfig with tagged copies and a single animated, completed path
    """
    if not waypoints:
        return RouteConfig()

    count = len(waypoints)
    tagged = []
    for index, item in enumerate(waypoints):
        data = _as_dict(item)
        tagged.append(Waypoint(
            id=data.get('id') or f"wp{index + 1}",
            latitude=data['latitude'],
            longitude=data['longitude'],
            description=data.get('description'),
            role=_role_for_index(index, count)
        ))

    descriptor = build_path(project_to_canvas(tagged))
    segment = PathSegment(descriptor=descriptor, animated=True, completed=True)

    return RouteConfig(waypoints=tagged, paths=[segment])


def point_along_path(points: Sequence[CanvasPoint], progress: float) -> Optional[CanvasPoint]:
    """
    Locate the canvas point at a progress fraction along the point polyline

    Args:
        points: Ordered canvas points
        progress: Fraction in [0, 1], clamped

    Returns:
        (x, y) point, or None when there are no points
    """
    if not points:
        return None
    if len(points) == 1:
        return tuple(points[0])

    progress = min(max(progress, 0.0), 1.0)
    lengths = [math.dist(points[i - 1], points[i]) for i in range(1, len(points))]
    target = progress * sum(lengths)

    for i, length in enumerate(lengths):
        if target <= length and length > 0:
            ratio = target / length
            (ax, ay), (bx, by) = points[i], points[i + 1]
            return (ax + (bx - ax) * ratio, ay + (by - ay) * ratio)
        target -= length

    return tuple(points[-1])


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two points on Earth

    Returns:
        Distance in meters
    """
    R = 6371000  # Earth radius in meters

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def route_distance_km(waypoints: Sequence[GeoPosition]) -> float:
    """Total great-circle length of the route through its waypoints"""
    total = 0.0
    for a, b in zip(waypoints, waypoints[1:]):
        total += haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)
    return total / 1000.0


def calculate_heading(start: GeoPosition, end: GeoPosition) -> float:
    """
    Calculate heading (bearing) from one position to another

    Returns:
        Heading in degrees (0 = North, 90 = East)
    """
    lat1_rad = math.radians(start.latitude)
    lat2_rad = math.radians(end.latitude)
    delta_lon = math.radians(end.longitude - start.longitude)

    x = math.sin(delta_lon) * math.cos(lat2_rad)
    y = (math.cos(lat1_rad) * math.sin(lat2_rad) -
         math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lon))

    heading = math.degrees(math.atan2(x, y))
    return (heading + 360) % 360


COMPASS_POINTS = ['N', 'NE', 'E', 'SE', 'S', 'SW', 'W', 'NW']


def heading_to_compass(heading: float) -> str:
    """8-point compass label for a heading in degrees"""
    index = int(((heading % 360) + 22.5) // 45) % 8
    return COMPASS_POINTS[index]


def generate_demo_route() -> Tuple[RouteConfig, List[NoFlyZone]]:
    """
    Build the Riverside monitoring demo route and its no-fly zones

    Returns:
        (route, no_fly_zones)
    """
    route = build_route_from_waypoints(config.DEMO_WAYPOINTS)

    # The demo path is drawn as a planned (not yet flown) route
    paths = [PathSegment(descriptor=segment.descriptor, animated=True)
             for segment in route.paths]
    zones = [NoFlyZone(**zone) for zone in config.DEMO_NO_FLY_ZONES]

    return RouteConfig(waypoints=route.waypoints, paths=paths), zones
