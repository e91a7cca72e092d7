"""
Route Plan Module
Turns AI route-planner responses into simulator waypoints
Also provides the fixed fallback plan used when no AI response is available
"""

import json
import logging
from typing import Any, Union

from pydantic import ValidationError

from models import RoutePlan, WaypointInput
import config
import route_geometry

logger = logging.getLogger(__name__)


class RoutePlanError(ValueError):
    """Raised when a route-planner response cannot be understood"""


def parse_route_response(payload: Union[str, bytes, dict]) -> RoutePlan:
    """
    Parse an AI route-planner response

    Expected shape:
        {"route": {"totalDistance": "4.2 km", "estimatedDuration": "36 minutes",
                   "waypoints": [{"latitude", "longitude", "description"}, ...]},
         "recommendations": "..."}

    Args:
        payload: Response body as JSON text or an already decoded dict

    Returns:
        RoutePlan with waypoints WP1..WPn tagged by position

    Raises:
        RoutePlanError: payload is not valid JSON or lacks a usable route
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise RoutePlanError(f"Route response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise RoutePlanError("Route response must be a JSON object")

    route = payload.get('route')
    if not isinstance(route, dict):
        raise RoutePlanError("Route response has no 'route' object")

    raw_waypoints = route.get('waypoints')
    if not isinstance(raw_waypoints, list) or not raw_waypoints:
        raise RoutePlanError("Route response has no waypoints")

    try:
        inputs = [
            WaypointInput(
                id=f"WP{index + 1}",
                latitude=wp.get('latitude'),
                longitude=wp.get('longitude'),
                description=wp.get('description')
            )
            for index, wp in enumerate(raw_waypoints)
        ]
    except (AttributeError, ValidationError) as e:
        raise RoutePlanError(f"Invalid waypoint in route response: {e}") from e

    return _to_plan(
        inputs,
        distance=str(route.get('totalDistance', '')),
        duration=str(route.get('estimatedDuration', '')),
        recommendations=str(payload.get('recommendations') or '')
    )


def fallback_route_plan(prompt: str) -> RoutePlan:
    """
    Fixed Riverside plan returned when the AI planner is unavailable

    Args:
        prompt: The user's route request, echoed in the recommendations
    """
    logger.warning("AI route planner unavailable. Using fallback route plan.")

    inputs = [
        WaypointInput(**{**wp, 'id': f"WP{index + 1}"})
        for index, wp in enumerate(config.DEMO_WAYPOINTS)
    ]
    recommendations = (
        f'Based on the request "{prompt}", we recommend deploying during the morning '
        f'hours (7-10 AM) for optimal lighting conditions. Use drone model DJI-422 with '
        f'the higher capacity battery for this mission.'
    )

    return _to_plan(inputs, distance="4.2 km",
                    duration=f"{config.MISSION_DURATION_MINUTES} minutes",
                    recommendations=recommendations)


def _to_plan(inputs: Any, distance: str, duration: str, recommendations: str) -> RoutePlan:
    route = route_geometry.build_route_from_waypoints(inputs)
    path = route.paths[0].descriptor.to_svg() if route.paths else ""

    return RoutePlan(
        distance=distance,
        duration=duration,
        waypoints=route.waypoints,
        path=path,
        recommendations=recommendations
    )
