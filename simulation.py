"""
Track Simulation Engine
Plays a drone along a fixed route with a start/pause/stop/reset transport
Telemetry is derived from a single progress fraction advanced over time
"""

import asyncio
import logging
import math
import time
from typing import Callable, List, Optional, Sequence

from pydantic import ValidationError

from models import (
    DroneTelemetry, GeoPosition, InvalidArgument, MissionProgress, NoFlyZone,
    RouteConfig, SimulationPhase, SimulationSnapshot, SimulationState,
    TelemetryUpdate, Waypoint, WaypointRole
)
import config
import route_geometry

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """Runs engine timer callbacks on an asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop

    def call_later(self, delay: float, callback: Callable, *args) -> asyncio.TimerHandle:
        loop = self.loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback, *args)

    def cancel(self, handle: asyncio.TimerHandle):
        handle.cancel()


def find_waypoint(waypoints: Sequence[Waypoint], role: WaypointRole) -> Optional[Waypoint]:
    """First waypoint with the given role"""
    for waypoint in waypoints:
        if waypoint.role == role:
            return waypoint
    return None


def format_clock(seconds: int) -> str:
    """Format whole seconds as MM:SS"""
    minutes, remaining = divmod(int(seconds), 60)
    return f"{minutes:02d}:{remaining:02d}"


class SimulationEngine:
    """
    Owns a route, its no-fly zones, simulated telemetry and the transport

    Time advances through tick(delta_seconds). When a scheduler is attached,
    start() also runs a repeating timer that feeds wall-clock deltas into
    tick(). Every transition that ends a run bumps a loop token, so a timer
    callback scheduled before pause/stop/reset finds itself stale and does
    nothing.

    The engine is not thread-safe; drive it from a single thread (the event
    loop thread when using AsyncioScheduler).
    """

    def __init__(self, route: Optional[RouteConfig] = None,
                 no_fly_zones: Optional[Sequence[NoFlyZone]] = None,
                 telemetry: Optional[DroneTelemetry] = None,
                 duration: float = config.SIMULATION_DURATION,
                 speed: float = config.DEFAULT_SPEED,
                 scheduler: Optional[AsyncioScheduler] = None,
                 tick_interval: float = config.TICK_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        if duration <= 0:
            raise InvalidArgument(f"Duration must be positive, got {duration}")
        self._validate_speed(speed)

        self.duration = duration
        self.scheduler = scheduler
        self.tick_interval = tick_interval
        self.clock = clock

        self.route = route or RouteConfig()
        self.no_fly_zones: List[NoFlyZone] = list(no_fly_zones or [])
        self.state = SimulationState(speed_multiplier=speed)
        self.phase = SimulationPhase.IDLE
        self.telemetry = telemetry if telemetry is not None else self._home_telemetry()

        self._elapsed = 0.0  # simulated seconds into the run
        self._token = 0
        self._handle = None
        self._last_time: Optional[float] = None
        self._listeners: List[Callable[["SimulationEngine"], None]] = []
        self._derive_route_metrics()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def progress(self) -> float:
        return self.state.progress

    @property
    def running(self) -> bool:
        return self.state.running

    @property
    def speed_multiplier(self) -> float:
        return self.state.speed_multiplier

    @property
    def start_waypoint(self) -> Optional[Waypoint]:
        return find_waypoint(self.route.waypoints, WaypointRole.START)

    @property
    def end_waypoint(self) -> Optional[Waypoint]:
        return find_waypoint(self.route.waypoints, WaypointRole.END)

    def add_listener(self, callback: Callable[["SimulationEngine"], None]):
        """Register a callback invoked after every state change"""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[["SimulationEngine"], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def start(self):
        """Begin or resume the run; no-op while already running"""
        if self.phase == SimulationPhase.RUNNING:
            return

        if self.phase == SimulationPhase.COMPLETED:
            self._rewind()

        self.phase = SimulationPhase.RUNNING
        self.state.running = True
        self._token += 1

        if self.scheduler is not None:
            self._last_time = self.clock()
            self._schedule(self._token)

        logger.info("Simulation running from progress %.3f (%.1fx)",
                    self.progress, self.speed_multiplier)
        self._notify()

    def pause(self):
        """Freeze progress and telemetry; no-op unless running"""
        if self.phase != SimulationPhase.RUNNING:
            return

        self._halt_loop()
        self.phase = SimulationPhase.PAUSED
        self.state.running = False

        logger.info("Simulation paused at progress %.3f", self.progress)
        self._notify()

    def stop(self):
        """Halt and rewind progress to 0, leaving telemetry as it is"""
        self._halt_loop()
        self._rewind()
        self.phase = SimulationPhase.IDLE
        self.state.running = False

        logger.info("Simulation stopped")
        self._notify()

    def reset(self):
        """Halt, rewind and put the drone back on the start waypoint"""
        self._halt_loop()
        self._rewind()
        self.phase = SimulationPhase.IDLE
        self.state.running = False
        self.telemetry = self._home_telemetry(altitude=self.telemetry.altitude)

        logger.info("Simulation reset to start waypoint")
        self._notify()

    def set_speed(self, multiplier: float):
        """
        Change the speed multiplier; applies from the next tick

        Raises:
            InvalidArgument: multiplier is not in [SPEED_MIN, SPEED_MAX]
        """
        self._validate_speed(multiplier)
        self.state.speed_multiplier = float(multiplier)

        logger.info("Simulation speed set to %.1fx", multiplier)
        self._notify()

    def update_telemetry(self, update: Optional[TelemetryUpdate] = None, **fields):
        """
        Merge a partial telemetry update into the current telemetry

        Raises:
            InvalidArgument: unknown field, or merged telemetry is invalid
                (nothing is changed)
        """
        unknown = set(fields) - set(TelemetryUpdate.model_fields)
        if unknown:
            raise InvalidArgument(f"Unknown telemetry fields: {', '.join(sorted(unknown))}")

        changes = update.model_dump(exclude_none=True) if update is not None else {}
        changes.update({key: value for key, value in fields.items() if value is not None})

        merged = self.telemetry.model_dump()
        merged.update(changes)

        try:
            self.telemetry = DroneTelemetry.model_validate(merged)
        except ValidationError as e:
            logger.warning("Rejected telemetry update: %s", changes)
            raise InvalidArgument(f"Invalid telemetry: {e}") from e

        self._notify()

    def load_route(self, route: RouteConfig, no_fly_zones: Optional[Sequence[NoFlyZone]] = None):
        """
        Replace the route, returning the engine to Idle at the new start

        Raises:
            InvalidArgument: route has no waypoints
        """
        if not route.waypoints:
            raise InvalidArgument("Route must contain at least one waypoint")

        self._replace_route(route, no_fly_zones)
        logger.info("Route loaded: %d waypoints, %.2f km",
                    len(route.waypoints), self._distance_km)

    def add_waypoint(self, waypoint, index: Optional[int] = None) -> Waypoint:
        """
        Insert a waypoint and retag the route

        Args:
            waypoint: Waypoint, WaypointInput or dict with latitude/longitude
            index: Position in the route; appended when omitted

        Returns:
            The waypoint as tagged in the rebuilt route

        Raises:
            InvalidArgument: id already used, or the waypoint is malformed
        """
        data = waypoint.model_dump() if hasattr(waypoint, 'model_dump') else dict(waypoint)
        taken = {wp.id for wp in self.route.waypoints}

        if data.get('id') in taken:
            raise InvalidArgument(f"Waypoint id already in route: {data['id']}")
        if not data.get('id'):
            number = len(taken) + 1
            while f"wp{number}" in taken:
                number += 1
            data['id'] = f"wp{number}"

        waypoints = list(self.route.waypoints)
        position = len(waypoints) if index is None else index
        waypoints.insert(position, data)

        try:
            route = route_geometry.build_route_from_waypoints(waypoints)
        except (KeyError, ValidationError) as e:
            raise InvalidArgument(f"Invalid waypoint: {e}") from e

        self._replace_route(route)
        logger.info("Waypoint %s added, route has %d waypoints", data['id'], len(route.waypoints))
        return next(wp for wp in route.waypoints if wp.id == data['id'])

    def remove_waypoint(self, waypoint_id: str):
        """
        Drop a waypoint and retag the route; the route may become empty

        Raises:
            InvalidArgument: no waypoint with that id
        """
        remaining = [wp for wp in self.route.waypoints if wp.id != waypoint_id]
        if len(remaining) == len(self.route.waypoints):
            raise InvalidArgument(f"No waypoint with id {waypoint_id}")

        self._replace_route(route_geometry.build_route_from_waypoints(remaining))
        logger.info("Waypoint %s removed, route has %d waypoints", waypoint_id, len(remaining))

    def set_no_fly_zones(self, zones: Sequence[NoFlyZone]):
        """Replace the reference no-fly zones; the run is not affected"""
        self.no_fly_zones = list(zones)
        self._notify()

    def _replace_route(self, route: RouteConfig, no_fly_zones: Optional[Sequence[NoFlyZone]] = None):
        self._halt_loop()
        self.route = route
        if no_fly_zones is not None:
            self.no_fly_zones = list(no_fly_zones)
        self._derive_route_metrics()

        self._rewind()
        self.phase = SimulationPhase.IDLE
        self.state.running = False
        self.telemetry = self._home_telemetry(altitude=self.telemetry.altitude,
                                              fallback=self.telemetry.position)
        self._notify()

    # ------------------------------------------------------------------
    # Time stepping
    # ------------------------------------------------------------------

    def tick(self, delta_seconds: float) -> float:
        """
        Advance the run by a wall-clock delta scaled by the speed multiplier

        Args:
            delta_seconds: Wall-clock time since the previous tick

        Returns:
            Progress fraction after the tick
        """
        if self.phase != SimulationPhase.RUNNING:
            return self.progress

        self._elapsed += max(delta_seconds, 0.0) * self.speed_multiplier
        progress = max(min(self._elapsed / self.duration, 1.0), self.progress)

        self.state.progress = progress
        self._commit_telemetry(progress)
        logger.debug("Tick: progress %.4f", progress)

        if progress >= 1.0:
            self._halt_loop()
            self.phase = SimulationPhase.COMPLETED
            self.state.running = False
            logger.info("Simulation completed")

        self._notify()
        return progress

    def _commit_telemetry(self, progress: float):
        start = self.start_waypoint
        end = self.end_waypoint
        position = self.telemetry.position

        if start is not None and end is not None:
            position = GeoPosition(
                latitude=start.latitude + (end.latitude - start.latitude) * progress,
                longitude=start.longitude + (end.longitude - start.longitude) * progress
            )

        self.telemetry = self.telemetry.model_copy(update={
            'position': position,
            'heading': (config.HEADING_START + config.HEADING_SWEEP * progress) % 360,
            'speed': config.CRUISE_SPEED_KMH,
            'battery': max(0.0, config.BATTERY_FULL - config.BATTERY_DRAIN * progress)
        })

    def _schedule(self, token: int):
        self._handle = self.scheduler.call_later(self.tick_interval, self._on_timer, token)

    def _on_timer(self, token: int):
        if token != self._token or self.phase != SimulationPhase.RUNNING:
            return  # stale callback from a halted loop

        self._handle = None
        now = self.clock()
        delta = now - self._last_time
        self._last_time = now

        try:
            self.tick(delta)
        finally:
            if token == self._token and self.phase == SimulationPhase.RUNNING:
                self._schedule(token)

    def _halt_loop(self):
        self._token += 1
        if self._handle is not None and self.scheduler is not None:
            self.scheduler.cancel(self._handle)
        self._handle = None
        self._last_time = None

    def _rewind(self):
        self._elapsed = 0.0
        self.state.progress = 0.0

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> SimulationSnapshot:
        """Read-only view of the route, drone and transport"""
        return SimulationSnapshot(
            waypoints=list(self.route.waypoints),
            paths=list(self.route.paths),
            no_fly_zones=list(self.no_fly_zones),
            drone=self.telemetry.model_copy(),
            drone_canvas_position=route_geometry.point_along_path(self._canvas_points, self.progress),
            heading_label=route_geometry.heading_to_compass(self.telemetry.heading),
            bearing_to_end=self._bearing_to_end(),
            progress=self.progress,
            running=self.running,
            phase=self.phase,
            speed_multiplier=self.speed_multiplier,
            mission=self.mission_progress()
        )

    def _bearing_to_end(self) -> Optional[float]:
        end = self.end_waypoint
        if end is None:
            return None
        return route_geometry.calculate_heading(self.telemetry.position, end)

    def mission_progress(self) -> MissionProgress:
        """Mission clock, distance and checkpoint counters for the current progress"""
        total_seconds = config.MISSION_DURATION_MINUTES * 60
        waypoint_count = len(self.route.waypoints)

        return MissionProgress(
            time_elapsed=format_clock(math.floor(self.progress * total_seconds)),
            time_total=format_clock(total_seconds),
            distance_covered_km=round(self.progress * self._distance_km, 3),
            distance_total_km=round(self._distance_km, 3),
            waypoints_reached=math.ceil(self.progress * waypoint_count),
            waypoints_total=waypoint_count
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _derive_route_metrics(self):
        self._canvas_points = route_geometry.project_to_canvas(self.route.waypoints)
        self._distance_km = route_geometry.route_distance_km(self.route.waypoints)

    def _home_telemetry(self, altitude: float = 0.0,
                        fallback: Optional[GeoPosition] = None) -> DroneTelemetry:
        start = self.start_waypoint
        if start is not None:
            position = GeoPosition(latitude=start.latitude, longitude=start.longitude)
        elif fallback is not None:
            position = fallback
        else:
            position = GeoPosition(latitude=0.0, longitude=0.0)

        return DroneTelemetry(
            position=position,
            heading=0.0,
            altitude=altitude,
            speed=0.0,
            battery=config.BATTERY_FULL
        )

    @staticmethod
    def _validate_speed(multiplier: float):
        if (not isinstance(multiplier, (int, float)) or isinstance(multiplier, bool)
                or not math.isfinite(multiplier)
                or multiplier < config.SPEED_MIN or multiplier > config.SPEED_MAX):
            raise InvalidArgument(
                f"Speed multiplier must be in [{config.SPEED_MIN}, {config.SPEED_MAX}], got {multiplier!r}"
            )

    def _notify(self):
        for callback in list(self._listeners):
            callback(self)
