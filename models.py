"""
Data Models for the Track Simulator
Uses Pydantic for validation and serialization
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Tuple
from enum import Enum


class InvalidArgument(ValueError):
    """Raised when an operation receives a value outside its constraints"""


class WaypointRole(str, Enum):
    """Position of a waypoint within its route"""
    START = "start"
    END = "end"
    INTERMEDIATE = "intermediate"


class SimulationPhase(str, Enum):
    """Transport states of the simulation engine"""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class PathCommandType(str, Enum):
    MOVE = "move"
    LINE = "line"
    CUBIC = "cubic"


CanvasPoint = Tuple[float, float]


class GeoPosition(BaseModel):
    """Decimal-degree position; numeric strings are coerced"""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class Waypoint(GeoPosition):
    """Named point of a route"""
    id: str
    role: WaypointRole = WaypointRole.INTERMEDIATE
    description: Optional[str] = None


class NoFlyZone(GeoPosition):
    """Static circular exclusion region, rendered for reference only"""
    id: str
    radius: float = Field(..., gt=0)  # canvas units
    description: str = "No-Fly Zone"


class PathCommand(BaseModel):
    """Single drawing step of a path descriptor"""
    model_config = ConfigDict(frozen=True)

    type: PathCommandType
    end: CanvasPoint
    control1: Optional[CanvasPoint] = None
    control2: Optional[CanvasPoint] = None


class PathDescriptor(BaseModel):
    """Ordered drawing commands for a route curve"""
    model_config = ConfigDict(frozen=True)

    commands: List[PathCommand] = []

    @property
    def is_empty(self) -> bool:
        return not self.commands

    @property
    def end_point(self) -> Optional[CanvasPoint]:
        if not self.commands:
            return None
        return self.commands[-1].end

    def to_svg(self) -> str:
        """Render as SVG path data (M, L and C commands)"""
        parts = []
        for command in self.commands:
            x, y = command.end
            if command.type == PathCommandType.MOVE:
                parts.append(f"M{_fmt(x)},{_fmt(y)}")
            elif command.type == PathCommandType.LINE:
                parts.append(f"L{_fmt(x)},{_fmt(y)}")
            else:
                c1x, c1y = command.control1
                c2x, c2y = command.control2
                parts.append(
                    f"C{_fmt(c1x)},{_fmt(c1y)} {_fmt(c2x)},{_fmt(c2y)} {_fmt(x)},{_fmt(y)}"
                )
        return " ".join(parts)


def _fmt(value: float) -> str:
    # Whole numbers render without a trailing ".0"
    return str(int(value)) if float(value).is_integer() else f"{value:.4f}".rstrip('0').rstrip('.')


class PathSegment(BaseModel):
    """Renderable path with display flags"""
    model_config = ConfigDict(frozen=True)

    descriptor: PathDescriptor
    animated: bool = False
    completed: bool = False
    dashed: bool = False


class RouteConfig(BaseModel):
    """Tagged waypoints plus their derived paths"""
    waypoints: List[Waypoint] = []
    paths: List[PathSegment] = []


class DroneTelemetry(BaseModel):
    """Instantaneous simulated drone state"""
    position: GeoPosition
    heading: float = Field(0.0, ge=0, lt=360)  # degrees
    altitude: float = Field(0.0, ge=0)         # meters
    speed: float = Field(0.0, ge=0)            # km/h
    battery: float = Field(100.0, ge=0, le=100)  # percentage


class TelemetryUpdate(BaseModel):
    """Partial telemetry override"""
    position: Optional[GeoPosition] = None
    heading: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    battery: Optional[float] = None


class SimulationState(BaseModel):
    """Transport state owned by the engine"""
    progress: float = Field(0.0, ge=0, le=1)
    running: bool = False
    speed_multiplier: float = Field(1.0, gt=0)


class MissionProgress(BaseModel):
    """Display metrics derived from progress"""
    time_elapsed: str   # MM:SS
    time_total: str     # MM:SS
    distance_covered_km: float
    distance_total_km: float
    waypoints_reached: int
    waypoints_total: int


class SimulationSnapshot(BaseModel):
    """Read-only view of the engine for rendering"""
    waypoints: List[Waypoint]
    paths: List[PathSegment]
    no_fly_zones: List[NoFlyZone]
    drone: DroneTelemetry
    drone_canvas_position: Optional[CanvasPoint] = None
    heading_label: str
    bearing_to_end: Optional[float] = None  # degrees from the drone to the end waypoint
    progress: float
    running: bool
    phase: SimulationPhase
    speed_multiplier: float
    mission: MissionProgress


class RoutePlan(BaseModel):
    """Route returned by the AI planner or its fallback"""
    distance: str
    duration: str
    waypoints: List[Waypoint]
    path: str  # SVG path data
    recommendations: str = ""


class SpeedRequest(BaseModel):
    multiplier: float


class WaypointInput(GeoPosition):
    """Untagged waypoint supplied by a caller"""
    id: Optional[str] = None
    description: Optional[str] = None


class RouteRequest(BaseModel):
    """Waypoints to load into the simulator"""
    waypoints: List[WaypointInput] = []
