"""
Track Simulator - FastAPI Backend
Hosts a single simulation engine and exposes its snapshot and transport controls
"""

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import List, Optional
import asyncio
import logging
import time

from models import (
    DroneTelemetry, InvalidArgument, RouteRequest, SimulationSnapshot,
    SpeedRequest, TelemetryUpdate, WaypointInput
)
from route_plans import RoutePlanError
from simulation import AsyncioScheduler, SimulationEngine
import config
import geofencing
import route_geometry
import route_plans

logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI SETUP
# ============================================================================

app = FastAPI(
    title="Track Simulator API",
    description="Route geometry and drone track playback for mission planning",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# WEBSOCKET MANAGER
# ============================================================================

class ConnectionManager:
    """Manages WebSocket connections for real-time updates"""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        """Send message to all connected clients"""
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.warning("Dropping WebSocket client: %s", e)
                self.disconnect(connection)

manager = ConnectionManager()

# Strong references to in-flight broadcasts until they finish
background_tasks = set()

# ============================================================================
# SIMULATION ENGINE
# ============================================================================

def create_engine(scheduler=None) -> SimulationEngine:
    """Engine loaded with the demo route and demo drone telemetry"""
    route, zones = route_geometry.generate_demo_route()
    telemetry = DroneTelemetry(**config.DEMO_TELEMETRY)
    return SimulationEngine(route, zones, telemetry, scheduler=scheduler)


def snapshot_message(engine: SimulationEngine) -> dict:
    return {
        'type': 'simulation',
        'data': engine.snapshot().model_dump(mode='json')
    }


def on_engine_change(engine: SimulationEngine):
    """Push the new snapshot to WebSocket clients"""
    if not manager.active_connections:
        return
    task = asyncio.get_running_loop().create_task(manager.broadcast(snapshot_message(engine)))
    background_tasks.add(task)
    task.add_done_callback(background_tasks.discard)


engine = create_engine(AsyncioScheduler())
engine.add_listener(on_engine_change)


def get_engine() -> SimulationEngine:
    return engine

# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    return {"message": "Track Simulator API is running."}

@app.get("/api/health")
async def health_check(sim: SimulationEngine = Depends(get_engine)):
    """System health check"""
    return {
        "status": "operational",
        "timestamp": time.time(),
        "phase": sim.phase,
        "waypoints": len(sim.route.waypoints)
    }

@app.get("/api/simulation", response_model=SimulationSnapshot)
async def get_simulation(sim: SimulationEngine = Depends(get_engine)):
    """Current simulation snapshot"""
    return sim.snapshot()

@app.post("/api/simulation/start", response_model=SimulationSnapshot)
async def start_simulation(sim: SimulationEngine = Depends(get_engine)):
    sim.start()
    return sim.snapshot()

@app.post("/api/simulation/pause", response_model=SimulationSnapshot)
async def pause_simulation(sim: SimulationEngine = Depends(get_engine)):
    sim.pause()
    return sim.snapshot()

@app.post("/api/simulation/stop", response_model=SimulationSnapshot)
async def stop_simulation(sim: SimulationEngine = Depends(get_engine)):
    sim.stop()
    return sim.snapshot()

@app.post("/api/simulation/reset", response_model=SimulationSnapshot)
async def reset_simulation(sim: SimulationEngine = Depends(get_engine)):
    sim.reset()
    return sim.snapshot()

@app.put("/api/simulation/speed", response_model=SimulationSnapshot)
async def set_simulation_speed(request: SpeedRequest, sim: SimulationEngine = Depends(get_engine)):
    """Change playback speed without interrupting the run"""
    try:
        sim.set_speed(request.multiplier)
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return sim.snapshot()

@app.patch("/api/simulation/telemetry", response_model=SimulationSnapshot)
async def update_telemetry(update: TelemetryUpdate, sim: SimulationEngine = Depends(get_engine)):
    """Override part of the drone telemetry (e.g. seed a position)"""
    try:
        sim.update_telemetry(update)
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return sim.snapshot()

@app.post("/api/simulation/route", response_model=SimulationSnapshot)
async def load_route(request: RouteRequest, sim: SimulationEngine = Depends(get_engine)):
    """Replace the simulated route with caller-supplied waypoints"""
    route = route_geometry.build_route_from_waypoints(request.waypoints)
    try:
        sim.load_route(route)
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return sim.snapshot()

@app.post("/api/simulation/waypoints", response_model=SimulationSnapshot)
async def add_waypoint(waypoint: WaypointInput, index: Optional[int] = None,
                       sim: SimulationEngine = Depends(get_engine)):
    """Insert a waypoint (appended unless an index is given)"""
    try:
        sim.add_waypoint(waypoint, index)
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return sim.snapshot()

@app.delete("/api/simulation/waypoints/{waypoint_id}", response_model=SimulationSnapshot)
async def remove_waypoint(waypoint_id: str, sim: SimulationEngine = Depends(get_engine)):
    try:
        sim.remove_waypoint(waypoint_id)
    except InvalidArgument as e:
        raise HTTPException(404, str(e))
    return sim.snapshot()

@app.post("/api/simulation/route-plan")
async def load_route_plan(payload: dict, sim: SimulationEngine = Depends(get_engine)):
    """
    Load the route from an AI route-planner response
    """
    try:
        plan = route_plans.parse_route_response(payload)
    except RoutePlanError as e:
        raise HTTPException(400, str(e))

    sim.load_route(route_geometry.build_route_from_waypoints(plan.waypoints))
    return {
        "plan": plan,
        "simulation": sim.snapshot()
    }

@app.get("/api/route-plans/fallback")
async def get_fallback_route_plan(prompt: str = ""):
    return route_plans.fallback_route_plan(prompt)

@app.get("/api/routes/demo")
async def get_demo_route():
    """Demo route, its SVG path and no-fly zones"""
    route, zones = route_geometry.generate_demo_route()
    return {
        "waypoints": route.waypoints,
        "paths": route.paths,
        "svg_path": route.paths[0].descriptor.to_svg(),
        "no_fly_zones": zones
    }

@app.get("/api/geofencing/zones")
async def get_geofencing_zones(sim: SimulationEngine = Depends(get_engine)):
    """Get no-fly zones for visualization"""
    info = geofencing.get_geofence_info(sim.no_fly_zones, sim.route.waypoints)
    info['zones_near_drone'] = [
        zone.id for zone in geofencing.zones_near(sim.telemetry.position, sim.no_fly_zones)
    ]
    return info

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket for real-time simulation updates"""
    await manager.connect(websocket)

    try:
        # Send initial state
        await websocket.send_json(snapshot_message(get_engine()))

        while True:
            # Keep connection alive
            data = await websocket.receive_text()

            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        manager.disconnect(websocket)

# ============================================================================
# LIFECYCLE
# ============================================================================

@app.on_event("startup")
async def startup_event():
    logger.info("Track Simulator starting...")
    logger.info("Route: %d waypoints, no-fly zones: %d",
                len(engine.route.waypoints), len(engine.no_fly_zones))

@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    engine.stop()
    logger.info("Track Simulator shutting down...")

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
