"""
Track Simulator Configuration
Defines canvas layout, simulation timing, telemetry model and demo route data
"""

# ============================================================================
# CANVAS LAYOUT
# ============================================================================
# Waypoints are spread over a fixed viewport, not projected geographically

CANVAS_WIDTH = 1000.0
CANVAS_HEIGHT = 500.0
CANVAS_MARGIN = 100.0      # left/right margin in canvas units
CANVAS_AMPLITUDE = 100.0   # vertical sine offset in canvas units

# ============================================================================
# SIMULATION PARAMETERS
# ============================================================================

SIMULATION_DURATION = 36.0       # seconds for a full run at 1x
TICK_INTERVAL = 1.0 / 30.0       # seconds between timer ticks

SPEED_MIN = 0.5
SPEED_MAX = 10.0
DEFAULT_SPEED = 1.0

# ============================================================================
# TELEMETRY MODEL
# ============================================================================

CRUISE_SPEED_KMH = 7.2
HEADING_START = 45.0     # degrees at progress 0
HEADING_SWEEP = 30.0     # degrees added over a full run
BATTERY_FULL = 100.0
BATTERY_DRAIN = 32.0     # percent consumed over a full run (68% left)

# ============================================================================
# MISSION DISPLAY
# ============================================================================

MISSION_DURATION_MINUTES = 36
NO_FLY_ZONE_WARNING_DISTANCE = 150.0  # meters

# ============================================================================
# DEMO ROUTE - RIVERSIDE MONITORING
# ============================================================================

DEMO_WAYPOINTS = [
    {'id': 'wp1', 'latitude': '37.7749', 'longitude': '-122.4194',
     'description': 'Starting point - Riverside park entrance'},
    {'id': 'wp2', 'latitude': '37.7752', 'longitude': '-122.4180',
     'description': 'North residential area'},
    {'id': 'wp3', 'latitude': '37.7758', 'longitude': '-122.4166',
     'description': 'Riverbank erosion hotspot'},
    {'id': 'wp4', 'latitude': '37.7765', 'longitude': '-122.4152',
     'description': 'Damaged bridge infrastructure'},
    {'id': 'wp5', 'latitude': '37.7772', 'longitude': '-122.4138',
     'description': 'Emergency response staging area'},
]

DEMO_NO_FLY_ZONES = [
    {
        'id': 'nfz1',
        'latitude': '37.7760',
        'longitude': '-122.4170',
        'radius': 40,
        'description': 'No-Fly Zone'
    }
]

DEMO_TELEMETRY = {
    'position': {'latitude': '37.7749', 'longitude': '-122.4194'},
    'heading': 75,
    'altitude': 120,
    'speed': 7.2,
    'battery': 100
}

# ============================================================================
# API CONFIGURATION
# ============================================================================

API_HOST = "127.0.0.1"
API_PORT = 8000
CORS_ORIGINS = ["*"]  # Allow all origins for development
