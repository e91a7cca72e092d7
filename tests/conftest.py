"""
Pytest fixtures and configuration for track simulator tests

This file contains shared fixtures used across all test modules.
"""

import pytest

from models import DroneTelemetry
from simulation import SimulationEngine
import config
import route_geometry


# =============================================================================
# Scheduling doubles
# =============================================================================


class FakeHandle:
    def __init__(self, delay, callback, args):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def run(self):
        self.callback(*self.args)


class FakeScheduler:
    """Collects timer callbacks instead of running them"""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    def cancel(self, handle):
        handle.cancelled = True

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_pending(self):
        """Run every callback that is still pending"""
        due = self.pending
        for handle in due:
            self.handles.remove(handle)
        for handle in due:
            handle.run()


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# =============================================================================
# Route fixtures
# =============================================================================


@pytest.fixture
def demo_route():
    route, _ = route_geometry.generate_demo_route()
    return route


@pytest.fixture
def demo_zones():
    _, zones = route_geometry.generate_demo_route()
    return zones


@pytest.fixture
def demo_telemetry():
    return DroneTelemetry(**config.DEMO_TELEMETRY)


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def engine(demo_route, demo_zones):
    """Tick-driven engine on the demo route with default telemetry"""
    return SimulationEngine(demo_route, demo_zones)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timed_engine(demo_route, demo_zones, scheduler, clock):
    """Engine driven by a fake timer and clock"""
    return SimulationEngine(demo_route, demo_zones, scheduler=scheduler, clock=clock)
