"""
Unit tests for route geometry

Tests cover:
- Canvas layout of waypoints
- Path construction for degenerate, straight and curved routes
- Route tagging
- Distance, heading and path interpolation helpers
"""
import math

import pytest

from models import PathCommandType, Waypoint, WaypointInput, WaypointRole
import config
import route_geometry


def make_inputs(count):
    return [
        WaypointInput(latitude=37.77 + i * 0.001, longitude=-122.41 + i * 0.001)
        for i in range(count)
    ]


class TestProjectToCanvas:

    def test_empty_input_gives_no_points(self):
        assert route_geometry.project_to_canvas([]) == []

    def test_single_waypoint_sits_at_left_margin(self):
        points = route_geometry.project_to_canvas(make_inputs(1))

        assert points == [(config.CANVAS_MARGIN, config.CANVAS_HEIGHT / 2)]

    @pytest.mark.parametrize("count", [2, 3, 5, 8, 13])
    def test_points_strictly_increase_horizontally(self, count):
        points = route_geometry.project_to_canvas(make_inputs(count))

        assert len(points) == count
        xs = [x for x, _ in points]
        assert all(b > a for a, b in zip(xs, xs[1:]))

    def test_demo_layout_matches_dashboard(self):
        points = route_geometry.project_to_canvas(make_inputs(5))

        assert [x for x, _ in points] == [100, 300, 500, 700, 900]
        assert points[0][1] == pytest.approx(250)
        assert points[1][1] == pytest.approx(250 + 100 * math.sqrt(2) / 2)
        assert points[2][1] == pytest.approx(350)
        assert points[4][1] == pytest.approx(250)

    def test_custom_canvas_size(self):
        points = route_geometry.project_to_canvas(make_inputs(2), width=600, height=300)

        assert points[0] == (100, 150)
        assert points[1][0] == 500


class TestBuildPath:

    @pytest.mark.parametrize("points", [[], [(10.0, 20.0)]])
    def test_fewer_than_two_points_is_empty(self, points):
        descriptor = route_geometry.build_path(points)

        assert descriptor.is_empty
        assert descriptor.end_point is None
        assert descriptor.to_svg() == ""

    def test_two_points_give_straight_line(self):
        descriptor = route_geometry.build_path([(100.0, 250.0), (900.0, 250.0)])

        assert [c.type for c in descriptor.commands] == [PathCommandType.MOVE, PathCommandType.LINE]
        assert descriptor.to_svg() == "M100,250 L900,250"

    def test_curve_control_points(self):
        descriptor = route_geometry.build_path([(0.0, 0.0), (30.0, 60.0), (90.0, 0.0)])
        move, first, second = descriptor.commands

        assert move.type == PathCommandType.MOVE
        assert first.type == PathCommandType.CUBIC
        assert first.control1 == (15.0, 0.0)
        assert first.control2 == (15.0, 60.0)
        assert first.end == (30.0, 60.0)

        assert second.control1 == pytest.approx((50.0, 50.0))
        assert second.control2 == pytest.approx((70.0, 10.0))
        assert second.end == (90.0, 0.0)

    @pytest.mark.parametrize("count", [3, 4, 7])
    def test_curve_ends_on_last_point(self, count):
        points = route_geometry.project_to_canvas(make_inputs(count))
        descriptor = route_geometry.build_path(points)

        assert descriptor.end_point == points[-1]
        assert len(descriptor.commands) == count

    def test_svg_rendering_of_curve(self):
        descriptor = route_geometry.build_path([(0.0, 0.0), (30.0, 60.0), (90.0, 0.0)])

        assert descriptor.to_svg() == "M0,0 C15,0 15,60 30,60 C50,50 70,10 90,0"


class TestBuildRoute:

    def test_empty_route(self):
        route = route_geometry.build_route_from_waypoints([])

        assert route.waypoints == []
        assert route.paths == []

    def test_roles_follow_order(self):
        route = route_geometry.build_route_from_waypoints(make_inputs(4))

        assert [wp.role for wp in route.waypoints] == [
            WaypointRole.START,
            WaypointRole.INTERMEDIATE,
            WaypointRole.INTERMEDIATE,
            WaypointRole.END,
        ]

    def test_single_waypoint_is_start(self):
        route = route_geometry.build_route_from_waypoints(make_inputs(1))

        assert route.waypoints[0].role == WaypointRole.START
        assert route.paths[0].descriptor.is_empty

    def test_path_flags(self):
        route = route_geometry.build_route_from_waypoints(make_inputs(3))

        assert len(route.paths) == 1
        segment = route.paths[0]
        assert segment.animated
        assert segment.completed
        assert not segment.dashed

    def test_accepts_dicts_and_keeps_ids(self):
        route = route_geometry.build_route_from_waypoints([
            {'id': 'a', 'latitude': '37.1', 'longitude': '-122.1', 'description': 'first'},
            {'latitude': '37.2', 'longitude': '-122.2'},
        ])

        assert route.waypoints[0].id == 'a'
        assert route.waypoints[0].latitude == pytest.approx(37.1)
        assert route.waypoints[0].description == 'first'
        assert route.waypoints[1].id == 'wp2'

    def test_retagging_ignores_previous_roles(self):
        original = [
            Waypoint(id='x', latitude=1, longitude=1, role=WaypointRole.END),
            Waypoint(id='y', latitude=2, longitude=2, role=WaypointRole.START),
        ]
        route = route_geometry.build_route_from_waypoints(original)

        assert route.waypoints[0].role == WaypointRole.START
        assert route.waypoints[1].role == WaypointRole.END
        assert original[0].role == WaypointRole.END

    def test_waypoints_are_immutable(self):
        route = route_geometry.build_route_from_waypoints(make_inputs(2))

        with pytest.raises(Exception):
            route.waypoints[0].latitude = 0.0


class TestDemoRoute:

    def test_demo_waypoints_and_zone(self, demo_route, demo_zones):
        assert [wp.id for wp in demo_route.waypoints] == ['wp1', 'wp2', 'wp3', 'wp4', 'wp5']
        assert demo_route.waypoints[0].role == WaypointRole.START
        assert demo_route.waypoints[-1].role == WaypointRole.END
        assert [zone.id for zone in demo_zones] == ['nfz1']
        assert demo_zones[0].radius == 40

    def test_demo_path_is_planned_not_completed(self, demo_route):
        segment = demo_route.paths[0]

        assert segment.animated
        assert not segment.completed
        assert segment.descriptor.to_svg().startswith("M100,250 C200,250 200,")


class TestHelpers:

    def test_point_along_path_bounds(self):
        points = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0)]

        assert route_geometry.point_along_path(points, 0.0) == (0.0, 0.0)
        assert route_geometry.point_along_path(points, 1.0) == pytest.approx((10.0, 10.0))
        assert route_geometry.point_along_path(points, 0.5) == pytest.approx((10.0, 0.0))
        assert route_geometry.point_along_path(points, 0.75) == pytest.approx((10.0, 5.0))

    def test_point_along_path_degenerate(self):
        assert route_geometry.point_along_path([], 0.5) is None
        assert route_geometry.point_along_path([(3.0, 4.0)], 0.5) == (3.0, 4.0)

    def test_demo_route_distance(self, demo_route):
        distance = route_geometry.route_distance_km(demo_route.waypoints)

        assert 0.5 < distance < 0.6

    def test_heading_due_east(self):
        start = Waypoint(id='a', latitude=0.0, longitude=0.0)
        end = Waypoint(id='b', latitude=0.0, longitude=1.0)

        assert route_geometry.calculate_heading(start, end) == pytest.approx(90.0)

    @pytest.mark.parametrize("heading,label", [
        (0, 'N'), (350, 'N'), (45, 'NE'), (75, 'E'), (180, 'S'), (290, 'W'), (315, 'NW'),
    ])
    def test_heading_to_compass(self, heading, label):
        assert route_geometry.heading_to_compass(heading) == label
