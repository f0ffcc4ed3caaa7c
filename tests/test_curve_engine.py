import math

import pytest

from planning.state_search.curve_engine import compute_curves
from planning.state_search.kinematic_profile import InvalidProfileError, KinematicProfile, Pose
from utils.geometry_utils import angle_difference, mod_2pi


def all_curves(profile, heading):
    radius = profile.neighbor_radius
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            if dx == 0 and dy == 0:
                continue
            for end_heading in range(profile.rot_number):
                target = Pose(dx, dy, end_heading)
                for curve in compute_curves(Pose(0, 0, heading), target, profile):
                    yield target, curve


@pytest.mark.parametrize("start,target,length", [
    (Pose(0, 0, 0), Pose(3, 0, 0), 3.0),
    (Pose(0, 0, 2), Pose(0, 2, 2), 2.0),
    (Pose(0, 0, 4), Pose(-2, 0, 4), 2.0),
    (Pose(0, 0, 6), Pose(0, -1, 6), 1.0),
    (Pose(0, 0, 1), Pose(2, 2, 1), 2 * math.sqrt(2)),
])
def test_aligned_move_is_a_single_straight_curve(profile, start, target, length):
    curves = compute_curves(start, target, profile)
    assert len(curves) == 1
    assert curves[0].is_straight
    assert curves[0].length == pytest.approx(length)


def test_identical_pose_gives_zero_length_curve(profile):
    curves = compute_curves(Pose(3, 4, 5), Pose(3, 4, 5), profile)
    assert len(curves) == 1
    assert curves[0].is_straight
    assert curves[0].length == 0
    assert curves[0].end_point == (3, 4)


@pytest.mark.parametrize("heading", range(8))
def test_two_arc_curves_are_tangent_and_hit_the_target(profile, heading):
    found = 0
    for target, curve in all_curves(profile, heading):
        end_x, end_y = curve.end_point
        assert end_x == pytest.approx(target.x, abs=1e-9)
        assert end_y == pytest.approx(target.y, abs=1e-9)
        if curve.is_straight:
            continue
        found += 1
        first, second = curve.arcs
        radius = curve.radius
        assert first.point_at_heading(first.entry_heading, radius) == pytest.approx((0.0, 0.0), abs=1e-9)
        assert first.point_at_heading(first.exit_heading, radius) == pytest.approx((curve.line.x1, curve.line.y1), abs=1e-9)
        assert second.point_at_heading(second.entry_heading, radius) == pytest.approx((curve.line.x2, curve.line.y2), abs=1e-9)
        if curve.line.length > 1e-6:
            direction = math.atan2(curve.line.y2 - curve.line.y1, curve.line.x2 - curve.line.x1)
            assert angle_difference(direction, first.exit_heading) < 1e-6
    assert found > 0


@pytest.mark.parametrize("heading", range(8))
def test_arcs_never_exceed_the_sharp_turn_limit(profile, heading):
    for _, curve in all_curves(profile, heading):
        for arc in curve.arcs:
            assert arc.sweep <= profile.sharp_turn_limit + 1e-9


@pytest.mark.parametrize("heading", [0, 3])
def test_opposite_side_arcs_have_separated_circles(profile, heading):
    for _, curve in all_curves(profile, heading):
        if curve.is_straight or curve.arcs[0].side == curve.arcs[1].side:
            continue
        first, second = curve.arcs
        distance = math.hypot(second.center_x - first.center_x, second.center_y - first.center_y)
        assert distance >= 2 * curve.radius - 1e-9


def test_u_turn_is_rejected_with_default_limit(profile):
    assert compute_curves(Pose(0, 0, 0), Pose(0, 2, 4), profile) == []


def test_u_turn_allowed_with_wider_limit():
    wide = KinematicProfile(sharp_turn_limit=math.pi)
    curves = compute_curves(Pose(0, 0, 0), Pose(0, 2, 4), wide)
    assert curves
    for curve in curves:
        assert curve.end_point == pytest.approx((0.0, 2.0), abs=1e-9)
        assert all(arc.sweep <= math.pi + 1e-9 for arc in curve.arcs)
        assert curve.length == pytest.approx(math.pi, abs=1e-9)


def test_straight_check_needs_matching_heading(profile):
    # Same direction of travel but a different final heading needs arcs
    curves = compute_curves(Pose(0, 0, 0), Pose(2, 0, 1), profile)
    assert all(not curve.is_straight for curve in curves)


def test_reverse_flag_and_sampling_order(profile):
    backwards = compute_curves(Pose(2, 0, 0), Pose(0, 0, 0), profile)
    assert backwards == []  # Forward geometry cannot loop back within the turn limit

    forward = compute_curves(Pose(0, 0, 0), Pose(2, 0, 0), profile, reverse=True)[0]
    assert forward.reverse
    samples = forward.sample(0.5)
    assert samples[0][:2] == pytest.approx((2.0, 0.0))
    assert samples[-1][:2] == pytest.approx((0.0, 0.0))
    assert all(yaw == pytest.approx(0.0) for _, _, yaw in samples)


def test_sample_follows_the_curve(profile):
    curve = compute_curves(Pose(0, 0, 0), Pose(2, 1, 1), profile)[0].translated(5, 5)
    samples = curve.sample(0.1)
    assert samples[0][:2] == pytest.approx((5.0, 5.0))
    assert samples[-1][:2] == pytest.approx((7.0, 6.0))
    assert samples[-1][2] == pytest.approx(mod_2pi(math.pi / 4))
    steps = [math.hypot(b[0] - a[0], b[1] - a[1]) for a, b in zip(samples, samples[1:])]
    assert max(steps) <= 0.1 + 1e-9
    assert sum(steps) == pytest.approx(curve.length, rel=1e-3)


@pytest.mark.parametrize("field,value", [
    ("turning_radius", 0.0),
    ("robot_width", -1.0),
    ("robot_length", 0.0),
    ("rot_number", 0),
    ("neighbor_radius", 0),
    ("reverse_multi", 0.5),
    ("sharp_turn_limit", 4.0),
])
def test_invalid_profile_is_rejected(field, value):
    with pytest.raises(InvalidProfileError):
        KinematicProfile(**{field: value}).validate()


def test_profile_from_config_reads_degrees():
    profile = KinematicProfile.from_config({'turning_radius': 2, 'rot_number': 16, 'sharp_turn_limit_deg': 45})
    assert profile.turning_radius == 2.0
    assert profile.rot_number == 16
    assert profile.sharp_turn_limit == pytest.approx(math.pi / 4)
    assert profile.validate() is profile
