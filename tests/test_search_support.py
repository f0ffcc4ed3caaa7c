import math

import pytest

from planning.state_search.curve_engine import compute_curves
from planning.state_search.heuristic_functions import calculate_heuristic
from planning.state_search.kinematic_profile import KinematicProfile, Pose
from planning.state_search.node_arena import NodeArena
from planning.state_search.pathfinding_result import PathfindingResult, PathStep
from utils.geometry_utils import angle_difference, distance_2d, grid_cell, mod_2pi


def test_heuristic_scaling(profile):
    estimate = calculate_heuristic(Pose(0, 0, 0), Pose(3, 4, 4), profile)
    assert estimate == pytest.approx((5.0 + 4 / 8) * profile.heuristic_multi)
    assert calculate_heuristic(Pose(0, 0, 0), Pose(3, 4, 4), profile, "zero") == 0.0
    assert calculate_heuristic(Pose(0, 0, 0), Pose(3, 4, 4), KinematicProfile(heuristic_multi=0.0)) == 0.0
    assert calculate_heuristic(Pose(0, 0, 0), Pose(3, 4, 4), profile, "manhattan") == pytest.approx(estimate)


def test_angle_helpers():
    assert mod_2pi(-math.pi / 2) == pytest.approx(3 * math.pi / 2)
    assert 0 <= mod_2pi(-1e-18) < 2 * math.pi
    assert angle_difference(0.1, 2 * math.pi - 0.1) == pytest.approx(0.2)
    assert grid_cell(0.49) == 0
    assert grid_cell(0.5) == 1
    assert grid_cell(-0.6) == -1


def test_pose_alignment():
    assert Pose(2, 3, 1).is_aligned
    assert Pose(2.0, 3.0, 1).is_aligned
    assert not Pose(2.4, 3, 1).is_aligned
    assert Pose(2.4, 2.6, 1).aligned() == Pose(2, 3, 1)


def test_node_arena():
    arena = NodeArena(4, 3, 8)
    assert arena.size == 96
    assert arena.g.shape == (3, 4, 8)
    assert arena.index(Pose(3, 2, 7)) == (2, 3, 7)
    with pytest.raises(IndexError):
        arena.index(Pose(4, 0, 0))
    arena.g[0, 0, 0] = 1.0
    arena.visits[0, 0, 0] = 2
    arena.reset_visits()
    assert arena.g[0, 0, 0] == 1.0 and arena.visits.sum() == 0
    arena.reset()
    assert math.isinf(arena.g[0, 0, 0])


def test_result_trajectory(profile):
    first = compute_curves(Pose(0, 0, 0), Pose(2, 0, 0), profile)[0]
    second = compute_curves(Pose(2, 0, 0), Pose(4, 1, 1), profile)[0]
    result = PathfindingResult(True, path=[PathStep(Pose(0, 0, 0)), PathStep(Pose(2, 0, 0), first, 1.6),
                                           PathStep(Pose(4, 1, 1), second, 2.5)])
    assert result.total_cost == pytest.approx(4.1)
    assert result.end_pose == Pose(4, 1, 1)
    points = result.trajectory(0.5)
    assert points[0][:2] == pytest.approx((0.0, 0.0))
    assert points[-1][:2] == pytest.approx((4.0, 1.0))
    assert len({(round(x, 9), round(y, 9)) for x, y, _ in points}) == len(points)
    assert PathfindingResult(False).trajectory() == []
    assert PathfindingResult(False).end_pose is None


def test_distance_2d_accepts_poses_and_sequences():
    assert distance_2d(Pose(0, 0, 0), Pose(3, 4, 1)) == 5.0
    assert distance_2d((0, 0), [3, 4]) == 5.0
    assert math.isinf(distance_2d((0,), (1, 2)))
    assert math.isinf(distance_2d("ab", 3))
