import numpy as np

from planning.state_search.cost_functions import WALL_COST
from planning.state_search.kinematic_profile import Pose
from planning.state_search.reachability import ReachabilityChecker


def test_walls_do_not_matter(table, empty_grid):
    empty_grid[8, :] = WALL_COST
    report = ReachabilityChecker(table, empty_grid).check(Pose(0, 0, 0), Pose(15, 15, 0))
    assert report.reachable
    assert report.forward_explored > 0 and report.backward_explored > 0


def test_single_cell_grid_cannot_turn_around(table):
    report = ReachabilityChecker(table, np.zeros((1, 1), dtype=np.uint8)).check(Pose(0, 0, 0), Pose(0, 0, 4))
    assert not report.reachable


def test_same_pose_is_reachable(table):
    report = ReachabilityChecker(table, np.zeros((1, 1), dtype=np.uint8)).check(Pose(0, 0, 0), Pose(0, 0, 0))
    assert report.reachable


def test_narrow_corridor_limits_headings(table):
    # A one cell wide corridor only allows straight moves along it
    grid = np.zeros((1, 10), dtype=np.uint8)
    checker = ReachabilityChecker(table, grid)
    assert checker.check(Pose(0, 0, 0), Pose(9, 0, 0)).reachable
    assert not checker.check(Pose(0, 0, 0), Pose(9, 0, 2)).reachable


def test_node_cap_assumes_reachable(table):
    grid = np.zeros((1, 1), dtype=np.uint8)
    report = ReachabilityChecker(table, grid, max_nodes=1).check(Pose(0, 0, 0), Pose(0, 0, 4))
    assert report.reachable
