import numpy as np
import pytest

from conftest import assert_path_is_continuous
from planning.state_search.algorithms.a_star_planner import AStarPlanner
from planning.state_search.algorithms.d_star_lite_planner import DStarLitePlanner
from planning.state_search.cost_functions import WALL_COST
from planning.state_search.kinematic_profile import Pose
from utils.path_utils import path_footprint_cells


def test_reaches_goal_on_empty_grid(table, empty_grid):
    planner = DStarLitePlanner(table, empty_grid)
    result = planner.find_path(Pose(0, 0, 0), Pose(15, 15, 0))
    assert result.success
    assert result.path[0].pose == Pose(0, 0, 0)
    assert result.end_pose == Pose(15, 15, 0)
    assert result.total_cost < 60
    assert_path_is_continuous(result)


def test_wall_row_makes_goal_unreachable(table, empty_grid):
    empty_grid[8, :] = WALL_COST
    result = DStarLitePlanner(table, empty_grid).find_path(Pose(0, 0, 0), Pose(15, 15, 0))
    assert not result.success
    assert not result.aborted
    assert result.path == []


def test_matches_a_star_without_walls(table, empty_grid):
    start, goal = Pose(2, 3, 1), Pose(13, 11, 2)
    a_star = AStarPlanner(table, empty_grid).find_path(start, goal)
    d_star = DStarLitePlanner(table, empty_grid).find_path(start, goal)
    assert a_star.success and d_star.success
    assert d_star.total_cost == pytest.approx(a_star.total_cost, rel=1e-6)


def test_matches_a_star_on_random_costs(dijkstra_table, rng):
    grid = rng.integers(0, 201, size=(12, 12)).astype(np.uint8)
    start, goal = Pose(1, 1, 0), Pose(10, 9, 2)
    a_star = AStarPlanner(dijkstra_table, grid).find_path(start, goal)
    d_star = DStarLitePlanner(dijkstra_table, grid).find_path(start, goal)
    assert a_star.success and d_star.success
    assert d_star.total_cost == pytest.approx(a_star.total_cost, abs=1e-6)


def test_update_after_cost_increase_matches_fresh_search(dijkstra_table):
    grid = np.zeros((12, 12), dtype=np.uint8)
    start, goal = Pose(1, 1, 0), Pose(10, 10, 2)
    planner = DStarLitePlanner(dijkstra_table, grid)
    before = planner.find_path(start, goal)
    assert before.success and len(before.path) >= 3

    on_path = before.path[len(before.path) // 2].pose
    after = planner.update_path(start, [(on_path.x, on_path.y, 200)])
    assert after.success
    assert after.total_cost >= before.total_cost - 1e-9
    assert after.nodes_visited <= planner.max_node_visits * planner.arena.size

    grid[on_path.y, on_path.x] = 200
    fresh = AStarPlanner(dijkstra_table, grid).find_path(start, goal)
    assert after.total_cost == pytest.approx(fresh.total_cost, abs=1e-6)


def test_update_routes_around_a_discovered_wall(table):
    grid = np.zeros((12, 12), dtype=np.uint8)
    start, goal = Pose(1, 1, 0), Pose(10, 10, 2)
    planner = DStarLitePlanner(table, grid)
    before = planner.find_path(start, goal)
    wall = before.path[len(before.path) // 2].pose

    after = planner.update_path(start, [(wall.x, wall.y, WALL_COST)])
    assert after.success
    assert (wall.x, wall.y) not in path_footprint_cells(after.path, table.profile)
    assert planner.grid_snapshot[wall.y, wall.x] == WALL_COST
    assert_path_is_continuous(after)


def test_agent_motion_reuses_the_solution(dijkstra_table):
    grid = np.zeros((12, 12), dtype=np.uint8)
    planner = DStarLitePlanner(dijkstra_table, grid)
    before = planner.find_path(Pose(1, 1, 0), Pose(10, 10, 2))
    assert len(before.path) > 3

    agent = before.path[2].pose
    after = planner.update_path(agent)
    assert after.success
    assert after.path[0].pose == agent
    assert after.total_cost == pytest.approx(sum(step.cost for step in before.path[3:]), abs=1e-6)


def test_unchanged_update_is_cheap(table, empty_grid):
    planner = DStarLitePlanner(table, empty_grid)
    before = planner.find_path(Pose(0, 0, 0), Pose(15, 15, 0))
    again = planner.update_path(Pose(0, 0, 0), [(3, 3, 0)])
    assert again.success
    assert again.nodes_visited == 0
    assert again.total_cost == pytest.approx(before.total_cost)


def test_unaligned_start_is_spliced_in(dijkstra_table, empty_grid):
    agent = Pose(1.3, 1.0, 0)
    result = DStarLitePlanner(dijkstra_table, empty_grid).find_path(agent, Pose(10, 10, 2))
    assert result.success
    assert result.path[0].pose == agent
    assert result.path[0].curve is None
    assert result.path[1].pose.is_aligned
    assert result.path[1].curve is not None
    assert result.end_pose == Pose(10, 10, 2)
    assert_path_is_continuous(result)


def test_update_before_find_path_raises(table, empty_grid):
    with pytest.raises(RuntimeError):
        DStarLitePlanner(table, empty_grid).update_path(Pose(0, 0, 0))


def test_stop_before_update_aborts(table, empty_grid):
    planner = DStarLitePlanner(table, empty_grid)
    first = planner.find_path(Pose(0, 0, 0), Pose(10, 10, 0))
    planner.stop()
    planner.stop()
    assert planner.result is first
    result = planner.update_path(Pose(0, 0, 0), [(5, 5, WALL_COST)])
    assert result.aborted
    assert result.reason == "stopped"
    assert result.path == []


def test_stop_from_yield_callback(table, empty_grid):
    planner = DStarLitePlanner(table, empty_grid, {'yield_every': 8}, lambda frontier, n: planner.stop())
    result = planner.find_path(Pose(0, 0, 0), Pose(15, 15, 0))
    assert result.aborted
    assert result.nodes_visited == 8


def test_iteration_limit_aborts(table, empty_grid):
    result = DStarLitePlanner(table, empty_grid, {'max_iterations': 5}).find_path(Pose(0, 0, 0), Pose(15, 15, 0))
    assert result.aborted
    assert result.reason == "iteration limit"
    assert result.nodes_visited == 5


def test_frontier_marks_goal_side_search(table, empty_grid):
    frames = []
    config = {'yield_every': 50, 'emit_frontier': True}
    planner = DStarLitePlanner(table, empty_grid, config, lambda frontier, n: frames.append(frontier.copy()))
    assert planner.find_path(Pose(0, 0, 0), Pose(15, 15, 0)).success
    assert frames
    assert frames[0][15, 15] != 0


def test_goal_must_be_aligned(table, empty_grid):
    with pytest.raises(ValueError):
        DStarLitePlanner(table, empty_grid).find_path(Pose(0, 0, 0), Pose(5.5, 5, 0))


def test_visit_bound_skips_expansions(table, empty_grid):
    result = DStarLitePlanner(table, empty_grid, {'max_node_visits': 0}).find_path(Pose(0, 0, 0), Pose(6, 0, 0))
    assert not result.success and not result.aborted
    assert result.reason == "unreachable"
    assert result.nodes_visited == 0 and result.path == []


def test_cold_solve_respects_the_visit_bound(dijkstra_table, rng):
    grid = rng.integers(0, 201, size=(12, 12)).astype(np.uint8)
    planner = DStarLitePlanner(dijkstra_table, grid)
    result = planner.find_path(Pose(1, 1, 0), Pose(10, 9, 2))
    assert result.success
    assert result.nodes_visited <= planner.max_node_visits * planner.arena.size
