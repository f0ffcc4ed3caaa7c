# planning/state_search/algorithms/a_star_planner.py

import logging
import heapq # For the priority queue (open set)
import itertools
import time
import numpy as np

from planning.state_search.kinematic_profile import Pose
from planning.state_search.heuristic_functions import calculate_heuristic
from planning.state_search.pathfinding_result import PathStep, PathfindingResult
from planning.state_search.algorithms.planner_base import PlannerBase

logger = logging.getLogger(__name__)


class AStarPlanner(PlannerBase):
    """
    One-shot A* over (x, y, heading) using the motion primitive table.
    Recomputes from scratch on every call; used as a baseline and as the
    fallback when incremental planning gives up.
    """
    def __init__(self, table, grid, config=None, on_yield=None):
        """
        Intializes the AStarPlanner.

        Args:
            table (MotionPrimitiveTable): Shared primitive table.
            grid (array-like): Cost grid indexed [y, x]; the planner keeps a copy.
            config (dict, optional): See PlannerBase.
            on_yield (callable, optional): Progress callback, see PlannerBase.
        """
        super().__init__(table, grid, config, on_yield)
        self._open_set = set() # Nodes with a live queue entry, for frontier snapshots
        self._came_from = {} # node -> (parent, primitive, edge cost)
        logger.info("AStarPlanner initialized.")

    def _open_nodes(self):
        return self._open_set

    def _settled_mask(self):
        return np.any(self.arena.visits > 0, axis=2)

    def find_path(self, start, goal):
        """
        Finds the cheapest path from start to goal.

        Args:
            start (Pose): Aligned start pose.
            goal (Pose): Aligned goal pose.

        Returns:
            PathfindingResult: success with the path, unreachable (success False, empty path),
                               or aborted (stop() or iteration limit).
        """
        start = self._check_pose(start, 'start')
        goal = self._check_pose(goal, 'goal')
        logger.info(f"A* planning started: {start} -> {goal}")
        start_time = time.time()

        self._stop_requested = False
        self.arena.reset()
        self._came_from = {}
        self._open_set = set()
        g = self.arena.g
        visits = self.arena.visits

        counter = itertools.count() # Tie-breaker so poses are never compared
        g[start.y, start.x, start.heading] = 0.0
        open_heap = [(calculate_heuristic(start, goal, self.profile, self.heuristic_type), 0.0, next(counter), start)]
        self._open_set.add(start)
        expansions = 0

        # --- A* Search Loop ---
        while open_heap:
            _, g_entry, _, node = heapq.heappop(open_heap)
            index = (node.y, node.x, node.heading)
            if g_entry > g[index]:
                continue # Superseded by a cheaper entry
            self._open_set.discard(node)

            visits[index] += 1
            if visits[index] > self.max_node_visits:
                continue
            expansions += 1

            if node == goal:
                path = self._reconstruct_path(start, goal)
                result = PathfindingResult(bool(path), False, expansions, path, "" if path else "cycle in parents")
                return self._finish(result, time.time() - start_time)

            if expansions >= self.max_iterations:
                return self._aborted(expansions, "iteration limit", time.time() - start_time)
            if self._batch_boundary(expansions, node):
                return self._aborted(expansions, "stopped", time.time() - start_time)

            batch = self.table.successor_batch(node.heading)
            costs = batch.costs(self.grid, node.x, node.y, self.profile)
            for i in np.flatnonzero(np.isfinite(costs)).tolist():
                neighbor = Pose(node.x + int(batch.node_dx[i]), node.y + int(batch.node_dy[i]),
                                int(batch.node_heading[i]))
                edge_cost = float(costs[i])
                tentative = g_entry + edge_cost
                neighbor_index = (neighbor.y, neighbor.x, neighbor.heading)
                if g[neighbor_index] - tentative > self.improvement_epsilon:
                    g[neighbor_index] = tentative
                    self._came_from[neighbor] = (node, batch.primitives[i], edge_cost)
                    f_cost = tentative + calculate_heuristic(neighbor, goal, self.profile, self.heuristic_type)
                    heapq.heappush(open_heap, (f_cost, tentative, next(counter), neighbor))
                    self._open_set.add(neighbor)

        result = PathfindingResult(False, False, expansions, [], "unreachable")
        return self._finish(result, time.time() - start_time)

    def _reconstruct_path(self, start, goal):
        """
        Walks parent links back from the goal.

        Returns:
            list: PathStep objects from start to goal, or [] if the links loop.
        """
        steps = []
        seen = set()
        node = goal
        while node != start:
            if node in seen:
                logger.error(f"Cycle detected while reconstructing path at {node}.")
                return []
            seen.add(node)
            parent, primitive, edge_cost = self._came_from[node]
            steps.append(PathStep(node, primitive.curve.translated(parent.x, parent.y), edge_cost))
            node = parent
        steps.append(PathStep(start))
        steps.reverse()
        return steps
