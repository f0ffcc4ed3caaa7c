# planning/state_search/algorithms/d_star_lite_planner.py

import logging
import heapq
import itertools
import math
import time
import numpy as np

from utils.geometry_utils import grid_cell
from planning.state_search.kinematic_profile import Pose
from planning.state_search.curve_engine import compute_curves
from planning.state_search.footprint_rasterizer import render_curve_grid_mask
from planning.state_search.cost_functions import calculate_footprint_cost
from planning.state_search.heuristic_functions import calculate_heuristic
from planning.state_search.pathfinding_result import PathStep, PathfindingResult
from planning.state_search.algorithms.planner_base import PlannerBase

logger = logging.getLogger(__name__)


class DStarLitePlanner(PlannerBase):
    """
    Incremental D* Lite over (x, y, heading).

    The search runs backwards from the goal: g is the cost-to-goal and rhs its
    one-step lookahead. find_path() starts a session; update_path() applies cell
    changes and agent motion and repairs the existing solution instead of
    starting over.
    """
    def __init__(self, table, grid, config=None, on_yield=None):
        """
        Initializes the DStarLitePlanner.

        Args:
            table (MotionPrimitiveTable): Shared primitive table.
            grid (array-like): Cost grid indexed [y, x]; the planner keeps a private copy
                               and only changes it through update_path().
            config (dict, optional): See PlannerBase.
            on_yield (callable, optional): Progress callback, see PlannerBase.
        """
        super().__init__(table, grid, config, on_yield)
        self.start = None # Aligned pose the keys are focused on
        self.goal = None
        self.agent_pose = None # Last reported (possibly unaligned) agent pose
        self.k_m = 0.0 # Accumulated heuristic shift from agent motion
        self._last_start = None
        self._open = {} # node -> current key; heap entries not matching are stale
        self._heap = []
        self._counter = itertools.count()
        self._successor_cache = {} # node -> (primitive indices, xs, ys, headings, costs)
        logger.info("DStarLitePlanner initialized.")

    # --- Queue handling ---

    def _heuristic(self, node):
        return calculate_heuristic(node, self.start, self.profile, self.heuristic_type)

    def _calculate_key(self, node):
        index = (node.y, node.x, node.heading)
        best = min(self.arena.g[index], self.arena.rhs[index])
        return (best + self._heuristic(node) + self.k_m, best)

    def _push(self, node, key=None):
        key = key if key is not None else self._calculate_key(node)
        self._open[node] = key
        heapq.heappush(self._heap, (key[0], key[1], next(self._counter), node))

    def _update_queue(self, node):
        index = (node.y, node.x, node.heading)
        if self.arena.g[index] != self.arena.rhs[index]:
            self._push(node)
        else:
            self._open.pop(node, None)

    def _top(self):
        """Returns (key, node) of the best live queue entry, dropping stale ones."""
        while self._heap:
            k1, k2, _, node = self._heap[0]
            if self._open.get(node) == (k1, k2):
                return (k1, k2), node
            heapq.heappop(self._heap)
        return None, None

    def _open_nodes(self):
        return self._open.keys()

    def _settled_mask(self):
        g = self.arena.g
        return np.any(np.isfinite(g) & (g == self.arena.rhs), axis=2)

    # --- Graph access ---

    def _successors(self, node):
        cached = self._successor_cache.get(node)
        if cached is None:
            batch = self.table.successor_batch(node.heading)
            costs = batch.costs(self.grid, node.x, node.y, self.profile)
            valid = np.flatnonzero(np.isfinite(costs))
            cached = (valid, node.x + batch.node_dx[valid], node.y + batch.node_dy[valid],
                      batch.node_heading[valid], costs[valid])
            self._successor_cache[node] = cached
        return cached

    def _predecessors(self, node):
        batch = self.table.predecessor_batch(node.heading)
        costs = batch.costs(self.grid, node.x, node.y, self.profile)
        valid = np.flatnonzero(np.isfinite(costs))
        return (node.x + batch.node_dx[valid], node.y + batch.node_dy[valid],
                batch.node_heading[valid], costs[valid])

    def _compute_rhs(self, node):
        _, xs, ys, hs, costs = self._successors(node)
        if not len(costs):
            return math.inf
        return float(np.min(costs + self.arena.g[ys, xs, hs]))

    def _update_vertex(self, node):
        if node != self.goal:
            self.arena.rhs[node.y, node.x, node.heading] = self._compute_rhs(node)
        self._update_queue(node)

    # --- Main loop ---

    def _compute_shortest_path(self):
        """
        Expands nodes until the start is consistent and no queued key beats it.

        Returns:
            tuple: (expansions, abort reason or None).
        """
        g = self.arena.g
        rhs = self.arena.rhs
        visits = self.arena.visits
        self.arena.reset_visits()
        expansions = 0

        while True:
            top_key, node = self._top()
            if node is None:
                break
            start_index = (self.start.y, self.start.x, self.start.heading)
            if not (top_key < self._calculate_key(self.start) or rhs[start_index] != g[start_index]):
                break
            heapq.heappop(self._heap)

            new_key = self._calculate_key(node)
            if top_key < new_key:
                # Key went stale after the agent moved; requeue
                self._push(node, new_key)
                continue
            del self._open[node]

            index = (node.y, node.x, node.heading)
            visits[index] += 1
            if visits[index] > self.max_node_visits:
                continue
            expansions += 1

            if g[index] > rhs[index]:
                g[index] = rhs[index]
                xs, ys, hs, costs = self._predecessors(node)
                for px, py, ph, value in zip(xs.tolist(), ys.tolist(), hs.tolist(), (costs + g[index]).tolist()):
                    predecessor = Pose(px, py, ph)
                    if predecessor != self.goal and value < rhs[py, px, ph]:
                        rhs[py, px, ph] = value
                        self._update_queue(predecessor)
            else:
                g[index] = math.inf
                self._update_vertex(node)
                xs, ys, hs, _ = self._predecessors(node)
                for px, py, ph in zip(xs.tolist(), ys.tolist(), hs.tolist()):
                    self._update_vertex(Pose(px, py, ph))

            if expansions >= self.max_iterations:
                return expansions, "iteration limit"
            if self._batch_boundary(expansions, node):
                return expansions, "stopped"

        return expansions, None

    # --- Public API ---

    def find_path(self, start, goal):
        """
        Starts a new planning session and solves it.

        Args:
            start (Pose): Agent pose; may be unaligned (fractional x, y).
            goal (Pose): Aligned goal pose.

        Returns:
            PathfindingResult: The outcome; also stored in self.result.
        """
        start = self._check_pose(start, 'start', allow_unaligned=True)
        goal = self._check_pose(goal, 'goal')
        logger.info(f"D* Lite planning started: {start} -> {goal}")

        self._stop_requested = False
        self.arena.reset()
        self._open = {}
        self._heap = []
        self._successor_cache = {}
        self.k_m = 0.0
        self.goal = goal
        self.agent_pose = start
        self.start = start.aligned()
        self._last_start = self.start

        self.arena.rhs[goal.y, goal.x, goal.heading] = 0.0
        self._push(goal)
        return self._solve(time.time())

    def update_path(self, agent_pose, changed_cells=()):
        """
        Repairs the current solution after the world or the agent changed.

        Args:
            agent_pose (Pose): Current agent pose; may be unaligned.
            changed_cells (iterable): (x, y, new_cost) triples observed by the agent.

        Returns:
            PathfindingResult: The outcome; also stored in self.result.

        Raises:
            RuntimeError: If no session was started with find_path().
        """
        if self.goal is None:
            raise RuntimeError("update_path() called before find_path()")
        agent_pose = self._check_pose(agent_pose, 'agent', allow_unaligned=True)
        start_time = time.time()
        if self._stop_requested:
            return self._aborted(0, "stopped", 0.0)

        self.agent_pose = agent_pose
        aligned = agent_pose.aligned()
        if aligned != self.start:
            self.k_m += calculate_heuristic(self._last_start, aligned, self.profile, self.heuristic_type)
            self._last_start = aligned
            self.start = aligned

        changed = self._apply_changes(changed_cells)
        logger.info(f"D* Lite update: agent at {agent_pose}, {changed} changed cells.")
        return self._solve(start_time)

    def _apply_changes(self, changed_cells):
        """
        Writes changed cells into the private grid and requeues every node with an affected edge.

        Returns:
            int: Number of cells whose cost actually changed.
        """
        height, width = self.grid.shape
        changed = self.set_cells(changed_cells)
        affected = set()
        for x, y in changed:
            for heading in range(self.profile.rot_number):
                offsets = self.table.influence_offsets(heading)
                xs = x - offsets[:, 0]
                ys = y - offsets[:, 1]
                inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
                for source_x, source_y in zip(xs[inside].tolist(), ys[inside].tolist()):
                    affected.add(Pose(source_x, source_y, heading))

        for node in affected:
            self._successor_cache.pop(node, None)
        for node in affected:
            self._update_vertex(node)
        return len(changed)

    def _solve(self, start_time):
        expansions, abort_reason = self._compute_shortest_path()
        if abort_reason is not None:
            return self._aborted(expansions, abort_reason, time.time() - start_time)

        path = self._extract_path()
        if path:
            result = PathfindingResult(True, False, expansions, path)
        else:
            result = PathfindingResult(False, False, expansions, [], "unreachable")
        return self._finish(result, time.time() - start_time)

    # --- Path extraction ---

    def _extract_path(self):
        """
        Follows the cheapest successor (edge cost + g) from the agent to the goal.

        Returns:
            list: PathStep objects, or [] if the goal cannot be reached.
        """
        g = self.arena.g
        if self.agent_pose.is_aligned:
            node = self.start
            steps = [PathStep(node)]
        else:
            splice = self._splice_unaligned(self.agent_pose)
            if splice is None:
                return []
            node, curve, cost = splice
            steps = [PathStep(self.agent_pose), PathStep(node, curve, cost)]

        if not math.isfinite(g[node.y, node.x, node.heading]) and node != self.goal:
            return []

        visited = {node}
        while node != self.goal:
            valid, xs, ys, hs, costs = self._successors(node)
            if not len(costs):
                return []
            totals = costs + g[ys, xs, hs]
            best = int(np.argmin(totals))
            if not math.isfinite(totals[best]):
                return []
            next_node = Pose(int(xs[best]), int(ys[best]), int(hs[best]))
            if next_node in visited:
                logger.warning(f"Cycle detected during path extraction at {next_node}.")
                return []
            primitive = self.table.successor_batch(node.heading).primitives[valid[best]]
            steps.append(PathStep(next_node, primitive.curve.translated(node.x, node.y), float(costs[best])))
            visited.add(next_node)
            node = next_node
        return steps

    def _splice_unaligned(self, agent_pose):
        """
        Picks the cheapest direct curve from an unaligned agent pose onto a nearby aligned node.

        Returns:
            tuple: (aligned node, curve, edge cost), or None if no curve is feasible.
        """
        g = self.arena.g
        anchor_x, anchor_y = grid_cell(agent_pose.x), grid_cell(agent_pose.y)
        radius = self.profile.neighbor_radius
        best = None
        for y in range(max(0, anchor_y - radius), min(self.arena.height, anchor_y + radius + 1)):
            for x in range(max(0, anchor_x - radius), min(self.arena.width, anchor_x + radius + 1)):
                for heading in range(self.profile.rot_number):
                    remaining = g[y, x, heading]
                    if not math.isfinite(remaining):
                        continue
                    target = Pose(x, y, heading)
                    curves = compute_curves(agent_pose, target, self.profile)
                    if self.profile.allow_reverse:
                        curves += compute_curves(target, agent_pose, self.profile, reverse=True)
                    for curve in curves:
                        footprint = render_curve_grid_mask(curve, self.profile, anchor=(anchor_x, anchor_y))
                        cost = calculate_footprint_cost(self.grid, anchor_x, anchor_y, footprint, self.profile,
                                                        reverse=curve.reverse)
                        if not math.isfinite(cost):
                            continue
                        total = cost + remaining
                        if best is None or total < best[0]:
                            best = (total, target, curve, cost)
        if best is None:
            logger.warning(f"No feasible curve from unaligned pose {agent_pose} onto the grid.")
            return None
        return best[1], best[2], best[3]
