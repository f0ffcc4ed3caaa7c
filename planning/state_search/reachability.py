# planning/state_search/reachability.py

import logging
from collections import deque
from dataclasses import dataclass
import numpy as np

from maps.map_reader import as_cost_grid
from planning.state_search.kinematic_profile import Pose

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReachabilityReport:
    reachable: bool
    forward_explored: int # Poses reached from the start
    backward_explored: int # Poses that can reach the goal


class ReachabilityChecker:
    """
    Kinematic reachability test that ignores walls.

    A forward search from the start (successors) and a backward search from the
    goal (predecessors) advance one node at a time in turn until they meet. If
    either runs out of poses first, no sequence of primitives that stays on the
    grid connects the two poses, whatever the cell costs are.
    """
    def __init__(self, table, grid, max_nodes=None):
        """
        Args:
            table (MotionPrimitiveTable): Shared primitive table.
            grid (array-like): Cost grid; only its bounds matter here.
            max_nodes (int, optional): Cap on poses explored per direction; when hit the
                                       check reports reachable rather than guess.
        """
        self.table = table
        self.grid = as_cost_grid(grid)
        self.max_nodes = max_nodes

    def _expand(self, pose, incoming):
        batch = self.table.predecessor_batch(pose.heading) if incoming else self.table.successor_batch(pose.heading)
        costs = batch.costs(self.grid, pose.x, pose.y, self.table.profile, ignore_walls=True)
        valid = np.flatnonzero(np.isfinite(costs))
        xs = (pose.x + batch.node_dx[valid]).tolist()
        ys = (pose.y + batch.node_dy[valid]).tolist()
        hs = batch.node_heading[valid].tolist()
        return [Pose(x, y, h) for x, y, h in zip(xs, ys, hs)]

    def check(self, start, goal):
        """
        Args:
            start (Pose): Aligned start pose.
            goal (Pose): Aligned goal pose.

        Returns:
            ReachabilityReport: Whether the searches met, and how much each explored.

        Raises:
            ValueError: If either pose lies outside the grid.
        """
        start = Pose(int(start.x), int(start.y), int(start.heading))
        goal = Pose(int(goal.x), int(goal.y), int(goal.heading))
        height, width = self.grid.shape
        for name, pose in (('start', start), ('goal', goal)):
            if not (0 <= pose.x < width and 0 <= pose.y < height):
                raise ValueError(f"{name} pose {pose} is outside the {width}x{height} grid")
        if start == goal:
            return ReachabilityReport(True, 1, 1)

        forward_seen, backward_seen = {start}, {goal}
        forward_queue, backward_queue = deque([start]), deque([goal])

        while forward_queue and backward_queue:
            if self.max_nodes is not None and min(len(forward_seen), len(backward_seen)) >= self.max_nodes:
                logger.debug(f"Reachability check hit its {self.max_nodes} node cap; assuming reachable.")
                return ReachabilityReport(True, len(forward_seen), len(backward_seen))

            for pose in self._expand(forward_queue.popleft(), incoming=False):
                if pose in backward_seen:
                    return ReachabilityReport(True, len(forward_seen), len(backward_seen))
                if pose not in forward_seen:
                    forward_seen.add(pose)
                    forward_queue.append(pose)

            for pose in self._expand(backward_queue.popleft(), incoming=True):
                if pose in forward_seen:
                    return ReachabilityReport(True, len(forward_seen), len(backward_seen))
                if pose not in backward_seen:
                    backward_seen.add(pose)
                    backward_queue.append(pose)

        logger.info(f"Goal {goal} is kinematically unreachable from {start} "
                    f"({len(forward_seen)} forward / {len(backward_seen)} backward poses explored).")
        return ReachabilityReport(False, len(forward_seen), len(backward_seen))
