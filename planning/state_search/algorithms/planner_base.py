# planning/state_search/algorithms/planner_base.py

import logging
import numpy as np

from maps.map_reader import as_cost_grid
from planning.state_search.kinematic_profile import Pose
from planning.state_search.node_arena import NodeArena
from planning.state_search.pathfinding_result import PathfindingResult

logger = logging.getLogger(__name__)

FRONTIER_OPEN = 1
FRONTIER_SETTLED = 2
FRONTIER_CURRENT = 3


class PlannerBase:
    """
    State shared by the grid planners: a private grid snapshot, the node arena,
    the iteration limit and the cooperative yield / cancel protocol.

    Every `yield_every` expansions the planner calls `on_yield(frontier, nodes_visited)`
    (frontier is None unless `emit_frontier` is set) and then checks whether stop()
    was requested.
    """
    def __init__(self, table, grid, config=None, on_yield=None):
        """
        Args:
            table (MotionPrimitiveTable): Shared primitive table.
            grid (array-like): Cost grid indexed [y, x]; copied.
            config (dict, optional): Planner configuration. Expected keys: 'max_iterations',
                                     'yield_every', 'max_node_visits', 'improvement_epsilon',
                                     'emit_frontier', 'heuristic_type'.
            on_yield (callable, optional): Called as on_yield(frontier, nodes_visited).
        """
        config = config or {}
        self.config = config
        self.table = table
        self.profile = table.profile
        self.grid = as_cost_grid(grid)
        self.max_iterations = config.get('max_iterations', 200000) # Expansions before aborting
        self.yield_every = config.get('yield_every', 256) # Expansions between yield points
        self.max_node_visits = config.get('max_node_visits', 3) # Expansions of one node per solve
        self.improvement_epsilon = config.get('improvement_epsilon', 1e-6)
        self.emit_frontier = config.get('emit_frontier', False)
        self.heuristic_type = config.get('heuristic_type', 'euclidean')
        self.on_yield = on_yield

        height, width = self.grid.shape
        self.arena = NodeArena(width, height, self.profile.rot_number)
        self.result = None # Last PathfindingResult
        self._stop_requested = False

    @property
    def grid_snapshot(self):
        """Read-only view of the planner's private grid copy."""
        view = self.grid.view()
        view.setflags(write=False)
        return view

    @property
    def stop_requested(self):
        return self._stop_requested

    def stop(self):
        """Requests cancellation. Leaves an already stored result untouched."""
        self._stop_requested = True
        logger.info(f"{type(self).__name__} stop requested.")

    def _check_pose(self, pose, name, allow_unaligned=False):
        """
        Normalises a pose and checks it against the grid.

        Raises:
            ValueError: If the heading is out of range, the pose is outside the grid,
                        or it is unaligned where an aligned pose is required.
        """
        pose = Pose(*pose)
        if int(pose.heading) != pose.heading or not 0 <= pose.heading < self.profile.rot_number:
            raise ValueError(f"{name} heading {pose.heading} is outside [0, {self.profile.rot_number})")
        if pose.is_aligned:
            pose = Pose(int(pose.x), int(pose.y), int(pose.heading))
        elif not allow_unaligned:
            raise ValueError(f"{name} pose {pose} must be grid aligned")
        else:
            pose = Pose(float(pose.x), float(pose.y), int(pose.heading))
        try:
            self.arena.index(pose.aligned())
        except IndexError as e:
            raise ValueError(f"{name} pose {pose} is outside the {self.arena.width}x{self.arena.height} grid") from e
        return pose

    def _open_nodes(self):
        return ()

    def _settled_mask(self):
        return np.zeros(self.grid.shape, dtype=bool)

    def frontier_snapshot(self, current=None):
        """
        Byte grid describing search progress: 1 open, 2 settled, 3 the node being expanded.
        """
        frontier = np.zeros(self.grid.shape, dtype=np.uint8)
        for node in self._open_nodes():
            frontier[node.y, node.x] = FRONTIER_OPEN
        frontier[self._settled_mask()] = FRONTIER_SETTLED
        if current is not None:
            frontier[current.y, current.x] = FRONTIER_CURRENT
        return frontier

    def _batch_boundary(self, expansions, current=None):
        """
        Runs the yield point when a batch of expansions completes.

        Returns:
            bool: True if the search has to stop.
        """
        if self.yield_every <= 0 or expansions % self.yield_every:
            return False
        if self.on_yield is not None:
            frontier = self.frontier_snapshot(current) if self.emit_frontier else None
            self.on_yield(frontier, expansions)
        logger.debug(f"{type(self).__name__}: {expansions} nodes expanded.")
        return self._stop_requested

    def _finish(self, result, elapsed):
        self.result = result
        name = type(self).__name__
        if result.success:
            logger.info(f"{name} planning successful! {len(result.path)} steps, cost {result.total_cost:.2f}, "
                        f"{result.nodes_visited} nodes visited. Time: {elapsed:.2f} sec")
        elif result.aborted:
            logger.warning(f"{name} planning aborted ({result.reason}) after {result.nodes_visited} nodes.")
        else:
            logger.warning(f"{name} planning failed ({result.reason}) after {result.nodes_visited} nodes.")
        return result

    def _aborted(self, nodes_visited, reason, elapsed):
        return self._finish(PathfindingResult(False, True, nodes_visited, [], reason), elapsed)

    def set_cells(self, changed_cells):
        """
        Writes (x, y, new_cost) triples into the planner's grid copy.

        Returns:
            list: (x, y) of the cells whose cost actually changed.

        Raises:
            ValueError: If a cost is outside 0..255.
        """
        height, width = self.grid.shape
        changed = []
        for x, y, cost in changed_cells:
            x, y, cost = int(x), int(y), int(cost)
            if not (0 <= x < width and 0 <= y < height):
                logger.warning(f"Ignoring change outside the grid at ({x}, {y}).")
                continue
            if not 0 <= cost <= 255:
                raise ValueError(f"Cell cost must be in 0..255, got {cost} at ({x}, {y})")
            if self.grid[y, x] != cost:
                self.grid[y, x] = cost
                changed.append((x, y))
        return changed
