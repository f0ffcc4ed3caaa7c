# planning/replanning/replan_manager.py

import logging

from planning.state_search.kinematic_profile import Pose
from planning.state_search.pathfinding_result import PathStep, PathfindingResult
from planning.state_search.reachability import ReachabilityChecker
from planning.state_search.algorithms.a_star_planner import AStarPlanner
from planning.state_search.algorithms.d_star_lite_planner import DStarLitePlanner
from planning.replanning.replan_trigger import ReplanTrigger
from utils.path_utils import remaining_path

logger = logging.getLogger(__name__)

PLANNER_TYPES = {
    'a_star': AStarPlanner,
    'd_star_lite': DStarLitePlanner,
}


class ReplanManager:
    """
    Manages a planning session: the first plan, then repairs as the agent moves
    and observes changed cells. Uses a ReplanTrigger to find what the agent has
    observed and whether it affects the current path.
    """
    def __init__(self, config, table):
        """
        Initializes the ReplanManager.

        Args:
            config (dict): The 'planning' configuration section. Passed to the planners;
                           'replan_trigger' is passed to the ReplanTrigger. Other keys:
                           'planner_type', 'reachability_check', 'reachability_max_nodes',
                           'fallback_to_a_star', 'fallback_max_iterations'.
            table (MotionPrimitiveTable): Shared primitive table.
        """
        self.config = config or {}
        self.table = table
        self.replan_trigger = ReplanTrigger(self.config.get('replan_trigger', self.config))
        self.planner_type = self.config.get('planner_type', 'd_star_lite')
        if self.planner_type not in PLANNER_TYPES:
            raise ValueError(f"Unknown planner type: {self.planner_type}. Expected one of {sorted(PLANNER_TYPES)}")
        self.reachability_check = self.config.get('reachability_check', True)
        self.reachability_max_nodes = self.config.get('reachability_max_nodes', None)
        self.fallback_to_a_star = self.config.get('fallback_to_a_star', True)
        self.fallback_config = dict(self.config, max_iterations=self.config.get('fallback_max_iterations', 1000000))

        self.planner = None
        self.goal = None
        self.current_result = None
        self._on_yield = None

        logger.info(f"ReplanManager initialized with planner type '{self.planner_type}'.")

    def start_session(self, grid, start, goal, on_yield=None):
        """
        Creates a planner for the grid and computes the first plan.

        Args:
            grid (array-like): Cost grid the agent currently believes in.
            start (Pose): Agent pose (may be unaligned for D* Lite).
            goal (Pose): Aligned goal pose.
            on_yield (callable, optional): Progress callback forwarded to the planners.

        Returns:
            PathfindingResult: The first plan.
        """
        start = Pose(*start)
        self.goal = Pose(*goal)
        self._on_yield = on_yield
        self.planner = PLANNER_TYPES[self.planner_type](self.table, grid, self.config, on_yield)
        if self.planner_type == 'a_star':
            start = start.aligned()

        if self.reachability_check:
            checker = ReachabilityChecker(self.table, self.planner.grid_snapshot, self.reachability_max_nodes)
            report = checker.check(start.aligned(), self.goal)
            if not report.reachable:
                logger.warning(f"Goal {self.goal} is unreachable from {start} regardless of walls; not planning.")
                result = PathfindingResult(False, False, 0, [], "kinematically unreachable")
                self.planner.result = result
                self.current_result = result
                return result

        return self._handle_result(self.planner.find_path(start, self.goal), start)

    def update(self, agent_pose, world_grid):
        """
        Applies what the agent observes from its new pose and repairs the plan.

        Args:
            agent_pose (Pose): Current agent pose.
            world_grid (array-like): Ground-truth grid; only cells within the
                                     observation radius are taken into account.

        Returns:
            PathfindingResult: The plan to follow from agent_pose.

        Raises:
            RuntimeError: If start_session() has not been called.
        """
        if self.planner is None:
            raise RuntimeError("update() called before start_session()")
        agent_pose = Pose(*agent_pose)
        changes = self.replan_trigger.detect_changes(self.planner.grid_snapshot, world_grid, agent_pose)

        if isinstance(self.planner, DStarLitePlanner):
            result = self.planner.update_path(agent_pose, changes)
        else:
            if not self.replan_trigger.should_replan(changes, self.current_result, self.table.profile, agent_pose):
                self.planner.set_cells(changes)
                logger.debug("Observed changes do not touch the current path; keeping it.")
                remaining = remaining_path(agent_pose, self.current_result.path)
                if remaining:
                    remaining = [PathStep(remaining[0].pose)] + remaining[1:]
                self.current_result = PathfindingResult(True, False, 0, remaining, "path kept")
                return self.current_result
            self.planner.set_cells(changes)
            logger.info(f"Replanning from scratch after {len(changes)} observed changes.")
            result = self.planner.find_path(agent_pose.aligned(), self.goal)
        return self._handle_result(result, agent_pose)

    def stop(self):
        """Forwards cancellation to the active planner."""
        if self.planner is not None:
            self.planner.stop()

    def _handle_result(self, result, agent_pose):
        if (result.aborted and result.reason == "iteration limit" and self.fallback_to_a_star
                and isinstance(self.planner, DStarLitePlanner)):
            logger.warning("D* Lite hit its iteration limit; falling back to one-shot A*.")
            fallback = AStarPlanner(self.table, self.planner.grid_snapshot, self.fallback_config, self._on_yield)
            result = fallback.find_path(agent_pose.aligned(), self.goal)
            if result.success:
                result.reason = "a_star fallback"
        self.current_result = result
        return result
