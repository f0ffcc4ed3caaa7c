# planning/replanning/replan_trigger.py

import logging
import numpy as np

from utils.path_utils import remaining_path, path_footprint_cells

logger = logging.getLogger(__name__)


class ReplanTrigger:
    """
    Decides which world changes the agent has observed and whether they matter.

    The agent only sees cells within its observation radius; differences between
    the planner's grid snapshot and the world further away stay unknown until the
    agent gets closer.
    """
    def __init__(self, config):
        """
        Initializes the ReplanTrigger.

        Args:
            config (dict): Configuration dictionary for replanning.
                           Expected keys: 'observation_radius'.
        """
        self.config = config or {}
        self.observation_radius = self.config.get('observation_radius', 4.0) # Cells around the agent it can observe

        logger.info("ReplanTrigger initialized.")

    def detect_changes(self, snapshot, world_grid, agent_pose):
        """
        Lists cells within the observation radius whose cost differs from the snapshot.

        Args:
            snapshot (np.ndarray): The planner's current belief of the grid.
            world_grid (np.ndarray): Ground truth grid of the same shape.
            agent_pose (Pose): Agent position (may be unaligned).

        Returns:
            list: (x, y, new_cost) triples.
        """
        world_grid = np.asarray(world_grid)
        if world_grid.shape != snapshot.shape:
            raise ValueError(f"World grid shape {world_grid.shape} does not match snapshot {snapshot.shape}")

        height, width = snapshot.shape
        ys, xs = np.mgrid[0:height, 0:width]
        observed = (xs - agent_pose.x) ** 2 + (ys - agent_pose.y) ** 2 <= self.observation_radius ** 2
        changed = observed & (world_grid != snapshot)
        change_ys, change_xs = np.nonzero(changed)
        changes = [(x, y, int(world_grid[y, x])) for x, y in zip(change_xs.tolist(), change_ys.tolist())]
        if changes:
            logger.debug(f"ReplanTrigger observed {len(changes)} changed cells around {agent_pose}.")
        return changes

    def should_replan(self, changes, current_result, profile, agent_pose=None):
        """
        Checks whether any change touches what is left of the current path.

        Args:
            changes (list): (x, y, new_cost) triples from detect_changes().
            current_result (PathfindingResult or None): The plan being followed.
            profile (KinematicProfile): Supplies the robot dimensions.
            agent_pose (Pose, optional): Only the path from the closest step onwards is checked.

        Returns:
            bool: True if replanning is required, False otherwise.
        """
        if current_result is None or not current_result.success:
            return True
        if not changes:
            return False

        path = current_result.path
        if agent_pose is not None:
            path = remaining_path(agent_pose, path)
        footprint = path_footprint_cells(path, profile)
        for x, y, _ in changes:
            if (x, y) in footprint:
                logger.debug(f"Change at ({x}, {y}) lies on the current path.")
                return True
        return False
