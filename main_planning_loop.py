# main_planning_loop.py

import argparse
import logging
import sys
import numpy as np

from maps.map_reader import MapReader
from planning.state_search.cost_functions import WALL_COST
from planning.state_search.kinematic_profile import InvalidProfileError, KinematicProfile, Pose
from planning.state_search.motion_primitives import MotionPrimitiveTable
from planning.replanning.replan_manager import ReplanManager
from utils.config_reader import ConfigReader
from utils.path_utils import path_length

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Plan a curve-based path over a cost grid and replan on discovered walls.")
    parser.add_argument('--config', default='config/planner_config.yaml', help="Path to the YAML configuration file.")
    parser.add_argument('--planner', choices=['d_star_lite', 'a_star'], default=None,
                        help="Override planning.planner_type from the configuration.")
    return parser.parse_args(argv)


def load_grid(maps_config):
    """
    Loads the configured cost grid, or builds an empty one of the configured size.

    Returns:
        np.ndarray or None: The uint8 grid, or None if loading failed.
    """
    path = maps_config.get('cost_grid_path')
    if path:
        return MapReader(path).load_map()
    width = maps_config.get('grid_width', 24)
    height = maps_config.get('grid_height', 24)
    logger.info(f"No cost grid configured; using an empty {width}x{height} grid.")
    return np.zeros((height, width), dtype=np.uint8)


def main(argv=None):
    args = parse_args(argv)
    logger.info("Starting curve-based motion planning...")

    config = ConfigReader(args.config).load_config()
    if config is None:
        logger.error("Failed to load configuration. Exiting.")
        return 1

    level = ConfigReader.get_section(config, 'logging').get('level', 'INFO')
    logging.getLogger().setLevel(level)

    profile = KinematicProfile.from_config(ConfigReader.get_section(config, 'kinematic_profile'))
    try:
        table = MotionPrimitiveTable.build(profile)
    except InvalidProfileError as e:
        logger.error(f"Invalid kinematic profile: {e}")
        return 1

    grid = load_grid(ConfigReader.get_section(config, 'maps'))
    if grid is None:
        logger.error("Failed to load the cost grid. Exiting.")
        return 1

    planning_config = dict(ConfigReader.get_section(config, 'planning'))
    if args.planner:
        planning_config['planner_type'] = args.planner
    manager = ReplanManager(planning_config, table)

    scenario = ConfigReader.get_section(config, 'scenario')
    start = Pose(*scenario.get('start', [0, 0, 0]))
    goal = Pose(*scenario.get('goal', [grid.shape[1] - 1, grid.shape[0] - 1, 0]))
    try:
        result = manager.start_session(grid, start, goal)
    except ValueError as e:
        logger.error(f"Invalid planning request: {e}")
        return 1
    if not result.success:
        logger.error(f"No initial path from {start} to {goal}: {result.reason}")
        return 1
    logger.info(f"Initial path: {len(result.path)} steps, length {path_length(result.path):.2f} cells, "
                f"cost {result.total_cost:.2f}")

    # Ground truth the agent discovers while driving
    world = grid.copy()
    for x, y in scenario.get('discovered_walls', []):
        world[y, x] = WALL_COST

    agent_steps = max(1, scenario.get('agent_steps', 3))
    max_updates = scenario.get('max_updates', 1000)
    updates = 0
    while result.success and len(result.path) > 1 and updates < max_updates:
        agent_pose = result.path[min(agent_steps, len(result.path) - 1)].pose
        result = manager.update(agent_pose, world)
        updates += 1
        logger.info(f"Update {updates}: agent at {agent_pose}, {len(result.path)} steps left, "
                    f"remaining cost {result.total_cost:.2f}")

    if result.success:
        logger.info(f"Agent reached {result.end_pose} after {updates} updates.")
        return 0
    logger.error(f"Planning failed after {updates} updates: {result.reason}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
