# utils/path_utils.py

import logging
import math

from utils.geometry_utils import grid_cell
from planning.state_search.footprint_rasterizer import render_curve_grid_mask

logger = logging.getLogger(__name__)


def find_closest_point_on_path(location, path):
    """
    Finds the step of a path whose pose is closest to a given location.

    Args:
        location (Pose or similar): The reference location (anything with .x and .y).
        path (list): PathStep objects.

    Returns:
        tuple: (closest_step_index, closest_pose), or (-1, None) if path is empty.
    """
    if not path:
        return -1, None

    min_dist_sq = float('inf')
    closest_index = -1
    closest_pose = None
    for i, step in enumerate(path):
        dist_sq = (step.pose.x - location.x) ** 2 + (step.pose.y - location.y) ** 2
        if dist_sq < min_dist_sq:
            min_dist_sq = dist_sq
            closest_index = i
            closest_pose = step.pose

    return closest_index, closest_pose


def remaining_path(location, path):
    """Steps of the path from the one closest to location onwards."""
    index, _ = find_closest_point_on_path(location, path)
    if index < 0:
        return []
    return path[index:]


def path_footprint_cells(path, profile):
    """
    Absolute grid cells swept by the curves of a path.

    Args:
        path (list): PathStep objects with world-placed curves.
        profile (KinematicProfile): Supplies the robot dimensions.

    Returns:
        set: (x, y) cells.
    """
    cells = set()
    for step in path:
        if step.curve is None:
            continue
        anchor_x = grid_cell(step.curve.origin_x)
        anchor_y = grid_cell(step.curve.origin_y)
        footprint = render_curve_grid_mask(step.curve, profile, anchor=(anchor_x, anchor_y))
        for dx, dy, _ in footprint:
            cells.add((anchor_x + dx, anchor_y + dy))
    return cells


def path_length(path):
    """Geometric length of a path, in cells."""
    return math.fsum(step.curve.length for step in path if step.curve is not None)
