# planning/state_search/cost_functions.py

import logging
import numpy as np

logger = logging.getLogger(__name__)

WALL_COST = 255 # Cell value treated as impassable


def calculate_batch_costs(grid, anchor_x, anchor_y, cell_dx, cell_dy, weights, segments, reverse, profile,
                          ignore_walls=False):
    """
    Evaluates the edge cost of several footprints at once.

    Every footprint cell contributes weight * (1 + cell_cost * cost_multi / 256) to its
    segment. A segment with a cell outside the grid is infeasible. A segment touching a
    wall is infeasible unless ignore_walls is set.

    Args:
        grid (np.ndarray): uint8 cost grid indexed [y, x].
        anchor_x, anchor_y (int): Cell the offsets are relative to.
        cell_dx, cell_dy (np.ndarray): Concatenated footprint cell offsets.
        weights (np.ndarray): Weight of each cell.
        segments (np.ndarray): Index of the footprint each cell belongs to.
        reverse (np.ndarray): Per-footprint flag, True for reverse primitives.
        profile (KinematicProfile): Supplies cost_multi and reverse_multi.
        ignore_walls (bool): Count walls as ordinary (expensive) cells.

    Returns:
        np.ndarray: Cost per footprint, np.inf where infeasible.
    """
    count = len(reverse)
    if count == 0:
        return np.zeros(0, dtype=np.float64)

    height, width = grid.shape
    xs = cell_dx + anchor_x
    ys = cell_dy + anchor_y
    inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)

    values = np.full(xs.shape, float(WALL_COST), dtype=np.float64)
    values[inside] = grid[ys[inside], xs[inside]]
    blocked = ~inside
    if not ignore_walls:
        blocked = blocked | (values >= WALL_COST)

    cell_costs = weights * (1.0 + values * (profile.cost_multi / 256.0))
    totals = np.bincount(segments, weights=cell_costs, minlength=count)
    blocked_segments = np.bincount(segments, weights=blocked.astype(np.float64), minlength=count) > 0

    totals = np.where(reverse, totals * profile.reverse_multi, totals)
    totals[blocked_segments] = np.inf
    return totals


def calculate_footprint_cost(grid, anchor_x, anchor_y, footprint, profile, reverse=False, ignore_walls=False):
    """
    Edge cost of a single footprint placed at (anchor_x, anchor_y).

    Returns:
        float: The cost, or float('inf') when the footprint leaves the grid or hits a wall.
    """
    segments = np.zeros(len(footprint), dtype=np.int64)
    totals = calculate_batch_costs(grid, anchor_x, anchor_y, footprint.dx, footprint.dy, footprint.weight,
                                   segments, np.array([reverse]), profile, ignore_walls)
    return float(totals[0])
