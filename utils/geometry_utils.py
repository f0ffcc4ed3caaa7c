# utils/geometry_utils.py

import logging
import math
import numpy as np

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi


def distance_2d(point1, point2):
    """
    Calculates the 2D Euclidean distance between two points.
    Points can be tuples, lists, numpy arrays or objects exposing .x and .y (e.g. Pose).
    """
    if hasattr(point1, 'x') and hasattr(point2, 'x'):
        return math.hypot(point1.x - point2.x, point1.y - point2.y)
    elif isinstance(point1, (list, tuple, np.ndarray)) and isinstance(point2, (list, tuple, np.ndarray)):
        if len(point1) >= 2 and len(point2) >= 2:
            return math.hypot(point1[0] - point2[0], point1[1] - point2[1])
        else:
            logger.warning("Invalid point format for 2D distance calculation.")
            return float('inf')
    else:
        logger.warning("Unsupported point types for 2D distance calculation.")
        return float('inf')


def mod_2pi(angle_rad):
    """Wraps an angle in radians into [0, 2*pi)."""
    wrapped = angle_rad % TWO_PI
    # The float modulo can round up to exactly 2*pi for tiny negative inputs.
    if wrapped >= TWO_PI:
        wrapped -= TWO_PI
    return wrapped


def angle_difference(angle_a, angle_b):
    """
    Absolute smallest difference between two angles in radians, in [0, pi].
    """
    diff = mod_2pi(angle_a - angle_b)
    return min(diff, TWO_PI - diff)


def heading_to_radians(heading, rot_number):
    """
    Converts a discrete heading bucket to radians.

    Args:
        heading (int): Heading bucket in [0, rot_number).
        rot_number (int): Number of discrete headings in a full turn.

    Returns:
        float: heading * 2*pi / rot_number.
    """
    return heading * TWO_PI / rot_number


def interval_overlap(low, high, bound_low, bound_high):
    """
    Length of the overlap between [low, high] and [bound_low, bound_high].
    Works element-wise on numpy arrays; never negative.
    """
    return np.clip(np.minimum(high, bound_high) - np.maximum(low, bound_low), 0.0, None)


def grid_cell(value):
    """Index of the grid cell containing a coordinate; cell i spans [i - 0.5, i + 0.5)."""
    return int(math.floor(value + 0.5))
