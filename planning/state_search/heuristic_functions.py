# planning/state_search/heuristic_functions.py

import logging

from utils.geometry_utils import distance_2d

logger = logging.getLogger(__name__)


def euclidean_distance_heuristic(current_state, goal_state):
    """
    Calculates the Euclidean distance in 2D (x, y) as a heuristic.
    """
    return distance_2d(current_state, goal_state)


def heading_mismatch_heuristic(current_state, goal_state, rot_number):
    """
    Fraction of a full turn separating the two headings, in [0, 1).
    Uses the raw bucket difference so both directions of a turn are penalised alike.
    """
    return abs(current_state.heading - goal_state.heading) / rot_number


def calculate_heuristic(current_state, goal_state, profile, heuristic_type="euclidean"):
    """
    Wrapper function to calculate the heuristic based on the specified type.

    Args:
        current_state (Pose): State being evaluated.
        goal_state (Pose): Reference state (goal for A*, agent position for D* Lite).
        profile (KinematicProfile): Supplies heuristic_multi and rot_number.
        heuristic_type (str): "euclidean" (distance plus heading mismatch) or "zero".

    Returns:
        float: Estimated cost, scaled by profile.heuristic_multi.
    """
    if heuristic_type == "zero":
        return 0.0
    if heuristic_type != "euclidean":
        logger.warning(f"Unknown heuristic type: {heuristic_type}. Using Euclidean.")
    estimate = euclidean_distance_heuristic(current_state, goal_state) + \
        heading_mismatch_heuristic(current_state, goal_state, profile.rot_number)
    return estimate * profile.heuristic_multi
