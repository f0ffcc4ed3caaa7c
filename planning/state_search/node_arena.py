# planning/state_search/node_arena.py

import logging
import numpy as np

logger = logging.getLogger(__name__)


class NodeArena:
    """
    Dense per-node search state for every (x, y, heading) of a grid.

    Arrays are indexed [y, x, heading], matching the grid's [y, x] layout.
    """
    def __init__(self, width, height, rot_number):
        self.width = width
        self.height = height
        self.rot_number = rot_number
        shape = (height, width, rot_number)
        self.g = np.full(shape, np.inf, dtype=np.float64) # Cost-to-come (A*) or cost-to-goal (D* Lite)
        self.rhs = np.full(shape, np.inf, dtype=np.float64) # One-step lookahead value (D* Lite only)
        self.visits = np.zeros(shape, dtype=np.int32) # Expansions in the current solve

    @property
    def size(self):
        return self.width * self.height * self.rot_number

    def contains(self, pose):
        return (0 <= pose.x < self.width and 0 <= pose.y < self.height
                and 0 <= pose.heading < self.rot_number)

    def index(self, pose):
        """
        Array index of an aligned pose.

        Raises:
            IndexError: If the pose lies outside the arena.
        """
        if not self.contains(pose):
            raise IndexError(f"Pose {pose} is outside the {self.width}x{self.height}x{self.rot_number} arena")
        return (int(pose.y), int(pose.x), int(pose.heading))

    def reset(self):
        self.g.fill(np.inf)
        self.rhs.fill(np.inf)
        self.visits.fill(0)

    def reset_visits(self):
        self.visits.fill(0)
