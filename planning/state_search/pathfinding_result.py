# planning/state_search/pathfinding_result.py

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from planning.state_search.kinematic_profile import Pose
from planning.state_search.curve_engine import Curve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathStep:
    """A pose on a path, with the curve that reached it and that curve's edge cost."""
    pose: Pose
    curve: Optional[Curve] = None # None for the first step
    cost: float = 0.0


@dataclass
class PathfindingResult:
    success: bool
    aborted: bool = False
    nodes_visited: int = 0
    path: List[PathStep] = field(default_factory=list)
    reason: str = "" # Short human-readable outcome, for logs

    @property
    def total_cost(self):
        return sum(step.cost for step in self.path)

    @property
    def end_pose(self):
        return self.path[-1].pose if self.path else None

    def trajectory(self, step=0.25):
        """
        Samples the whole path into (x, y, yaw) points.

        Args:
            step (float): Approximate spacing between points, in cells.

        Returns:
            list: (x, y, yaw) tuples in travel order; empty for an empty path.
        """
        points = []
        for path_step in self.path:
            if path_step.curve is None:
                continue
            samples = path_step.curve.sample(step)
            # Consecutive curves share their joint
            if points and samples:
                samples = samples[1:]
            points.extend(samples)
        return points
