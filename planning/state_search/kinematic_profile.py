# planning/state_search/kinematic_profile.py

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

from utils.geometry_utils import grid_cell

logger = logging.getLogger(__name__)


class InvalidProfileError(ValueError):
    """Raised when a KinematicProfile cannot produce a valid motion primitive table."""


class Pose(NamedTuple):
    """
    A planning state. x, y are grid coordinates (column, row); heading is a
    discrete bucket in [0, rot_number). Aligned poses have integer x and y.
    """
    x: float
    y: float
    heading: int

    @property
    def is_aligned(self):
        return float(self.x).is_integer() and float(self.y).is_integer()

    def aligned(self):
        """Nearest grid-aligned pose with the same heading."""
        return Pose(grid_cell(self.x), grid_cell(self.y), int(self.heading))


@dataclass(frozen=True)
class KinematicProfile:
    """
    Immutable description of the agent and of the discretisation the planners search.

    Changing any field means a new MotionPrimitiveTable has to be built.
    """
    turning_radius: float = 1.0 # Minimum turning radius, in cells
    robot_width: float = 0.8 # Footprint width, in cells
    robot_length: float = 0.8 # Footprint length, in cells
    rot_number: int = 8 # Discrete headings per full turn
    neighbor_radius: int = 2 # Max |dx|, |dy| of a motion primitive
    cost_multi: float = 1.0 # Scales cell cost (0..254) into edge cost
    heuristic_multi: float = 0.5 # Scales the search heuristic
    reverse_multi: float = 4.0 # Cost multiplier for reverse primitives
    allow_reverse: bool = True # Whether reverse primitives are generated
    sharp_turn_limit: float = math.pi / 2 # Max turn of a single arc, radians

    @classmethod
    def from_config(cls, config):
        """
        Builds a profile from a configuration dictionary.

        Args:
            config (dict): The 'kinematic_profile' section. Missing keys use the defaults.
                           'sharp_turn_limit_deg' is accepted in degrees.

        Returns:
            KinematicProfile: The profile (not yet validated).
        """
        config = config or {}
        sharp_turn_limit = math.radians(config.get('sharp_turn_limit_deg', 90.0))
        return cls(
            turning_radius=float(config.get('turning_radius', 1.0)),
            robot_width=float(config.get('robot_width', 0.8)),
            robot_length=float(config.get('robot_length', 0.8)),
            rot_number=int(config.get('rot_number', 8)),
            neighbor_radius=int(config.get('neighbor_radius', 2)),
            cost_multi=float(config.get('cost_multi', 1.0)),
            heuristic_multi=float(config.get('heuristic_multi', 0.5)),
            reverse_multi=float(config.get('reverse_multi', 4.0)),
            allow_reverse=bool(config.get('allow_reverse', True)),
            sharp_turn_limit=sharp_turn_limit,
        )

    def validate(self):
        """
        Checks every field and raises InvalidProfileError on the first bad one.
        """
        if not self.turning_radius > 0:
            raise InvalidProfileError(f"turning_radius must be > 0, got {self.turning_radius}")
        if not self.robot_width > 0:
            raise InvalidProfileError(f"robot_width must be > 0, got {self.robot_width}")
        if not self.robot_length > 0:
            raise InvalidProfileError(f"robot_length must be > 0, got {self.robot_length}")
        if self.rot_number < 1:
            raise InvalidProfileError(f"rot_number must be >= 1, got {self.rot_number}")
        if self.neighbor_radius < 1:
            raise InvalidProfileError(f"neighbor_radius must be >= 1, got {self.neighbor_radius}")
        if self.cost_multi < 0:
            raise InvalidProfileError(f"cost_multi must be >= 0, got {self.cost_multi}")
        if self.heuristic_multi < 0:
            raise InvalidProfileError(f"heuristic_multi must be >= 0, got {self.heuristic_multi}")
        if self.reverse_multi < 1:
            raise InvalidProfileError(f"reverse_multi must be >= 1, got {self.reverse_multi}")
        if not 0 < self.sharp_turn_limit <= math.pi + 1e-12:
            raise InvalidProfileError(f"sharp_turn_limit must be in (0, pi], got {self.sharp_turn_limit}")
        return self
