# planning/state_search/motion_primitives.py

import logging
import time
from dataclasses import dataclass
from typing import NamedTuple
import numpy as np

from planning.state_search.kinematic_profile import Pose
from planning.state_search.curve_engine import Curve, compute_curves
from planning.state_search.footprint_rasterizer import FootprintMask, render_curve_grid_mask
from planning.state_search.cost_functions import calculate_batch_costs

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class MotionPrimitive:
    """
    One precomputed move from (0, 0, start_heading) to (dx, dy, end_heading).

    The curve and footprint are relative to the source cell (0, 0). For reverse
    primitives the curve geometry starts at (dx, dy) and is driven backwards.
    """
    dx: int
    dy: int
    start_heading: int
    end_heading: int
    curve: Curve
    footprint: FootprintMask
    reverse: bool = False


class Neighbor(NamedTuple):
    """A feasible edge returned by MotionPrimitiveTable.neighbors / predecessors."""
    pose: Pose # The successor (or predecessor) pose
    primitive: MotionPrimitive
    cost: float
    curve: Curve # primitive.curve placed at the edge's source cell


class PrimitiveBatch:
    """
    Footprints of a group of primitives concatenated for a single vectorised cost evaluation.

    Offsets are relative to the queried node: its successors when the group shares a
    start heading, its predecessors when the group shares an end heading.
    """
    def __init__(self, primitives, incoming=False):
        self.primitives = tuple(primitives)
        sign = -1 if incoming else 1
        self.node_dx = np.array([sign * p.dx for p in self.primitives], dtype=np.int64)
        self.node_dy = np.array([sign * p.dy for p in self.primitives], dtype=np.int64)
        self.node_heading = np.array([p.start_heading if incoming else p.end_heading for p in self.primitives],
                                     dtype=np.int64)
        self.reverse = np.array([p.reverse for p in self.primitives], dtype=bool)

        cell_dx, cell_dy, weights, segments = [], [], [], []
        for index, primitive in enumerate(self.primitives):
            shift_x = -primitive.dx if incoming else 0
            shift_y = -primitive.dy if incoming else 0
            cell_dx.append(primitive.footprint.dx + shift_x)
            cell_dy.append(primitive.footprint.dy + shift_y)
            weights.append(primitive.footprint.weight)
            segments.append(np.full(len(primitive.footprint), index, dtype=np.int64))
        if self.primitives:
            self.cell_dx = np.concatenate(cell_dx)
            self.cell_dy = np.concatenate(cell_dy)
            self.weights = np.concatenate(weights)
            self.segments = np.concatenate(segments)
        else:
            self.cell_dx = self.cell_dy = self.segments = np.zeros(0, dtype=np.int64)
            self.weights = np.zeros(0, dtype=np.float64)

    def __len__(self):
        return len(self.primitives)

    def costs(self, grid, x, y, profile, ignore_walls=False):
        """Edge cost of every primitive in the group when queried at cell (x, y); np.inf if infeasible."""
        return calculate_batch_costs(grid, x, y, self.cell_dx, self.cell_dy, self.weights, self.segments,
                                     self.reverse, profile, ignore_walls)


class MotionPrimitiveTable:
    """
    Precomputed curves and footprints for every start heading, reused for every grid cell.

    Read-only once built; one table can be shared between planners that use the same profile.
    """
    def __init__(self, profile, primitives):
        """
        Args:
            profile (KinematicProfile): The validated profile the primitives were built with.
            primitives (list): MotionPrimitive objects.
        """
        self.profile = profile
        rot_number = profile.rot_number
        outgoing = [[] for _ in range(rot_number)]
        incoming = [[] for _ in range(rot_number)]
        for primitive in primitives:
            outgoing[primitive.start_heading].append(primitive)
            incoming[primitive.end_heading].append(primitive)

        self._outgoing = [PrimitiveBatch(group) for group in outgoing]
        self._incoming = [PrimitiveBatch(group, incoming=True) for group in incoming]
        self._influence = []
        for batch in self._outgoing:
            cells = np.unique(np.stack([batch.cell_dx, batch.cell_dy], axis=1), axis=0) if len(batch) else \
                np.zeros((0, 2), dtype=np.int64)
            self._influence.append(cells)
        self.size = len(primitives)

    @classmethod
    def build(cls, profile):
        """
        Generates forward (and, if allowed, reverse) primitives for every heading.

        Raises:
            InvalidProfileError: If the profile fails validation.
        """
        profile.validate()
        start_time = time.time()
        radius = profile.neighbor_radius
        primitives = []

        for heading in range(profile.rot_number):
            origin = Pose(0, 0, heading)
            for dy in range(-radius, radius + 1):
                for dx in range(-radius, radius + 1):
                    if dx == 0 and dy == 0:
                        continue
                    for end_heading in range(profile.rot_number):
                        target = Pose(dx, dy, end_heading)
                        for curve in compute_curves(origin, target, profile):
                            footprint = render_curve_grid_mask(curve, profile, anchor=(0, 0))
                            primitives.append(MotionPrimitive(dx, dy, heading, end_heading, curve, footprint))
                        if not profile.allow_reverse:
                            continue
                        # Driving backwards traces the forward geometry from target to origin
                        for curve in compute_curves(target, origin, profile, reverse=True):
                            footprint = render_curve_grid_mask(curve, profile, anchor=(0, 0))
                            primitives.append(MotionPrimitive(dx, dy, heading, end_heading, curve, footprint,
                                                              reverse=True))

        logger.info(f"MotionPrimitiveTable built: {len(primitives)} primitives for {profile.rot_number} headings "
                    f"in {time.time() - start_time:.2f} sec")
        return cls(profile, primitives)

    def outgoing(self, heading):
        """Primitives leaving a node with this heading."""
        return self._outgoing[heading].primitives

    def incoming(self, heading):
        """Primitives arriving at a node with this heading."""
        return self._incoming[heading].primitives

    def successor_batch(self, heading):
        return self._outgoing[heading]

    def predecessor_batch(self, heading):
        return self._incoming[heading]

    def influence_offsets(self, heading):
        """
        Unique (dx, dy) footprint offsets of all primitives leaving this heading.

        A change at cell c affects the outgoing edges of every node (c - offset, heading).
        """
        return self._influence[heading]

    def neighbors(self, pose, grid, ignore_walls=False):
        """
        Feasible successors of an aligned pose on the grid.

        Args:
            pose (Pose): Aligned source pose.
            grid (np.ndarray): uint8 cost grid indexed [y, x].
            ignore_walls (bool): Allow footprints over walls (grid bounds still apply).

        Returns:
            list: Neighbor tuples; edges leaving the grid or blocked by walls are omitted.
        """
        batch = self._outgoing[pose.heading]
        costs = batch.costs(grid, pose.x, pose.y, self.profile, ignore_walls)
        result = []
        for index in np.flatnonzero(np.isfinite(costs)).tolist():
            primitive = batch.primitives[index]
            target = Pose(pose.x + primitive.dx, pose.y + primitive.dy, primitive.end_heading)
            result.append(Neighbor(target, primitive, float(costs[index]), primitive.curve.translated(pose.x, pose.y)))
        return result

    def predecessors(self, pose, grid, ignore_walls=False):
        """
        Feasible predecessors of an aligned pose, with the same edge costs neighbors() reports.
        """
        batch = self._incoming[pose.heading]
        costs = batch.costs(grid, pose.x, pose.y, self.profile, ignore_walls)
        result = []
        for index in np.flatnonzero(np.isfinite(costs)).tolist():
            primitive = batch.primitives[index]
            source = Pose(pose.x - primitive.dx, pose.y - primitive.dy, primitive.start_heading)
            result.append(Neighbor(source, primitive, float(costs[index]),
                                   primitive.curve.translated(source.x, source.y)))
        return result
