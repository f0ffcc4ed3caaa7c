# planning/state_search/footprint_rasterizer.py

import logging
import math
import numpy as np

from utils.geometry_utils import TWO_PI, grid_cell, interval_overlap
from planning.state_search.curve_engine import HALF_PI, ANGLE_EPSILON

logger = logging.getLogger(__name__)

MIN_CELL_WEIGHT = 0.05 # Cells at or below this coverage are left out of the mask


class FootprintMask:
    """
    Weighted set of grid cells swept by a curve, relative to an anchor cell.

    Cells are kept sorted by (dy, dx) so two masks of the same curve compare
    and serialize identically.
    """
    def __init__(self, cells):
        """
        Args:
            cells (dict): Mapping (dx, dy) -> weight in (0, 1].
        """
        keys = sorted(cells, key=lambda cell: (cell[1], cell[0]))
        self.dx = np.array([k[0] for k in keys], dtype=np.int64)
        self.dy = np.array([k[1] for k in keys], dtype=np.int64)
        self.weight = np.array([cells[k] for k in keys], dtype=np.float64)
        for array in (self.dx, self.dy, self.weight):
            array.setflags(write=False)
        self._lookup = {k: float(cells[k]) for k in keys}

    def __len__(self):
        return len(self._lookup)

    def __iter__(self):
        return zip(self.dx.tolist(), self.dy.tolist(), self.weight.tolist())

    def __eq__(self, other):
        if not isinstance(other, FootprintMask):
            return NotImplemented
        return (np.array_equal(self.dx, other.dx) and np.array_equal(self.dy, other.dy)
                and np.array_equal(self.weight, other.weight))

    __hash__ = None

    def __repr__(self):
        return f"FootprintMask(cells={len(self)}, total_weight={self.total_weight:.3f})"

    def weight_at(self, dx, dy):
        return self._lookup.get((dx, dy), 0.0)

    def shifted(self, offset_x, offset_y):
        """Mask with every cell moved by (offset_x, offset_y)."""
        return FootprintMask({(dx + offset_x, dy + offset_y): w for dx, dy, w in self})

    @property
    def bounds(self):
        """(min_dx, min_dy, max_dx, max_dy), or None for an empty mask."""
        if not len(self):
            return None
        return (int(self.dx.min()), int(self.dy.min()), int(self.dx.max()), int(self.dy.max()))

    @property
    def total_weight(self):
        return float(self.weight.sum())

    def tobytes(self):
        return self.dx.tobytes() + self.dy.tobytes() + self.weight.tobytes()


def _collect(grid_x, grid_y, weights):
    keep = weights > MIN_CELL_WEIGHT
    return dict(zip(zip(grid_x[keep].tolist(), grid_y[keep].tolist()), weights[keep].tolist()))


def _line_cells(x1, y1, x2, y2, heading, half_width, back, front, pad):
    """
    Coverage of the robot rectangle swept along a straight segment.

    back / front extend the swept area past the segment ends (half the robot
    length at the ends of a curve, nothing where an arc takes over).
    """
    length = math.hypot(x2 - x1, y2 - y1)
    theta = math.atan2(y2 - y1, x2 - x1) if length > ANGLE_EPSILON else heading
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    # Half the extent of a unit cell projected onto the travel axes
    extent = 0.5 * (abs(cos_t) + abs(sin_t))

    xs = np.arange(math.floor(min(x1, x2)) - pad, math.ceil(max(x1, x2)) + pad + 1)
    ys = np.arange(math.floor(min(y1, y2)) - pad, math.ceil(max(y1, y2)) + pad + 1)
    grid_x, grid_y = np.meshgrid(xs, ys)
    rel_x = grid_x - x1
    rel_y = grid_y - y1
    along = rel_x * cos_t + rel_y * sin_t
    across = -rel_x * sin_t + rel_y * cos_t

    lateral = interval_overlap(across - extent, across + extent, -half_width, half_width) / (2 * extent)
    longitudinal = interval_overlap(along - extent, along + extent, -back, length + front) / (2 * extent)
    return _collect(grid_x, grid_y, np.minimum(lateral * longitudinal, 1.0))


def _arc_cells(arc, origin_x, origin_y, radius, half_width, half_length):
    """Coverage of the ring swept by the robot while following an arc."""
    sweep = arc.sweep
    if sweep <= ANGLE_EPSILON:
        return {}
    centre_x = origin_x + arc.center_x
    centre_y = origin_y + arc.center_y
    inner = max(0.0, radius - half_width)
    outer = math.hypot(radius + half_width, half_length)

    xs = np.arange(math.floor(centre_x - outer) - 1, math.ceil(centre_x + outer) + 2)
    ys = np.arange(math.floor(centre_y - outer) - 1, math.ceil(centre_y + outer) + 2)
    grid_x, grid_y = np.meshgrid(xs, ys)
    rel_x = grid_x - centre_x
    rel_y = grid_y - centre_y
    rho = np.hypot(rel_x, rel_y)
    alpha = np.arctan2(rel_y, rel_x)
    extent = 0.5 * (np.abs(np.cos(alpha)) + np.abs(np.sin(alpha)))

    radial = interval_overlap(rho - extent, rho + extent, inner, outer) / (2 * extent)

    # Angle travelled along the arc to reach each cell, negative just before the entry
    start_angle = arc.entry_heading - arc.side * HALF_PI
    offset = np.mod((alpha - start_angle) * arc.side, TWO_PI)
    offset = np.where(offset > math.pi + sweep / 2, offset - TWO_PI, offset)
    half_span = extent / np.maximum(rho, extent)
    angular = interval_overlap(offset - half_span, offset + half_span, 0.0, sweep) / (2 * half_span)

    return _collect(grid_x, grid_y, np.minimum(radial * angular, 1.0))


def _merge(footprint, cells):
    """
    Adds one piece's cells to the footprint. A cell already covered by an earlier piece,
    whether the line and an arc or the two arcs, keeps the mean of the two weights.
    """
    for cell, weight in cells.items():
        if cell in footprint:
            footprint[cell] = (footprint[cell] + weight) / 2
        else:
            footprint[cell] = weight


def render_curve_grid_mask(curve, profile, anchor=None):
    """
    Rasterizes the area swept by the robot along a curve into a FootprintMask.

    Args:
        curve (Curve): The curve, with absolute origin.
        profile (KinematicProfile): Supplies robot_width and robot_length.
        anchor (tuple, optional): Cell (x, y) the mask offsets are relative to.
                                  Defaults to the cell of the curve origin.

    Returns:
        FootprintMask: The swept cells. The cells of both curve endpoints are
                       always present with weight min(1, robot_width / 2).
    """
    if anchor is None:
        anchor = (grid_cell(curve.origin_x), grid_cell(curve.origin_y))
    half_width = profile.robot_width / 2
    half_length = profile.robot_length / 2
    pad = int(math.ceil(max(profile.robot_width, profile.robot_length)))

    footprint = {}
    line = curve.line
    first_open = not curve.arcs or curve.arcs[0].sweep <= ANGLE_EPSILON
    last_open = not curve.arcs or curve.arcs[-1].sweep <= ANGLE_EPSILON
    if line.length > ANGLE_EPSILON or first_open or last_open:
        # A degenerate line still needs the travel direction at the joint
        line_heading = curve.arcs[0].exit_heading if curve.arcs else curve.start_heading
        _merge(footprint, _line_cells(
            curve.origin_x + line.x1, curve.origin_y + line.y1,
            curve.origin_x + line.x2, curve.origin_y + line.y2,
            line_heading,
            half_width,
            half_length if first_open else 0.0,
            half_length if last_open else 0.0,
            pad))
    for arc in curve.arcs:
        _merge(footprint, _arc_cells(arc, curve.origin_x, curve.origin_y, curve.radius, half_width, half_length))

    endpoint_weight = min(1.0, half_width)
    end_x, end_y = curve.end_point
    footprint[(grid_cell(curve.origin_x), grid_cell(curve.origin_y))] = endpoint_weight
    footprint[(grid_cell(end_x), grid_cell(end_y))] = endpoint_weight

    anchor_x, anchor_y = anchor
    return FootprintMask({(x - anchor_x, y - anchor_y): w for (x, y), w in footprint.items()})
