# planning/state_search/curve_engine.py

import logging
import math
from dataclasses import dataclass, replace
from typing import Tuple

from utils.geometry_utils import TWO_PI, mod_2pi, angle_difference, heading_to_radians

logger = logging.getLogger(__name__)

HALF_PI = math.pi / 2
STRAIGHT_TOLERANCE = 1e-3 # rad, summed heading and direction mismatch for a straight move
ANGLE_EPSILON = 1e-9

# (side of start circle, side of target circle); +1 is a left (counter-clockwise) turn
SIDE_PAIRS = ((-1, 1), (1, -1), (1, 1), (-1, -1))


def turn_amount(delta_rad, side):
    """
    How far an arc on the given side turns to change heading by delta_rad.
    Returns a value in [0, 2*pi); rounding noise just below a full turn counts as no turn.
    """
    amount = mod_2pi(delta_rad * side)
    if amount > TWO_PI - ANGLE_EPSILON:
        return 0.0
    return amount


@dataclass(frozen=True)
class Line:
    """Tangent segment of a curve, relative to the curve origin."""
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self):
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


@dataclass(frozen=True)
class Arc:
    """
    Circular arc of a curve, relative to the curve origin.

    entry_heading and exit_heading are the travel directions (radians) when
    entering and leaving the arc; side is +1 for a left turn, -1 for a right turn.
    """
    center_x: float
    center_y: float
    entry_heading: float
    exit_heading: float
    side: int

    @property
    def sweep(self):
        return turn_amount(self.exit_heading - self.entry_heading, self.side)

    def length(self, radius):
        return self.sweep * radius

    def point_at_heading(self, heading_rad, radius):
        """Position on the circle where the travel direction equals heading_rad."""
        angle = heading_rad - self.side * HALF_PI
        return (self.center_x + radius * math.cos(angle), self.center_y + radius * math.sin(angle))


@dataclass(frozen=True)
class Curve:
    """
    A straight segment, or two arcs joined by a tangent line (either arc may be degenerate).

    Geometry is stored relative to (origin_x, origin_y), which is the position of
    the pose the geometry starts from. For a reverse curve that pose is where the
    agent ends up, since reverse travel runs the geometry backwards.
    """
    origin_x: float
    origin_y: float
    start_heading: float # radians
    end_heading: float # radians
    line: Line
    arcs: Tuple[Arc, ...] = ()
    radius: float = 1.0
    reverse: bool = False

    @property
    def is_straight(self):
        return not self.arcs

    @property
    def length(self):
        return self.line.length + sum(arc.length(self.radius) for arc in self.arcs)

    @property
    def start_point(self):
        return (self.origin_x, self.origin_y)

    @property
    def end_point(self):
        if self.arcs:
            x, y = self.arcs[-1].point_at_heading(self.end_heading, self.radius)
        else:
            x, y = self.line.x2, self.line.y2
        return (self.origin_x + x, self.origin_y + y)

    def translated(self, dx, dy):
        """Same curve with its origin moved by (dx, dy)."""
        return replace(self, origin_x=self.origin_x + dx, origin_y=self.origin_y + dy)

    def sample(self, step=0.25):
        """
        Samples the curve into absolute (x, y, yaw) points in travel order.

        Args:
            step (float): Approximate distance between consecutive points, in cells.

        Returns:
            list: (x, y, yaw) tuples. yaw is the geometric heading, so a reversing
                  agent faces opposite to its direction of travel.
        """
        points = []
        pieces = []
        if self.arcs:
            pieces.append(('arc', self.arcs[0]))
        pieces.append(('line', self.line))
        if self.arcs:
            pieces.append(('arc', self.arcs[1]))

        for kind, piece in pieces:
            if kind == 'arc':
                sweep = piece.sweep
                if sweep <= ANGLE_EPSILON:
                    continue
                count = max(1, int(math.ceil(piece.length(self.radius) / step)))
                for i in range(count):
                    heading = piece.entry_heading + piece.side * sweep * i / count
                    x, y = piece.point_at_heading(heading, self.radius)
                    points.append((self.origin_x + x, self.origin_y + y, mod_2pi(heading)))
            else:
                length = piece.length
                if length <= ANGLE_EPSILON:
                    continue
                yaw = math.atan2(piece.y2 - piece.y1, piece.x2 - piece.x1)
                count = max(1, int(math.ceil(length / step)))
                for i in range(count):
                    t = i / count
                    points.append((self.origin_x + piece.x1 + (piece.x2 - piece.x1) * t,
                                   self.origin_y + piece.y1 + (piece.y2 - piece.y1) * t,
                                   mod_2pi(yaw)))

        end_x, end_y = self.end_point
        points.append((end_x, end_y, self.end_heading))
        if self.reverse:
            points.reverse()
        return points


def compute_curves(start, target, profile, reverse=False):
    """
    Computes every feasible curve from start to target for the profile's turning radius.

    Args:
        start (Pose): Pose the geometry starts from (may be unaligned).
        target (Pose): Pose the geometry ends at.
        profile (KinematicProfile): Supplies turning_radius, rot_number and sharp_turn_limit.
        reverse (bool): Flag copied onto each returned curve. To model reverse travel
                        the caller swaps start and target.

    Returns:
        list: Curve objects. Empty when no curve satisfies the geometric constraints.
    """
    radius = profile.turning_radius
    rot1 = heading_to_radians(start.heading, profile.rot_number)
    rot2 = heading_to_radians(target.heading, profile.rot_number)
    dx = target.x - start.x
    dy = target.y - start.y

    if dx == 0 and dy == 0 and start.heading == target.heading:
        return [Curve(start.x, start.y, rot1, rot2, Line(0.0, 0.0, 0.0, 0.0), (), radius, reverse)]

    direction = math.atan2(dy, dx)
    if angle_difference(rot1, rot2) + angle_difference(rot1, direction) < STRAIGHT_TOLERANCE:
        return [Curve(start.x, start.y, rot1, rot2, Line(0.0, 0.0, float(dx), float(dy)), (), radius, reverse)]

    curves = []
    for side1, side2 in SIDE_PAIRS:
        c1x = math.cos(rot1 + side1 * HALF_PI) * radius
        c1y = math.sin(rot1 + side1 * HALF_PI) * radius
        c2x = math.cos(rot2 + side2 * HALF_PI) * radius + dx
        c2y = math.sin(rot2 + side2 * HALF_PI) * radius + dy
        centre_distance = math.hypot(c2x - c1x, c2y - c1y)

        if side1 != side2:
            # Inner tangent needs the circles to be apart
            if centre_distance < 2 * radius:
                continue
            ratio = min(1.0, 2 * radius / centre_distance)
            phi = mod_2pi(math.atan2(c2y - c1y, c2x - c1x) + side1 * math.asin(ratio))
        elif centre_distance < ANGLE_EPSILON:
            # Both poses on the same circle: one arc does all the turning
            phi = rot2
        else:
            phi = mod_2pi(math.atan2(c2y - c1y, c2x - c1x))

        first = Arc(c1x, c1y, rot1, phi, side1)
        second = Arc(c2x, c2y, phi, rot2, side2)
        if first.sweep > profile.sharp_turn_limit + ANGLE_EPSILON:
            continue
        if second.sweep > profile.sharp_turn_limit + ANGLE_EPSILON:
            continue

        x1, y1 = first.point_at_heading(phi, radius)
        x2, y2 = second.point_at_heading(phi, radius)
        curves.append(Curve(start.x, start.y, rot1, rot2, Line(x1, y1, x2, y2), (first, second), radius, reverse))

    return curves
