import math

import numpy as np
import pytest

from planning.state_search.kinematic_profile import KinematicProfile
from planning.state_search.motion_primitives import MotionPrimitiveTable


@pytest.fixture(scope="session")
def profile():
    return KinematicProfile(turning_radius=1.0, robot_width=0.8, robot_length=0.8, rot_number=8,
                            neighbor_radius=2, cost_multi=1.0, heuristic_multi=0.5, reverse_multi=4.0)


@pytest.fixture(scope="session")
def table(profile):
    return MotionPrimitiveTable.build(profile)


@pytest.fixture(scope="session")
def dijkstra_table():
    """Table whose profile disables the heuristic, so both planners return optimal costs."""
    return MotionPrimitiveTable.build(KinematicProfile(heuristic_multi=0.0))


@pytest.fixture
def empty_grid():
    return np.zeros((16, 16), dtype=np.uint8)


@pytest.fixture
def rng():
    return np.random.default_rng(7)


def assert_path_is_continuous(result):
    """Each curve must start where the previous step ended and end on its own step's pose."""
    for previous, step in zip(result.path, result.path[1:]):
        samples = step.curve.sample(0.25)
        assert samples[0][0] == pytest.approx(previous.pose.x, abs=1e-6)
        assert samples[0][1] == pytest.approx(previous.pose.y, abs=1e-6)
        assert samples[-1][0] == pytest.approx(step.pose.x, abs=1e-6)
        assert samples[-1][1] == pytest.approx(step.pose.y, abs=1e-6)
        assert step.cost > 0 and math.isfinite(step.cost)
