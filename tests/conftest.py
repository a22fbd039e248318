import math

import pytest

from mpc_tracking.config import MPCConfig
from mpc_tracking.layout import build_layout


@pytest.fixture
def config():
    # generous time budget so slow machines do not time out
    return MPCConfig(max_cpu_time=10.0)


@pytest.fixture
def layout(config):
    return build_layout(config.horizon)


@pytest.fixture
def coeffs():
    return [1.5, 0.1, -0.02, 0.0005]


@pytest.fixture
def state(coeffs):
    # vehicle at the origin, heading along x, cte/epsi consistent with the path
    return [0.0, 0.0, 0.0, 10.0, coeffs[0], -math.atan(coeffs[1])]
