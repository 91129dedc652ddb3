# -- Shared Test Fixtures -- #

import numpy as np
import pytest

from sphFluid.sph.kernels import CubicSplineKernel
from sphFluid.sph.protocols import SimulationConfig


def pytest_configure(config):
    config.addinivalue_line(
        'markers',
        'slow: full size scenarios that take tens of seconds',
    )


@pytest.fixture
def kernel():
    '''Cubic spline kernel shared by the stage tests.'''
    return CubicSplineKernel()


@pytest.fixture
def latticeConfig():
    '''h = 2d on a small box container with no gravity or jitter.'''
    return SimulationConfig(
        kernelRadius=40.0,
        particleDistance=20.0,
        containerSize=400.0,
        gravity=np.zeros(3),
        jitter=0.0,
    ).validate()


@pytest.fixture
def restLatticeOptions():
    '''Options for a resting 9x9x9 lattice in box mode.'''
    return {
        'kernel_radius': 40.0,
        'particle_distance': 20.0,
        'container_size': 400.0,
        'gravity': [0.0, 0.0, 0.0],
        'boundary_mode': 'BOX',
        'fluid_region': ([-80.0, -80.0, -80.0], [80.0, 80.0, 80.0]),
        'jitter': 0.0,
    }
