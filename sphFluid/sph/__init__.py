# -- SPH Engine Package -- #

'''
Core Smoothed Particle Hydrodynamics (SPH) engine.

Provides the kernel, spatial hash grid, particle containers, mass
calibration, density, pressure, viscosity and time integration stages,
boundary handling, and the FluidSimulation that sequences them.
'''

from sphFluid.sph.errors import (
    SphError,
    InvalidConfigurationError,
    UnsupportedConfigurationError,
    NumericalInstabilityError,
    SimulationStateError,
    InvalidTimeStepError,
)
from sphFluid.sph.protocols import (
    SimulationConfig,
    SimulationState,
    PressureSolverKind,
    ViscosityKind,
    BoundaryMode,
)
from sphFluid.sph.kernels import CubicSplineKernel, kernelValue, kernelGradient
from sphFluid.sph.neighborSearch import SpatialHashGrid, NeighborPairs
from sphFluid.sph.particles import FluidParticles, BoundarySamples
from sphFluid.sph.fluidSimulation import FluidSimulation, SimulationStatus
