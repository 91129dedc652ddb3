# -- sphFluid Package -- #

'''
Weakly compressible Smoothed Particle Hydrodynamics (SPH) fluid in a
closed cubic container.

Particles are advanced with a Tait equation of state, Monaghan or XSPH
viscosity and Symplectic Euler integration, contained by calibrated
boundary samples or a simple clamping box.
'''

__version__ = '0.1.0'

from sphFluid.sph.fluidSimulation import FluidSimulation, SimulationStatus
from sphFluid.sph.protocols import SimulationConfig, SimulationState
from sphFluid.scenarios.fluidBlock import FluidBlockConfig, createFluidBlock
from sphFluid.export.frameExporter import FrameExporter
