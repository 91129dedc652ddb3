# -- Fluid Block Scenario -- #

'''
A block of fluid released inside the closed cubic container.

The block sits centered above the floor and collapses under gravity
against the boundary samples (or the clamping box), which is the
standard check that the walls hold and the density stays positive.

The scenario creates:
1. The option dictionary for the container, kernel and solver choices
2. A FluidSimulation configured with those options
3. The jittered fluid lattice and calibrated boundary (via reset())
'''

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sphFluid import constants as const
from sphFluid.sph.fluidSimulation import FluidSimulation


######################################################################
# -- Fluid Block Configuration -- #
######################################################################

@dataclass
class FluidBlockConfig:
    '''
    Configuration for a fluid block scenario.

    Parameters:
    -----------
    containerSize : float
        Container edge length
    kernelRadius : float
        Kernel support radius h
    particleDistance : float
        Lattice spacing d
    pressureStiffness : float
        Equation of state stiffness k
    viscosity : str
        Viscosity model, "XSPH" or "MONAGHAN"
    xsphViscosity : float
        XSPH smoothing coefficient
    monaghanViscosity : float
        Monaghan viscosity coefficient
    boundaryMode : str
        "PARTICLES" or "BOX"
    blockHalfWidth : float | None
        Half width of the block in x and z (None: container default)
    blockHeight : float | None
        Height of the block (None: container default)
    timeStep : float
        Time step for the runner [s]
    nSteps : int
        Number of steps for the runner
    outputInterval : int
        Steps between exported frames
    '''

    containerSize: float = const.containerSize
    kernelRadius: float = const.kernelRadius
    particleDistance: float = const.particleDistance
    pressureStiffness: float = const.pressureStiffness
    viscosity: str = 'XSPH'
    xsphViscosity: float = const.xsphViscosity
    monaghanViscosity: float = const.monaghanViscosity
    boundaryMode: str = 'PARTICLES'
    blockHalfWidth: float | None = None
    blockHeight: float | None = None
    timeStep: float = 0.0007
    nSteps: int = 100
    outputInterval: int = 10

    @classmethod
    def small(cls) -> FluidBlockConfig:
        '''
        Small container for quick runs.

        ~450 fluid particles, ~2400 boundary samples, runs in seconds.
        '''
        return cls(
            containerSize=400.0,
            blockHalfWidth=60.0,
            blockHeight=160.0,
            nSteps=200,
        )

    @classmethod
    def standard(cls) -> FluidBlockConfig:
        '''
        Full size container with the default fluid block.

        ~9000 fluid particles, ~60000 boundary samples.
        '''
        return cls()

    def fluidRegion(self) -> tuple[list[float], list[float]] | None:
        '''Block corners, or None to use the container default.'''
        if self.blockHalfWidth is None or self.blockHeight is None:
            return None
        floor = -0.5 * self.containerSize + self.particleDistance
        return (
            [-self.blockHalfWidth, floor, -self.blockHalfWidth],
            [self.blockHalfWidth, floor + self.blockHeight, self.blockHalfWidth],
        )

    def toOptions(self) -> dict[str, Any]:
        '''Simulation options for this scenario.'''
        options: dict[str, Any] = {
            'kernel_radius': self.kernelRadius,
            'particle_distance': self.particleDistance,
            'container_size': self.containerSize,
            'pressure_solver': 'EOS',
            'pressure_stiffness': self.pressureStiffness,
            'viscosity': self.viscosity,
            'xsph_viscosity': self.xsphViscosity,
            'monaghan_viscosity': self.monaghanViscosity,
            'boundary_mode': self.boundaryMode,
        }
        region = self.fluidRegion()
        if region is not None:
            options['fluid_region'] = region
        return options


######################################################################
# -- Scenario Creation -- #
######################################################################

def createFluidBlock(blockConfig: FluidBlockConfig) -> FluidSimulation:
    '''
    Create a running fluid block simulation.

    Parameters:
    -----------
    blockConfig : FluidBlockConfig
        Scenario configuration

    Returns:
    --------
    FluidSimulation : Calibrated, populated simulation ready to step
    '''
    simulation = FluidSimulation()
    simulation.configure(blockConfig.toOptions())
    simulation.reset()
    return simulation
