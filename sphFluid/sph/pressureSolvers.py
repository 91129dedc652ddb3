# -- SPH Pressure Solvers -- #

'''
Pressure solvers: map the current densities to particle pressures.

The solver is picked once, when the simulation is configured, and the
rest of the step only talks to the PressureSolver protocol. Only the
explicit equation of state exists today; the implicit incompressible
solver selector is recognized but rejected at configuration time.

References:
-----------
Monaghan (1994) -- Simulating free surface flows with SPH
Batchelor (1967) -- An introduction to fluid dynamics
Ihmsen et al. (2014) -- Implicit Incompressible SPH
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from sphFluid import constants as const
from sphFluid.sph.errors import NumericalInstabilityError, UnsupportedConfigurationError
from sphFluid.sph.particles import FluidParticles
from sphFluid.sph.protocols import PressureSolverKind, SimulationConfig


######################################################################
# -- Pressure Solver Protocol -- #
######################################################################

class PressureSolver(Protocol):
    '''Protocol for pressure solvers.'''

    def computePressure(self, particles: FluidParticles) -> None:
        '''Overwrite particles.pressures from particles.densities.'''
        ...


def checkDensities(particles: FluidParticles) -> None:
    '''
    Fail fast on densities a pressure solver cannot divide by.

    Raises:
    -------
    NumericalInstabilityError : A density is <= 0 or not finite
    '''
    densities = particles.densities
    bad = ~np.isfinite(densities) | (densities <= 0.0)
    if np.any(bad):
        first = int(np.flatnonzero(bad)[0])
        raise NumericalInstabilityError(
            f'{int(np.count_nonzero(bad))} particle(s) with invalid density '
            f'(first: particle {first}, density {densities[first]!r})'
        )


######################################################################
# -- Tait Equation of State -- #
######################################################################

class EquationOfStateSolver:
    '''
    Tait-like equation of state.

    p = k * ((rho / rho_0)^gamma - 1),  gamma = 7

    The steep exponent turns small compressions into large pressures,
    keeping density variations small. Under-dense particles get a
    negative pressure, which pulls neighbors together; clampNegative
    cuts it to zero instead.

    Parameters:
    -----------
    restDensity : float
        Rest density rho_0
    stiffness : float
        Stiffness constant k
    clampNegative : bool
        Clamp negative pressures to zero
    '''

    def __init__(
        self,
        restDensity: float,
        stiffness: float,
        clampNegative: bool = True,
    ) -> None:
        self._restDensity = restDensity
        self._stiffness = stiffness
        self._clampNegative = clampNegative

    @property
    def stiffness(self) -> float:
        '''Stiffness constant k.'''
        return self._stiffness

    def computePressure(self, particles: FluidParticles) -> None:
        '''
        Compute pressure from density for every particle.

        Parameters:
        -----------
        particles : FluidParticles
            Particles with up-to-date densities
        '''
        checkDensities(particles)

        densityRatio = particles.densities / self._restDensity
        particles.pressures[:] = self._stiffness * (densityRatio ** const.gamma - 1.0)

        if self._clampNegative:
            np.maximum(particles.pressures, 0.0, out=particles.pressures)


######################################################################
# -- Solver Factory -- #
######################################################################

def createPressureSolver(config: SimulationConfig) -> PressureSolver:
    '''
    Create the pressure solver named by the configuration.

    Parameters:
    -----------
    config : SimulationConfig
        Validated configuration

    Returns:
    --------
    PressureSolver : Solver instance

    Raises:
    -------
    UnsupportedConfigurationError : Selector is reserved or unknown
    '''
    if config.pressureSolver == PressureSolverKind.EOS:
        return EquationOfStateSolver(
            restDensity=config.restDensity,
            stiffness=config.pressureStiffness,
            clampNegative=config.clampNegativePressure,
        )
    elif config.pressureSolver == PressureSolverKind.IISPH:
        raise UnsupportedConfigurationError(
            'pressure_solver "IISPH" is reserved and not implemented; use "EOS"'
        )
    else:
        raise UnsupportedConfigurationError(
            f'Unknown pressure solver: {config.pressureSolver!r}'
        )
