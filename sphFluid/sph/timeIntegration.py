# -- SPH Time Integration -- #

'''
Explicit time integration of the fluid particles.

The pressure acceleration uses the symmetric SPH gradient, which
conserves momentum between particle pairs:

    a_i = -sum_j m_j * (p_i / rho_i^2 + p_j / rho_j^2) * grad_W_ij

Boundary samples mirror the particle's own pressure and density, so a
compressed particle is pushed away from the wall with twice its own
pressure term.

The update is Symplectic (semi-implicit) Euler:

    v(t+dt) = v(t) + a(t) * dt      (kick)
    x(t+dt) = x(t) + v(t+dt) * dt   (drift)

References:
-----------
Monaghan (2005) -- Smoothed Particle Hydrodynamics
Hairer et al. (2003) -- Geometric Numerical Integration
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from sphFluid.sph.errors import NumericalInstabilityError
from sphFluid.sph.kernels import SphKernel
from sphFluid.sph.neighborhood import Neighborhood
from sphFluid.sph.particles import BoundarySamples, FluidParticles


######################################################################
# -- Time Integrator Protocol -- #
######################################################################

class TimeIntegrator(Protocol):
    '''Protocol for time integration schemes.'''

    def integrate(
        self,
        particles: FluidParticles,
        boundary: BoundarySamples,
        neighborhood: Neighborhood,
        dt: float,
        gravity: np.ndarray | None = None,
        applyViscousForce: bool = False,
    ) -> None:
        '''Advance the fluid particles by one time step.'''
        ...


######################################################################
# -- Symplectic Euler Integrator -- #
######################################################################

class SymplecticEuler:
    '''
    Symplectic Euler integrator driven by SPH pressure forces.

    Parameters:
    -----------
    kernelRadius : float
        Support radius h
    kernel : SphKernel
        Smoothing kernel
    '''

    def __init__(self, kernelRadius: float, kernel: SphKernel) -> None:
        self._kernelRadius = kernelRadius
        self._kernel = kernel

    def pressureAccelerations(
        self,
        particles: FluidParticles,
        boundary: BoundarySamples,
        neighborhood: Neighborhood,
    ) -> np.ndarray:
        '''
        Pressure acceleration of every particle.

        Parameters:
        -----------
        particles : FluidParticles
            Particles with up-to-date densities and pressures
        boundary : BoundarySamples
            Boundary samples (masses)
        neighborhood : Neighborhood
            Neighbor pairs without self pairs

        Returns:
        --------
        np.ndarray : Accelerations, shape (N, 3)
        '''
        accelerations = np.zeros_like(particles.positions)
        if len(neighborhood) == 0:
            return accelerations

        iIdx = neighborhood.particleIndices
        fluid = neighborhood.isFluidNeighbor
        neighborIds = neighborhood.neighborIds

        pressureTermI = particles.pressures[iIdx] / (particles.densities[iIdx] ** 2)

        # Boundary neighbors mirror particle i's own pressure term
        pressureTermJ = pressureTermI.copy()
        fluidIds = neighborIds[fluid]
        pressureTermJ[fluid] = particles.pressures[fluidIds] / (particles.densities[fluidIds] ** 2)

        masses = neighborhood.neighborMasses(particles, boundary)
        gradW = self._kernel.gradientBatch(
            neighborhood.displacements, neighborhood.distances, self._kernelRadius
        )

        accelContrib = -(masses * (pressureTermI + pressureTermJ))[:, np.newaxis] * gradW
        np.add.at(accelerations, iIdx, accelContrib)
        return accelerations

    def integrate(
        self,
        particles: FluidParticles,
        boundary: BoundarySamples,
        neighborhood: Neighborhood,
        dt: float,
        gravity: np.ndarray | None = None,
        applyViscousForce: bool = False,
    ) -> None:
        '''
        Advance every fluid particle by one time step.

        Parameters:
        -----------
        particles : FluidParticles
            Particle system to advance
        boundary : BoundarySamples
            Boundary samples (masses)
        neighborhood : Neighborhood
            Neighbor pairs without self pairs
        dt : float
            Time step size [s]
        gravity : np.ndarray | None
            Gravity to add here (None when another stage applied it)
        applyViscousForce : bool
            Add and then clear the accumulated viscous forces
        '''
        mass = particles.referenceMass
        pressureForces = mass * self.pressureAccelerations(particles, boundary, neighborhood)

        # Kick: update velocities from accumulated forces
        particles.velocities += (pressureForces / mass) * dt
        if applyViscousForce:
            particles.velocities += (particles.viscousForces / mass) * dt
            particles.viscousForces[:] = 0.0
        if gravity is not None:
            particles.velocities += np.asarray(gravity, dtype=float) * dt

        # Drift: update positions from (new) velocities
        particles.positions += particles.velocities * dt

        if not (np.all(np.isfinite(particles.positions)) and np.all(np.isfinite(particles.velocities))):
            raise NumericalInstabilityError(
                'Non-finite particle position or velocity after integration'
            )
