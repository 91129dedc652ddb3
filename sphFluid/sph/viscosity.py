# -- SPH Viscosity Models -- #

'''
Dissipation models. Exactly one runs per step, chosen at configuration.

Monaghan artificial viscosity accumulates a pairwise viscous force
that the integrator consumes. It uses the velocity-dependent Pi_ij
term in place of the velocity-independent alpha * (1 - r/h) form,
which cannot dissipate relative motion.

XSPH instead smooths velocities in place: it applies gravity first,
then pulls every particle's velocity toward the kernel-weighted
velocities of its neighbors, so in that path gravity belongs to this
stage rather than the integrator.

Both models read neighbor velocities from a snapshot taken before the
sweep and commit all updates afterwards, so the result does not depend
on particle order. Boundary samples take part as neighbors with zero
velocity and the rest density.

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Monaghan (1989) -- On the problem of penetration in particle methods
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from sphFluid import constants as const
from sphFluid.sph.errors import UnsupportedConfigurationError
from sphFluid.sph.kernels import SphKernel
from sphFluid.sph.neighborhood import Neighborhood
from sphFluid.sph.particles import BoundarySamples, FluidParticles
from sphFluid.sph.protocols import SimulationConfig, ViscosityKind


######################################################################
# -- Viscosity Model Protocol -- #
######################################################################

class ViscosityModel(Protocol):
    '''Protocol for viscosity models.'''

    @property
    def appliesGravity(self) -> bool:
        '''True when this stage adds gravity itself.'''
        ...

    @property
    def producesForce(self) -> bool:
        '''True when the result lands in particles.viscousForces.'''
        ...

    def apply(
        self,
        particles: FluidParticles,
        boundary: BoundarySamples,
        neighborhood: Neighborhood,
        dt: float,
    ) -> None:
        '''Run the model over neighbor pairs that exclude self pairs.'''
        ...


######################################################################
# -- Monaghan Artificial Viscosity -- #
######################################################################

class MonaghanViscosity:
    '''
    Monaghan (1992) artificial viscosity as a pairwise force.

        Pi_ij = -alpha * c * mu_ij / rho_avg    if v_ij . x_ij < 0
                0                               otherwise
        mu_ij = h_s * (v_ij . x_ij) / (|x_ij|^2 + 0.01 * h_s^2)

        F_i = -m_i * sum_j m_j * Pi_ij * grad_W_ij

    where h_s = h/2 is the smoothing length and c the numerical speed
    of sound of the equation of state. Only approaching pairs dissipate.

    Parameters:
    -----------
    alpha : float
        Viscosity coefficient
    kernelRadius : float
        Support radius h
    restDensity : float
        Density assigned to boundary neighbors
    speedOfSound : float
        Numerical speed of sound c
    kernel : SphKernel
        Smoothing kernel
    '''

    appliesGravity = False
    producesForce = True

    def __init__(
        self,
        alpha: float,
        kernelRadius: float,
        restDensity: float,
        speedOfSound: float,
        kernel: SphKernel,
    ) -> None:
        self._alpha = alpha
        self._kernelRadius = kernelRadius
        self._restDensity = restDensity
        self._speedOfSound = speedOfSound
        self._kernel = kernel

    def apply(
        self,
        particles: FluidParticles,
        boundary: BoundarySamples,
        neighborhood: Neighborhood,
        dt: float,
    ) -> None:
        '''
        Accumulate viscous forces into particles.viscousForces.

        Parameters:
        -----------
        particles : FluidParticles
            Particles with current velocities and densities
        boundary : BoundarySamples
            Boundary samples (masses)
        neighborhood : Neighborhood
            Neighbor pairs without self pairs
        dt : float
            Time step (unused; the force is integrated later)
        '''
        if len(neighborhood) == 0:
            return

        h = self._kernelRadius
        hs = 0.5 * h
        iIdx = neighborhood.particleIndices
        dr = neighborhood.displacements
        dist = neighborhood.distances

        dv = particles.velocities[iIdx] - neighborhood.neighborVelocities(particles)
        vDotR = np.einsum('ij,ij->i', dv, dr)

        # eta^2 term to prevent singularity at r = 0
        etaSq = const.monaghanEtaFactor * hs * hs
        mu = hs * vDotR / (dist * dist + etaSq)

        rhoAvg = 0.5 * (particles.densities[iIdx]
                        + neighborhood.neighborDensities(particles, self._restDensity))

        piij = np.where(
            vDotR < 0.0,
            (-self._alpha * self._speedOfSound * mu) / rhoAvg,
            0.0,
        )

        gradW = self._kernel.gradientBatch(dr, dist, h)
        masses = neighborhood.neighborMasses(particles, boundary)
        accelContrib = -(masses * piij)[:, np.newaxis] * gradW

        forces = np.zeros_like(particles.velocities)
        np.add.at(forces, iIdx, accelContrib)
        particles.viscousForces += particles.referenceMass * forces


######################################################################
# -- XSPH Velocity Smoothing -- #
######################################################################

class XsphViscosity:
    '''
    XSPH velocity smoothing (Monaghan 1989).

        v_i += g * dt
        v_i += epsilon * sum_j (m_j / rho_j) * W_ij * (v_j - v_i)

    Parameters:
    -----------
    epsilon : float
        Smoothing coefficient
    kernelRadius : float
        Support radius h
    restDensity : float
        Density assigned to boundary neighbors
    gravity : np.ndarray
        Gravity vector, shape (3,)
    kernel : SphKernel
        Smoothing kernel
    '''

    appliesGravity = True
    producesForce = False

    def __init__(
        self,
        epsilon: float,
        kernelRadius: float,
        restDensity: float,
        gravity: np.ndarray,
        kernel: SphKernel,
    ) -> None:
        self._epsilon = epsilon
        self._kernelRadius = kernelRadius
        self._restDensity = restDensity
        self._gravity = np.asarray(gravity, dtype=float)
        self._kernel = kernel

    def apply(
        self,
        particles: FluidParticles,
        boundary: BoundarySamples,
        neighborhood: Neighborhood,
        dt: float,
    ) -> None:
        '''
        Apply gravity, then smooth velocities toward the neighbors'.

        Parameters:
        -----------
        particles : FluidParticles
            Particles whose velocities are updated in place
        boundary : BoundarySamples
            Boundary samples (masses)
        neighborhood : Neighborhood
            Neighbor pairs without self pairs
        dt : float
            Time step for the gravity update
        '''
        particles.velocities += self._gravity * dt

        if len(neighborhood) == 0:
            return

        iIdx = neighborhood.particleIndices
        wij = self._kernel.evaluateBatch(neighborhood.distances, self._kernelRadius)
        masses = neighborhood.neighborMasses(particles, boundary)
        densities = neighborhood.neighborDensities(particles, self._restDensity)
        weight = (masses / densities) * wij

        # Velocity difference v_j - v_i, read from the post-gravity snapshot
        dvJMinusI = neighborhood.neighborVelocities(particles) - particles.velocities[iIdx]

        correction = np.zeros_like(particles.velocities)
        np.add.at(correction, iIdx, weight[:, np.newaxis] * dvJMinusI)

        particles.velocities += self._epsilon * correction


######################################################################
# -- Model Factory -- #
######################################################################

def createViscosityModel(config: SimulationConfig, kernel: SphKernel) -> ViscosityModel:
    '''
    Create the viscosity model named by the configuration.

    Parameters:
    -----------
    config : SimulationConfig
        Validated configuration
    kernel : SphKernel
        Smoothing kernel

    Returns:
    --------
    ViscosityModel : Model instance
    '''
    if config.viscosity == ViscosityKind.MONAGHAN:
        return MonaghanViscosity(
            alpha=config.monaghanViscosity,
            kernelRadius=config.kernelRadius,
            restDensity=config.restDensity,
            speedOfSound=config.speedOfSound,
            kernel=kernel,
        )
    elif config.viscosity == ViscosityKind.XSPH:
        return XsphViscosity(
            epsilon=config.xsphViscosity,
            kernelRadius=config.kernelRadius,
            restDensity=config.restDensity,
            gravity=config.gravity,
            kernel=kernel,
        )
    else:
        raise UnsupportedConfigurationError(f'Unknown viscosity model: {config.viscosity!r}')
