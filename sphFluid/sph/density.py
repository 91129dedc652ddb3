# -- SPH Density Summation -- #

'''
Per-step density by SPH summation.

    rho_i = sum_j m_j * W(|x_i - x_j|, h)

over every entity within the support radius, the particle itself
included (W(0, h) > 0), so a density is never below the self term
m * W(0, h). Boundary samples contribute with their calibrated masses.
'''

from __future__ import annotations

import numpy as np

from sphFluid.sph.kernels import SphKernel
from sphFluid.sph.neighborhood import Neighborhood
from sphFluid.sph.particles import BoundarySamples, FluidParticles


def computeDensities(
    particles: FluidParticles,
    boundary: BoundarySamples,
    neighborhood: Neighborhood,
    kernelRadius: float,
    kernel: SphKernel,
) -> None:
    '''
    Overwrite particles.densities with the SPH density sum.

    Parameters:
    -----------
    particles : FluidParticles
        Particles whose densities are recomputed
    boundary : BoundarySamples
        Boundary samples (masses)
    neighborhood : Neighborhood
        Neighbor pairs including the self pairs
    kernelRadius : float
        Support radius h
    kernel : SphKernel
        Smoothing kernel
    '''
    wij = kernel.evaluateBatch(neighborhood.distances, kernelRadius)
    masses = neighborhood.neighborMasses(particles, boundary)

    particles.densities[:] = np.bincount(
        neighborhood.particleIndices,
        weights=masses * wij,
        minlength=particles.nParticles,
    )
