# -- SPH Mass Calibration -- #

'''
One-time mass calibration for fluid particles and boundary samples.

Particle mass is chosen so that a particle embedded in an unbounded
regular lattice of spacing d reports exactly the rest density:

    m = rho_0 / sum_k W(|x_k|, h)

over the lattice points x_k within the kernel support.

Boundary masses follow the same idea for the walls. The lattice
quadrature factor

    gamma = d^3 * sum_k W(|x_k|, h)

measures how well the fluid lattice integrates the kernel (close to 1),
and each sample's mass divides rho_0 * gamma by the kernel sum over its
own wall neighborhood:

    m_b = rho_0 * gamma / sum_b' W(|x_b - x_b'|, h)

Samples on the edges and corners of a convex container see fewer wall
neighbors than samples in the middle of a face, so they come out heavier.

References:
-----------
Akinci et al. (2012) -- Versatile rigid-fluid coupling for
    incompressible SPH
'''

from __future__ import annotations

import logging
import math

import numpy as np

from sphFluid.sph.kernels import CubicSplineKernel, SphKernel
from sphFluid.sph.neighborSearch import SpatialHashGrid
from sphFluid.sph.protocols import SimulationConfig

logger = logging.getLogger(__name__)


def virtualLatticeOffsets(kernelRadius: float, particleDistance: float) -> np.ndarray:
    '''
    Offsets of a cubic lattice of spacing d reaching past the support.

    Uses N = ceil(h / d) lattice steps in each direction, i.e. the
    (2N+1)^3 block centered on the origin (origin included).

    Parameters:
    -----------
    kernelRadius : float
        Support radius h
    particleDistance : float
        Lattice spacing d

    Returns:
    --------
    np.ndarray : Lattice offsets, shape ((2N+1)^3, 3)
    '''
    nSteps = int(math.ceil(kernelRadius / particleDistance))
    span = np.arange(-nSteps, nSteps + 1) * particleDistance
    xx, yy, zz = np.meshgrid(span, span, span, indexing='ij')
    return np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])


def latticeKernelSum(
    kernelRadius: float,
    particleDistance: float,
    kernel: SphKernel | None = None,
) -> float:
    '''
    Sum of W over the virtual lattice around a point, self included.

    Parameters:
    -----------
    kernelRadius : float
        Support radius h
    particleDistance : float
        Lattice spacing d
    kernel : SphKernel | None
        Smoothing kernel (defaults to CubicSplineKernel)

    Returns:
    --------
    float : sum_k W(|x_k|, h)
    '''
    kernel = kernel or CubicSplineKernel()
    offsets = virtualLatticeOffsets(kernelRadius, particleDistance)
    distances = np.linalg.norm(offsets, axis=1)
    return float(np.sum(kernel.evaluateBatch(distances, kernelRadius)))


def calibrateParticleMass(config: SimulationConfig, kernel: SphKernel | None = None) -> float:
    '''
    Mass that makes a resting lattice of spacing d report rho_0.

    Parameters:
    -----------
    config : SimulationConfig
        Supplies h, d and rho_0
    kernel : SphKernel | None
        Smoothing kernel (defaults to CubicSplineKernel)

    Returns:
    --------
    float : Particle mass shared by every fluid particle
    '''
    kernelSum = latticeKernelSum(config.kernelRadius, config.particleDistance, kernel)
    mass = config.restDensity / kernelSum
    logger.info(
        'Calibrated particle mass %.6g (h=%g, d=%g, rho0=%g, kernel sum %.6g)',
        mass, config.kernelRadius, config.particleDistance, config.restDensity, kernelSum,
    )
    return mass


def calibrateBoundaryMasses(
    boundaryPositions: np.ndarray,
    config: SimulationConfig,
    kernel: SphKernel | None = None,
) -> np.ndarray:
    '''
    Per-sample masses for a fixed lattice of boundary samples.

    Parameters:
    -----------
    boundaryPositions : np.ndarray
        Boundary sample positions, shape (M, 3)
    config : SimulationConfig
        Supplies h, d and rho_0
    kernel : SphKernel | None
        Smoothing kernel (defaults to CubicSplineKernel)

    Returns:
    --------
    np.ndarray : Boundary sample masses, shape (M,)
    '''
    kernel = kernel or CubicSplineKernel()
    boundaryPositions = np.asarray(boundaryPositions, dtype=float).reshape(-1, 3)
    nSamples = len(boundaryPositions)
    if nSamples == 0:
        return np.zeros(0)

    h = config.kernelRadius
    d = config.particleDistance
    gamma = d ** 3 * latticeKernelSum(h, d, kernel)

    grid = SpatialHashGrid(cellSize=h)
    grid.build(boundaryPositions)
    pairs = grid.queryPairs(boundaryPositions, h)

    # Each sample finds itself at distance 0, so every sum is >= W(0, h)
    wallSums = np.bincount(
        pairs.queryIndices,
        weights=kernel.evaluateBatch(pairs.distances, h),
        minlength=nSamples,
    )
    masses = config.restDensity * gamma / wallSums

    logger.info(
        'Calibrated %d boundary masses in [%.6g, %.6g] (gamma=%.6g)',
        nSamples, float(masses.min()), float(masses.max()), gamma,
    )
    return masses
