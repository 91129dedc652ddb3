# -- SPH Boundary Conditions -- #

'''
Container boundaries for the SPH fluid.

Two mutually exclusive models are available:

- Boundary samples (default): a single layer of fixed point masses on
  all six faces of the cubic container. Samples join the density sum
  with calibrated masses, so fluid approaching a wall is compressed and
  pushed back by pressure. No collision response is applied.
- Simple box: no samples; after integration, particles outside the
  container are clamped back onto the face and the offending velocity
  component is reflected and damped.

References:
-----------
Akinci et al. (2012) -- Versatile rigid-fluid coupling for
    incompressible SPH
Monaghan & Kos (1999) -- Solitary waves on a Cretan beach
'''

from __future__ import annotations

import logging

import numpy as np

from sphFluid.sph.kernels import SphKernel
from sphFluid.sph.massCalibration import calibrateBoundaryMasses
from sphFluid.sph.particles import BoundarySamples, FluidParticles
from sphFluid.sph.protocols import SimulationConfig

logger = logging.getLogger(__name__)


class BoundaryHandler:
    '''
    Generates the boundary sample lattice of a cubic container.

    Parameters:
    -----------
    containerMin : np.ndarray
        Lower corner of the container
    containerMax : np.ndarray
        Upper corner of the container
    spacing : float
        Target sample spacing (matches the fluid lattice spacing)
    '''

    def __init__(
        self,
        containerMin: np.ndarray,
        containerMax: np.ndarray,
        spacing: float,
    ) -> None:
        self._containerMin = np.asarray(containerMin, dtype=float).copy()
        self._containerMax = np.asarray(containerMax, dtype=float).copy()
        self._spacing = spacing

    def generateBoundaryPositions(self) -> np.ndarray:
        '''
        Positions of the samples covering the six container faces.

        Each axis is split into round(extent / spacing) equal steps, so
        samples sit exactly on the faces, edges and corners. Every
        surface lattice point appears once.

        Returns:
        --------
        np.ndarray : Sample positions, shape (M, 3)
        '''
        extent = self._containerMax - self._containerMin
        nPoints = [max(2, int(round(extent[d] / self._spacing)) + 1) for d in range(3)]
        steps = [extent[d] / (nPoints[d] - 1) for d in range(3)]

        full = [np.arange(n) for n in nPoints]
        interior = [np.arange(1, n - 1) for n in nPoints]

        blocks: list[np.ndarray] = []

        # ----------------------------------------------------------------
        # x faces: whole yz plane
        # ----------------------------------------------------------------
        for end in (0, nPoints[0] - 1):
            jj, kk = np.meshgrid(full[1], full[2], indexing='ij')
            ii = np.full_like(jj, end)
            blocks.append(np.column_stack([ii.ravel(), jj.ravel(), kk.ravel()]))

        # ----------------------------------------------------------------
        # y faces (floor and ceiling): interior x, whole z
        # ----------------------------------------------------------------
        for end in (0, nPoints[1] - 1):
            ii, kk = np.meshgrid(interior[0], full[2], indexing='ij')
            jj = np.full_like(ii, end)
            blocks.append(np.column_stack([ii.ravel(), jj.ravel(), kk.ravel()]))

        # ----------------------------------------------------------------
        # z faces: interior x and y (edges already covered)
        # ----------------------------------------------------------------
        for end in (0, nPoints[2] - 1):
            ii, jj = np.meshgrid(interior[0], interior[1], indexing='ij')
            kk = np.full_like(ii, end)
            blocks.append(np.column_stack([ii.ravel(), jj.ravel(), kk.ravel()]))

        indices = np.vstack(blocks).astype(float)
        return self._containerMin + indices * np.array(steps)

    def createBoundary(self, config: SimulationConfig, kernel: SphKernel) -> BoundarySamples:
        '''
        Generate the samples and calibrate their masses.

        Parameters:
        -----------
        config : SimulationConfig
            Supplies h, d and rho_0 for the calibration
        kernel : SphKernel
            Smoothing kernel

        Returns:
        --------
        BoundarySamples : Calibrated boundary samples
        '''
        positions = self.generateBoundaryPositions()
        masses = calibrateBoundaryMasses(positions, config, kernel)
        logger.debug('Generated %d boundary samples', len(positions))
        return BoundarySamples(positions=positions, masses=masses)


class BoxBoundary:
    '''
    Simple box containment by clamping and damped reflection.

    Parameters:
    -----------
    containerMin : np.ndarray
        Lower corner of the container
    containerMax : np.ndarray
        Upper corner of the container
    damping : float
        Fraction of the normal speed kept on reflection
    '''

    def __init__(
        self,
        containerMin: np.ndarray,
        containerMax: np.ndarray,
        damping: float,
    ) -> None:
        self._containerMin = np.asarray(containerMin, dtype=float).copy()
        self._containerMax = np.asarray(containerMax, dtype=float).copy()
        self._damping = damping

    def enforceBoundary(self, particles: FluidParticles) -> None:
        '''
        Clamp positions into the container and reflect wall-bound velocities.

        Parameters:
        -----------
        particles : FluidParticles
            The particles to contain
        '''
        positions = particles.positions
        velocities = particles.velocities

        for d in range(3):
            belowMin = positions[:, d] < self._containerMin[d]
            positions[belowMin, d] = self._containerMin[d]
            velocities[belowMin, d] = np.abs(velocities[belowMin, d]) * self._damping

            aboveMax = positions[:, d] > self._containerMax[d]
            positions[aboveMax, d] = self._containerMax[d]
            velocities[aboveMax, d] = -np.abs(velocities[aboveMax, d]) * self._damping
