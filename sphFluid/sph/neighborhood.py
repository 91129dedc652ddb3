# -- Per-Step Particle Neighborhoods -- #

'''
Neighbor lists of the fluid particles for one simulation step.

The spatial index holds fluid particles (ids 0..N-1) and boundary
samples (ids N..N+M-1). A Neighborhood is the result of querying it
around every fluid particle, plus the lookups each stage needs to turn
a neighbor id into a mass, density, pressure or velocity. Boundary
samples have no density or velocity of their own: they stand in with
the rest density and zero velocity.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from sphFluid.sph.neighborSearch import NeighborPairs, NeighborSearch
from sphFluid.sph.particles import BoundarySamples, FluidParticles


@dataclass
class Neighborhood:
    '''
    Neighbor pairs (i, j) of every fluid particle i.

    Parameters:
    -----------
    pairs : NeighborPairs
        queryIndices are particle rows i, entityIds are neighbor ids j
    nParticles : int
        Number of fluid particles (first boundary id)
    '''

    pairs: NeighborPairs
    nParticles: int

    @property
    def particleIndices(self) -> np.ndarray:
        '''Row i of the particle owning each pair.'''
        return self.pairs.queryIndices

    @property
    def neighborIds(self) -> np.ndarray:
        '''Entity id j of the neighbor in each pair.'''
        return self.pairs.entityIds

    @property
    def displacements(self) -> np.ndarray:
        '''x_i - x_j for each pair, shape (P, 3).'''
        return self.pairs.displacements

    @property
    def distances(self) -> np.ndarray:
        '''|x_i - x_j| for each pair.'''
        return self.pairs.distances

    @property
    def isFluidNeighbor(self) -> np.ndarray:
        '''True where the neighbor is a fluid particle.'''
        return self.pairs.entityIds < self.nParticles

    def __len__(self) -> int:
        return len(self.pairs)

    def withoutSelf(self) -> Neighborhood:
        '''Same pairs minus each particle's pairing with itself.'''
        isSelf = self.pairs.entityIds == self.pairs.queryIndices
        return Neighborhood(pairs=self.pairs.select(~isSelf), nParticles=self.nParticles)

    ######################################################################
    # -- Per-Pair Neighbor Lookups -- #
    ######################################################################

    def _gather(self, fluidValues: np.ndarray, boundaryValue) -> np.ndarray:
        '''Neighbor values: fluidValues[j] for particles, boundaryValue for samples.'''
        fluid = self.isFluidNeighbor
        ids = self.pairs.entityIds
        out = np.empty((len(ids),) + fluidValues.shape[1:], dtype=float)
        out[fluid] = fluidValues[ids[fluid]]
        out[~fluid] = boundaryValue
        return out

    def neighborMasses(self, particles: FluidParticles, boundary: BoundarySamples) -> np.ndarray:
        '''m_j: the shared particle mass or the sample's calibrated mass.'''
        fluid = self.isFluidNeighbor
        masses = np.full(len(self), particles.referenceMass)
        boundaryIds = self.pairs.entityIds[~fluid] - self.nParticles
        masses[~fluid] = boundary.masses[boundaryIds]
        return masses

    def neighborDensities(self, particles: FluidParticles, restDensity: float) -> np.ndarray:
        '''rho_j, with rho_0 for boundary samples.'''
        return self._gather(particles.densities, restDensity)

    def neighborVelocities(self, particles: FluidParticles) -> np.ndarray:
        '''v_j, with zero velocity for boundary samples.'''
        return self._gather(particles.velocities, np.zeros(3))


def rebuildIndex(
    grid: NeighborSearch,
    particles: FluidParticles,
    boundary: BoundarySamples,
) -> None:
    '''
    Clear the grid and re-insert every particle and boundary sample.

    Parameters:
    -----------
    grid : NeighborSearch
        Index to rebuild
    particles : FluidParticles
        Fluid particles, filed under ids 0..N-1
    boundary : BoundarySamples
        Boundary samples, filed under ids N..N+M-1
    '''
    nParticles = particles.nParticles
    grid.clear()
    grid.insertMany(np.arange(nParticles, dtype=np.int64), particles.positions)
    grid.insertMany(
        np.arange(nParticles, nParticles + boundary.nSamples, dtype=np.int64),
        boundary.positions,
    )


def findNeighbors(grid: NeighborSearch, particles: FluidParticles, radius: float) -> Neighborhood:
    '''
    Query the grid around every fluid particle.

    Each particle finds itself at distance 0, so the result includes
    the self pairs the density sum needs.
    '''
    pairs = grid.queryPairs(particles.positions, radius)
    return Neighborhood(pairs=pairs, nParticles=particles.nParticles)
