# -- SPH Particle and Boundary Containers -- #

'''
Dataclasses holding fluid particle and boundary sample state.

Fields are stored as contiguous NumPy arrays for vectorized operations,
shape (N, 3) for vector quantities and (N,) for scalars. Every fluid
particle has the same mass, held once as referenceMass; boundary
samples carry one calibrated mass each.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from sphFluid.sph.entities import BoundarySample, Particle


######################################################################
# -- Fluid Particles -- #
######################################################################

@dataclass
class FluidParticles:
    '''
    Fluid particle state.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions, shape (N, 3)
    velocities : np.ndarray
        Particle velocities, shape (N, 3)
    densities : np.ndarray
        Particle densities, shape (N,)
    pressures : np.ndarray
        Particle pressures, shape (N,)
    viscousForces : np.ndarray
        Transient viscous force accumulator, shape (N, 3)
    referenceMass : float
        Calibrated mass shared by every particle
    '''

    positions: np.ndarray
    velocities: np.ndarray
    densities: np.ndarray
    pressures: np.ndarray
    viscousForces: np.ndarray
    referenceMass: float = 0.0

    @property
    def nParticles(self) -> int:
        '''Number of fluid particles.'''
        return self.positions.shape[0]

    def __len__(self) -> int:
        return self.nParticles

    def particle(self, index: int) -> Particle:
        '''
        Read-only snapshot of one particle.

        Parameters:
        -----------
        index : int
            Row of the particle (also its entity id)

        Returns:
        --------
        Particle : Copy of the particle's current state
        '''
        return Particle(
            entityId=int(index),
            position=self.positions[index].copy(),
            velocity=self.velocities[index].copy(),
            density=float(self.densities[index]),
            pressure=float(self.pressures[index]),
            viscousForce=self.viscousForces[index].copy(),
            mass=self.referenceMass,
        )

    def kineticEnergy(self) -> float:
        '''
        Total kinetic energy.

        KE = (1/2) * m * sum_i |v_i|^2
        '''
        speedsSq = np.einsum('ij,ij->i', self.velocities, self.velocities)
        return float(0.5 * self.referenceMass * np.sum(speedsSq))

    def potentialEnergy(self, gravity: np.ndarray) -> float:
        '''
        Total gravitational potential energy relative to the origin.

        PE = -m * sum_i g . x_i

        Parameters:
        -----------
        gravity : np.ndarray
            Gravity vector, shape (3,)
        '''
        return float(-self.referenceMass * np.sum(self.positions @ np.asarray(gravity, dtype=float)))

    def maxSpeed(self) -> float:
        '''Maximum velocity magnitude (0 when empty).'''
        if self.nParticles == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.velocities, axis=1)))

    def maxDensityError(self, restDensity: float) -> float:
        '''
        Maximum relative density error max |rho_i - rho_0| / rho_0.

        Parameters:
        -----------
        restDensity : float
            Rest density rho_0
        '''
        if self.nParticles == 0:
            return 0.0
        return float(np.max(np.abs(self.densities - restDensity)) / restDensity)

    def minDensity(self) -> float:
        '''Smallest particle density (0 when empty).'''
        if self.nParticles == 0:
            return 0.0
        return float(np.min(self.densities))

    @classmethod
    def fromPositions(
        cls,
        positions: np.ndarray,
        velocities: np.ndarray | None = None,
    ) -> FluidParticles:
        '''
        Create particles at explicit positions with zeroed fields.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions, shape (N, 3)
        velocities : np.ndarray | None
            Initial velocities, zero if omitted

        Returns:
        --------
        FluidParticles : New particle set (mass not yet calibrated)
        '''
        positions = np.array(positions, dtype=float).reshape(-1, 3)
        nParticles = positions.shape[0]
        if velocities is None:
            velocities = np.zeros((nParticles, 3))
        else:
            velocities = np.array(velocities, dtype=float).reshape(nParticles, 3)

        return cls(
            positions=positions,
            velocities=velocities,
            densities=np.zeros(nParticles),
            pressures=np.zeros(nParticles),
            viscousForces=np.zeros((nParticles, 3)),
        )

    @classmethod
    def createLattice(
        cls,
        regionMin: np.ndarray,
        regionMax: np.ndarray,
        spacing: float,
        jitter: float = 0.0,
        rng: np.random.Generator | None = None,
    ) -> FluidParticles:
        '''
        Fill a box with a regular lattice of particles.

        Lattice points start at regionMin and step by spacing up to and
        including regionMax (when it lies on the lattice). Each point is
        then displaced by uniform noise in [-jitter, jitter] * spacing
        per axis to break the initial symmetry, and clipped back into
        the box.

        Parameters:
        -----------
        regionMin : np.ndarray
            Lower corner of the fluid box, shape (3,)
        regionMax : np.ndarray
            Upper corner of the fluid box, shape (3,)
        spacing : float
            Lattice spacing d
        jitter : float
            Jitter amplitude as a fraction of spacing
        rng : np.random.Generator | None
            Random source for the jitter

        Returns:
        --------
        FluidParticles : New particle set (mass not yet calibrated)
        '''
        regionMin = np.asarray(regionMin, dtype=float)
        regionMax = np.asarray(regionMax, dtype=float)

        axes = []
        for d in range(3):
            extent = regionMax[d] - regionMin[d]
            # Small tolerance so a box that is a whole number of spacings
            # wide keeps its far face
            nPoints = int(np.floor(extent / spacing + 1e-9)) + 1
            axes.append(regionMin[d] + spacing * np.arange(nPoints))

        xx, yy, zz = np.meshgrid(axes[0], axes[1], axes[2], indexing='ij')
        positions = np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])

        if jitter > 0.0:
            rng = rng if rng is not None else np.random.default_rng()
            positions += rng.uniform(-jitter, jitter, size=positions.shape) * spacing
            np.clip(positions, regionMin, regionMax, out=positions)

        return cls.fromPositions(positions)


######################################################################
# -- Boundary Samples -- #
######################################################################

@dataclass
class BoundarySamples:
    '''
    Static boundary sample state.

    Parameters:
    -----------
    positions : np.ndarray
        Sample positions, shape (M, 3)
    masses : np.ndarray
        Calibrated sample masses, shape (M,)
    '''

    positions: np.ndarray
    masses: np.ndarray

    @property
    def nSamples(self) -> int:
        '''Number of boundary samples.'''
        return self.positions.shape[0]

    def __len__(self) -> int:
        return self.nSamples

    def sample(self, index: int, idOffset: int = 0) -> BoundarySample:
        '''
        Read-only view of one boundary sample.

        Parameters:
        -----------
        index : int
            Row of the sample
        idOffset : int
            First boundary entity id (the fluid particle count)
        '''
        return BoundarySample(
            entityId=int(index) + idOffset,
            position=self.positions[index].copy(),
            mass=float(self.masses[index]),
        )

    @classmethod
    def empty(cls) -> BoundarySamples:
        '''Boundary with no samples (simple box mode).'''
        return cls(positions=np.zeros((0, 3)), masses=np.zeros(0))
