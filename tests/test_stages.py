# -- Per-Step Stage Tests -- #

import numpy as np
import pytest

from sphFluid.sph.boundaryHandling import BoxBoundary
from sphFluid.sph.errors import NumericalInstabilityError, UnsupportedConfigurationError
from sphFluid.sph.neighborhood import findNeighbors, rebuildIndex
from sphFluid.sph.neighborSearch import SpatialHashGrid
from sphFluid.sph.particles import BoundarySamples, FluidParticles
from sphFluid.sph.pressureSolvers import EquationOfStateSolver, createPressureSolver
from sphFluid.sph.protocols import SimulationConfig
from sphFluid.sph.timeIntegration import SymplecticEuler
from sphFluid.sph.viscosity import MonaghanViscosity, XsphViscosity, createViscosityModel


H = 40.0


def makePair(velocities, separation=20.0, density=1000.0):
    '''Two unit-mass particles on the x axis with their neighborhood.'''
    particles = FluidParticles.fromPositions(
        np.array([[0.0, 0.0, 0.0], [separation, 0.0, 0.0]]),
        np.asarray(velocities, dtype=float),
    )
    particles.referenceMass = 1.0
    particles.densities[:] = density

    boundary = BoundarySamples.empty()
    grid = SpatialHashGrid(cellSize=H)
    rebuildIndex(grid, particles, boundary)
    neighborhood = findNeighbors(grid, particles, H)
    return particles, boundary, neighborhood


#--------------------------------------------------------------------#
# -- Equation of State -- #
#--------------------------------------------------------------------#

def testEquationOfStatePressure():
    solver = EquationOfStateSolver(restDensity=1000.0, stiffness=1000.0)
    particles = FluidParticles.fromPositions(np.zeros((3, 3)))
    particles.densities[:] = [1000.0, 1100.0, 900.0]

    solver.computePressure(particles)
    assert particles.pressures[0] == pytest.approx(0.0, abs=1e-9)
    assert particles.pressures[1] == pytest.approx(1000.0 * (1.1 ** 7 - 1.0))
    assert particles.pressures[2] == 0.0


def testEquationOfStateKeepsNegativePressure():
    solver = EquationOfStateSolver(restDensity=1000.0, stiffness=1000.0, clampNegative=False)
    particles = FluidParticles.fromPositions(np.zeros((1, 3)))
    particles.densities[:] = 900.0

    solver.computePressure(particles)
    assert particles.pressures[0] == pytest.approx(1000.0 * (0.9 ** 7 - 1.0))
    assert particles.pressures[0] < 0.0


@pytest.mark.parametrize('badDensity', [0.0, -5.0, np.nan, np.inf])
def testInvalidDensityFailsFast(badDensity):
    solver = EquationOfStateSolver(restDensity=1000.0, stiffness=1000.0)
    particles = FluidParticles.fromPositions(np.zeros((2, 3)))
    particles.densities[:] = [1000.0, badDensity]

    with pytest.raises(NumericalInstabilityError):
        solver.computePressure(particles)


def testImplicitSolverIsRejected():
    config = SimulationConfig()
    config.pressureSolver = 'IISPH'
    with pytest.raises(UnsupportedConfigurationError):
        createPressureSolver(config.validate())


#--------------------------------------------------------------------#
# -- Viscosity -- #
#--------------------------------------------------------------------#

def testMonaghanDampsApproachingPair(kernel):
    particles, boundary, neighborhood = makePair([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
    model = MonaghanViscosity(
        alpha=0.1, kernelRadius=H, restDensity=1000.0, speedOfSound=10.0, kernel=kernel,
    )
    model.apply(particles, boundary, neighborhood.withoutSelf(), 0.001)

    forces = particles.viscousForces
    # Each particle is pushed against its own motion
    assert forces[0, 0] < 0.0
    assert forces[1, 0] > 0.0
    np.testing.assert_allclose(forces.sum(axis=0), 0.0, atol=1e-15)
    np.testing.assert_allclose(forces[:, 1:], 0.0)


def testMonaghanIgnoresRecedingPair(kernel):
    particles, boundary, neighborhood = makePair([[-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    model = MonaghanViscosity(
        alpha=0.1, kernelRadius=H, restDensity=1000.0, speedOfSound=10.0, kernel=kernel,
    )
    model.apply(particles, boundary, neighborhood.withoutSelf(), 0.001)
    assert np.all(particles.viscousForces == 0.0)


def testXsphSmoothsVelocities(kernel):
    particles, boundary, neighborhood = makePair([[2.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
    model = XsphViscosity(
        epsilon=0.2, kernelRadius=H, restDensity=1000.0, gravity=np.zeros(3), kernel=kernel,
    )
    momentumBefore = particles.velocities.sum(axis=0)
    model.apply(particles, boundary, neighborhood.withoutSelf(), 0.001)

    assert 0.0 < particles.velocities[1, 0] < particles.velocities[0, 0] < 2.0
    np.testing.assert_allclose(particles.velocities.sum(axis=0), momentumBefore)


def testXsphAppliesGravityOnce(kernel):
    particles = FluidParticles.fromPositions(np.zeros((1, 3)))
    particles.referenceMass = 1.0
    particles.densities[:] = 1000.0
    boundary = BoundarySamples.empty()
    grid = SpatialHashGrid(cellSize=H)
    rebuildIndex(grid, particles, boundary)
    neighborhood = findNeighbors(grid, particles, H).withoutSelf()

    model = XsphViscosity(
        epsilon=0.2, kernelRadius=H, restDensity=1000.0,
        gravity=np.array([0.0, -9.81, 0.0]), kernel=kernel,
    )
    model.apply(particles, boundary, neighborhood, 0.01)
    np.testing.assert_allclose(particles.velocities[0], [0.0, -0.0981, 0.0])


def testViscosityFactory(kernel):
    config = SimulationConfig(viscosity='monaghan').validate()
    model = createViscosityModel(config, kernel)
    assert isinstance(model, MonaghanViscosity)
    assert model.producesForce and not model.appliesGravity

    model = createViscosityModel(SimulationConfig().validate(), kernel)
    assert isinstance(model, XsphViscosity)
    assert model.appliesGravity and not model.producesForce


#--------------------------------------------------------------------#
# -- Integration and Containment -- #
#--------------------------------------------------------------------#

def testPressurePushesCompressedPairApart(kernel):
    particles, boundary, neighborhood = makePair(np.zeros((2, 3)), separation=10.0)
    particles.pressures[:] = 500.0
    integrator = SymplecticEuler(kernelRadius=H, kernel=kernel)

    accelerations = integrator.pressureAccelerations(particles, boundary, neighborhood.withoutSelf())
    assert accelerations[0, 0] < 0.0
    np.testing.assert_allclose(accelerations[0], -accelerations[1])


def testIntegratorKickThenDrift(kernel):
    particles, boundary, neighborhood = makePair([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]], separation=100.0)
    particles.viscousForces[0] = [0.0, 2.0, 0.0]
    integrator = SymplecticEuler(kernelRadius=H, kernel=kernel)

    integrator.integrate(
        particles, boundary, neighborhood.withoutSelf(), 0.5,
        gravity=np.array([0.0, -1.0, 0.0]), applyViscousForce=True,
    )

    # v = v0 + (F/m - g) dt, then x = x0 + v dt with the new velocity
    np.testing.assert_allclose(particles.velocities[0], [1.0, 0.5, 0.0])
    np.testing.assert_allclose(particles.positions[0], [0.5, 0.25, 0.0])
    np.testing.assert_allclose(particles.velocities[1], [0.0, -0.5, 0.0])
    assert np.all(particles.viscousForces == 0.0)


def testIntegratorRejectsNonFiniteState(kernel):
    particles, boundary, neighborhood = makePair([[np.inf, 0.0, 0.0], [0.0, 0.0, 0.0]], separation=100.0)
    integrator = SymplecticEuler(kernelRadius=H, kernel=kernel)
    with pytest.raises(NumericalInstabilityError):
        integrator.integrate(particles, boundary, neighborhood.withoutSelf(), 0.1)


def testBoxBoundaryClampsAndReflects():
    box = BoxBoundary(np.full(3, -10.0), np.full(3, 10.0), damping=0.5)
    particles = FluidParticles.fromPositions(
        np.array([[0.0, -12.0, 0.0], [11.0, 0.0, 0.0], [1.0, 1.0, 1.0]]),
        np.array([[0.0, -4.0, 0.0], [2.0, 0.0, 0.0], [3.0, 3.0, 3.0]]),
    )
    box.enforceBoundary(particles)

    np.testing.assert_allclose(particles.positions[0], [0.0, -10.0, 0.0])
    np.testing.assert_allclose(particles.velocities[0], [0.0, 2.0, 0.0])
    np.testing.assert_allclose(particles.positions[1], [10.0, 0.0, 0.0])
    np.testing.assert_allclose(particles.velocities[1], [-1.0, 0.0, 0.0])
    np.testing.assert_allclose(particles.velocities[2], [3.0, 3.0, 3.0])


#--------------------------------------------------------------------#
# -- Initial Lattice -- #
#--------------------------------------------------------------------#

def testJitteredLatticeStaysInsideRegion():
    '''Jitter on the faces of the region is clipped, not pushed outside.'''
    regionMin = np.full(3, -100.0)
    regionMax = np.full(3, 100.0)
    particles = FluidParticles.createLattice(
        regionMin, regionMax, 20.0, jitter=0.01, rng=np.random.default_rng(0),
    )
    assert particles.nParticles == 11 ** 3
    assert np.all(particles.positions >= regionMin)
    assert np.all(particles.positions <= regionMax)

    # Interior points keep their jitter
    interior = np.all(np.abs(particles.positions) < 90.0, axis=1)
    offsets = particles.positions[interior] - np.round(particles.positions[interior] / 20.0) * 20.0
    assert np.any(offsets != 0.0)
    assert np.max(np.abs(offsets)) <= 0.2 + 1e-9
