# -- Fluid Simulation Tests -- #

import numpy as np
import pytest

from sphFluid.sph.errors import (
    InvalidConfigurationError,
    InvalidTimeStepError,
    NumericalInstabilityError,
    SimulationStateError,
    UnsupportedConfigurationError,
)
from sphFluid.sph.fluidSimulation import FluidSimulation, SimulationStatus


#--------------------------------------------------------------------#
# -- State Machine -- #
#--------------------------------------------------------------------#

def testStepBeforeResetFails():
    simulation = FluidSimulation()
    assert simulation.status is SimulationStatus.UNINITIALIZED
    with pytest.raises(SimulationStateError):
        simulation.step(0.001)
    with pytest.raises(SimulationStateError):
        simulation.snapshotPositions()


def testResetPopulatesAndRuns(restLatticeOptions):
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()

    assert simulation.isRunning
    assert simulation.particles.nParticles == 729
    assert simulation.boundary.nSamples == 0
    assert simulation.particles.referenceMass > 0.0

    state = simulation.step(0.001)
    assert state.step == 1
    assert state.time == pytest.approx(0.001)
    assert state.nParticles == 729


@pytest.mark.parametrize('dt', [0.0, -0.01, float('nan'), float('inf')])
def testInvalidTimeStep(restLatticeOptions, dt):
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()
    with pytest.raises(InvalidTimeStepError):
        simulation.step(dt)
    assert simulation.isRunning


def testSnapshotIsACopy(restLatticeOptions):
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()

    snapshot = simulation.snapshotPositions()
    snapshot += 1000.0
    assert np.max(np.abs(simulation.particles.positions)) <= 80.0 + 1e-9


def testInstabilityReturnsToUninitialized(restLatticeOptions):
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()

    # A lost particle finds no neighbors, not even itself
    simulation.particles.positions[0] = np.nan
    with np.errstate(invalid='ignore'):
        with pytest.raises(NumericalInstabilityError):
            simulation.step(0.001)

    assert simulation.status is SimulationStatus.UNINITIALIZED
    with pytest.raises(SimulationStateError):
        simulation.step(0.001)

    simulation.reset()
    assert simulation.isRunning


#--------------------------------------------------------------------#
# -- Configuration -- #
#--------------------------------------------------------------------#

@pytest.mark.parametrize('option', ['kernel_radius', 'particle_distance', 'container_size'])
@pytest.mark.parametrize('value', [0.0, -10.0])
def testDegenerateGeometryRejected(option, value):
    simulation = FluidSimulation()
    with pytest.raises(InvalidConfigurationError):
        simulation.configure({option: value})


@pytest.mark.parametrize('options', [
    {'pressure_solver': 'PCISPH'},
    {'pressure_solver': 'IISPH'},
    {'viscosity': 'laminar'},
])
def testUnsupportedSelectorRejectedAtConfigure(options):
    simulation = FluidSimulation()
    with pytest.raises(UnsupportedConfigurationError):
        simulation.configure(options)


def testRejectedConfigureLeavesSimulationUntouched(restLatticeOptions):
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()
    before = simulation.config

    with pytest.raises(UnsupportedConfigurationError):
        simulation.configure({'viscosity': 'laminar'})
    assert simulation.config is before
    simulation.step(0.001)


def testSelectorsAreCaseInsensitive():
    simulation = FluidSimulation()
    simulation.configure({'pressure_solver': 'eos', 'viscosity': 'Monaghan'})
    assert simulation.config.viscosity.value == 'MONAGHAN'


def testCalibrationChangeRecalibratesOnNextStep(restLatticeOptions):
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()
    mass = simulation.particles.referenceMass

    simulation.configure({'rest_density': 2000.0})
    assert simulation.particles.referenceMass == mass

    simulation.step(0.001)
    assert simulation.particles.referenceMass == pytest.approx(2.0 * mass)


#--------------------------------------------------------------------#
# -- Physical Behavior -- #
#--------------------------------------------------------------------#

def testRestLatticeStaysAtRest(restLatticeOptions):
    '''A calibrated lattice without gravity feels no pressure and does not drift.'''
    simulation = FluidSimulation()
    simulation.configure(restLatticeOptions)
    simulation.reset()
    initial = simulation.snapshotPositions()

    simulation.step(0.001)

    particles = simulation.particles
    interior = np.all(np.abs(initial) <= 40.0 + 1e-9, axis=1)
    assert np.count_nonzero(interior) == 125
    np.testing.assert_allclose(particles.densities[interior], 1000.0, rtol=1e-6)
    np.testing.assert_allclose(particles.pressures[interior], 0.0, atol=1e-6)
    np.testing.assert_allclose(simulation.snapshotPositions(), initial, atol=1e-9)
    assert simulation.currentState.maxVelocity < 1e-9


def testRestLatticeMonaghanStaysAtRest(restLatticeOptions):
    simulation = FluidSimulation()
    simulation.configure({**restLatticeOptions, 'viscosity': 'MONAGHAN'})
    simulation.reset()
    initial = simulation.snapshotPositions()

    for _ in range(3):
        simulation.step(0.001)
    np.testing.assert_allclose(simulation.snapshotPositions(), initial, atol=1e-9)


def testDroppedParticleSettlesOnFloor():
    '''A single particle lands on the boundary samples and comes to rest.'''
    containerSize = 400.0
    d = 20.0
    floor = -0.5 * containerSize

    simulation = FluidSimulation()
    simulation.configure({
        'kernel_radius': 40.0,
        'particle_distance': d,
        'container_size': containerSize,
        'rest_density': 1000.0,
        'pressure_stiffness': 1.0e7,
        'viscosity': 'XSPH',
        'xsph_viscosity': 0.2,
        'gravity': [0.0, -100.0, 0.0],
    })
    simulation.reset(positions=np.array([[0.0, floor + 1.5 * d, 0.0]]))
    assert simulation.boundary.nSamples == 2402

    for _ in range(1000):
        simulation.step(0.005)
        assert simulation.particles.positions[0, 1] > floor - 1e-6

    position = simulation.particles.positions[0]
    assert floor < position[1] < floor + d
    assert np.all(np.abs(position[[0, 2]]) < d)
    assert simulation.currentState.maxVelocity < 1.0


def testBoxModeContainsFallingFluid():
    simulation = FluidSimulation()
    simulation.configure({
        'kernel_radius': 40.0,
        'particle_distance': 20.0,
        'container_size': 200.0,
        'boundary_mode': 'box',
        'gravity': [0.0, -100.0, 0.0],
        'pressure_stiffness': 1.0e5,
        'fluid_region': ([-40.0, -80.0, -40.0], [40.0, 0.0, 40.0]),
    })
    simulation.reset()

    for _ in range(200):
        simulation.step(0.005)
        positions = simulation.particles.positions
        assert np.all(positions >= -100.0) and np.all(positions <= 100.0)

    # The block has fallen onto the floor
    assert np.min(simulation.particles.positions[:, 1]) < -90.0


@pytest.mark.slow
def testEndToEndFluidBlock():
    simulation = FluidSimulation()
    simulation.configure({
        'kernel_radius': 40,
        'particle_distance': 20,
        'container_size': 2000,
        'pressure_solver': 'EOS',
        'pressure_stiffness': 1000,
        'viscosity': 'XSPH',
        'xsph_viscosity': 0.2,
    })
    simulation.reset()
    assert simulation.particles.nParticles > 0

    for _ in range(100):
        state = simulation.step(0.0007)
        positions = simulation.snapshotPositions()
        assert np.all(np.isfinite(positions))
        assert np.all(np.abs(positions) <= 1000.0)
        assert state.minDensity > 0.0
        assert np.all(simulation.particles.densities > 0.0)
