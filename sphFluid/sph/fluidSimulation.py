# -- SPH Fluid Simulation -- #

'''
Simulation instance: owns the configuration, particles, boundary
samples, spatial index and solver strategies of one SPH fluid.

The instance is either Uninitialized (no calibrated masses, no
particles) or Running (calibrated and populated, steppable).
initialize() and reset() move it to Running; a numerical failure
during a step drops it back to Uninitialized.

Algorithm per time step:
    1. Rebuild the spatial index from the current positions
    2. Compute density by SPH summation
    3. Compute pressure (pluggable solver)
    4. Apply viscosity (Monaghan force or XSPH velocity smoothing)
    5. Integrate (Symplectic Euler) and contain the fluid

step() takes the time step from the caller and has no suspension
points, so it can be driven by a fixed-step test loop, a real-time
frame loop or a batch runner alike.
'''

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Mapping

import numpy as np

from sphFluid.sph.boundaryHandling import BoundaryHandler, BoxBoundary
from sphFluid.sph.density import computeDensities
from sphFluid.sph.errors import (
    InvalidTimeStepError,
    NumericalInstabilityError,
    SimulationStateError,
)
from sphFluid.sph.kernels import CubicSplineKernel, SphKernel
from sphFluid.sph.massCalibration import calibrateBoundaryMasses, calibrateParticleMass
from sphFluid.sph.neighborhood import Neighborhood, findNeighbors, rebuildIndex
from sphFluid.sph.neighborSearch import NeighborSearch, SpatialHashGrid
from sphFluid.sph.particles import BoundarySamples, FluidParticles
from sphFluid.sph.pressureSolvers import PressureSolver, createPressureSolver
from sphFluid.sph.protocols import (
    BoundaryMode,
    SimulationConfig,
    SimulationState,
    calibrationOptions,
)
from sphFluid.sph.timeIntegration import SymplecticEuler, TimeIntegrator
from sphFluid.sph.viscosity import ViscosityModel, createViscosityModel

logger = logging.getLogger(__name__)


class SimulationStatus(Enum):
    '''Lifecycle state of a FluidSimulation.'''

    UNINITIALIZED = 'uninitialized'
    RUNNING = 'running'


class FluidSimulation:
    '''
    SPH fluid in a cubic container.

    Parameters:
    -----------
    config : SimulationConfig | None
        Initial configuration (defaults to SimulationConfig())
    kernel : SphKernel | None
        Smoothing kernel (defaults to CubicSplineKernel)
    '''

    def __init__(
        self,
        config: SimulationConfig | None = None,
        kernel: SphKernel | None = None,
    ) -> None:
        self._kernel = kernel or CubicSplineKernel()
        self._config = (config or SimulationConfig()).validate()
        self._resolveStrategies(self._config)

        self._status = SimulationStatus.UNINITIALIZED
        self._particles: FluidParticles | None = None
        self._boundary = BoundarySamples.empty()
        self._boxBoundary: BoxBoundary | None = None
        self._neighborhood: Neighborhood | None = None
        self._calibrationStale = False
        self._time: float = 0.0
        self._step: int = 0
        self._dt: float = 0.0

    ######################################################################
    # -- Configuration -- #
    ######################################################################

    def _resolveStrategies(self, config: SimulationConfig) -> None:
        '''Build the solver strategies for a configuration, once.'''
        pressureSolver = createPressureSolver(config)
        viscosityModel = createViscosityModel(config, self._kernel)

        self._pressureSolver: PressureSolver = pressureSolver
        self._viscosityModel: ViscosityModel = viscosityModel
        self._integrator: TimeIntegrator = SymplecticEuler(config.kernelRadius, self._kernel)
        self._grid: NeighborSearch = SpatialHashGrid(cellSize=config.kernelRadius)

    def configure(self, options: Mapping[str, Any]) -> None:
        '''
        Apply external snake_case options (see SimulationConfig.fromOptions).

        The new configuration is validated and its strategies resolved
        before anything is committed, so a rejected call leaves the
        simulation untouched. Changing kernel_radius, particle_distance
        or rest_density on a running simulation recalibrates the masses
        before the next step; container, fluid region and boundary mode
        changes take effect at the next reset().

        Parameters:
        -----------
        options : Mapping[str, Any]
            Options to change

        Raises:
        -------
        InvalidConfigurationError : A value is out of range or malformed
        UnsupportedConfigurationError : A selector is not supported
        '''
        newConfig = self._config.withOptions(options)
        self._resolveStrategies(newConfig)

        changed = {
            name for name in calibrationOptions
            if getattr(newConfig, name) != getattr(self._config, name)
        }
        self._config = newConfig

        if changed and self.isRunning:
            self._calibrationStale = True
            logger.info('Calibration inputs changed (%s); masses will be recalibrated',
                        ', '.join(sorted(changed)))

    ######################################################################
    # -- Lifecycle -- #
    ######################################################################

    def initialize(self, positions: np.ndarray | None = None, velocities: np.ndarray | None = None) -> None:
        '''
        Calibrate masses and populate particles and boundary samples.

        Parameters:
        -----------
        positions : np.ndarray | None
            Explicit particle positions, shape (N, 3). When omitted the
            configured fluid region is filled with a jittered lattice.
        velocities : np.ndarray | None
            Initial velocities for explicit positions (zero if omitted)

        Raises:
        -------
        SimulationStateError : The simulation is already running
        '''
        if self.isRunning:
            raise SimulationStateError('Simulation is already running; call reset()')

        config = self._config
        if positions is None:
            regionMin, regionMax = config.fluidRegion()
            rng = np.random.default_rng(config.seed)
            particles = FluidParticles.createLattice(
                regionMin, regionMax, config.particleDistance,
                jitter=config.jitter, rng=rng,
            )
        else:
            particles = FluidParticles.fromPositions(positions, velocities)

        particles.referenceMass = calibrateParticleMass(config, self._kernel)

        # Container geometry is fixed here until the next reset()
        if config.boundaryMode == BoundaryMode.PARTICLES:
            handler = BoundaryHandler(config.containerMin, config.containerMax, config.particleDistance)
            self._boundary = handler.createBoundary(config, self._kernel)
            self._boxBoundary = None
        else:
            self._boundary = BoundarySamples.empty()
            self._boxBoundary = BoxBoundary(config.containerMin, config.containerMax, config.boxDamping)

        self._particles = particles
        self._neighborhood = None
        self._calibrationStale = False
        self._time = 0.0
        self._step = 0
        self._dt = 0.0
        self._status = SimulationStatus.RUNNING

        logger.info(
            'Simulation running: %d particles, %d boundary samples, %s pressure, %s viscosity',
            particles.nParticles, self._boundary.nSamples,
            config.pressureSolver.value, config.viscosity.value,
        )

    def shutdown(self) -> None:
        '''Drop all particles and calibration (back to Uninitialized).'''
        self._particles = None
        self._boundary = BoundarySamples.empty()
        self._boxBoundary = None
        self._neighborhood = None
        self._grid.clear()
        self._status = SimulationStatus.UNINITIALIZED

    def reset(self, positions: np.ndarray | None = None, velocities: np.ndarray | None = None) -> None:
        '''
        Re-run calibration and re-populate from the current configuration.

        Parameters are as for initialize().
        '''
        self.config.validate()
        self.shutdown()
        self.initialize(positions, velocities)

    ######################################################################
    # -- Stages -- #
    ######################################################################

    def _requireRunning(self) -> FluidParticles:
        if self._status is not SimulationStatus.RUNNING or self._particles is None:
            raise SimulationStateError('Simulation is not initialized; call reset()')
        return self._particles

    def recalibrate(self) -> None:
        '''Recompute particle and boundary masses for the current config.'''
        particles = self._requireRunning()
        particles.referenceMass = calibrateParticleMass(self._config, self._kernel)
        if self._boundary.nSamples > 0:
            self._boundary.masses = calibrateBoundaryMasses(
                self._boundary.positions, self._config, self._kernel
            )
        self._calibrationStale = False

    def rebuildIndex(self) -> Neighborhood:
        '''
        Clear and refill the spatial index, then gather every particle's neighbors.

        Returns:
        --------
        Neighborhood : Neighbor pairs (self pairs included) for this step
        '''
        particles = self._requireRunning()
        rebuildIndex(self._grid, particles, self._boundary)
        self._neighborhood = findNeighbors(self._grid, particles, self._config.kernelRadius)
        return self._neighborhood

    def _currentNeighborhood(self) -> Neighborhood:
        if self._neighborhood is None:
            return self.rebuildIndex()
        return self._neighborhood

    def computeDensities(self) -> None:
        '''SPH density sum for every particle, from the current index.'''
        particles = self._requireRunning()
        computeDensities(
            particles, self._boundary, self._currentNeighborhood(),
            self._config.kernelRadius, self._kernel,
        )

    def computePressure(self) -> None:
        '''Pressure from density via the configured solver.'''
        self._pressureSolver.computePressure(self._requireRunning())

    def applyViscosity(self, dt: float) -> None:
        '''Run the configured viscosity model.'''
        particles = self._requireRunning()
        self._viscosityModel.apply(
            particles, self._boundary, self._currentNeighborhood().withoutSelf(), dt,
        )

    def integrate(self, dt: float) -> None:
        '''Advance velocities and positions, then contain the fluid.'''
        particles = self._requireRunning()
        model = self._viscosityModel
        self._integrator.integrate(
            particles,
            self._boundary,
            self._currentNeighborhood().withoutSelf(),
            dt,
            gravity=None if model.appliesGravity else self._config.gravity,
            applyViscousForce=model.producesForce,
        )
        # Positions moved: the neighbor lists are stale from here on
        self._neighborhood = None

        if self._boxBoundary is not None:
            self._boxBoundary.enforceBoundary(particles)

    ######################################################################
    # -- Main Time Step -- #
    ######################################################################

    def step(self, deltaTime: float) -> SimulationState:
        '''
        Advance the simulation by one time step.

        Parameters:
        -----------
        deltaTime : float
            Time step [s], must be > 0

        Returns:
        --------
        SimulationState : Diagnostics after the step

        Raises:
        -------
        InvalidTimeStepError : deltaTime is not a positive finite number
        SimulationStateError : The simulation is not running
        NumericalInstabilityError : A density or position went invalid;
            the simulation returns to Uninitialized
        '''
        if not (isinstance(deltaTime, (int, float)) and math.isfinite(deltaTime) and deltaTime > 0.0):
            raise InvalidTimeStepError(f'deltaTime must be > 0, got {deltaTime!r}')
        self._requireRunning()

        if self._calibrationStale:
            self.recalibrate()

        try:
            # 1. Rebuild the spatial index (single writer, before any query)
            self.rebuildIndex()

            # 2. Compute density (SPH summation)
            self.computeDensities()

            # 3. Compute pressure
            self.computePressure()

            # 4. Viscosity (force accumulation or velocity smoothing)
            self.applyViscosity(deltaTime)

            # 5. Integrate and contain
            self.integrate(deltaTime)
        except NumericalInstabilityError:
            logger.error('Numerical instability at step %d (t=%.6g); simulation stopped',
                         self._step, self._time)
            self.shutdown()
            raise

        self._dt = float(deltaTime)
        self._time += self._dt
        self._step += 1

        state = self.currentState
        logger.debug(
            'step %d t=%.6g maxVel=%.4g densErr=%.4g',
            state.step, state.time, state.maxVelocity, state.maxDensityError,
        )
        return state

    ######################################################################
    # -- Read-only Views -- #
    ######################################################################

    def snapshotPositions(self) -> np.ndarray:
        '''
        Copy of the fluid particle positions for a renderer.

        Returns:
        --------
        np.ndarray : Positions, shape (N, 3)
        '''
        return self._requireRunning().positions.copy()

    @property
    def currentState(self) -> SimulationState:
        '''Diagnostics for the latest step.'''
        p = self._requireRunning()
        return SimulationState(
            time=self._time,
            step=self._step,
            dt=self._dt,
            kineticEnergy=p.kineticEnergy(),
            potentialEnergy=p.potentialEnergy(self._config.gravity),
            maxVelocity=p.maxSpeed(),
            maxDensityError=p.maxDensityError(self._config.restDensity),
            minDensity=p.minDensity(),
            nParticles=p.nParticles,
            nBoundary=self._boundary.nSamples,
        )

    @property
    def status(self) -> SimulationStatus:
        '''Current lifecycle state.'''
        return self._status

    @property
    def isRunning(self) -> bool:
        '''True once initialized and until reset or failure.'''
        return self._status is SimulationStatus.RUNNING

    @property
    def config(self) -> SimulationConfig:
        '''Active configuration.'''
        return self._config

    @property
    def particles(self) -> FluidParticles:
        '''Fluid particle state.'''
        return self._requireRunning()

    @property
    def boundary(self) -> BoundarySamples:
        '''Boundary sample state (empty in box mode).'''
        return self._boundary

    @property
    def grid(self) -> NeighborSearch:
        '''Spatial index used for neighbor queries.'''
        return self._grid

    @property
    def time(self) -> float:
        '''Accumulated simulation time [s].'''
        return self._time

    @property
    def stepCount(self) -> int:
        '''Number of completed steps.'''
        return self._step
