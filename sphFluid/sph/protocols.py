# -- SPH Simulation Protocols -- #

'''
Configuration and state snapshot for the SPH core.

SimulationConfig holds every knob of a simulation and validates it;
SimulationState is the diagnostic snapshot returned by each step.
External collaborators (UI, config files) speak snake_case option
dicts, which SimulationConfig.fromOptions translates.
'''

from __future__ import annotations

import dataclasses
import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import numpy as np

from sphFluid import constants as const
from sphFluid.sph.errors import InvalidConfigurationError, UnsupportedConfigurationError


######################################################################
# -- Strategy Selectors -- #
######################################################################

class PressureSolverKind(str, Enum):
    '''Pressure solver selector.'''

    EOS = 'EOS'
    IISPH = 'IISPH'


class ViscosityKind(str, Enum):
    '''Viscosity model selector.'''

    MONAGHAN = 'MONAGHAN'
    XSPH = 'XSPH'


class BoundaryMode(str, Enum):
    '''Container model: calibrated wall samples or a simple clamping box.'''

    PARTICLES = 'PARTICLES'
    BOX = 'BOX'


def _parseSelector(enumType: type[Enum], value: Any, optionName: str) -> Enum:
    '''Resolve a selector string (case-insensitive) to its enum member.'''
    if isinstance(value, enumType):
        return value
    try:
        return enumType(str(value).strip().upper())
    except ValueError:
        allowed = ', '.join(member.value for member in enumType)
        raise UnsupportedConfigurationError(
            f'Unsupported {optionName} {value!r} (expected one of: {allowed})'
        ) from None


def _parseFloat(value: Any, optionName: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(
            f'{optionName} must be a number, got {value!r}'
        ) from None


def _parseVector(value: Any, optionName: str) -> np.ndarray:
    try:
        vector = np.array(value, dtype=float).reshape(-1)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(
            f'{optionName} must be a 3-vector, got {value!r}'
        ) from None
    if vector.shape != (3,):
        raise InvalidConfigurationError(
            f'{optionName} must be a 3-vector, got {value!r}'
        )
    return vector


######################################################################
# -- Simulation Configuration -- #
######################################################################

@dataclass
class SimulationConfig:
    '''
    Configuration for an SPH simulation.

    The container is the cube [-containerSize/2, containerSize/2]^3.
    Gravity points along -y by default.

    Parameters:
    -----------
    kernelRadius : float
        Kernel support radius h (also the spatial grid cell size)
    particleDistance : float
        Lattice spacing d for initial placement and mass calibration
    containerSize : float
        Container edge length
    restDensity : float
        Rest density rho_0
    pressureSolver : PressureSolverKind
        Pressure solver selector
    pressureStiffness : float
        Equation of state stiffness k
    viscosity : ViscosityKind
        Viscosity model selector
    monaghanViscosity : float
        Monaghan artificial viscosity coefficient alpha
    xsphViscosity : float
        XSPH velocity smoothing coefficient epsilon
    gravity : np.ndarray
        Gravity vector, shape (3,)
    boundaryMode : BoundaryMode
        Calibrated wall samples or simple clamping box
    fluidRegionMin : np.ndarray | None
        Lower corner of the initial fluid box (None: derived default)
    fluidRegionMax : np.ndarray | None
        Upper corner of the initial fluid box (None: derived default)
    jitter : float
        Initial position jitter as a fraction of particleDistance
    seed : int | None
        Jitter random seed (None: nondeterministic)
    clampNegativePressure : bool
        Clamp equation of state pressure at zero
    boxDamping : float
        Velocity factor applied on reflection in box mode
    '''

    kernelRadius: float = const.kernelRadius
    particleDistance: float = const.particleDistance
    containerSize: float = const.containerSize
    restDensity: float = const.restDensity
    pressureSolver: PressureSolverKind = PressureSolverKind.EOS
    pressureStiffness: float = const.pressureStiffness
    viscosity: ViscosityKind = ViscosityKind.XSPH
    monaghanViscosity: float = const.monaghanViscosity
    xsphViscosity: float = const.xsphViscosity
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, -const.gravity, 0.0]))
    boundaryMode: BoundaryMode = BoundaryMode.PARTICLES
    fluidRegionMin: np.ndarray | None = None
    fluidRegionMax: np.ndarray | None = None
    jitter: float = const.jitterFraction
    seed: int | None = const.jitterSeed
    clampNegativePressure: bool = True
    boxDamping: float = const.boxDamping

    ######################################################################
    # -- Derived Geometry -- #
    ######################################################################

    @property
    def halfExtent(self) -> float:
        '''Half the container edge length.'''
        return 0.5 * self.containerSize

    @property
    def containerMin(self) -> np.ndarray:
        '''Lower container corner.'''
        return np.full(3, -self.halfExtent)

    @property
    def containerMax(self) -> np.ndarray:
        '''Upper container corner.'''
        return np.full(3, self.halfExtent)

    @property
    def smoothingLength(self) -> float:
        '''Smoothing length h/2 (the cubic spline's own length scale).'''
        return 0.5 * self.kernelRadius

    @property
    def speedOfSound(self) -> float:
        '''
        Numerical speed of sound implied by the equation of state.

        The Tait form p = B((rho/rho_0)^gamma - 1) has c^2 = gamma B / rho_0.
        '''
        return math.sqrt(const.gamma * self.pressureStiffness / self.restDensity)

    def fluidRegion(self) -> tuple[np.ndarray, np.ndarray]:
        '''
        Corners of the initial fluid box.

        When not configured, the box is centered horizontally, spans
        fluidRegionHalfWidthFraction of the container either side of
        the center and rises fluidRegionHeightFraction of the container
        from one lattice spacing above the floor.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] : (regionMin, regionMax)
        '''
        if self.fluidRegionMin is not None and self.fluidRegionMax is not None:
            return (np.asarray(self.fluidRegionMin, dtype=float),
                    np.asarray(self.fluidRegionMax, dtype=float))

        halfWidth = const.fluidRegionHalfWidthFraction * self.containerSize
        floor = -self.halfExtent + self.particleDistance
        height = const.fluidRegionHeightFraction * self.containerSize
        regionMin = np.array([-halfWidth, floor, -halfWidth])
        regionMax = np.array([halfWidth, floor + height, halfWidth])
        return (regionMin, regionMax)

    ######################################################################
    # -- Validation -- #
    ######################################################################

    def validate(self) -> SimulationConfig:
        '''
        Check every value, raising on the first problem.

        Returns:
        --------
        SimulationConfig : self, for chaining

        Raises:
        -------
        InvalidConfigurationError : A value is out of range or malformed
        UnsupportedConfigurationError : A selector is not recognized
        '''
        for name in ('kernelRadius', 'particleDistance', 'containerSize',
                     'restDensity'):
            value = getattr(self, name)
            if not (isinstance(value, (int, float)) and math.isfinite(value) and value > 0.0):
                raise InvalidConfigurationError(f'{name} must be > 0, got {value!r}')

        for name in ('pressureStiffness', 'monaghanViscosity', 'xsphViscosity'):
            value = getattr(self, name)
            if not (isinstance(value, (int, float)) and math.isfinite(value) and value >= 0.0):
                raise InvalidConfigurationError(f'{name} must be >= 0, got {value!r}')

        if not 0.0 <= self.jitter < 0.5:
            raise InvalidConfigurationError(
                f'jitter must be in [0, 0.5), got {self.jitter!r}'
            )
        if not 0.0 <= self.boxDamping <= 1.0:
            raise InvalidConfigurationError(
                f'boxDamping must be in [0, 1], got {self.boxDamping!r}'
            )

        self.gravity = _parseVector(self.gravity, 'gravity')
        if not np.all(np.isfinite(self.gravity)):
            raise InvalidConfigurationError(f'gravity must be finite, got {self.gravity!r}')

        self.pressureSolver = _parseSelector(PressureSolverKind, self.pressureSolver, 'pressure_solver')
        self.viscosity = _parseSelector(ViscosityKind, self.viscosity, 'viscosity')
        self.boundaryMode = _parseSelector(BoundaryMode, self.boundaryMode, 'boundary_mode')

        if (self.fluidRegionMin is None) != (self.fluidRegionMax is None):
            raise InvalidConfigurationError(
                'fluidRegionMin and fluidRegionMax must be given together'
            )
        if self.fluidRegionMin is not None:
            self.fluidRegionMin = _parseVector(self.fluidRegionMin, 'fluid_region min')
            self.fluidRegionMax = _parseVector(self.fluidRegionMax, 'fluid_region max')

        regionMin, regionMax = self.fluidRegion()
        if np.any(regionMin > regionMax):
            raise InvalidConfigurationError(
                f'Fluid region is inverted: min {regionMin} > max {regionMax}'
            )
        if np.any(regionMin < -self.halfExtent) or np.any(regionMax > self.halfExtent):
            raise InvalidConfigurationError(
                f'Fluid region [{regionMin}, {regionMax}] lies outside the '
                f'container of half extent {self.halfExtent}'
            )

        # Boundary samples sit on the walls; fluid starts one spacing clear of them
        if self.boundaryMode == BoundaryMode.PARTICLES:
            inner = self.halfExtent - self.particleDistance + 1e-9 * self.containerSize
            if np.any(regionMin < -inner) or np.any(regionMax > inner):
                raise InvalidConfigurationError(
                    f'Fluid region [{regionMin}, {regionMax}] must stay at least '
                    f'particle_distance ({self.particleDistance}) inside the walls '
                    f'when boundary_mode is PARTICLES'
                )

        return self

    ######################################################################
    # -- Option Dictionaries -- #
    ######################################################################

    def withOptions(self, options: Mapping[str, Any]) -> SimulationConfig:
        '''
        Copy of this configuration with snake_case options applied.

        Parameters:
        -----------
        options : Mapping[str, Any]
            External option names and values (see fromOptions)

        Returns:
        --------
        SimulationConfig : New, validated configuration
        '''
        updates: dict[str, Any] = {}
        for key, value in options.items():
            if key not in _optionFields:
                allowed = ', '.join(sorted(_optionFields))
                raise InvalidConfigurationError(
                    f'Unknown option {key!r} (expected one of: {allowed})'
                )
            if key == 'fluid_region':
                if value is None:
                    updates['fluidRegionMin'] = None
                    updates['fluidRegionMax'] = None
                    continue
                try:
                    regionMin, regionMax = value
                except (TypeError, ValueError):
                    raise InvalidConfigurationError(
                        f'fluid_region must be a (min, max) pair, got {value!r}'
                    ) from None
                updates['fluidRegionMin'] = _parseVector(regionMin, 'fluid_region min')
                updates['fluidRegionMax'] = _parseVector(regionMax, 'fluid_region max')
                continue

            fieldName = _optionFields[key]
            if fieldName in _floatFields:
                value = _parseFloat(value, key)
            elif fieldName == 'gravity':
                value = _parseVector(value, key)
            elif fieldName == 'clampNegativePressure':
                value = bool(value)
            elif fieldName == 'seed':
                value = None if value is None else int(value)
            updates[fieldName] = value

        merged = dataclasses.replace(self, **updates)
        if 'gravity' not in updates:
            merged.gravity = np.array(self.gravity, dtype=float)
        return merged.validate()

    @classmethod
    def fromOptions(cls, options: Mapping[str, Any]) -> SimulationConfig:
        '''
        Build a configuration from external snake_case options.

        Recognized keys: kernel_radius, particle_distance, container_size,
        rest_density, pressure_solver, pressure_stiffness, viscosity,
        monaghan_viscosity, xsph_viscosity, gravity, boundary_mode,
        fluid_region, jitter, seed, clamp_negative_pressure, box_damping.
        Missing keys keep their defaults.

        Parameters:
        -----------
        options : Mapping[str, Any]
            External option names and values

        Returns:
        --------
        SimulationConfig : Validated configuration
        '''
        return cls().withOptions(options)

    @classmethod
    def fromJson(cls, configPath: str) -> SimulationConfig:
        '''
        Load configuration from a JSON file.

        Options are read from the 'sph' section when present, otherwise
        from the top-level object.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SimulationConfig : Validated configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise InvalidConfigurationError(
                f'{configPath}: expected a JSON object at the top level'
            )
        options = data.get('sph', data)
        return cls.fromOptions(options)

    def toOptions(self) -> dict[str, Any]:
        '''External snake_case view of this configuration (JSON-safe).'''
        regionMin, regionMax = self.fluidRegion()
        return {
            'kernel_radius': self.kernelRadius,
            'particle_distance': self.particleDistance,
            'container_size': self.containerSize,
            'rest_density': self.restDensity,
            'pressure_solver': PressureSolverKind(self.pressureSolver).value,
            'pressure_stiffness': self.pressureStiffness,
            'viscosity': ViscosityKind(self.viscosity).value,
            'monaghan_viscosity': self.monaghanViscosity,
            'xsph_viscosity': self.xsphViscosity,
            'gravity': np.asarray(self.gravity, dtype=float).tolist(),
            'boundary_mode': BoundaryMode(self.boundaryMode).value,
            'fluid_region': [regionMin.tolist(), regionMax.tolist()],
            'jitter': self.jitter,
            'seed': self.seed,
            'clamp_negative_pressure': self.clampNegativePressure,
            'box_damping': self.boxDamping,
        }


# External option name -> SimulationConfig field
_optionFields: dict[str, str] = {
    'kernel_radius': 'kernelRadius',
    'particle_distance': 'particleDistance',
    'container_size': 'containerSize',
    'rest_density': 'restDensity',
    'pressure_solver': 'pressureSolver',
    'pressure_stiffness': 'pressureStiffness',
    'viscosity': 'viscosity',
    'monaghan_viscosity': 'monaghanViscosity',
    'xsph_viscosity': 'xsphViscosity',
    'gravity': 'gravity',
    'boundary_mode': 'boundaryMode',
    'fluid_region': 'fluidRegion',
    'jitter': 'jitter',
    'seed': 'seed',
    'clamp_negative_pressure': 'clampNegativePressure',
    'box_damping': 'boxDamping',
}

_floatFields = {
    'kernelRadius', 'particleDistance', 'containerSize', 'restDensity',
    'pressureStiffness', 'monaghanViscosity', 'xsphViscosity', 'jitter',
    'boxDamping',
}

# Options whose change invalidates the calibrated masses
calibrationOptions = frozenset({'kernelRadius', 'particleDistance', 'restDensity'})


######################################################################
# -- Simulation State -- #
######################################################################

@dataclass
class SimulationState:
    '''
    Snapshot of the simulation diagnostics after a step.

    Parameters:
    -----------
    time : float
        Accumulated simulation time [s]
    step : int
        Number of completed steps
    dt : float
        Size of the last step [s]
    kineticEnergy : float
        Total kinetic energy of the fluid particles
    potentialEnergy : float
        Gravitational potential energy relative to the origin
    maxVelocity : float
        Maximum particle speed
    maxDensityError : float
        Maximum relative density error |rho - rho_0| / rho_0
    minDensity : float
        Smallest particle density
    nParticles : int
        Number of fluid particles
    nBoundary : int
        Number of boundary samples
    '''

    time: float
    step: int
    dt: float
    kineticEnergy: float
    potentialEnergy: float
    maxVelocity: float
    maxDensityError: float
    minDensity: float
    nParticles: int
    nBoundary: int

    @property
    def totalEnergy(self) -> float:
        '''Total mechanical energy (KE + PE).'''
        return self.kineticEnergy + self.potentialEnergy

