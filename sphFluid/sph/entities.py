# -- SPH Entity Model -- #

'''
Value types for the two kinds of entity an SPH scene contains.

Fluid particles move and carry density, pressure and a transient
viscous force; boundary samples are static point masses on the
container walls. Both expose an id, a position and a mass, which is
all the spatial index and the density sum need to treat them alike.

Inside the solver, state lives in the arrays of FluidParticles and
BoundarySamples (see particles.py). The objects here are read-only
views handed to callers and accepted by SpatialHashGrid.insert.
Entity ids are shared between the two kinds: fluid particles take
0..N-1 and boundary samples N..N+M-1.
'''

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Protocol

import numpy as np


class EntityKind(Enum):
    '''Tag distinguishing moving fluid particles from static wall samples.'''

    PARTICLE = 'particle'
    BOUNDARY = 'boundary'


class Positioned(Protocol):
    '''Anything the spatial index can file: an id, a position and a mass.'''

    entityId: int
    position: np.ndarray
    mass: float


@dataclass
class Particle:
    '''
    Snapshot of one fluid particle.

    Parameters:
    -----------
    entityId : int
        Shared entity id (0..N-1 for fluid particles)
    position : np.ndarray
        Position, shape (3,)
    velocity : np.ndarray
        Velocity, shape (3,)
    density : float
        Density from the last density pass
    pressure : float
        Pressure from the last pressure pass
    viscousForce : np.ndarray
        Accumulated viscous force, shape (3,)
    mass : float
        The calibrated mass shared by every particle of the simulation
    '''

    kind: ClassVar[EntityKind] = EntityKind.PARTICLE

    entityId: int
    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    density: float = 0.0
    pressure: float = 0.0
    viscousForce: np.ndarray = field(default_factory=lambda: np.zeros(3))
    mass: float = 0.0


@dataclass(frozen=True)
class BoundarySample:
    '''
    One static boundary sample.

    Parameters:
    -----------
    entityId : int
        Shared entity id (N..N+M-1 for boundary samples)
    position : np.ndarray
        Position, shape (3,)
    mass : float
        Calibrated mass of this sample
    '''

    kind: ClassVar[EntityKind] = EntityKind.BOUNDARY

    entityId: int
    position: np.ndarray
    mass: float = 0.0
