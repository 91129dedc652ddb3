# -- Simulation Frame Exporter -- #

'''
Exports SPH fluid frames as JSON for external renderers.

Frames are built from the read-only position snapshot a renderer would
consume, plus speed and density per particle for color mapping. The
static boundary samples are written once, not per frame.
'''

from __future__ import annotations

import json
import logging
import os
from datetime import datetime

import numpy as np

from sphFluid.sph.protocols import SimulationConfig, SimulationState

logger = logging.getLogger(__name__)


class FrameExporter:
    '''
    Collects and exports simulation frame data as JSON.

    Usage:
        exporter = FrameExporter()
        exporter.setBoundary(simulation.boundary.positions)
        # During the step loop:
        exporter.addFrame(state, simulation.snapshotPositions(),
                          particles.velocities, particles.densities)
        # Afterwards:
        exporter.export(simulation.config, outputDir='output')

    Output JSON format:
    {
        "meta": { "type": "sphFluid", "nFrames": 11, "created": "...", ... },
        "config": { "kernel_radius": 40.0, ... },
        "boundary": [[x0, y0, z0], ...],
        "frames": [
            {
                "time": 0.0,
                "step": 0,
                "positions": [[x0, y0, z0], ...],
                "speeds": [s0, s1, ...],
                "densities": [rho0, rho1, ...]
            },
            ...
        ],
        "energy": { "times": [...], "kinetic": [...], "potential": [...], "total": [...] }
    }
    '''

    def __init__(self) -> None:
        self._frames: list[dict] = []
        self._boundary: list[list[float]] = []
        self._energyHistory: dict[str, list[float]] = {
            'times': [],
            'kinetic': [],
            'potential': [],
            'total': [],
        }

    @property
    def nFrames(self) -> int:
        '''Number of collected frames.'''
        return len(self._frames)

    def setBoundary(self, boundaryPositions: np.ndarray) -> None:
        '''
        Record the static boundary sample positions.

        Parameters:
        -----------
        boundaryPositions : np.ndarray
            Sample positions, shape (M, 3)
        '''
        positions = np.asarray(boundaryPositions, dtype=float).reshape(-1, 3)
        self._boundary = np.round(positions, 4).tolist()

    def addFrame(
        self,
        state: SimulationState,
        positions: np.ndarray,
        velocities: np.ndarray,
        densities: np.ndarray,
    ) -> None:
        '''
        Record a simulation frame.

        Parameters:
        -----------
        state : SimulationState
            Diagnostics of the step the frame belongs to
        positions : np.ndarray
            Fluid particle positions, shape (N, 3)
        velocities : np.ndarray
            Fluid particle velocities, shape (N, 3)
        densities : np.ndarray
            Fluid particle densities, shape (N,)
        '''
        speeds = np.linalg.norm(np.asarray(velocities, dtype=float), axis=1)

        frame = {
            'time': round(state.time, 6),
            'step': state.step,
            'positions': np.round(np.asarray(positions, dtype=float), 4).tolist(),
            'speeds': np.round(speeds, 6).tolist(),
            'densities': np.round(np.asarray(densities, dtype=float), 2).tolist(),
        }
        self._frames.append(frame)

        self._energyHistory['times'].append(round(state.time, 6))
        self._energyHistory['kinetic'].append(round(state.kineticEnergy, 6))
        self._energyHistory['potential'].append(round(state.potentialEnergy, 6))
        self._energyHistory['total'].append(round(state.totalEnergy, 6))

    def export(
        self,
        config: SimulationConfig,
        outputDir: str = 'output',
        scenarioName: str = 'fluidBlock',
    ) -> str:
        '''
        Write all collected frames to a JSON file.

        Parameters:
        -----------
        config : SimulationConfig
            Simulation configuration for metadata
        outputDir : str
            Output directory path
        scenarioName : str
            Scenario name for the filename

        Returns:
        --------
        str : Path to the exported JSON file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'sphFluid_{scenarioName}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        output = {
            'meta': {
                'type': 'sphFluid',
                'scenario': scenarioName,
                'nFrames': len(self._frames),
                'nParticles': len(self._frames[0]['positions']) if self._frames else 0,
                'nBoundary': len(self._boundary),
                'created': datetime.now().isoformat(),
            },
            'config': config.toOptions(),
            'boundary': self._boundary,
            'frames': self._frames,
            'energy': self._energyHistory,
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        logger.info('Exported %d frames to %s', len(self._frames), filepath)
        return filepath
