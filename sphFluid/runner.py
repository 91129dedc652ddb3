# -- SPH Fluid Runner -- #

'''
Command-line entry point for running SPH fluid simulations.

Builds a fluid block scenario (or loads options from JSON), steps it
with a fixed time step, prints progress, and optionally exports frame
data for an external renderer.

Usage:
    python -m sphFluid                                # Small fluid block
    python -m sphFluid --preset standard              # Full size container
    python -m sphFluid --config configs/block.json    # Options from JSON
    python -m sphFluid --steps 500 --dt 0.001 --no-export
'''

from __future__ import annotations

import argparse
import logging
import time as timeModule

from sphFluid.export.frameExporter import FrameExporter
from sphFluid.scenarios.fluidBlock import FluidBlockConfig, createFluidBlock
from sphFluid.sph.errors import SphError
from sphFluid.sph.fluidSimulation import FluidSimulation
from sphFluid.sph.protocols import SimulationConfig

logger = logging.getLogger(__name__)


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='sphFluid -- SPH fluid in a closed container',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON options file (an "sph" section or top-level options)',
    )
    parser.add_argument(
        '--preset', type=str, default='small',
        choices=['small', 'standard'],
        help='Scenario preset (default: small)',
    )
    parser.add_argument(
        '--steps', type=int, default=None,
        help='Number of time steps (default: preset value)',
    )
    parser.add_argument(
        '--dt', type=float, default=None,
        help='Time step size in seconds (default: preset value)',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip frame data export',
    )
    parser.add_argument(
        '--output-dir', type=str, default='output',
        help='Output directory for exported frames (default: output)',
    )
    parser.add_argument(
        '--verbose', '-v', action='store_true',
        help='Log per-step diagnostics',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class FluidRunner:
    '''
    Runs an SPH simulation and stores results.

    Handles the full pipeline: scenario setup, the fixed-step loop
    with progress reporting, and optional frame export.
    '''

    def __init__(self) -> None:
        self._exporter: FrameExporter = FrameExporter()

    def runFromConfig(
        self,
        configPath: str,
        blockConfig: FluidBlockConfig,
        doExport: bool = True,
        exportDir: str = 'output',
    ) -> dict:
        '''
        Run with simulation options loaded from a JSON file.

        Step count, time step and output interval come from blockConfig.

        Parameters:
        -----------
        configPath : str
            Path to the JSON options file
        blockConfig : FluidBlockConfig
            Supplies the loop settings
        doExport : bool
            Whether to export frame data
        exportDir : str
            Output directory for frame export

        Returns:
        --------
        dict : Simulation results summary
        '''
        config = SimulationConfig.fromJson(configPath)
        simulation = FluidSimulation(config=config)
        simulation.reset()
        return self.run(simulation, blockConfig, doExport=doExport, exportDir=exportDir)

    def runPreset(
        self,
        blockConfig: FluidBlockConfig,
        doExport: bool = True,
        exportDir: str = 'output',
    ) -> dict:
        '''Run a fluid block scenario.'''
        simulation = createFluidBlock(blockConfig)
        return self.run(simulation, blockConfig, doExport=doExport, exportDir=exportDir)

    def run(
        self,
        simulation: FluidSimulation,
        blockConfig: FluidBlockConfig,
        doExport: bool = True,
        exportDir: str = 'output',
    ) -> dict:
        '''
        Step a running simulation and report progress.

        Parameters:
        -----------
        simulation : FluidSimulation
            Initialized simulation
        blockConfig : FluidBlockConfig
            Step count, time step and output interval
        doExport : bool
            Whether to export frame data
        exportDir : str
            Output directory for frame export

        Returns:
        --------
        dict : Simulation results summary
        '''
        config = simulation.config

        print()
        print('=' * 62)
        print('  SPHFLUID -- SPH FLUID BLOCK SIMULATION')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Scenario Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SCENARIO SETUP')
        print('-' * 62)

        particles = simulation.particles
        print(f'  Container Size:    {config.containerSize:10.1f}')
        print(f'  Kernel Radius:     {config.kernelRadius:10.2f}')
        print(f'  Particle Distance: {config.particleDistance:10.2f}')
        print(f'  Rest Density:      {config.restDensity:10.1f}')
        print(f'  Pressure Solver:   {config.pressureSolver.value:>10}')
        print(f'  Stiffness k:       {config.pressureStiffness:10.1f}')
        print(f'  Viscosity:         {config.viscosity.value:>10}')
        print(f'  Boundary Mode:     {config.boundaryMode.value:>10}')
        print(f'  Fluid Particles:   {particles.nParticles:10d}')
        print(f'  Boundary Samples:  {simulation.boundary.nSamples:10d}')
        print(f'  Particle Mass:     {particles.referenceMass:10.4g}')
        print(f'  Time Step:         {blockConfig.timeStep:10.2e} s')
        print(f'  Steps:             {blockConfig.nSteps:10d}')
        print()

        self._exporter.setBoundary(simulation.boundary.positions)
        self._addFrame(simulation)

        #--------------------------------------------------------------------#
        # Simulation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)
        print()
        print(f'  {"Time":>8}  {"Step":>8}  {"MaxVel":>10}  {"DensErr":>8}  {"MinDens":>10}  {"Energy":>12}')
        print(f'  {"(s)":>8}  {"":>8}  {"":>10}  {"(%)":>8}  {"":>10}  {"":>12}')
        print('  ' + '-' * 66)

        wallClockStart = timeModule.time()
        printInterval = max(1, blockConfig.nSteps // 20)

        for _ in range(blockConfig.nSteps):
            state = simulation.step(blockConfig.timeStep)

            if state.step % blockConfig.outputInterval == 0:
                self._addFrame(simulation)

            if state.step % printInterval == 0:
                print(
                    f'  {state.time:8.4f}  {state.step:8d}  {state.maxVelocity:10.4g}  '
                    f'{state.maxDensityError * 100:8.3f}  {state.minDensity:10.4g}  '
                    f'{state.totalEnergy:12.5g}'
                )

        wallClockSeconds = timeModule.time() - wallClockStart
        finalState = simulation.currentState
        if finalState.step % blockConfig.outputInterval != 0:
            self._addFrame(simulation)

        print()
        print(f'  Simulation complete.')
        print(f'  Total steps:       {finalState.step:10d}')
        print(f'  Wall-clock time:   {wallClockSeconds:10.1f} s')
        print(f'  Frames collected:  {self._exporter.nFrames:10d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        if doExport:
            print('-' * 62)
            print('  EXPORTING FRAME DATA')
            print('-' * 62)

            exportPath = self._exporter.export(
                config=config,
                outputDir=exportDir,
                scenarioName='fluidBlock',
            )
            print(f'  Exported to: {exportPath}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Final KE:          {finalState.kineticEnergy:12.6g}')
        print(f'  Final PE:          {finalState.potentialEnergy:12.6g}')
        print(f'  Final Total E:     {finalState.totalEnergy:12.6g}')
        print(f'  Max Density Error: {finalState.maxDensityError * 100:10.3f} %')
        print(f'  Min Density:       {finalState.minDensity:12.6g}')
        print(f'  Max Velocity:      {finalState.maxVelocity:12.6g}')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._exporter.nFrames,
            'exportPath': exportPath,
        }

    def _addFrame(self, simulation: FluidSimulation) -> None:
        particles = simulation.particles
        self._exporter.addFrame(
            simulation.currentState,
            simulation.snapshotPositions(),
            particles.velocities,
            particles.densities,
        )


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main(argv: list[str] | None = None) -> int:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    presets = {
        'small': FluidBlockConfig.small,
        'standard': FluidBlockConfig.standard,
    }
    blockConfig = presets[args.preset]()
    if args.steps is not None:
        blockConfig.nSteps = args.steps
    if args.dt is not None:
        blockConfig.timeStep = args.dt

    runner = FluidRunner()
    try:
        if args.config:
            runner.runFromConfig(
                args.config, blockConfig,
                doExport=not args.no_export,
                exportDir=args.output_dir,
            )
        else:
            runner.runPreset(
                blockConfig,
                doExport=not args.no_export,
                exportDir=args.output_dir,
            )
    except SphError as exc:
        logger.error('Simulation failed: %s', exc)
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
