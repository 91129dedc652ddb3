# -- Simulation Scenarios Package -- #

'''
Pre-configured simulation scenarios.

Each scenario provides the options and initial fluid layout for a
specific problem and returns a ready-to-step simulation.
'''

from sphFluid.scenarios.fluidBlock import FluidBlockConfig, createFluidBlock
