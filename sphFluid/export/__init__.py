# -- Export Package -- #

'''
Data export utilities for SPH simulation results.

Exports frame data as JSON for external renderers.
'''

from sphFluid.export.frameExporter import FrameExporter
