# -- Physical and Numerical Constants for the SPH Fluid Solver -- #

'''
Default physical and numerical constants for the SPH fluid solver.

Lengths are in scene units (the container is a cube centered on the
origin), time in seconds. The y axis points up.
'''

#--------------------------------------------------------------------#
# -- Fluid Properties -- #
#--------------------------------------------------------------------#

# Rest (reference) density rho_0
restDensity: float = 1000.0

# Gravitational acceleration magnitude, applied along -y
gravity: float = 9.81

#--------------------------------------------------------------------#
# -- SPH Numerical Parameters -- #
#--------------------------------------------------------------------#

# Default kernel support radius h
kernelRadius: float = 40.0

# Default lattice spacing d (initial placement and mass calibration)
particleDistance: float = 20.0

# Default container edge length (container spans +/- containerSize / 2)
containerSize: float = 2000.0

# Tait equation of state exponent
# p = k * ((rho / rho_0)^gamma - 1)
gamma: float = 7.0

# Equation of state stiffness k
pressureStiffness: float = 1000.0

# Monaghan artificial viscosity coefficient (alpha)
monaghanViscosity: float = 0.1

# XSPH velocity smoothing coefficient (epsilon)
xsphViscosity: float = 0.2

# Singularity guard in the Monaghan mu_ij term, as a fraction of h_s^2
# where h_s is the smoothing length (half the support radius)
monaghanEtaFactor: float = 0.01

# Distance below which two points are treated as coincident
zeroDistance: float = 1e-12

#--------------------------------------------------------------------#
# -- Initialization and Boundary Parameters -- #
#--------------------------------------------------------------------#

# Initial position jitter as a fraction of particleDistance
jitterFraction: float = 0.01

# Seed for the jitter random generator
jitterSeed: int = 0

# Velocity factor applied when the simple box mode reflects a particle
boxDamping: float = 0.5

# Default fluid block as fractions of the container edge, relative to
# the container center. The block rests one lattice spacing above the floor.
fluidRegionHalfWidthFraction: float = 0.1
fluidRegionHeightFraction: float = 0.2
