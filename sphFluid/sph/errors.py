# -- SPH Solver Errors -- #

'''
Exception hierarchy raised by the SPH core.

Every error derives from SphError so callers can catch the whole family,
and from the closest built-in exception so generic handlers still work.
All of them are fatal to the simulation instance: the caller must
re-configure and/or reset before stepping again.
'''


class SphError(Exception):
    '''Base class for all SPH solver errors.'''


class InvalidConfigurationError(SphError, ValueError):
    '''A configuration value is out of range or malformed.'''


class UnsupportedConfigurationError(SphError, ValueError):
    '''A solver or model selector names something this core cannot run.'''


class NumericalInstabilityError(SphError, RuntimeError):
    '''A field went non-positive or non-finite where that is not allowed.'''


class SimulationStateError(SphError, RuntimeError):
    '''An operation was requested in a state that does not allow it.'''


class InvalidTimeStepError(SphError, ValueError):
    '''step() was called with a non-positive or non-finite time step.'''
