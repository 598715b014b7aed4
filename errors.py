class WavePlotError(Exception):
    """Base class for every error raised by the field simulation."""


class ConfigurationError(WavePlotError, ValueError):
    """Invalid numeric parameter handed to ``configure``."""


class DegenerateGeometryError(WavePlotError, ArithmeticError):
    """A cell sample produced a non-finite field intensity."""


class SimulationStateError(WavePlotError, RuntimeError):
    """Operation not allowed in the current lifecycle state."""
