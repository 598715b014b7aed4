"""
Simulation parameters for the retarded field plot.

``SimulationConfig`` carries the user-facing knobs (speed of light, cell
size, field magnitude) together with the integrator constants. Any change
to any field forces a full rebuild of the history buffer and the grid.
"""
import logging
import math
from dataclasses import dataclass, fields, replace

from errors import ConfigurationError

logger = logging.getLogger(__name__)

# Limits of the control panel inputs
SPEED_RANGE = (50.0, math.inf)
CELL_SIZE_RANGE = (5, 1000)
FIELD_MAGNITUDE_RANGE = (0.0, 100.0)


def constrain(value, low, high):
    """Clamp ``value`` into ``[low, high]``."""
    return min(max(value, low), high)


@dataclass(frozen=True)
class SimulationConfig:
    propagation_speed: float = 600.0
    cell_size: int = 30
    field_magnitude: float = 1.0
    avg_time: int = 10
    tick_rate: int = 60
    time_step: float = 0.05
    damping: float = 0.95
    dead_zone: float = 0.5
    speed_limit: float = 0.99
    events_margin: int = 10
    max_hold_frames: int = 3
    min_distance: float = 1e-6

    @classmethod
    def from_inputs(cls, speed, cell_size, field_magnitude, **overrides):
        """
        Build a config from raw control-panel values.

        Values are clamped to the ranges the panel accepts, so a typo in an
        input box never reaches ``validate``.
        """
        try:
            speed, cell_size, field_magnitude = (float(speed), float(cell_size),
                                                 float(field_magnitude))
        except (TypeError, ValueError, OverflowError) as e:
            raise ConfigurationError(f"Non numeric simulation input: {e}") from e
        for name, value in (('speed', speed), ('cell size', cell_size),
                            ('field magnitude', field_magnitude)):
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value!r}")
        cell_size = int(cell_size)
        return cls(propagation_speed=constrain(speed, *SPEED_RANGE),
                   cell_size=constrain(cell_size, *CELL_SIZE_RANGE),
                   field_magnitude=constrain(field_magnitude, *FIELD_MAGNITUDE_RANGE),
                   **overrides)

    def with_inputs(self, speed, cell_size, field_magnitude):
        """Copy of this config with new control-panel values."""
        panel = self.from_inputs(speed, cell_size, field_magnitude)
        return replace(self, propagation_speed=panel.propagation_speed,
                       cell_size=panel.cell_size,
                       field_magnitude=panel.field_magnitude)

    def validate(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"{f.name} must be finite, got {value!r}")
        if self.propagation_speed <= 0:
            raise ConfigurationError(
                f"propagation_speed must be > 0, got {self.propagation_speed}")
        if self.cell_size <= 0 or int(self.cell_size) != self.cell_size:
            raise ConfigurationError(
                f"cell_size must be a positive integer, got {self.cell_size}")
        if self.field_magnitude < 0:
            raise ConfigurationError(
                f"field_magnitude must be >= 0, got {self.field_magnitude}")
        if self.avg_time < 2 or int(self.avg_time) != self.avg_time:
            raise ConfigurationError(f"avg_time must be an integer >= 2, got {self.avg_time}")
        if self.tick_rate <= 0:
            raise ConfigurationError(f"tick_rate must be > 0, got {self.tick_rate}")
        if self.time_step <= 0:
            raise ConfigurationError(f"time_step must be > 0, got {self.time_step}")
        if not 0 <= self.damping <= 1:
            raise ConfigurationError(f"damping must be in [0, 1], got {self.damping}")
        if self.dead_zone < 0:
            raise ConfigurationError(f"dead_zone must be >= 0, got {self.dead_zone}")
        if not 0 < self.speed_limit < 1:
            raise ConfigurationError(f"speed_limit must be in (0, 1), got {self.speed_limit}")
        if self.events_margin < 0 or int(self.events_margin) != self.events_margin:
            raise ConfigurationError(
                f"events_margin must be a non-negative integer, got {self.events_margin}")
        if self.max_hold_frames < 0 or int(self.max_hold_frames) != self.max_hold_frames:
            raise ConfigurationError(
                f"max_hold_frames must be a non-negative integer, got {self.max_hold_frames}")
        if self.min_distance <= 0:
            raise ConfigurationError(f"min_distance must be > 0, got {self.min_distance}")
        return self


@dataclass(frozen=True)
class CanvasSize:
    width: int
    height: int

    def validate(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"canvas {name} must be a positive integer, got {value!r}")
        return self

    @property
    def center(self):
        # Half-up rounding, not banker's rounding
        return (math.floor(self.width / 2 + 0.5), math.floor(self.height / 2 + 0.5))


class ConfigDebouncer:
    """
    Holds back parameter edits and resizes until they settle.

    Only the latest submitted value is kept; every submit restarts the wait.
    """

    def __init__(self, wait=0.2):
        self.wait = wait
        self._value = None
        self._deadline = None

    @property
    def pending(self):
        return self._deadline is not None

    def submit(self, value, now):
        if self.pending:
            logger.debug("Replacing pending reconfiguration")
        self._value = value
        self._deadline = now + self.wait

    def due(self, now):
        if not self.pending or now < self._deadline:
            return None
        value, self._value, self._deadline = self._value, None, None
        return value
