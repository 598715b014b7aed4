"""
Retarded field simulation of a single accelerating point charge.

One ``WaveSimulation`` owns the charge, its event history and the sample
grid. The host calls ``frame()`` once per display refresh; everything inside
a tick runs to completion before the next one starts.
"""
import enum
import logging
from dataclasses import dataclass

import numpy as np

from config import CanvasSize, SimulationConfig
from errors import SimulationStateError
from grid import FieldGrid
from history import HistoryBuffer, events_size
from kinematics import Charge, KinematicsIntegrator
from physics import FieldEquations
from resolver import RetardedEventResolver

logger = logging.getLogger(__name__)


class SimulationState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RECONFIGURING = "reconfiguring"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class TickResult:
    tick: int
    error: Exception = None

    @property
    def ok(self):
        return self.error is None


class PointerState:
    """Pointer written by the input layer, read once per tick."""

    def __init__(self):
        self.position = np.zeros(2)
        self.pressed = False

    def move(self, x, y, dpi=1.0):
        self.position = np.array([x * dpi, y * dpi], dtype=np.float64)

    def press(self, x=None, y=None, dpi=1.0):
        if x is not None and y is not None:
            self.move(x, y, dpi)
        self.pressed = True

    def release(self):
        self.pressed = False

    @property
    def target(self):
        return self.position.copy() if self.pressed else None


class WaveSimulation:

    def __init__(self, on_error=None):
        self.state = SimulationState.UNINITIALIZED
        self.config = None
        self.canvas = None
        self.equations = None
        self.charge = Charge()
        self.history = None
        self.grid = None
        self.integrator = None
        self.resolver = None
        self.pointer = PointerState()
        self.relativistic = True
        self.tick_count = 0
        self.resolution = None
        self.on_error = on_error
        self._running = False
        self._error_reported = False

    #########################################
    def configure(self, config=None, canvas=None):
        """
        Rebuild buffers and grid for ``config`` and ``canvas`` and restart.

        Validation happens before anything is touched: on
        ``ConfigurationError`` the previous state is left as it was.
        """
        if self.state is SimulationState.DISPOSED:
            raise SimulationStateError("simulation has been disposed")
        config = (config or self.config or SimulationConfig()).validate()
        canvas = canvas or self.canvas
        if canvas is None:
            raise SimulationStateError("no canvas size reported yet")
        if not isinstance(canvas, CanvasSize):
            canvas = CanvasSize(*canvas)
        canvas.validate()

        equations = FieldEquations.from_config(config)
        history = HistoryBuffer(events_size(canvas.width, canvas.height, config.propagation_speed,
                                            config.tick_rate, config.events_margin))
        grid = FieldGrid(canvas.width, canvas.height, config.cell_size, config.avg_time)
        integrator = KinematicsIntegrator(equations, config.avg_time)
        resolver = RetardedEventResolver(equations, config.cell_size, config.max_hold_frames)

        self.pause()
        self.state = SimulationState.RECONFIGURING
        self.config, self.canvas = config, canvas
        self.equations, self.history, self.grid = equations, history, grid
        self.integrator, self.resolver = integrator, resolver
        self.charge = Charge(position=np.array(canvas.center, dtype=np.float64))
        self.tick_count = 0
        self.resolution = None
        self.history.seed(self.charge.position, tick_index=0)
        self._error_reported = False
        self.state = SimulationState.READY
        logger.info("Configured %dx%d canvas: grid %dx%d, %d events, c=%g",
                    canvas.width, canvas.height, grid.shape[0], grid.shape[1],
                    history.capacity, config.propagation_speed)
        self.resume()

    def resize(self, canvas):
        self.configure(self.config, canvas)

    def dispose(self):
        self.pause()
        self.history = None
        self.grid = None
        self.integrator = None
        self.resolver = None
        self.state = SimulationState.DISPOSED

    #########################################
    def set_relativistic(self, enabled):
        """Switch between light-cone search and instantaneous fields."""
        self.relativistic = bool(enabled)
        if self.grid is not None:
            self.grid.reset()
        logger.debug("Relativistic mode %s", "on" if self.relativistic else "off")

    def is_running(self):
        return self._running

    def pause(self):
        if self._running:
            logger.debug("Paused at tick %d", self.tick_count)
        self._running = False

    def resume(self):
        if self.state is not SimulationState.READY:
            raise SimulationStateError(f"cannot resume from state {self.state.value}")
        self._running = True

    def toggle(self):
        if self._running:
            self.pause()
        else:
            self.resume()
        return self._running

    #########################################
    def tick(self, target=None):
        """
        Advance one step: move the charge, then resolve every cell.

        Runtime faults come back in the result instead of being raised.
        """
        if self.state is not SimulationState.READY:
            raise SimulationStateError(f"cannot tick in state {self.state.value}")
        try:
            self.tick_count += 1
            self.integrator.step(self.charge, target, self.history, self.tick_count)
            self.resolution = self._update_field()
        except Exception as e:
            return TickResult(self.tick_count, error=e)
        return TickResult(self.tick_count)

    def _update_field(self):
        if self.relativistic:
            resolution = self.resolver.resolve(self.grid, self.history)
        else:
            resolution = self.resolver.instantaneous(self.grid)

        visible = resolution.visible
        idx = np.where(visible, resolution.indices, 0)
        r_retarded, r_mag = self.equations.calculate_retarded_distance(
            self.grid.centers, self.history.positions()[idx])
        magnitude = np.where(visible, self.history.magnitudes()[idx], 0.0)
        intensity = self.equations.field_intensity(r_retarded, r_mag, magnitude,
                                                   self.history.angles()[idx],
                                                   self.config.field_magnitude)
        self.grid.record(intensity, self.equations)
        return resolution

    #########################################
    def frame(self):
        """
        Per-refresh entry point. Ticks only while running; a failed tick pauses
        the simulation and is reported once.
        """
        if not self._running:
            return None
        result = self.tick(self.pointer.target)
        if not result.ok:
            self._fail(result)
        return result

    def single_step(self):
        """Force exactly one tick, whether paused or not."""
        result = self.tick(self.pointer.target)
        if not result.ok:
            self._fail(result)
        return result

    def _fail(self, result):
        self.pause()
        if self._error_reported:
            return
        self._error_reported = True
        logger.error("Tick %d failed, simulation paused", result.tick, exc_info=result.error)
        if self.on_error is not None:
            self.on_error(result.error)
