import logging
import math

import numpy as np

from history import RingBuffer

logger = logging.getLogger(__name__)

NO_EVENT = -1


class FieldGrid:
    """
    Lattice of sample cells covering the canvas.

    Cells are stored flat in column-major order (``i * ny + j`` for column
    ``i``, row ``j``) so per-cell arrays line up with ``centers``. Each cell
    keeps a rolling intensity history of ``avg_time`` samples, the history
    index of its last causal match and how many ticks it has been holding a
    stale match.
    """

    def __init__(self, width, height, cell_size, avg_time):
        self.cell_size = int(cell_size)
        self.avg_time = int(avg_time)
        self.shape = (math.ceil(width / self.cell_size), math.ceil(height / self.cell_size))
        nx, ny = self.shape
        xs = np.arange(nx) * self.cell_size + 0.5 * self.cell_size
        ys = np.arange(ny) * self.cell_size + 0.5 * self.cell_size
        x_in, y_in = np.meshgrid(xs, ys, indexing="ij")
        self.centers = np.column_stack((x_in.ravel(), y_in.ravel()))
        self.reset()

    def __len__(self):
        return self.centers.shape[0]

    def reset(self):
        """Forget intensity histories and cached matches."""
        n = len(self)
        self._history = RingBuffer(self.avg_time, row_shape=(n,))
        self._history.fill(np.zeros(n))
        self.last_event_index = np.full(n, NO_EVENT, dtype=np.int64)
        self.hold_count = np.zeros(n, dtype=np.int64)
        self.intensity = np.zeros(n)
        self.intensity_change = np.zeros(n)
        logger.debug("Grid %dx%d reset", *self.shape)

    def record(self, intensity, equations):
        """
        Push this tick's intensities and derive the intensity change.

        Parameters:
        - intensity: ``(N,)`` new intensities.
        - equations: ``FieldEquations`` used for the change formula.
        """
        self._history.push_front(intensity)
        oldest = self._history.ago(self.avg_time - 1)
        history_max = self.intensity_history().max(axis=0)
        self.intensity = np.array(intensity, dtype=np.float64)
        self.intensity_change = equations.intensity_change(self.intensity, oldest, history_max)

    def intensity_history(self):
        """``(avg_time, N)`` intensities, newest first."""
        return self._history.newest_first()

    def cells(self):
        """Rendering view: ``(center, intensity, intensity change)`` per cell."""
        return zip(self.centers, self.intensity, self.intensity_change)
