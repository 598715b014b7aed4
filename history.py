"""
Rolling logs of the charge's past states, indexed by "ticks ago".

Index 0 is always the newest entry. Pushing to the front of a full buffer
evicts the oldest entry in O(1); nothing is reallocated per tick.
"""
import math
from dataclasses import dataclass

import numpy as np


def events_size(width, height, propagation_speed, tick_rate=60, margin=10):
    """
    Number of ticks the field needs to cross the canvas diagonal, plus a margin.

    Parameters:
    - width, height: canvas size in pixels.
    - propagation_speed: speed of light in pixels per simulated second.
    - tick_rate: ticks per simulated second.
    - margin: extra slots kept beyond the diagonal crossing time.
    Returns:
    - capacity of the event history.
    """
    diagonal = math.hypot(width, height)
    return math.ceil(diagonal / propagation_speed * tick_rate) + int(margin)


class RingBuffer:
    """Fixed-capacity buffer of equally shaped rows, newest first."""

    def __init__(self, capacity, row_shape=(), dtype=np.float64):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._data = np.zeros((int(capacity),) + tuple(row_shape), dtype=dtype)
        self._head = 0
        self._size = 0

    def __len__(self):
        return self._size

    @property
    def capacity(self):
        return self._data.shape[0]

    def push_front(self, row):
        self._head = (self._head - 1) % self.capacity
        self._data[self._head] = row
        self._size = min(self._size + 1, self.capacity)

    def ago(self, k):
        if not 0 <= k < self._size:
            raise IndexError(f"no entry {k} ticks ago (size {self._size})")
        return self._data[(self._head + k) % self.capacity]

    def slots(self):
        """Storage slots of the live rows in newest-first order."""
        return (self._head + np.arange(self._size)) % self.capacity

    def newest_first(self):
        return self._data[self.slots()]

    def fill(self, row):
        self._data[:] = row
        self._head = 0
        self._size = self.capacity

    def load(self, rows):
        """Replace the content with ``rows`` given newest first."""
        rows = np.asarray(rows, dtype=self._data.dtype)
        if rows.shape[0] > self.capacity:
            raise ValueError(f"{rows.shape[0]} rows do not fit in capacity {self.capacity}")
        self._data[:rows.shape[0]] = rows
        self._head = 0
        self._size = rows.shape[0]


@dataclass(frozen=True)
class KinematicEvent:
    """Snapshot of the charge at one recorded tick."""
    position: np.ndarray
    acceleration: np.ndarray
    magnitude: float
    angle: float
    tick_index: int


# Column layout of one history row
_X, _Y, _AX, _AY, _MAG, _ANGLE, _TICK = range(7)


class HistoryBuffer:
    """
    Event log of the charge: position, acceleration, its magnitude and polar
    angle, and the tick it was recorded at.
    """

    def __init__(self, capacity):
        self._ring = RingBuffer(capacity, row_shape=(7,))
        self._cache = None

    def __len__(self):
        return len(self._ring)

    def __getitem__(self, k):
        row = self._ring.ago(k)
        return KinematicEvent(position=row[[_X, _Y]].copy(),
                              acceleration=row[[_AX, _AY]].copy(),
                              magnitude=float(row[_MAG]),
                              angle=float(row[_ANGLE]),
                              tick_index=int(row[_TICK]))

    @property
    def capacity(self):
        return self._ring.capacity

    def push(self, position, acceleration, magnitude, angle, tick_index):
        self._ring.push_front((position[0], position[1], acceleration[0], acceleration[1],
                               magnitude, angle, tick_index))
        self._cache = None

    def seed(self, position, tick_index=0):
        """
        Fill every slot with a charge at rest at ``position``.

        Slot k is stamped with ``tick_index - k`` so that ages stay consistent
        with events pushed afterwards.
        """
        rows = np.zeros((self.capacity, 7))
        rows[:, _X] = position[0]
        rows[:, _Y] = position[1]
        rows[:, _TICK] = tick_index - np.arange(self.capacity)
        self._ring.load(rows)
        self._cache = None

    def table(self):
        """All rows as one ``(len, 7)`` array, newest first."""
        if self._cache is None:
            self._cache = self._ring.newest_first()
        return self._cache

    def positions(self):
        return self.table()[:, [_X, _Y]]

    def magnitudes(self):
        return self.table()[:, _MAG]

    def angles(self):
        return self.table()[:, _ANGLE]
