"""
Light-cone search: for every grid cell, find the recorded event whose age
matches its distance from the cell.

Event ``k`` (``k`` ticks ago) is visible from a cell when
``|distance(cell, event_k) - c * k / tick_rate| < cell_size``. The scan is
greedy: the smallest acceptable ``k`` inside the search window wins.
"""
import logging
from dataclasses import dataclass

import numpy as np

from grid import NO_EVENT

logger = logging.getLogger(__name__)

# Upper bound on cells * events evaluated in one numpy block
CHUNK_BUDGET = 1 << 20


@dataclass
class Resolution:
    """Per-cell outcome of one search."""
    indices: np.ndarray  # history index per cell, NO_EVENT when nothing is visible
    matched: np.ndarray  # causal match this tick
    held: np.ndarray     # stale event reused after a miss

    @property
    def visible(self):
        return self.indices != NO_EVENT


def first_true(mask):
    """Column of the first True per row, NO_EVENT for rows without any."""
    first = np.argmax(mask, axis=1)
    return np.where(mask.any(axis=1), first, NO_EVENT)


class RetardedEventResolver:

    def __init__(self, equations, cell_size, max_hold_frames=3, chunk_budget=CHUNK_BUDGET):
        self.equations = equations
        self.cell_size = cell_size
        self.max_hold_frames = max_hold_frames
        self.chunk_budget = chunk_budget

    def search_window(self, last_index, events_size):
        """
        Index window ``[lo, hi)`` per cell. Cells with a cached match search
        ``[last - round(E / 3), last + 3)``; the others search everything.
        """
        lo = np.zeros_like(last_index)
        hi = np.full_like(last_index, events_size)
        cached = last_index != NO_EVENT
        lo[cached] = last_index[cached] - int(np.floor(events_size / 3 + 0.5))
        hi[cached] = last_index[cached] + 3
        return np.clip(lo, 0, events_size), np.clip(hi, 0, events_size)

    def scan(self, points, event_positions, lo, hi):
        """First causal event index per point inside ``[lo, hi)``."""
        n, events = points.shape[0], event_positions.shape[0]
        found = np.full(n, NO_EVENT, dtype=np.int64)
        if n == 0 or events == 0:
            return found
        step = max(1, self.chunk_budget // events)
        for start in range(0, n, step):
            stop = min(start + step, n)
            # Only the union of this chunk's windows is evaluated
            first, last = int(lo[start:stop].min()), int(hi[start:stop].max())
            if last <= first:
                continue
            residual = self.equations.light_cone_residual(points[start:stop],
                                                          event_positions[first:last], first)
            ks = np.arange(first, last)
            in_window = (ks[None, :] >= lo[start:stop, None]) & (ks[None, :] < hi[start:stop, None])
            hit = first_true((residual < self.cell_size) & in_window)
            found[start:stop] = np.where(hit == NO_EVENT, NO_EVENT, hit + first)
        return found

    def resolve(self, grid, history):
        """
        Pick the visible event for every cell and update the grid's caches.

        Window miss falls back to a full search in the same tick. A full miss
        holds the previous event (one tick older now) for at most
        ``max_hold_frames`` ticks, after which the cell shows no event.
        """
        events = len(history)
        positions = history.positions()
        last = grid.last_event_index

        lo, hi = self.search_window(last, events)
        indices = self.scan(grid.centers, positions, lo, hi)

        retry = (indices == NO_EVENT) & (last != NO_EVENT)
        if retry.any():
            full = self.scan(grid.centers[retry], positions,
                             np.zeros(int(retry.sum()), dtype=np.int64),
                             np.full(int(retry.sum()), events, dtype=np.int64))
            indices[retry] = full

        matched = indices != NO_EVENT
        missed = ~matched
        held = missed & (last != NO_EVENT) & (grid.hold_count < self.max_hold_frames) & (last + 1 < events)
        dropped = missed & ~held

        indices[held] = last[held] + 1
        if held.any():
            logger.warning("No causal event for %d cell(s); holding previous events", int(held.sum()))

        grid.last_event_index = np.where(dropped, NO_EVENT, indices)
        grid.hold_count = np.where(held, grid.hold_count + 1, 0)
        return Resolution(indices=indices, matched=matched, held=held)

    def instantaneous(self, grid):
        """Non-relativistic mode: every cell sees the newest event."""
        n = len(grid)
        return Resolution(indices=np.zeros(n, dtype=np.int64),
                          matched=np.ones(n, dtype=bool),
                          held=np.zeros(n, dtype=bool))
