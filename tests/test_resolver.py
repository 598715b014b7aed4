import numpy as np
import pytest

from grid import NO_EVENT, FieldGrid
from history import HistoryBuffer
from physics import FieldEquations
from resolver import RetardedEventResolver, first_true


def greedy_scan(center, positions, c, tick_rate, tolerance, lo, hi):
    """Cell-by-cell reference scan."""
    for k in range(lo, hi):
        distance = np.hypot(*(center - positions[k]))
        if abs(distance - c * k / tick_rate) < tolerance:
            return k
    return NO_EVENT


@pytest.fixture
def eq():
    # 10 px of light travel per tick
    return FieldEquations(c=600.0, tick_rate=60)


@pytest.fixture
def row_grid():
    return FieldGrid(100, 10, 10, avg_time=3)


def moving_history(capacity):
    history = HistoryBuffer(capacity)
    history.seed(np.zeros(2))
    for tick in range(1, capacity + 1):
        history.push(np.array([0.5 * tick, 0.3 * tick]), np.array([0.0, 1.0]), 1.0, 0.0, tick)
    return history


def test_first_true():
    mask = np.array([[False, True, True], [False, False, False], [True, False, False]])
    np.testing.assert_array_equal(first_true(mask), [1, NO_EVENT, 0])


def test_search_window_is_clamped(eq):
    resolver = RetardedEventResolver(eq, cell_size=10)
    lo, hi = resolver.search_window(np.array([NO_EVENT, 10, 28]), 30)
    np.testing.assert_array_equal(lo, [0, 0, 18])
    np.testing.assert_array_equal(hi, [30, 13, 30])


def test_resolve_matches_greedy_reference(eq, row_grid):
    history = moving_history(20)
    resolver = RetardedEventResolver(eq, cell_size=10)
    resolution = resolver.resolve(row_grid, history)
    positions = history.positions()
    expected = [greedy_scan(center, positions, 600.0, 60, 10, 0, 20) for center in row_grid.centers]
    np.testing.assert_array_equal(resolution.indices, expected)
    np.testing.assert_array_equal(row_grid.last_event_index, expected)


def test_every_match_is_on_the_light_cone(eq, row_grid):
    history = moving_history(20)
    resolution = RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    assert resolution.matched.any()
    for cell in np.flatnonzero(resolution.matched):
        k = resolution.indices[cell]
        distance = np.hypot(*(row_grid.centers[cell] - history[k].position))
        assert abs(distance - 10.0 * k) < 10


def test_far_cell_matches_oldest_acceptable_radius(eq, row_grid):
    history = HistoryBuffer(20)
    history.seed(np.zeros(2))
    resolution = RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    # Cell (95, 5) is 95.1 px away: k = 9 is the first radius within 10 px
    assert resolution.indices[-1] == 9
    assert resolution.indices[0] == 0


def test_window_miss_falls_back_to_full_search(eq, row_grid):
    history = HistoryBuffer(20)
    history.seed(np.zeros(2))
    row_grid.last_event_index[-1] = 19
    resolution = RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    assert resolution.indices[-1] == 9
    assert resolution.matched[-1]
    assert not resolution.held[-1]


def test_window_limits_the_search(eq, row_grid):
    history = HistoryBuffer(20)
    history.seed(np.zeros(2))
    # Window [3, 13) still contains k = 9, the full-range answer
    row_grid.last_event_index[-1] = 10
    resolution = RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    assert resolution.indices[-1] == 9


def recorded_widths(monkeypatch, eq):
    """Record how many events every residual evaluation covers."""
    widths = []
    residual = eq.light_cone_residual

    def recording(points, event_positions, first=0):
        widths.append((first, event_positions.shape[0]))
        return residual(points, event_positions, first)

    monkeypatch.setattr(eq, "light_cone_residual", recording)
    return widths


def test_cached_windows_narrow_the_scan(eq, row_grid, monkeypatch):
    history = HistoryBuffer(30)
    history.seed(np.zeros(2))
    # cell i is cached at its own match k = i; windows are [0, i + 3)
    row_grid.last_event_index[:] = np.arange(10)
    widths = recorded_widths(monkeypatch, eq)
    resolution = RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    assert widths == [(0, 12)]
    np.testing.assert_array_equal(resolution.indices, np.arange(10))
    expected = [greedy_scan(center, history.positions(), 600.0, 60, 10, 0, 30)
                for center in row_grid.centers]
    np.testing.assert_array_equal(resolution.indices, expected)


def test_each_chunk_scans_its_own_window(eq, row_grid, monkeypatch):
    history = HistoryBuffer(30)
    history.seed(np.zeros(2))
    row_grid.last_event_index[:] = np.arange(10) + 5
    widths = recorded_widths(monkeypatch, eq)
    # one cell per chunk
    resolver = RetardedEventResolver(eq, cell_size=10, chunk_budget=30)
    found = resolver.scan(row_grid.centers, history.positions(),
                          *resolver.search_window(row_grid.last_event_index, 30))
    # cell i searches [max(i - 5, 0), i + 8)
    assert widths == [(max(i - 5, 0), i + 8 - max(i - 5, 0)) for i in range(10)]
    np.testing.assert_array_equal(found, np.arange(10))


def test_unreachable_cell_holds_then_drops(eq, row_grid):
    history = HistoryBuffer(4)
    history.seed(np.zeros(2))
    resolver = RetardedEventResolver(eq, cell_size=10, max_hold_frames=2)
    row_grid.last_event_index[-1] = 0

    first = resolver.resolve(row_grid, history)
    assert first.held[-1] and not first.matched[-1]
    assert first.indices[-1] == 1

    second = resolver.resolve(row_grid, history)
    assert second.held[-1]
    assert second.indices[-1] == 2
    assert row_grid.hold_count[-1] == 2

    third = resolver.resolve(row_grid, history)
    assert not third.held[-1]
    assert third.indices[-1] == NO_EVENT
    assert not third.visible[-1]
    assert row_grid.last_event_index[-1] == NO_EVENT
    assert row_grid.hold_count[-1] == 0


def test_uncached_miss_is_not_held(eq, row_grid):
    history = HistoryBuffer(4)
    history.seed(np.zeros(2))
    resolution = RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    assert resolution.indices[-1] == NO_EVENT
    assert not resolution.held.any()


def test_match_resets_hold_count(eq, row_grid):
    history = HistoryBuffer(20)
    history.seed(np.zeros(2))
    row_grid.hold_count[:] = 2
    RetardedEventResolver(eq, cell_size=10).resolve(row_grid, history)
    assert (row_grid.hold_count == 0).all()


def test_chunking_does_not_change_the_result(eq):
    history = moving_history(30)
    big = FieldGrid(120, 90, 10, avg_time=3)
    small = FieldGrid(120, 90, 10, avg_time=3)
    whole = RetardedEventResolver(eq, cell_size=10).resolve(big, history)
    chunked = RetardedEventResolver(eq, cell_size=10, chunk_budget=7).resolve(small, history)
    np.testing.assert_array_equal(whole.indices, chunked.indices)


def test_instantaneous_uses_newest_event(eq, row_grid):
    resolution = RetardedEventResolver(eq, cell_size=10).instantaneous(row_grid)
    assert (resolution.indices == 0).all()
    assert resolution.matched.all()
