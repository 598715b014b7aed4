import numpy as np
import pytest

from history import HistoryBuffer, RingBuffer, events_size


def test_events_size_covers_the_diagonal():
    # ceil(1081.67 / 600 * 60) + 10
    assert events_size(900, 600, 600) == 119
    assert events_size(900, 600, 600, margin=0) == 109
    assert events_size(300, 400, 50, tick_rate=60, margin=10) == 610


def test_ring_buffer_evicts_oldest():
    ring = RingBuffer(3)
    for value in (1, 2, 3, 4):
        ring.push_front(value)
    assert len(ring) == 3
    assert ring.ago(0) == 4
    assert ring.ago(2) == 2
    np.testing.assert_array_equal(ring.newest_first(), [4, 3, 2])
    with pytest.raises(IndexError):
        ring.ago(3)


def test_ring_buffer_rows():
    ring = RingBuffer(2, row_shape=(2,))
    ring.push_front((1.0, 2.0))
    assert len(ring) == 1
    np.testing.assert_array_equal(ring.ago(0), [1.0, 2.0])
    ring.fill((0.0, 0.0))
    assert len(ring) == 2


def test_ring_buffer_load():
    ring = RingBuffer(3)
    ring.load([5, 6])
    assert len(ring) == 2
    assert ring.ago(1) == 6
    with pytest.raises(ValueError):
        ring.load([1, 2, 3, 4])


def test_ring_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RingBuffer(0)


def test_seed_fills_history_with_resting_charge():
    history = HistoryBuffer(5)
    history.seed(np.array([10.0, 20.0]), tick_index=0)
    assert len(history) == 5
    for k in range(5):
        event = history[k]
        np.testing.assert_array_equal(event.position, [10.0, 20.0])
        assert event.magnitude == 0
        assert event.tick_index == -k


def test_push_is_newest_first_and_bounded():
    history = HistoryBuffer(4)
    history.seed(np.zeros(2))
    for tick in range(1, 10):
        history.push(np.array([tick, 0.0]), np.array([0.0, 1.0]), 1.0, 0.0, tick)
        assert len(history) <= history.capacity
    assert history[0].tick_index == 9
    assert history[3].tick_index == 6
    np.testing.assert_array_equal(history.positions()[:, 0], [9, 8, 7, 6])
    assert [history[k].tick_index for k in range(4)] == [9, 8, 7, 6]


def test_table_is_refreshed_after_push():
    history = HistoryBuffer(3)
    history.seed(np.zeros(2))
    before = history.magnitudes().copy()
    history.push(np.zeros(2), np.array([3.0, 4.0]), 5.0, 0.6, 1)
    assert before[0] == 0
    assert history.magnitudes()[0] == 5.0
    np.testing.assert_array_equal(history[0].acceleration, [3.0, 4.0])
    assert history.angles()[0] == pytest.approx(0.6)
