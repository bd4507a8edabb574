import pytest

from game.history import RecentOutcomesWindow


def test_keeps_last_ten_in_order():
    window = RecentOutcomesWindow()
    values = [1.0 + i * 0.5 for i in range(12)]
    for value in values:
        window.record(value)

    assert window.snapshot() == tuple(values[2:])
    assert len(window) == 10


def test_never_exceeds_capacity():
    window = RecentOutcomesWindow(capacity=3)
    for i in range(50):
        window.record(float(i))
        assert len(window) <= 3
    assert window.snapshot() == (47.0, 48.0, 49.0)


def test_snapshot_is_read_only():
    window = RecentOutcomesWindow()
    window.record(2.0)
    snapshot = window.snapshot()
    assert isinstance(snapshot, tuple)
    window.record(3.0)
    assert snapshot == (2.0,)


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RecentOutcomesWindow(capacity=0)
