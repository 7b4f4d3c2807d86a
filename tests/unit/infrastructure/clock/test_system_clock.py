import asyncio

import pytest

from resilayer.infrastructure.clock.system_clock import ManualClock, SystemClock

def test_system_clock_is_monotonic():
    clock = SystemClock()
    first = clock.now()
    second = clock.now()
    assert second >= first

def test_system_clock_sleep_ignores_negative_durations(mocker):
    sleep = mocker.patch("resilayer.infrastructure.clock.system_clock.time.sleep")
    SystemClock().sleep_blocking(-1.0)
    sleep.assert_called_once_with(0.0)

def test_manual_clock_starts_where_told():
    clock = ManualClock(start=5.0, wall_start=100.0)
    assert clock.now() == 5.0
    assert clock.wall_time() == 100.0

def test_manual_clock_advance_moves_both_times():
    clock = ManualClock()
    wall = clock.wall_time()
    clock.advance(2.5)
    assert clock.now() == 2.5
    assert clock.wall_time() == pytest.approx(wall + 2.5)

def test_manual_clock_cannot_go_backwards():
    with pytest.raises(ValueError):
        ManualClock().advance(-0.1)

def test_manual_clock_sleep_advances_and_records():
    clock = ManualClock()
    asyncio.run(clock.sleep(0.5))
    clock.sleep_blocking(0.25)
    assert clock.now() == 0.75
    assert clock.sleeps == [0.5, 0.25]
