"""Tests for per-session progress ticking."""

import pytest

from clock import ManualClock
from progress_driver import MAX_PROGRESS, TICK_INTERVAL, ProgressDriver, ticks_to_complete
from registry import SessionRegistry
from upload import SourceFile, UploadStatus


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def driver(registry, clock) -> ProgressDriver:
    return ProgressDriver(registry, clock=clock)


def _add(registry, name="a.pdf") -> str:
    return registry.add(SourceFile(name=name, size=1000, mime_type="application/pdf"))


def test_ten_ticks_reach_done(registry, driver, clock):
    upload_id = _add(registry)
    assert driver.start(upload_id)

    clock.advance(TICK_INTERVAL * 9)
    session = registry.get(upload_id)
    assert session.progress == 90
    assert session.status is UploadStatus.UPLOADING
    assert driver.running(upload_id)

    clock.advance(TICK_INTERVAL)
    assert session.progress == MAX_PROGRESS
    assert session.status is UploadStatus.DONE
    assert not session.is_active
    assert session.ticks == 10
    assert not driver.running(upload_id)
    assert clock.pending == 0


def test_no_ticks_after_done(registry, driver, clock):
    upload_id = _add(registry)
    driver.start(upload_id)
    clock.advance(TICK_INTERVAL * 10)

    updates = []
    registry.subscribe(lambda event, s: updates.append(event))
    assert clock.advance(TICK_INTERVAL * 20) == 0
    assert updates == []
    assert registry.get(upload_id).ticks == 10


def test_progress_is_monotonic(registry, driver, clock):
    upload_id = _add(registry)
    seen = []
    registry.subscribe(lambda event, s: seen.append(s.progress) if s.id == upload_id else None)
    driver.start(upload_id)
    clock.advance(TICK_INTERVAL * 15)
    assert seen == sorted(seen)
    assert seen == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]


def test_start_twice_does_not_double_tick(registry, driver, clock):
    upload_id = _add(registry)
    assert driver.start(upload_id)
    assert not driver.start(upload_id)
    assert clock.pending == 1

    clock.advance(TICK_INTERVAL)
    assert registry.get(upload_id).progress == 10


def test_start_unknown_or_finished_session(registry, driver):
    assert not driver.start("upload-missing")
    upload_id = _add(registry)
    registry.update(upload_id, status=UploadStatus.DONE, is_active=False)
    assert not driver.start(upload_id)


def test_start_cancelled_session(registry, driver):
    upload_id = _add(registry)
    registry.get(upload_id).cancellation.cancel()
    assert not driver.start(upload_id)


def test_signaled_handle_halts_without_touching_state(registry, driver, clock):
    upload_id = _add(registry)
    driver.start(upload_id)
    clock.advance(TICK_INTERVAL * 3)

    session = registry.get(upload_id)
    session.cancellation.cancel()
    clock.advance(TICK_INTERVAL)

    assert not session.is_active
    assert session.progress == 30
    assert session.status is UploadStatus.UPLOADING
    assert not driver.running(upload_id)
    assert clock.advance(TICK_INTERVAL * 5) == 0
    assert session.progress == 30


def test_tick_for_removed_session_writes_nothing(registry, driver, clock):
    upload_id = _add(registry)
    driver.start(upload_id)
    clock.advance(TICK_INTERVAL * 2)

    # Remove behind the driver's back: the tick still fires but must not write.
    registry.remove(upload_id)
    updates = []
    registry.subscribe(lambda event, s: updates.append(event))
    clock.advance(TICK_INTERVAL * 5)

    assert updates == []
    assert upload_id not in registry
    assert not driver.running(upload_id)
    assert clock.pending == 0


def test_listener_restart_during_tick_keeps_one_timer(registry, driver, clock):
    upload_id = _add(registry)
    registry.subscribe(lambda event, s: driver.start(s.id) if event == "updated" else None)
    driver.start(upload_id)

    clock.advance(TICK_INTERVAL * 3)
    assert clock.pending == 1
    assert registry.get(upload_id).progress == 30


def test_stop_cancels_pending_tick(registry, driver, clock):
    upload_id = _add(registry)
    driver.start(upload_id)
    driver.stop(upload_id)
    driver.stop(upload_id)
    assert clock.pending == 0
    assert clock.advance(TICK_INTERVAL * 5) == 0
    assert registry.get(upload_id).progress == 0


def test_sessions_tick_independently(registry, driver, clock):
    first = _add(registry, "a.pdf")
    driver.start(first)
    clock.advance(TICK_INTERVAL * 4)
    second = _add(registry, "b.pdf")
    driver.start(second)
    clock.advance(TICK_INTERVAL * 3)

    assert registry.get(first).progress == 70
    assert registry.get(second).progress == 30
    assert driver.pending == 2

    driver.stop_all()
    assert driver.pending == 0
    assert clock.pending == 0


def test_custom_step_and_interval(registry, clock):
    driver = ProgressDriver(registry, clock=clock, interval=1.0, step=30)
    upload_id = _add(registry)
    driver.start(upload_id)
    clock.advance(3.0)
    assert registry.get(upload_id).progress == 90
    clock.advance(1.0)
    session = registry.get(upload_id)
    assert session.progress == 100
    assert session.status is UploadStatus.DONE
    assert session.ticks == ticks_to_complete(30) == 4


@pytest.mark.parametrize("kwargs", [{"interval": 0}, {"interval": -1}, {"step": 0}])
def test_rejects_invalid_policy(registry, kwargs):
    with pytest.raises(ValueError):
        ProgressDriver(registry, clock=ManualClock(), **kwargs)


def test_ticks_to_complete_default():
    assert ticks_to_complete() == 10
    assert ticks_to_complete(100) == 1
    assert ticks_to_complete(33) == 4
