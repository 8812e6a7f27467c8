"""Tests for the heartbeat loop: one frame per tick, failure reporting and reconnect."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from mes4_connector import HeartbeatScheduler
from mes4_connector.errors import DisconnectError, MES4ConnectionError
from mes4_connector.heartbeat import HEARTBEAT_INTERVAL_S, NOT_CONNECTED_REASON

FRAME = b"\x00\x32\x02\x81"


@pytest.fixture
def connection() -> MagicMock:
    conn = MagicMock()
    conn.status_connected = True
    return conn


def make_scheduler(connection: MagicMock, interval: float = HEARTBEAT_INTERVAL_S):
    sent: list[bytes] = []
    failed: list[str] = []
    scheduler = HeartbeatScheduler(
        connection,
        frame_factory=lambda: FRAME,
        on_sent=sent.append,
        on_failed=failed.append,
        interval=interval,
    )
    return scheduler, sent, failed


def test_default_interval_is_one_second(connection: MagicMock) -> None:
    scheduler, _, _ = make_scheduler(connection)
    assert scheduler.interval == 1.0


def test_tick_sends_one_frame(connection: MagicMock) -> None:
    scheduler, sent, failed = make_scheduler(connection)
    assert scheduler.tick() is True
    connection.send_status.assert_called_once_with(FRAME)
    assert sent == [FRAME]
    assert failed == []
    connection.reconnect.assert_not_called()


def test_send_failure_reports_and_reconnects_once(connection: MagicMock) -> None:
    connection.send_status.side_effect = [MES4ConnectionError("I/O error while sending status message: reset"), None]
    scheduler, sent, failed = make_scheduler(connection)

    assert scheduler.tick() is False
    assert failed == ["I/O error while sending status message: reset"]
    assert sent == []
    connection.reconnect.assert_called_once()

    # sending resumes on the next tick
    assert scheduler.tick() is True
    assert sent == [FRAME]
    assert len(failed) == 1
    connection.reconnect.assert_called_once()


def test_not_connected_skips_tick_and_reconnects(connection: MagicMock) -> None:
    connection.status_connected = False
    scheduler, sent, failed = make_scheduler(connection)
    assert scheduler.tick() is False
    connection.send_status.assert_not_called()
    assert failed == [NOT_CONNECTED_REASON]
    connection.reconnect.assert_called_once()


def test_failed_reconnect_does_not_raise(connection: MagicMock) -> None:
    connection.status_connected = False
    connection.reconnect.side_effect = MES4ConnectionError("refused")
    scheduler, _, failed = make_scheduler(connection)
    for _ in range(3):
        assert scheduler.tick() is False
    assert len(failed) == 3
    assert connection.reconnect.call_count == 3


def test_loop_keeps_running_after_failures(connection: MagicMock) -> None:
    connection.send_status.side_effect = [MES4ConnectionError("x"), MES4ConnectionError("y")] + [None] * 1000
    scheduler, sent, failed = make_scheduler(connection, interval=0.01)
    scheduler.start()
    deadline = time.monotonic() + 5.0
    while len(sent) < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    scheduler.stop()
    assert failed == ["x", "y"]
    assert len(sent) >= 3
    assert connection.reconnect.call_count == 2


def test_stop_interrupts_sleep_promptly(connection: MagicMock) -> None:
    scheduler, sent, _ = make_scheduler(connection, interval=60.0)
    scheduler.start()
    deadline = time.monotonic() + 5.0
    while not sent and time.monotonic() < deadline:
        time.sleep(0.01)
    started = time.monotonic()
    scheduler.stop()
    assert time.monotonic() - started < 2.0
    assert not scheduler.is_running
    assert sent == [FRAME]


def test_stopped_scheduler_does_not_send(connection: MagicMock) -> None:
    scheduler, sent, _ = make_scheduler(connection)
    scheduler.start()
    scheduler.stop()
    count = connection.send_status.call_count
    assert scheduler.tick() is False
    assert connection.send_status.call_count == count


def test_no_reconnect_after_stop(connection: MagicMock) -> None:
    connection.status_connected = False
    scheduler, _, failed = make_scheduler(connection)
    scheduler.stop()
    scheduler.tick()
    connection.reconnect.assert_not_called()


def test_start_twice_keeps_single_thread(connection: MagicMock) -> None:
    scheduler, _, _ = make_scheduler(connection, interval=60.0)
    scheduler.start()
    first = scheduler._thread
    scheduler.start()
    assert scheduler._thread is first
    scheduler.stop()


def test_stop_raises_when_thread_hangs(connection: MagicMock) -> None:
    release = threading.Event()
    connection.send_status.side_effect = lambda frame: release.wait(5.0)
    scheduler, _, _ = make_scheduler(connection)
    scheduler.start()
    time.sleep(0.05)
    with pytest.raises(DisconnectError):
        scheduler.stop(timeout=0.05)
    release.set()


def test_stop_without_start_is_noop(connection: MagicMock) -> None:
    scheduler, _, _ = make_scheduler(connection)
    scheduler.stop()
    assert not scheduler.is_running
