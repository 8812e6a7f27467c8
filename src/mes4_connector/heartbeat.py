"""HeartbeatScheduler: background thread sending the status frame once per second."""

import logging
import threading
from typing import Callable

from .connection import ConnectionManager
from .errors import DisconnectError, MES4ConnectionError

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_S = 1.0
DEFAULT_JOIN_TIMEOUT_S = 5.0

NOT_CONNECTED_REASON = "Connection is not established for sending status messages."


class HeartbeatScheduler:
    """
    Sends frame_factory() on the status socket every interval until stopped.

    A failed tick reports through on_failed, reconnects once and the loop
    keeps going at the same period; heartbeat failures are retried forever
    and never leave this thread. stop() wakes a sleeping loop immediately.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        frame_factory: Callable[[], bytes],
        on_sent: Callable[[bytes], None],
        on_failed: Callable[[str], None],
        interval: float = HEARTBEAT_INTERVAL_S,
    ) -> None:
        self._connection = connection
        self._frame_factory = frame_factory
        self._on_sent = on_sent
        self._on_failed = on_failed
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="mes4-heartbeat", daemon=True)
        self._thread.start()
        logger.debug("Heartbeat started (interval %.3fs)", self._interval)

    def stop(self, timeout: float | None = DEFAULT_JOIN_TIMEOUT_S) -> None:
        """Signal the loop to stop and join it; raise DisconnectError if it does not finish in time."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout)
        if thread.is_alive():
            raise DisconnectError(f"Heartbeat thread did not stop within {timeout}s")
        logger.debug("Heartbeat stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            self.tick()
            if self._stop.wait(self._interval):
                break

    def tick(self) -> bool:
        """Run one heartbeat cycle; return True if a frame was sent."""
        if self._stop.is_set():
            return False
        if not self._connection.status_connected:
            self._fail(NOT_CONNECTED_REASON)
            return False

        frame = self._frame_factory()
        try:
            self._connection.send_status(frame)
        except MES4ConnectionError as e:
            self._fail(str(e))
            return False
        self._on_sent(frame)
        return True

    def _fail(self, reason: str) -> None:
        logger.warning("Status message transfer failed: %s", reason)
        self._on_failed(reason)
        if self._stop.is_set():
            return
        try:
            self._connection.reconnect()
        except MES4ConnectionError as e:
            logger.warning("Heartbeat reconnect failed: %s", e)
