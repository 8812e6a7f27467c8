"""ConnectionManager: the status and service TCP sessions to one MES host."""

import logging
import socket
import threading

from .errors import MES4ConnectionError
from .types import ConnectionState

logger = logging.getLogger(__name__)

DEFAULT_STATUS_PORT = 2001
DEFAULT_SERVICE_PORT = 2000
DEFAULT_RECV_SIZE = 1024


class ConnectionManager:
    """
    Owns two sockets to the MES: status (heartbeat frames) and service (requests/responses).

    connect/close/reconnect always act on both sockets together and are
    serialized by one lock, so the heartbeat thread and a service call can
    both trigger a reconnect without double-closing or leaking a socket.
    Status writes hold a separate send lock that close() also takes before
    tearing the status socket down.
    """

    def __init__(
        self,
        host: str,
        status_port: int = DEFAULT_STATUS_PORT,
        service_port: int = DEFAULT_SERVICE_PORT,
        timeout: float | None = None,
    ) -> None:
        if not host:
            raise ValueError("Host address cannot be empty")
        self._host = host
        self._status_port = status_port
        self._service_port = service_port
        self._timeout = timeout
        self._status_sock: socket.socket | None = None
        self._service_sock: socket.socket | None = None
        self._status_state = ConnectionState.DISCONNECTED
        self._service_state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()
        self._status_send_lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"ConnectionManager(host={self._host!r}, status_port={self._status_port}, "
            f"service_port={self._service_port}, status={self._status_state.value}, "
            f"service={self._service_state.value})"
        )

    @property
    def host(self) -> str:
        return self._host

    @property
    def status_port(self) -> int:
        return self._status_port

    @property
    def service_port(self) -> int:
        return self._service_port

    @property
    def status_state(self) -> ConnectionState:
        return self._status_state

    @property
    def service_state(self) -> ConnectionState:
        return self._service_state

    @property
    def status_connected(self) -> bool:
        return self._status_state == ConnectionState.CONNECTED and self._status_sock is not None

    @property
    def service_connected(self) -> bool:
        return self._service_state == ConnectionState.CONNECTED and self._service_sock is not None

    @property
    def is_connected(self) -> bool:
        return self.status_connected and self.service_connected

    def _open(self, port: int) -> socket.socket:
        try:
            sock = socket.create_connection((self._host, port), timeout=self._timeout)
        except OSError as e:
            raise MES4ConnectionError(
                f"Failed to connect to {self._host}:{port} - {e}",
                host=self._host,
                port=port,
                cause=e,
            ) from e
        # create_connection leaves the connect timeout on the socket
        sock.settimeout(self._timeout)
        return sock

    def connect(
        self,
        host: str | None = None,
        status_port: int | None = None,
        service_port: int | None = None,
    ) -> None:
        """
        Open both sockets, closing any existing ones first.

        On failure nothing stays open and MES4ConnectionError is raised.
        Arguments override (and replace) the stored host/ports.
        """
        with self._lock:
            self.close()
            if host:
                self._host = host
            if status_port is not None:
                self._status_port = status_port
            if service_port is not None:
                self._service_port = service_port

            try:
                self._status_sock = self._open(self._status_port)
                self._status_state = ConnectionState.CONNECTED
                self._service_sock = self._open(self._service_port)
                self._service_state = ConnectionState.CONNECTED
            except MES4ConnectionError:
                self.close()
                raise
            logger.info(
                "Connected to MES %s (status port %d, service port %d)",
                self._host,
                self._status_port,
                self._service_port,
            )

    def close(self) -> None:
        """Close both sockets. Idempotent; close errors are logged, never raised."""
        with self._lock:
            with self._status_send_lock:
                sock, self._status_sock = self._status_sock, None
                self._status_state = ConnectionState.DISCONNECTED
            self._close_quietly(sock, "status")
            sock, self._service_sock = self._service_sock, None
            self._service_state = ConnectionState.DISCONNECTED
            self._close_quietly(sock, "service")

    @staticmethod
    def _close_quietly(sock: socket.socket | None, name: str) -> None:
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already reset by the peer or never fully connected
            pass
        try:
            sock.close()
        except OSError as e:
            logger.warning("Error closing %s socket: %s", name, e)

    def reconnect(self) -> None:
        """Tear down and rebuild both sockets with the stored host and ports."""
        with self._lock:
            logger.info("Reconnecting to MES %s", self._host)
            self.connect()

    def send_status(self, data: bytes) -> None:
        """Write one heartbeat frame on the status socket."""
        with self._status_send_lock:
            sock = self._status_sock
            if sock is None or self._status_state != ConnectionState.CONNECTED:
                raise MES4ConnectionError(
                    "Status socket is not connected",
                    host=self._host,
                    port=self._status_port,
                )
            try:
                sock.sendall(data)
            except OSError as e:
                self._status_state = ConnectionState.DISCONNECTED
                raise MES4ConnectionError(
                    f"I/O error while sending status message: {e}",
                    host=self._host,
                    port=self._status_port,
                    cause=e,
                ) from e

    def send_service(self, data: bytes) -> None:
        """Write one request on the service socket."""
        sock = self._service_sock
        if sock is None or self._service_state != ConnectionState.CONNECTED:
            raise MES4ConnectionError(
                "Service socket is not connected",
                host=self._host,
                port=self._service_port,
            )
        try:
            sock.sendall(data)
        except OSError as e:
            self._service_state = ConnectionState.DISCONNECTED
            raise MES4ConnectionError(
                f"Failed to send service request: {e}",
                host=self._host,
                port=self._service_port,
                cause=e,
            ) from e

    def recv_service(self, max_bytes: int = DEFAULT_RECV_SIZE) -> bytes:
        """
        One blocking read on the service socket.

        The protocol has no length prefix; whatever one read returns is taken
        as the complete response.
        """
        sock = self._service_sock
        if sock is None or self._service_state != ConnectionState.CONNECTED:
            raise MES4ConnectionError(
                "Service socket is not connected",
                host=self._host,
                port=self._service_port,
            )
        try:
            data = sock.recv(max_bytes)
        except OSError as e:
            self._service_state = ConnectionState.DISCONNECTED
            raise MES4ConnectionError(
                f"Failed to receive service response: {e}",
                host=self._host,
                port=self._service_port,
                cause=e,
            ) from e
        if not data:
            self._service_state = ConnectionState.DISCONNECTED
            raise MES4ConnectionError(
                "Service connection closed by peer",
                host=self._host,
                port=self._service_port,
            )
        return data

    def __enter__(self) -> "ConnectionManager":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
