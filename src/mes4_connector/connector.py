"""MES4Connector: heartbeat plus synchronous service calls against a Festo MES4 host."""

import logging
from collections import defaultdict
from typing import Any, Callable, Iterable

from .codec import decode_response, encode_request
from .connection import DEFAULT_RECV_SIZE, DEFAULT_SERVICE_PORT, DEFAULT_STATUS_PORT, ConnectionManager
from .errors import MES4ConnectionError, ProtocolFormatError, ServiceCallError
from .heartbeat import HeartbeatScheduler
from .schema import ParameterSchema
from .status import build_status_frame
from .types import (
    ConnectorEvent,
    ParameterDefinition,
    PLCByteOrder,
    ResourceIdentity,
    ServicePackage,
    Status,
)

logger = logging.getLogger(__name__)

Handler = Callable[..., None]


class MES4Connector:
    """
    Connection to one MES4 host as a resource (or as a plain client).

    connect() opens the status and service sockets and starts the heartbeat,
    which frames the current resource_status every second. call_service()
    sends one request and blocks for one response. Owners register callbacks
    with subscribe() to follow connection, heartbeat and service events.
    """

    def __init__(
        self,
        host: str,
        resource_id: int,
        schema: ParameterSchema | Iterable[ParameterDefinition | dict[str, Any]],
        plc_byte_order: PLCByteOrder = PLCByteOrder.BIG_ENDIAN,
        is_resource: bool = True,
        status: Status | None = None,
        status_port: int = DEFAULT_STATUS_PORT,
        service_port: int = DEFAULT_SERVICE_PORT,
        timeout: float | None = None,
        recv_size: int = DEFAULT_RECV_SIZE,
    ) -> None:
        if not host:
            raise ValueError("Host address cannot be empty")
        self._schema = schema if isinstance(schema, ParameterSchema) else ParameterSchema(schema)
        self._identity = ResourceIdentity(resource_id, PLCByteOrder(plc_byte_order), is_resource)
        self._status = status if status is not None else Status()
        self._recv_size = recv_size
        self._handlers: dict[ConnectorEvent, list[Handler]] = defaultdict(list)
        self._connection = ConnectionManager(host, status_port, service_port, timeout=timeout)
        self._heartbeat = HeartbeatScheduler(
            self._connection,
            frame_factory=self._build_frame,
            on_sent=lambda frame: self._emit(ConnectorEvent.STATUS_SENT, frame),
            on_failed=lambda reason: self._emit(ConnectorEvent.STATUS_SEND_FAILED, reason),
        )

    def __repr__(self) -> str:
        return f"MES4Connector(identity={self._identity!r}, connection={self._connection!r})"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def identity(self) -> ResourceIdentity:
        return self._identity

    @property
    def resource_id(self) -> int:
        return self._identity.id

    @property
    def schema(self) -> ParameterSchema:
        return self._schema

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def resource_status(self) -> Status:
        return self._status

    @resource_status.setter
    def resource_status(self, status: Status) -> None:
        if status is self._status:
            return
        self._status = status
        self._emit(ConnectorEvent.RESOURCE_STATUS_CHANGED, status)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, event: ConnectorEvent, handler: Handler) -> None:
        """Register handler for event. Handlers run on the emitting thread (heartbeat or caller)."""
        self._handlers[ConnectorEvent(event)].append(handler)

    def unsubscribe(self, event: ConnectorEvent, handler: Handler) -> None:
        try:
            self._handlers[ConnectorEvent(event)].remove(handler)
        except ValueError:
            pass

    def _emit(self, event: ConnectorEvent, *args: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception("Handler for %s raised", event.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _build_frame(self) -> bytes:
        return build_status_frame(self._identity, self._status)

    def connect(self) -> None:
        """Open both sockets and start the heartbeat; raises MES4ConnectionError."""
        self._connection.connect()
        self._heartbeat.start()
        self._emit(
            ConnectorEvent.CONNECTED,
            self._connection.host,
            self._connection.status_port,
            self._connection.service_port,
        )

    def disconnect(self) -> None:
        """Stop the heartbeat and close both sockets. Safe to call more than once."""
        try:
            self._heartbeat.stop()
        finally:
            self._connection.close()
        logger.info("Disconnected from MES %s", self._connection.host)
        self._emit(ConnectorEvent.DISCONNECTED)

    close = disconnect

    def __enter__(self) -> "MES4Connector":
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # Service calls
    # ------------------------------------------------------------------

    def _fail_call(self, message: str, cause: BaseException | None = None) -> ServiceCallError:
        self._emit(ConnectorEvent.SERVICE_CALL_FAILED, message)
        return ServiceCallError(message, cause=cause)

    def call_service(self, request: ServicePackage) -> ServicePackage:
        """
        Send request and return the decoded response.

        When the service socket is down, exactly one reconnect is attempted
        first; if that does not help, ServiceCallError is raised. I/O errors
        during the round trip are raised as ServiceCallError too. Bad request
        values and malformed responses raise ProtocolFormatError.
        """
        if not self._connection.service_connected:
            try:
                self._connection.reconnect()
            except MES4ConnectionError as e:
                logger.warning("Reconnect before service call failed: %s", e)
        if not self._connection.service_connected:
            raise self._fail_call("Service call failed due to TCP connection issues")

        payload = encode_request(request, self._identity)
        logger.debug("Service request: %s", payload)
        try:
            self._connection.send_service(payload.encode("ascii"))
            self._emit(ConnectorEvent.SERVICE_REQUEST_SENT, request)
            raw = self._connection.recv_service(self._recv_size)
        except MES4ConnectionError as e:
            raise self._fail_call(f"I/O error during service call: {e}", cause=e) from e

        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise ProtocolFormatError(f"Response is not ASCII: {e}") from e
        logger.debug("Service response: %s", text)

        response = decode_response(text, self._schema)
        self._emit(ConnectorEvent.SERVICE_CALLED, request, response)
        return response
