"""Exceptions for mes4-connector: connection, protocol format, schema and service-call errors."""


class MES4Error(Exception):
    """Base exception for mes4-connector."""

    pass


class MES4ConnectionError(MES4Error):
    """Raised when opening, using or rebuilding a TCP session to the MES fails."""

    def __init__(
        self,
        message: str,
        *,
        host: str | None = None,
        port: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(message)


class ProtocolFormatError(MES4Error):
    """Raised when service text cannot be encoded or decoded (bad segment, bad value, bad kind code)."""

    def __init__(self, message: str, *, segment: str | None = None) -> None:
        self.segment = segment
        super().__init__(message)


class DuplicateKeyError(ProtocolFormatError):
    """Raised when a response repeats a key."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Duplicate key {key!r} in response", segment=key)


class SchemaValidationError(MES4Error):
    """Raised when a parameter schema is malformed (id gap, duplicate or missing name)."""

    def __init__(
        self,
        message: str,
        *,
        parameter_id: int | None = None,
        source: str | None = None,
    ) -> None:
        self.parameter_id = parameter_id
        self.source = source
        super().__init__(message)


class ServiceCallError(MES4Error):
    """Raised when a synchronous service call cannot be completed."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class DisconnectError(MES4Error):
    """Raised when the heartbeat thread or sockets cannot be torn down."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)
