"""mes4-connector: status heartbeat and service calls for the Festo MES4 TCP protocol."""

__version__ = "0.1.0"

from .codec import decode_response, encode_request
from .connection import ConnectionManager
from .connector import MES4Connector
from .errors import (
    DisconnectError,
    DuplicateKeyError,
    MES4ConnectionError,
    MES4Error,
    ProtocolFormatError,
    SchemaValidationError,
    ServiceCallError,
)
from .heartbeat import HeartbeatScheduler
from .schema import ParameterSchema, load_schema
from .status import build_status_frame, encode_status_byte
from .types import (
    ConnectionState,
    ConnectorEvent,
    ParameterDefinition,
    ParameterKind,
    PLCByteOrder,
    ResourceIdentity,
    ResourceMode,
    ServicePackage,
    Status,
    StatusSnapshot,
)

__all__ = [
    "__version__",
    "MES4Connector",
    "ConnectionManager",
    "HeartbeatScheduler",
    "ParameterSchema",
    "load_schema",
    "encode_request",
    "decode_response",
    "build_status_frame",
    "encode_status_byte",
    "MES4Error",
    "MES4ConnectionError",
    "ProtocolFormatError",
    "DuplicateKeyError",
    "SchemaValidationError",
    "ServiceCallError",
    "DisconnectError",
    "ConnectionState",
    "ConnectorEvent",
    "ParameterDefinition",
    "ParameterKind",
    "PLCByteOrder",
    "ResourceIdentity",
    "ResourceMode",
    "ServicePackage",
    "Status",
    "StatusSnapshot",
]
