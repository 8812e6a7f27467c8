"""Core data model: byte order, resource mode, parameter kinds, identity, status record and service packages."""

import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Union

INT16_MIN, INT16_MAX = -32_768, 32_767
INT32_MIN, INT32_MAX = -2_147_483_648, 2_147_483_647
UINT16_MAX = 0xFFFF

ERROR_FLAG_COUNT = 3

Scalar = Union[int, str]


class PLCByteOrder(str, Enum):
    """Byte order of the resource PLC (CODESYS is little endian, Siemens big endian)."""

    LITTLE_ENDIAN = "little"
    BIG_ENDIAN = "big"


class ResourceMode(str, Enum):
    """Operating mode reported in the status byte."""

    AUTO = "auto"
    MANUAL = "manual"


class ParameterKind(IntEnum):
    """Type codes used by the MES parameter header."""

    INT16 = 1
    INT32 = 2
    STRING = 3


class ConnectionState(str, Enum):
    """State of one TCP channel."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ConnectorEvent(str, Enum):
    """Notifications a connector emits to its owner."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STATUS_SENT = "status_sent"
    STATUS_SEND_FAILED = "status_send_failed"
    SERVICE_REQUEST_SENT = "service_request_sent"
    SERVICE_CALLED = "service_called"
    SERVICE_CALL_FAILED = "service_call_failed"
    RESOURCE_STATUS_CHANGED = "resource_status_changed"


def _check_int16(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {value!r}")
    if not INT16_MIN <= value <= INT16_MAX:
        raise ValueError(f"{name} out of int16 range: {value}")


@dataclass(frozen=True)
class ResourceIdentity:
    """Who is talking to the MES: resource id, PLC byte order and whether it is a resource at all."""

    id: int
    plc_byte_order: PLCByteOrder = PLCByteOrder.BIG_ENDIAN
    is_resource: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.id <= UINT16_MAX:
            raise ValueError(f"resource id must be 0..65535, got {self.id}")
        if not self.is_resource:
            object.__setattr__(self, "id", 0)


@dataclass(frozen=True)
class StatusSnapshot:
    """Immutable copy of a Status, taken atomically."""

    mode: ResourceMode
    busy: bool
    reset: bool
    error_flags: tuple[bool, bool, bool]
    mes_mode: bool


@dataclass(eq=False)
class Status:
    """
    Mutable resource status owned by the application and framed by the heartbeat.

    All mutators and snapshot() take the same lock, so the heartbeat never sees
    a half-updated record.
    """

    mode: ResourceMode = ResourceMode.AUTO
    busy: bool = False
    reset: bool = False
    error_flags: list[bool] = field(default_factory=lambda: [False] * ERROR_FLAG_COUNT)
    mes_mode: bool = True
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.error_flags) != ERROR_FLAG_COUNT:
            raise ValueError(f"error_flags must have {ERROR_FLAG_COUNT} entries, got {len(self.error_flags)}")
        self.error_flags = [bool(f) for f in self.error_flags]

    def switch_mode(self, mode: ResourceMode) -> None:
        with self._lock:
            self.mode = ResourceMode(mode)

    def set_busy(self, busy: bool) -> None:
        with self._lock:
            self.busy = bool(busy)

    def set_reset(self, reset: bool) -> None:
        with self._lock:
            self.reset = bool(reset)

    def set_error_flag(self, index: int, error: bool) -> None:
        """Set error flag 0, 1 or 2."""
        if not 0 <= index < ERROR_FLAG_COUNT:
            raise ValueError(f"Error flag index must be 0, 1 or 2, got {index}")
        with self._lock:
            self.error_flags[index] = bool(error)

    def set_mes_mode(self, mes_mode: bool) -> None:
        with self._lock:
            self.mes_mode = bool(mes_mode)

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                mode=self.mode,
                busy=self.busy,
                reset=self.reset,
                error_flags=(self.error_flags[0], self.error_flags[1], self.error_flags[2]),
                mes_mode=self.mes_mode,
            )


@dataclass(frozen=True)
class ParameterDefinition:
    """One row of the MES parameter header: id, name, kind code, string length and PLC address."""

    id: int
    name: str
    kind: int
    string_length: int = 0
    address: int = 0


@dataclass
class ServicePackage:
    """
    One request or response of the service channel.

    Parameter dicts keep insertion order, which is the order used on the wire.
    """

    message_class: int
    message_number: int
    error_state: int = 0
    standard_parameters: dict[str, Scalar] = field(default_factory=dict)
    service_specific_parameters: dict[str, Scalar] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_int16("message_class", self.message_class)
        _check_int16("message_number", self.message_number)
        _check_int16("error_state", self.error_state)
