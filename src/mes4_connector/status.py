"""Status heartbeat framing: status byte bit layout and the 4-byte frame sent to the MES."""

from .types import PLCByteOrder, ResourceIdentity, ResourceMode, Status, StatusSnapshot

STATUS_FRAME_SIZE = 4

# Status byte bits, bit 0 = least significant
BIT_AUTO = 0
BIT_MANUAL = 1
BIT_BUSY = 2
BIT_RESET = 3
BIT_ERROR_BASE = 4  # error flags 0..2 occupy bits 4..6
BIT_MES_MODE = 7

_BYTE_ORDER_CODE = {
    PLCByteOrder.LITTLE_ENDIAN: 1,
    PLCByteOrder.BIG_ENDIAN: 2,
}


def encode_status_byte(status: Status | StatusSnapshot) -> int:
    """Pack mode, busy, reset, the three error flags and MES mode into one byte."""
    snap = status.snapshot() if isinstance(status, Status) else status

    value = 1 << (BIT_AUTO if snap.mode == ResourceMode.AUTO else BIT_MANUAL)
    if snap.busy:
        value |= 1 << BIT_BUSY
    if snap.reset:
        value |= 1 << BIT_RESET
    for i, flag in enumerate(snap.error_flags):
        if flag:
            value |= 1 << (BIT_ERROR_BASE + i)
    if snap.mes_mode:
        value |= 1 << BIT_MES_MODE
    return value


def build_status_frame(identity: ResourceIdentity, status: Status | StatusSnapshot) -> bytes:
    """
    Build the heartbeat frame: resource id high byte, low byte, byte order code, status byte.

    The id is always written high byte first; the PLC byte order only selects
    the code in byte 2 (1 = little endian, 2 = big endian).
    """
    return bytes(
        (
            (identity.id >> 8) & 0xFF,
            identity.id & 0xFF,
            _BYTE_ORDER_CODE[identity.plc_byte_order],
            encode_status_byte(status),
        )
    )


def format_frame_bits(frame: bytes) -> str:
    """Render a frame as space separated 8-bit binary groups, e.g. for console output."""
    return " ".join(f"{b:08b}" for b in frame)
