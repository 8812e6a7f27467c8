"""Service channel codec: request packages to ASCII wire text and response text back to typed packages."""

import logging

from .errors import DuplicateKeyError, ProtocolFormatError
from .schema import ParameterSchema
from .types import (
    INT16_MAX,
    INT16_MIN,
    INT32_MAX,
    INT32_MIN,
    ParameterDefinition,
    ParameterKind,
    ResourceIdentity,
    Scalar,
    ServicePackage,
)

logger = logging.getLogger(__name__)

TCP_IDENT = "444"
RESPONSE_PREAMBLE_LEN = 4
TERMINATOR = "*"

# Header keys also copied into the ServicePackage header fields
_HEADER_KEYS = {"MClass": "message_class", "MNo": "message_number", "ErrorState": "error_state"}

# Characters that delimit pairs or end the request
_RESERVED_CHARS = frozenset(";=*")


def _format_value(name: str, value: object) -> str:
    if isinstance(value, bool):
        raise ProtocolFormatError(f"Parameter {name!r}: bool is not a supported value type", segment=name)
    if isinstance(value, int):
        if not INT32_MIN <= value <= INT32_MAX:
            raise ProtocolFormatError(f"Parameter {name!r}: {value} exceeds the int32 range", segment=name)
        return str(value)
    if isinstance(value, str):
        if not value.isascii():
            raise ProtocolFormatError(f"Parameter {name!r}: value must be ASCII", segment=name)
        reserved = sorted(_RESERVED_CHARS.intersection(value))
        if reserved:
            raise ProtocolFormatError(
                f"Parameter {name!r}: value contains reserved character(s) {''.join(reserved)!r}",
                segment=name,
            )
        return value
    raise ProtocolFormatError(
        f"Parameter {name!r}: only int16, int32 and string values can be sent, got {type(value).__name__}",
        segment=name,
    )


def encode_request(package: ServicePackage, identity: ResourceIdentity) -> str:
    """
    Build the request string, e.g. ``444;RequestId=50;MClass=100;MNo=1;ErrorState=0;#ResourceID=50*``.

    Raises ProtocolFormatError for unsupported parameter values; nothing is
    returned (and so nothing is sent) in that case.
    """
    parts = [f"{TCP_IDENT};"]
    if identity.is_resource:
        parts.append(f"RequestId={identity.id};")
    parts.append(f"MClass={package.message_class};")
    parts.append(f"MNo={package.message_number};")
    parts.append(f"ErrorState={package.error_state};")

    for name, value in package.standard_parameters.items():
        key = name if name.startswith("#") else f"#{name}"
        parts.append(f"{key}={_format_value(key, value)};")

    text = "".join(parts)
    if text.endswith(";"):
        text = text[:-1]
    return text + TERMINATOR


def split_pairs(body: str) -> dict[str, str]:
    """
    Split ``key=value;key=value`` text into an ordered dict of trimmed strings.

    Empty segments are ignored. Every other segment needs exactly one ``=``
    with text on both sides; repeated keys raise DuplicateKeyError.
    """
    pairs: dict[str, str] = {}
    for segment in body.split(";"):
        if not segment.strip():
            continue
        key_value = [p for p in segment.split("=") if p]
        if len(key_value) != 2:
            raise ProtocolFormatError(f"Invalid key-value pair format: {segment!r}", segment=segment)
        key, value = key_value[0].strip(), key_value[1].strip()
        if key in pairs:
            raise DuplicateKeyError(key)
        pairs[key] = value
    return pairs


def _coerce(defn: ParameterDefinition, key: str, raw: str) -> Scalar:
    try:
        kind = ParameterKind(defn.kind)
    except ValueError:
        raise ProtocolFormatError(
            f"Schema contains unsupported type code {defn.kind} for parameter {defn.name!r}",
            segment=key,
        ) from None

    if kind == ParameterKind.STRING:
        return raw

    low, high = (INT16_MIN, INT16_MAX) if kind == ParameterKind.INT16 else (INT32_MIN, INT32_MAX)
    try:
        value = int(raw)
    except ValueError:
        raise ProtocolFormatError(f"Parameter {key!r}: {raw!r} is not an integer", segment=key) from None
    if not low <= value <= high:
        raise ProtocolFormatError(f"Parameter {key!r}: {value} out of {kind.name.lower()} range", segment=key)
    return value


def _header_int(key: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ProtocolFormatError(f"Header field {key!r}: {raw!r} is not an integer", segment=key) from None
    if not INT16_MIN <= value <= INT16_MAX:
        raise ProtocolFormatError(f"Header field {key!r}: {value} out of int16 range", segment=key)
    return value


def decode_response(text: str, schema: ParameterSchema) -> ServicePackage:
    """
    Parse a response string into a ServicePackage.

    The first four characters (the TCP identifier) are dropped. Keys found in
    the schema (a leading ``#`` is ignored for matching) are typed into
    standard_parameters; every other key, including MClass, MNo, ErrorState
    and RequestId, keeps its raw string value in service_specific_parameters.
    MClass, MNo and ErrorState additionally fill the package header fields.
    """
    body = text[RESPONSE_PREAMBLE_LEN:]
    if not body:
        raise ProtocolFormatError("Response is empty after the preamble")
    body = body.replace("\\r", "")

    header = {"message_class": 0, "message_number": 0, "error_state": 0}
    standard: dict[str, Scalar] = {}
    specific: dict[str, Scalar] = {}

    for key, raw in split_pairs(body).items():
        if key in _HEADER_KEYS:
            header[_HEADER_KEYS[key]] = _header_int(key, raw)
        name = key[1:] if key.startswith("#") else key
        defn = schema.get(name)
        if defn is not None:
            if name in standard:
                raise DuplicateKeyError(name)
            standard[name] = _coerce(defn, key, raw)
        else:
            specific[key] = raw

    logger.debug("Decoded response: %d standard, %d service-specific parameters", len(standard), len(specific))
    return ServicePackage(
        standard_parameters=standard,
        service_specific_parameters=specific,
        **header,
    )
