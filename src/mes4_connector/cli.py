#!/usr/bin/env python3
"""Command line interface for mes4-connector using Typer."""

import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .codec import encode_request
from .connector import MES4Connector
from .errors import (
    DisconnectError,
    MES4ConnectionError,
    ProtocolFormatError,
    SchemaValidationError,
    ServiceCallError,
)
from .schema import ParameterSchema, load_schema
from .services import get_operation_for_resource
from .status import build_status_frame, format_frame_bits
from .types import ConnectorEvent, PLCByteOrder, ResourceIdentity, ResourceMode, ServicePackage, Status

app = typer.Typer(
    name="mes4",
    help="Status heartbeat and service calls for the Festo MES4 TCP protocol.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="MES hostname or IP address", envvar="MES4_HOST"),
]
StatusPortOption = Annotated[
    int,
    typer.Option("--status-port", help="Status (heartbeat) port", envvar="MES4_STATUS_PORT"),
]
ServicePortOption = Annotated[
    int,
    typer.Option("--service-port", help="Service port", envvar="MES4_SERVICE_PORT"),
]
ResourceIdOption = Annotated[
    int,
    typer.Option("--resource-id", "-r", help="Resource ID (0-65535)", envvar="MES4_RESOURCE_ID"),
]
NotResourceOption = Annotated[
    bool,
    typer.Option("--not-resource", help="Connect as a plain client (no RequestId, id 0)"),
]
ByteOrderOption = Annotated[
    PLCByteOrder,
    typer.Option("--byte-order", help="PLC byte order of the resource"),
]
SchemaOption = Annotated[
    Optional[Path],
    typer.Option("--schema", "-s", help="Parameter header file (.xml or .json)", envvar="MES4_SCHEMA"),
]
TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", "-t", help="Socket timeout in seconds (default: block)", envvar="MES4_TIMEOUT"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_param(text: str) -> tuple[str, int | str]:
    """
    Parse NAME=VALUE. Values that look like integers are sent as integers,
    everything else as a string.
    """
    name, sep, value = text.partition("=")
    name = name.strip()
    if not sep or not name:
        raise ValueError(f"Expected NAME=VALUE, got {text!r}")
    value = value.strip()
    try:
        return name, int(value)
    except ValueError:
        return name, value


def parse_error_flags(flags: Optional[str]) -> list[bool]:
    """Parse a comma separated list of error flag indexes (e.g. "0,2") into three booleans."""
    result = [False, False, False]
    if not flags:
        return result
    for part in flags.split(","):
        part = part.strip()
        if not part:
            continue
        index = int(part)
        if not 0 <= index <= 2:
            raise ValueError(f"Error flag index must be 0, 1 or 2, got {index}")
        result[index] = True
    return result


def require_schema(schema: Optional[Path]) -> ParameterSchema:
    if schema is None:
        typer.echo("Error: --schema is required for this command", err=True)
        raise typer.Exit(2)
    return load_schema(schema)


def create_connector(
    host: Optional[str],
    resource_id: int,
    schema: Optional[Path],
    byte_order: PLCByteOrder,
    not_resource: bool,
    status_port: int,
    service_port: int,
    timeout: Optional[float],
    status: Optional[Status] = None,
) -> MES4Connector:
    """Create (but do not connect) an MES4Connector from CLI options."""
    if not host:
        typer.echo("Error: --host is required for this command", err=True)
        raise typer.Exit(2)
    return MES4Connector(
        host=host,
        resource_id=resource_id,
        schema=require_schema(schema),
        plc_byte_order=byte_order,
        is_resource=not not_resource,
        status=status,
        status_port=status_port,
        service_port=service_port,
        timeout=timeout,
    )


def package_to_dict(package: ServicePackage) -> dict:
    return {
        "mclass": package.message_class,
        "mno": package.message_number,
        "error_state": package.error_state,
        "standard_parameters": dict(package.standard_parameters),
        "service_specific_parameters": dict(package.service_specific_parameters),
    }


def handle_error(e: Exception, verbose: bool) -> None:
    """Map library errors to exit codes: 2 schema/usage, 3 connection/service, 4 unexpected."""
    if isinstance(e, SchemaValidationError):
        typer.echo(f"Error: Invalid schema: {e}", err=True)
        raise typer.Exit(2)
    if isinstance(e, ValueError):
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    if isinstance(e, ProtocolFormatError):
        typer.echo(f"Error: Protocol format error: {e}", err=True)
        raise typer.Exit(3)
    if isinstance(e, (MES4ConnectionError, ServiceCallError, DisconnectError)):
        typer.echo(f"Error: Connection/service error: {e}", err=True)
        raise typer.Exit(3)
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================

@app.command(name="status-frame")
def status_frame(
    resource_id: ResourceIdOption = 0,
    byte_order: ByteOrderOption = PLCByteOrder.BIG_ENDIAN,
    not_resource: NotResourceOption = False,
    manual: Annotated[bool, typer.Option("--manual", help="Manual mode (default: auto)")] = False,
    busy: Annotated[bool, typer.Option("--busy", help="Set the busy bit")] = False,
    reset: Annotated[bool, typer.Option("--reset", help="Set the reset bit")] = False,
    errors: Annotated[Optional[str], typer.Option("--errors", help="Error flags to set, e.g. 0,2")] = None,
    no_mes_mode: Annotated[bool, typer.Option("--no-mes-mode", help="Clear the MES mode bit")] = False,
    binary: Annotated[bool, typer.Option("--binary", help="Print bytes as bit strings")] = False,
    json_output: JsonOption = False,
) -> None:
    """
    Print the 4-byte heartbeat frame for the given status.

    Does not require a connection.
    """
    try:
        status = Status(
            mode=ResourceMode.MANUAL if manual else ResourceMode.AUTO,
            busy=busy,
            reset=reset,
            error_flags=parse_error_flags(errors),
            mes_mode=not no_mes_mode,
        )
        identity = ResourceIdentity(resource_id, byte_order, not not_resource)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)

    frame = build_status_frame(identity, status)
    if json_output:
        typer.echo(json.dumps({"frame": frame.hex(), "bytes": list(frame)}))
    elif binary:
        typer.echo(format_frame_bits(frame))
    else:
        typer.echo(frame.hex(" "))


@app.command()
def schema(
    path: Annotated[Path, typer.Argument(help="Parameter header file (.xml or .json)")],
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Load and validate a parameter schema and list its entries.
    """
    setup_logging(verbose)

    try:
        loaded = load_schema(path)
    except Exception as e:
        handle_error(e, verbose)

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": d.id,
                        "name": d.name,
                        "kind": d.kind,
                        "string_length": d.string_length,
                        "address": d.address,
                    }
                    for d in loaded
                ],
                indent=2,
            )
        )
    else:
        typer.echo(f"{len(loaded)} parameters in {path}")
        for d in loaded:
            typer.echo(f"{d.id:>4}  {d.name:<24} kind={d.kind} len={d.string_length} addr={d.address}")


@app.command()
def encode(
    mclass: Annotated[int, typer.Option("--mclass", help="Message class")],
    mno: Annotated[int, typer.Option("--mno", help="Message number")],
    params: Annotated[Optional[list[str]], typer.Argument(help="Standard parameters as NAME=VALUE")] = None,
    error_state: Annotated[int, typer.Option("--error-state", help="Error state")] = 0,
    resource_id: ResourceIdOption = 0,
    not_resource: NotResourceOption = False,
) -> None:
    """
    Print the request string for a service call.

    Does not require a connection.
    """
    try:
        standard = dict(parse_param(p) for p in params or [])
        request = ServicePackage(mclass, mno, error_state, standard_parameters=standard)
        identity = ResourceIdentity(resource_id, is_resource=not not_resource)
        typer.echo(encode_request(request, identity))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    except ProtocolFormatError as e:
        typer.echo(f"Error: Protocol format error: {e}", err=True)
        raise typer.Exit(2)


@app.command()
def call(
    mclass: Annotated[int, typer.Option("--mclass", help="Message class")],
    mno: Annotated[int, typer.Option("--mno", help="Message number")],
    params: Annotated[Optional[list[str]], typer.Argument(help="Standard parameters as NAME=VALUE")] = None,
    error_state: Annotated[int, typer.Option("--error-state", help="Error state")] = 0,
    host: HostOption = None,
    resource_id: ResourceIdOption = 0,
    schema: SchemaOption = None,
    byte_order: ByteOrderOption = PLCByteOrder.BIG_ENDIAN,
    not_resource: NotResourceOption = False,
    status_port: StatusPortOption = 2001,
    service_port: ServicePortOption = 2000,
    timeout: TimeoutOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Connect, run one service call and print the decoded response as JSON.
    """
    setup_logging(verbose)

    try:
        standard = dict(parse_param(p) for p in params or [])
        request = ServicePackage(mclass, mno, error_state, standard_parameters=standard)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)

    try:
        connector = create_connector(
            host, resource_id, schema, byte_order, not_resource, status_port, service_port, timeout
        )
        with connector:
            response = connector.call_service(request)
        typer.echo(json.dumps(package_to_dict(response), indent=2))
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(e, verbose)


@app.command(name="op-for-resource")
def op_for_resource(
    host: HostOption = None,
    resource_id: ResourceIdOption = 0,
    schema: SchemaOption = None,
    byte_order: ByteOrderOption = PLCByteOrder.BIG_ENDIAN,
    status_port: StatusPortOption = 2001,
    service_port: ServicePortOption = 2000,
    timeout: TimeoutOption = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Ask the MES for the next operation of this resource (service 100/1).
    """
    setup_logging(verbose)

    try:
        connector = create_connector(
            host, resource_id, schema, byte_order, False, status_port, service_port, timeout
        )
        with connector:
            op = get_operation_for_resource(connector, resource_id)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(e, verbose)

    if json_output:
        typer.echo(json.dumps(asdict(op), indent=2))
    else:
        typer.echo(
            f"Next step for resource {op.resource_id}: work plan {op.wp_no}; part {op.p_no}; "
            f"step {op.step_no}; customer {op.c_no}"
        )


@app.command()
def heartbeat(
    host: HostOption = None,
    resource_id: ResourceIdOption = 0,
    schema: SchemaOption = None,
    byte_order: ByteOrderOption = PLCByteOrder.BIG_ENDIAN,
    not_resource: NotResourceOption = False,
    status_port: StatusPortOption = 2001,
    service_port: ServicePortOption = 2000,
    timeout: TimeoutOption = None,
    busy: Annotated[bool, typer.Option("--busy", help="Report the resource as busy")] = False,
    count: Annotated[int, typer.Option("--count", "-n", help="Stop after N frames (0 = run until Ctrl+C)")] = 0,
    verbose: VerboseOption = False,
) -> None:
    """
    Connect and print every status frame sent, until Ctrl+C or --count frames.
    """
    setup_logging(verbose)

    if count < 0:
        typer.echo(f"Error: --count must not be negative, got {count}", err=True)
        raise typer.Exit(2)

    sent = 0

    def on_sent(frame: bytes) -> None:
        nonlocal sent
        sent += 1
        typer.echo(f"Status message sent: {format_frame_bits(frame)}")

    def on_failed(reason: str) -> None:
        typer.echo(f"Status message failed: {reason}", err=True)

    try:
        connector = create_connector(
            host,
            resource_id,
            schema,
            byte_order,
            not_resource,
            status_port,
            service_port,
            timeout,
            status=Status(busy=busy),
        )
        connector.subscribe(ConnectorEvent.STATUS_SENT, on_sent)
        connector.subscribe(ConnectorEvent.STATUS_SEND_FAILED, on_failed)
        with connector:
            while count == 0 or sent < count:
                time.sleep(0.1)
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(e, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"mes4-connector {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """mes4 - Status heartbeat and service calls for the Festo MES4 TCP protocol."""
    pass


if __name__ == "__main__":
    app()
