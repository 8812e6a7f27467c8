#!/usr/bin/env python3
"""Example: connect as resource 50, ask the MES for the next operation, report busy while working."""

import sys
import time

from mes4_connector import ConnectorEvent, MES4Connector, PLCByteOrder, Status, load_schema
from mes4_connector.errors import MES4ConnectionError, SchemaValidationError, ServiceCallError
from mes4_connector.services import get_operation_for_resource
from mes4_connector.status import format_frame_bits


def main() -> None:
    host = "172.21.0.90"  # change to your MES host
    resource_id = 50
    schema_path = "MES_config/HeaderGet.xml"

    status = Status()

    try:
        schema = load_schema(schema_path)
        connector = MES4Connector(host, resource_id, schema, plc_byte_order=PLCByteOrder.BIG_ENDIAN, status=status)
        connector.subscribe(
            ConnectorEvent.STATUS_SENT,
            lambda frame: print(f"Status message sent: {format_frame_bits(frame)}"),
        )

        with connector:
            op = get_operation_for_resource(connector, resource_id)
            print(
                f"Next step for resource {resource_id}: work plan {op.wp_no}; part {op.p_no}; "
                f"step {op.step_no}; customer {op.c_no}"
            )

            time.sleep(2)
            status.set_busy(True)
            time.sleep(2)  # simulated processing
            status.set_busy(False)
    except SchemaValidationError as e:
        print(f"Invalid schema: {e}", file=sys.stderr)
        sys.exit(1)
    except (MES4ConnectionError, ServiceCallError) as e:
        print(f"MES connection/service error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
