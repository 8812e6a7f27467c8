#!/usr/bin/env python3
"""Example: keep the heartbeat running and toggle the busy bit on Enter; Ctrl+C to stop."""

import sys

from mes4_connector import ConnectorEvent, MES4Connector, Status, load_schema
from mes4_connector.errors import MES4ConnectionError, SchemaValidationError


def main() -> None:
    host = "172.21.0.90"  # change to your MES host
    resource_id = 50
    status = Status()

    try:
        connector = MES4Connector(host, resource_id, load_schema("MES_config/HeaderGet.xml"), status=status)
        connector.subscribe(ConnectorEvent.STATUS_SEND_FAILED, lambda reason: print(f"Heartbeat failed: {reason}"))
        with connector:
            print("Press Enter to toggle busy (Ctrl+C to stop)...")
            while True:
                input()
                busy = not status.snapshot().busy
                status.set_busy(busy)
                print(f"busy = {busy}")
    except KeyboardInterrupt:
        print("\nStopped.")
    except SchemaValidationError as e:
        print(f"Invalid schema: {e}", file=sys.stderr)
        sys.exit(1)
    except MES4ConnectionError as e:
        print(f"MES connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
