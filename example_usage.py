#!/usr/bin/env python3
"""
Example script demonstrating how to emit metrics with the client.

Sends to the datagram endpoint configured through METRICS_HOST / METRICS_PORT
unless METRICS_TRANSPORT=api is set.
"""
import random
import time

import psutil

import appmetrics


def handle_request():
    """Pretend to serve a request and report how long it took."""
    started = time.monotonic()
    time.sleep(random.uniform(0.01, 0.05))
    elapsed_ms = round((time.monotonic() - started) * 1000, 2)

    appmetrics.timer('request_time', elapsed_ms, {'tags': {'endpoint': 'home'}})
    appmetrics.increment('requests', options={'tags': {'endpoint': 'home'}})


def main():
    """Main function to run the example."""
    appmetrics.setup_logging()
    appmetrics.configure({'flushSize': 10, 'flushInterval': 5})

    for _ in range(50):
        handle_request()

    appmetrics.gauge('memory_usage', psutil.virtual_memory().percent, {'tags': {'unit': 'percent'}})

    # Average computed locally over the last minute
    appmetrics.aggregated_timer('batch_time', 42.5, 'avg', 60)

    client = appmetrics.get_client()
    print(f"There are {client.get_buffered_count()} metrics in the buffer.")
    client.close()
    print("Metrics example completed.")


if __name__ == "__main__":
    main()
