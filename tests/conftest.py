import socket
from typing import List

import pytest

from appmetrics.client import MetricsClient
from appmetrics.transport import Transport


class RecordingTransport(Transport):
    def __init__(self) -> None:
        self.batches: List[List[str]] = []
        self.closed = False

    def deliver(self, batch: List[str]) -> None:
        self.batches.append(list(batch))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def udp_server():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5)
    try:
        yield sock
    finally:
        sock.close()


def receive(sock: socket.socket) -> str:
    data, _ = sock.recvfrom(65535)
    return data.decode("utf-8")


@pytest.fixture
def make_client():
    clients = []

    def _make(options=None, **kwargs) -> MetricsClient:
        client = MetricsClient(options, **kwargs)
        clients.append(client)
        return client

    try:
        yield _make
    finally:
        for client in clients:
            client.close(timeout=5)
