"""
Shared pytest fixtures for the storefront network tests.

Servers bind ephemeral ports on localhost and run on daemon threads, so every
test gets its own name table and catalog.
"""

import socket
from pathlib import Path
from typing import Optional

import pytest

from discovery.name_server import create_name_server
from discovery.registry import Registry
from services.demo import LocalNetwork
from shared.data_store import DataStore
from shared.models import Address
from shared.protocol import DEFAULT_HOST, ENCODING
from shared.server import start_background


def exchange(address: Address, line: str) -> Optional[str]:
    """
    Send one line on a fresh connection and read at most one line back.

    Returns None when the server closes the connection without replying.
    """
    with socket.create_connection((address.host, address.port), timeout=5) as sock:
        sock.sendall((line + "\n").encode(ENCODING))
        with sock.makefile("rb") as reader:
            raw = reader.readline()
    if not raw:
        return None
    return raw.decode(ENCODING).rstrip("\r\n")


@pytest.fixture
def send_line():
    """One request cycle on a fresh raw socket, see ``exchange``."""
    return exchange


@pytest.fixture
def data_dir() -> Path:
    """Path to the bundled data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def data_store(data_dir: Path) -> DataStore:
    """Fresh DataStore over the bundled stock and content files."""
    return DataStore(
        stock_file=data_dir / "stock.txt",
        content_file=data_dir / "content.txt",
    ).load()


@pytest.fixture
def write_data_file(tmp_path: Path):
    """Write a data file into a temporary directory and return its path."""
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def closed_port() -> int:
    """A localhost port that nothing is listening on."""
    return unused_port()


@pytest.fixture
def free_port(closed_port: int) -> int:
    """Another unused port, distinct from ``closed_port``, for a server to bind."""
    port = unused_port()
    while port == closed_port:
        port = unused_port()
    return port


# =============================================================================
# Name server fixtures
# =============================================================================

@pytest.fixture
def registry() -> Registry:
    """Fresh, empty name table."""
    return Registry()


@pytest.fixture
def name_server(registry: Registry):
    """A running name server backed by the ``registry`` fixture."""
    server = create_name_server(0, host=DEFAULT_HOST, registry=registry)
    start_background(server)
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def registry_address(name_server) -> Address:
    """Address of the running name server."""
    return Address(host=DEFAULT_HOST, port=name_server.port)


# =============================================================================
# Whole network fixtures
# =============================================================================

@pytest.fixture
def network():
    """Name server, Bank, Content and Store with the bundled data, sequential servers."""
    with LocalNetwork() as local_network:
        yield local_network


@pytest.fixture
def threaded_network():
    """Same as ``network`` but with a worker thread per connection."""
    with LocalNetwork(threaded=True) as local_network:
        yield local_network
