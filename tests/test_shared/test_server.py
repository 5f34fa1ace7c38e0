"""
Tests for the line-oriented TCP server.
"""

import pytest

from shared.errors import AcceptError, ExitCode, ListenError
from shared.models import Address
from shared.protocol import DEFAULT_HOST
from shared.server import LineService, ThreadingLineServer, create_server, start_background


class UpperService(LineService):
    """Echoes each line upper-cased until the peer closes."""

    name = "Upper"

    def __init__(self):
        self.seen = []

    def handle_connection(self, conn):
        while True:
            line = conn.read_line()
            if line is None:
                return
            self.seen.append(line)
            conn.write_line(line.upper())


@pytest.fixture
def upper_server():
    server = create_server(DEFAULT_HOST, 0, UpperService())
    start_background(server)
    yield server
    server.shutdown()
    server.server_close()


class TestLineServer:

    def test_binds_ephemeral_port(self, upper_server):
        assert upper_server.port > 0

    def test_round_trip(self, upper_server, send_line):
        reply = send_line(Address(host=DEFAULT_HOST, port=upper_server.port), "hello")

        assert reply == "HELLO"
        assert upper_server.service.seen == ["hello"]

    def test_threaded_flag_selects_threading_server(self):
        server = create_server(DEFAULT_HOST, 0, UpperService(), threaded=True)
        try:
            assert isinstance(server, ThreadingLineServer)
        finally:
            server.server_close()


class TestServerFailures:
    """Bind and accept failures map to their exit codes."""

    def test_port_in_use_is_listen_error(self, upper_server):
        with pytest.raises(ListenError) as exc_info:
            create_server(DEFAULT_HOST, upper_server.port, UpperService())

        assert exc_info.value.exit_code == ExitCode.LISTEN_FAILURE

    def test_accept_failure_is_accept_error(self):
        server = create_server(DEFAULT_HOST, 0, UpperService())
        server.socket.close()

        with pytest.raises(AcceptError) as exc_info:
            server.get_request()

        assert exc_info.value.exit_code == ExitCode.ACCEPT_FAILURE
