"""
Line-oriented TCP server shared by every listening process.

The name server, Bank, Content and Store all do the same thing at the socket
level: accept a connection, read newline-terminated messages, write
newline-terminated replies, close. Only what they do with each line differs,
and that lives in a LineService.

Design decisions:
- Built on socketserver: sequential by default (one connection is fully
  drained before the next accept), with an opt-in thread per connection
- A socket error on one connection closes that connection only
- Failing to bind is ListenError, failing to accept is AcceptError; both are
  fatal and propagate out of serve_forever()
"""

import logging
import socketserver
import threading
from abc import ABC, abstractmethod
from typing import Optional

from shared.errors import AcceptError, ListenError
from shared.protocol import ENCODING

logger = logging.getLogger("line_server")


class LineConnection(socketserver.StreamRequestHandler):
    """
    One accepted connection, seen as a sequence of text lines.

    Handed to LineService.handle_connection(); the service reads requests
    with read_line() and answers with write_line().
    """

    def read_line(self) -> Optional[str]:
        """Next line without its terminator, or None once the peer has closed."""
        raw = self.rfile.readline()
        if not raw:
            return None
        line = raw.decode(ENCODING, errors="replace").rstrip("\r\n")
        logger.debug(f"[{self.server.service.name}] received: {line}")
        return line

    def write_line(self, line: str) -> None:
        self.wfile.write((line + "\n").encode(ENCODING))

    def handle(self):
        service = self.server.service
        logger.info(f"New connection accepted by {service.name}")
        try:
            service.handle_connection(self)
        except OSError as e:
            # Recoverable: drop this connection, keep accepting
            logger.warning(f"[{service.name}] connection error from {self.client_address}: {e}")


class LineService(ABC):
    """
    What a server does with a connection.

    Subclasses decide how many request cycles a connection carries: the name
    server and Store answer one request and return, Bank and Content loop
    until read_line() returns None.
    """

    name: str = "server"

    @abstractmethod
    def handle_connection(self, conn: LineConnection) -> None:
        ...


class LineServer(socketserver.TCPServer):
    """Sequential line server: one connection at a time."""

    allow_reuse_address = True

    def __init__(self, host: str, port: int, service: LineService):
        self.service = service
        try:
            super().__init__((host, port), LineConnection)
        except OSError as e:
            raise ListenError(f"{service.name} unable to listen on port {port}: {e}") from e

    @property
    def port(self) -> int:
        return self.server_address[1]

    def get_request(self):
        try:
            return super().get_request()
        except OSError as e:
            raise AcceptError(
                "Encountered an error after blocking on accept, this may indicate "
                f"that there are no file descriptors left to use: {e}"
            ) from e


class ThreadingLineServer(socketserver.ThreadingMixIn, LineServer):
    """Line server that handles each connection on its own worker thread."""

    daemon_threads = True


def create_server(
    host: str,
    port: int,
    service: LineService,
    threaded: bool = False,
) -> LineServer:
    """
    Bind a listening server for a service.

    Raises:
        ListenError: if the port cannot be bound
    """
    server_cls = ThreadingLineServer if threaded else LineServer
    server = server_cls(host, port, service)
    logger.debug(f"{service.name} bound to {host}:{server.port} (threaded={threaded})")
    return server


def start_background(server: LineServer) -> threading.Thread:
    """Run serve_forever() on a daemon thread (demo and tests)."""
    thread = threading.Thread(
        target=server.serve_forever,
        name=f"{server.service.name}-server",
        daemon=True,
    )
    thread.start()
    return thread
