"""
Name server: the registry process.

Other processes open a fresh connection per request, send one line, read at
most one line back and the name server closes the connection.

    REG <name> <port> <ip>   ->  REGISTRATION_SUCCESS   (or nothing)
    LOOKUP <name>            ->  <ip> <port> | Error: Process has not ...

Anything else, including a REG with a bad port or address, is dropped
without a reply.
"""

import logging
from typing import Optional

from discovery.registry import Registry
from shared.protocol import (
    LOOKUP_KEYWORD,
    NAME_SERVER_NAME,
    REGISTRATION_KEYWORD,
    REGISTRATION_SUCCESS,
    split_message,
)
from shared.server import LineConnection, LineServer, LineService, create_server

logger = logging.getLogger("name_server")


class NameServerService(LineService):
    """Dispatches one REG or LOOKUP line per connection to a Registry."""

    name = NAME_SERVER_NAME

    def __init__(self, registry: Optional[Registry] = None):
        self.registry = registry if registry is not None else Registry()

    def process_message(self, message: str) -> Optional[str]:
        """
        Handle one request line.

        Returns:
            The reply line, or None when the message is dropped.
        """
        parts = split_message(message)

        if parts[0] == REGISTRATION_KEYWORD and len(parts) == 4:
            _, name, port, ip = parts
            if self.registry.register(name, port, ip) is None:
                return None
            return REGISTRATION_SUCCESS

        if parts[0] == LOOKUP_KEYWORD and len(parts) == 2:
            reply = self.registry.lookup(parts[1])
            logger.info(f"Lookup {parts[1]} -> {reply}")
            return reply

        logger.debug(f"Ignoring message: {message!r}")
        return None

    def handle_connection(self, conn: LineConnection) -> None:
        message = conn.read_line()
        if message is None:
            logger.warning("Connection closed before a request was read")
            return
        reply = self.process_message(message)
        if reply is not None:
            conn.write_line(reply)


def create_name_server(
    port: int,
    host: str = "",
    registry: Optional[Registry] = None,
    threaded: bool = False,
) -> LineServer:
    """
    Bind the name server.

    Binds all interfaces by default, since registrations may advertise any
    dotted-quad address.

    Raises:
        ListenError: if the port cannot be bound
    """
    return create_server(host, port, NameServerService(registry), threaded=threaded)


def run_name_server(port: int, threaded: bool = False) -> None:
    """Serve forever. StartupErrors propagate to the caller."""
    server = create_name_server(port, threaded=threaded)
    logger.info("Name Server waiting for incoming connections ...")
    with server:
        server.serve_forever()
