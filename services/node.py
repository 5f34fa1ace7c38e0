"""
Lifecycle of a listening process.

Bank, Content and Store start the same way: bind the listening port,
register with the name server, resolve dependencies, then serve. ServiceNode
does those steps once and hands the resulting directory to the service.

The port is bound before registering, so a process never advertises an
address it cannot serve, and port 0 (ephemeral) can be advertised as the
port that was actually bound.
"""

import logging
import threading
from typing import Optional

from discovery.directory import ConnectionDirectory
from shared.models import NodeConfig
from shared.server import LineServer, LineService, create_server, start_background

logger = logging.getLogger("service_node")


class DirectoryAware:
    """Mixin for services that call their dependencies through a directory."""

    directory: Optional[ConnectionDirectory] = None

    def attach(self, directory: ConnectionDirectory) -> None:
        self.directory = directory


class ServiceNode:
    """
    A bound server plus its ConnectionDirectory.

    Example:
        node = ServiceNode(config, BankService()).start()
        node.serve_forever()
    """

    def __init__(self, config: NodeConfig, service: LineService):
        self.config = config
        self.service = service
        self.server: Optional[LineServer] = None
        self.directory: Optional[ConnectionDirectory] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.port if self.server else self.config.port

    def start(self) -> "ServiceNode":
        """
        Bind, register and resolve dependencies.

        Raises:
            StartupError: ListenError, RegistrationError, LookupFailedError,
                RegistryUnreachableError or PeerConnectError
        """
        self.server = create_server(
            self.config.host,
            self.config.port,
            self.service,
            threaded=self.config.threaded,
        )
        try:
            self.directory = ConnectionDirectory.from_config(self.config, advertised_port=self.server.port)
        except Exception:
            self.server.server_close()
            raise

        if isinstance(self.service, DirectoryAware):
            self.service.attach(self.directory)
        return self

    def serve_forever(self) -> None:
        logger.info(f"{self.config.name} waiting for incoming connections on port {self.port}")
        with self.server:
            self.server.serve_forever()

    def serve_in_background(self) -> threading.Thread:
        logger.info(f"{self.config.name} serving in background on port {self.port}")
        self._thread = start_background(self.server)
        return self._thread

    def shutdown(self) -> None:
        """
        Stop serving and close the dependency links.

        Stop dependents before their dependencies: a sequential Bank or
        Content server only notices shutdown once the Store's link is closed.
        """
        if self.server is None:
            return
        if self._thread is not None:
            self.server.shutdown()
            self._thread.join()
            self._thread = None
        self.server.server_close()
        if self.directory is not None:
            self.directory.close()
