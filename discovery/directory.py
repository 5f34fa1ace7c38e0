"""
Service discovery on the client side of the name server.

RegistryClient speaks the name server protocol (one RPC per connection).
ConnectionDirectory is what every process builds once at startup: it
registers the process, resolves each dependency by name and keeps one
long-lived link per dependency.

Startup order (every step is fatal on failure):
1. connect to the name server            RegistryUnreachableError
2. REG self                              RegistrationError
3. per dependency: LOOKUP on a new link  LookupFailedError / RegistryUnreachableError
   then connect to the resolved address  PeerConnectError
4. close the name server link

A dependency link that dies later is not re-resolved. That is a known
limitation: owners see link.is_alive go False and treat requests as aborted.
"""

import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from discovery.link import RemoteLink
from shared.errors import (
    LookupFailedError,
    PeerConnectError,
    RegistrationError,
    RegistryUnreachableError,
    StartupError,
)
from shared.models import Address, NodeConfig
from shared.protocol import (
    LOOKUP_ERROR,
    NAME_SERVER_NAME,
    REGISTRATION_SUCCESS,
    format_lookup,
    format_register,
    parse_lookup_reply,
)

logger = logging.getLogger("directory")


class RegistryClient:
    """
    Name server RPCs.

    Each call opens its own connection unless one is passed in, because the
    name server closes the connection after every request.
    """

    def __init__(self, registry: Address):
        self.registry = registry

    def open_link(self) -> RemoteLink:
        """
        Raises:
            RegistryUnreachableError: if the name server is not accepting connections
        """
        try:
            return RemoteLink.connect(NAME_SERVER_NAME, self.registry)
        except PeerConnectError as e:
            raise RegistryUnreachableError(f"Could not contact NameServer at {self.registry}") from e

    def register(
        self,
        name: str,
        port: int,
        ip: str,
        link: Optional[RemoteLink] = None,
    ) -> None:
        """
        Register ``name`` at ``ip:port``.

        Raises:
            RegistryUnreachableError: if no link was given and none can be opened
            RegistrationError: if the reply is anything but REGISTRATION_SUCCESS
                (the name server drops invalid registrations without a reply)
        """
        owned = link is None
        link = link or self.open_link()
        try:
            reply = link.request(format_register(name, port, ip))
        finally:
            if owned:
                link.close()

        if reply != REGISTRATION_SUCCESS:
            raise RegistrationError(f"Registration of {name} with NameServer failed (reply: {reply!r})")
        logger.info(f"Registered {name} at {ip}:{port}")

    def lookup(self, name: str) -> Address:
        """
        Resolve a name over a fresh name server connection.

        Raises:
            RegistryUnreachableError: if the name server cannot be reached or
                closes the connection without answering
            LookupFailedError: if the name is not registered
        """
        with self.open_link() as link:
            reply = link.request(format_lookup(name))

        if reply is None:
            raise RegistryUnreachableError(f"NameServer closed the connection during LOOKUP {name}")
        if reply == LOOKUP_ERROR:
            raise LookupFailedError(name)

        parsed = parse_lookup_reply(reply)
        if parsed is None:
            raise LookupFailedError(name)
        try:
            address = Address(host=parsed[0], port=parsed[1])
        except ValidationError as e:
            raise LookupFailedError(name) from e

        logger.debug(f"Resolved {name} -> {address}")
        return address


class ConnectionDirectory:
    """
    Dependency name -> live RemoteLink, built once per process.

    Acts as a connection pool of size one per peer.

    Example:
        directory = ConnectionDirectory(Address(host="localhost", port=1234))
        directory.bootstrap("Store", 4003, "localhost", ["Bank", "Content"])
        bank = directory.get("Bank")
    """

    def __init__(self, registry: Address, client: Optional[RegistryClient] = None):
        self.client = client or RegistryClient(registry)
        self._links: dict[str, RemoteLink] = {}
        self._addresses: dict[str, Address] = {}

    @classmethod
    def from_config(cls, config: NodeConfig, advertised_port: Optional[int] = None) -> "ConnectionDirectory":
        """Build and bootstrap a directory for a process configuration."""
        directory = cls(config.registry)
        directory.bootstrap(
            config.name,
            advertised_port or config.port,
            config.host,
            config.dependencies,
        )
        return directory

    def bootstrap(self, name: str, port: int, host: str, dependencies: Iterable[str]) -> "ConnectionDirectory":
        """
        Register this process and connect to every dependency.

        Raises:
            StartupError: the subclass names which step failed
        """
        registry_link = self.client.open_link()
        try:
            self.client.register(name, port, host, link=registry_link)
            for dependency in dependencies:
                self.add(dependency)
        except StartupError:
            self.close()
            raise
        finally:
            registry_link.close()
        return self

    def add(self, name: str) -> RemoteLink:
        """Resolve ``name`` and open its long-lived link."""
        address = self.client.lookup(name)
        link = RemoteLink.connect(name, address)
        self._addresses[name] = address
        self._links[name] = link
        logger.info(f"Connected to {name} at {address}")
        return link

    def get(self, name: str) -> RemoteLink:
        """
        The long-lived link for a declared dependency.

        Raises:
            KeyError: if ``name`` was never added
        """
        return self._links[name]

    def address_of(self, name: str) -> Address:
        return self._addresses[name]

    def open_link(self, name: str) -> RemoteLink:
        """
        Open an additional, caller-owned link to an already resolved dependency.

        Does not consult the name server again.

        Raises:
            PeerConnectError: if the peer is unreachable
        """
        return RemoteLink.connect(name, self._addresses[name])

    @property
    def names(self) -> list[str]:
        return list(self._links)

    def __contains__(self, name: str) -> bool:
        return name in self._links

    def close(self) -> None:
        for link in self._links.values():
            link.close()
        self._links.clear()
