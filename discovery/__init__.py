"""
Service discovery for the storefront network.

- Registry / NameServerService: the name server's table and its protocol
- RemoteLink: one open line connection to a named peer
- RegistryClient / ConnectionDirectory: how every other process registers
  itself and resolves its dependencies at startup
"""

from discovery.registry import Registry
from discovery.name_server import NameServerService, create_name_server
from discovery.link import RemoteLink
from discovery.directory import ConnectionDirectory, RegistryClient

__all__ = [
    "Registry",
    "NameServerService",
    "create_name_server",
    "RemoteLink",
    "ConnectionDirectory",
    "RegistryClient",
]
