"""
Error classes and process exit codes for the storefront network.

Every process (name server, bank, content, store, client) fails at startup in
one of a small number of ways. Each of those ways has exactly one exception
class and exactly one exit code, so a supervisor can tell them apart.

Error handling contract:
- StartupError subclasses are fatal: cli.py logs the message and exits
  with the error's exit code. Nothing below cli.py calls sys.exit.
- LinkClosedError is not fatal: it aborts the current request only.
- Malformed requests are not errors at all, they are dropped silently.

Exit codes are stable across all five processes:

    1  BAD_ARGS                 bad command line or unreadable data file
    2  REGISTRATION_FAILURE     name server did not acknowledge REG
    3  LISTEN_FAILURE           cannot bind the listening port
    4  ACCEPT_FAILURE           accept() failed on the listening socket
    5  LOOKUP_FAILURE           a dependency never registered
    6  NAMESERVER_CONNECT_FAIL  name server unreachable
    7  PEER_CONNECT_FAIL        a resolved dependency is unreachable
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit statuses, one per startup failure kind."""
    OK = 0
    BAD_ARGS = 1
    REGISTRATION_FAILURE = 2
    LISTEN_FAILURE = 3
    ACCEPT_FAILURE = 4
    LOOKUP_FAILURE = 5
    NAMESERVER_CONNECT_FAIL = 6
    PEER_CONNECT_FAIL = 7


class NetworkError(Exception):
    """Base exception for the storefront network."""
    pass


class StartupError(NetworkError):
    """
    A failure that terminates the process.

    Subclasses pin the exit code; the message is what gets logged.
    """
    exit_code: ExitCode = ExitCode.BAD_ARGS


class BadArgumentsError(StartupError):
    exit_code = ExitCode.BAD_ARGS


class CatalogFormatError(BadArgumentsError):
    """A stock or content file is missing or has a malformed line."""
    pass


class RegistrationError(StartupError):
    exit_code = ExitCode.REGISTRATION_FAILURE


class ListenError(StartupError):
    exit_code = ExitCode.LISTEN_FAILURE


class AcceptError(StartupError):
    exit_code = ExitCode.ACCEPT_FAILURE


class LookupFailedError(StartupError):
    """The name server answered LOOKUP with the not-registered sentinel."""
    exit_code = ExitCode.LOOKUP_FAILURE

    def __init__(self, name: str):
        super().__init__(f"{name} has not registered")
        self.name = name


class RegistryUnreachableError(StartupError):
    exit_code = ExitCode.NAMESERVER_CONNECT_FAIL


class PeerConnectError(StartupError):
    """A connection to a named peer could not be opened."""
    exit_code = ExitCode.PEER_CONNECT_FAIL


class LinkClosedError(NetworkError):
    """Raised when a dead RemoteLink is used for an exchange."""
    pass
