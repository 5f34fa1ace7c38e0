"""
RemoteLink: one open text connection to a named peer.

Every process talks to the name server and to its dependencies through
links. A link is owned by whoever opened it and never reconnects by itself:
once the stream fails or the peer closes it, the link is dead and stays dead,
and its owner has to discard it (and re-resolve, if it wants to try again).

Design decisions:
- Liveness is an explicit flag, checked before use, instead of relying on
  exceptions from a dead socket
- send()/receive_line() never raise on I/O errors, they mark the link dead
- request() holds the link's lock for the whole send + receive, so two
  worker threads never interleave on one peer
"""

import logging
import socket
import threading
from typing import Optional

from shared.errors import LinkClosedError, PeerConnectError
from shared.models import Address
from shared.protocol import ENCODING

logger = logging.getLogger("remote_link")


class RemoteLink:
    """
    Duplex line stream to one peer.

    Example:
        link = RemoteLink.connect("Bank", Address(host="localhost", port=4001))
        reply = link.request("2 12.50 1234567812345678")   # "1", or None if dead
        link.close()
    """

    def __init__(self, peer_name: str, address: Address, sock: socket.socket):
        self.peer_name = peer_name
        self.address = address
        self._sock = sock
        self._reader = sock.makefile("rb")
        self._alive = True
        self._lock = threading.Lock()

    @classmethod
    def connect(cls, peer_name: str, address: Address) -> "RemoteLink":
        """
        Open a link to a peer.

        Raises:
            PeerConnectError: if the TCP connection cannot be established
        """
        try:
            sock = socket.create_connection((address.host, address.port))
        except OSError as e:
            raise PeerConnectError(f"Could not connect to {peer_name} at {address}: {e}") from e
        logger.debug(f"Connected to {peer_name} at {address}")
        return cls(peer_name, address, sock)

    @property
    def is_alive(self) -> bool:
        return self._alive

    def _mark_dead(self, reason: str) -> None:
        if self._alive:
            logger.warning(f"Link to {self.peer_name} at {self.address} is dead: {reason}")
        self._alive = False

    def send(self, line: str) -> bool:
        """
        Write one newline-terminated message.

        Returns:
            False if the link is (or just became) dead.
        """
        if not self._alive:
            return False
        try:
            self._sock.sendall((line + "\n").encode(ENCODING))
        except OSError as e:
            self._mark_dead(str(e))
            return False
        return True

    def receive_line(self) -> Optional[str]:
        """
        Read one line, without its terminator.

        Returns:
            The line, or None when the peer closed the stream or it failed.
        """
        if not self._alive:
            return None
        try:
            raw = self._reader.readline()
        except OSError as e:
            self._mark_dead(str(e))
            return None
        if not raw:
            self._mark_dead("closed by peer")
            return None
        return raw.decode(ENCODING, errors="replace").rstrip("\r\n")

    def request(self, line: str) -> Optional[str]:
        """Send one message and block for exactly one reply line."""
        with self._lock:
            if not self.send(line):
                return None
            return self.receive_line()

    def request_until(self, line: str, terminator: str) -> list[str]:
        """
        Send one message and collect reply lines up to and including ``terminator``.

        Raises:
            LinkClosedError: if the link dies before the terminator arrives
        """
        with self._lock:
            if not self.send(line):
                raise LinkClosedError(f"Link to {self.peer_name} is closed")
            lines = []
            while True:
                reply = self.receive_line()
                if reply is None:
                    raise LinkClosedError(f"{self.peer_name} closed the link before {terminator}")
                lines.append(reply)
                if reply == terminator:
                    return lines

    def close(self) -> None:
        """Close the stream. Errors while closing are ignored."""
        self._alive = False
        for closeable in (self._reader, self._sock):
            try:
                closeable.close()
            except OSError as e:
                logger.debug(f"Error closing link to {self.peer_name}, ignoring: {e}")

    def __enter__(self) -> "RemoteLink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "alive" if self._alive else "dead"
        return f"RemoteLink({self.peer_name}, {self.address}, {state})"
