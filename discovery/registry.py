"""
In-memory name table for the name server.

Maps a process name to the address it registered. The table lives exactly as
long as the name server process: no persistence, no expiry, no
de-registration.

Design decisions:
- An owned service object guarded by one lock, not a module-level dict
- Re-registering a name overwrites the old record (no merge, no reject)
- Invalid registrations return None instead of raising; the name server
  turns that into a silent drop
"""

import logging
import threading
from typing import Optional, Union

from pydantic import ValidationError

from shared.models import Address, ServiceRecord
from shared.protocol import LOOKUP_ERROR, parse_int

logger = logging.getLogger("registry")


class Registry:
    """
    Thread-safe name -> ServiceRecord table.

    Example:
        registry = Registry()
        registry.register("Bank", "4001", "localhost")
        registry.lookup("Bank")     # "localhost 4001"
        registry.lookup("Nobody")   # LOOKUP_ERROR
    """

    def __init__(self):
        self._records: dict[str, ServiceRecord] = {}
        self._lock = threading.Lock()

    def register(self, name: str, port: Union[str, int], ip: str) -> Optional[ServiceRecord]:
        """
        Store or overwrite the record for ``name``.

        Args:
            name: process name (case-sensitive, non-empty)
            port: port as received on the wire, must be 1-65535
            ip: 'localhost' or a dotted-quad IPv4 address

        Returns:
            The stored record, or None if any field is invalid.
        """
        port_value = port if isinstance(port, int) else parse_int(port)
        if port_value is None:
            logger.debug(f"Dropping registration for {name!r}: bad port {port!r}")
            return None

        try:
            record = ServiceRecord(name=name, address=Address(host=ip, port=port_value))
        except ValidationError as e:
            logger.debug(f"Dropping registration for {name!r}: {e.error_count()} invalid field(s)")
            return None

        with self._lock:
            previous = self._records.get(name)
            self._records[name] = record

        if previous and previous.address != record.address:
            logger.info(f"Re-registered {name}: {previous.address} -> {record.address}")
        else:
            logger.info(f"Registered {name} at {record.address}")
        return record

    def get(self, name: str) -> Optional[ServiceRecord]:
        with self._lock:
            return self._records.get(name)

    def lookup(self, name: str) -> str:
        """
        Resolve a name to its LOOKUP reply.

        Returns ``"<ip> <port>"`` for a registered name and the fixed
        not-registered sentinel otherwise.
        """
        record = self.get(name)
        if record is None:
            return LOOKUP_ERROR
        return record.lookup_reply()

    def records(self) -> list[ServiceRecord]:
        """Snapshot of every record, ordered by name."""
        with self._lock:
            return [self._records[name] for name in sorted(self._records)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._records
