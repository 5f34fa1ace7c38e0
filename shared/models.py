"""
Domain models for the storefront network.

These models describe the few things that cross process boundaries or live
for a whole process lifetime: registered service addresses, catalog entries,
purchase intents and the typed outcome of a purchase.

Design decisions:
- Using Pydantic for validation, so a bad port or address never reaches the
  name table
- Prices are Decimal and keep the exact text they were loaded from
- Purchase outcomes are an enum, so the orchestrator's branches are visible
  in one place and testable
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.protocol import DEFAULT_HOST, format_abort, format_lookup_reply, parse_int


IPV4_ADDRESS_PARTS = 4


def is_valid_host(host: str) -> bool:
    """
    Check that a host is ``localhost`` or a dotted-quad IPv4 address.

    ``localhost`` is matched case-insensitively; each octet must be an
    integer in 0-255.
    """
    if not host:
        return False
    if host.lower() == DEFAULT_HOST:
        return True

    parts = host.split(".")
    if len(parts) != IPV4_ADDRESS_PARTS:
        return False

    for part in parts:
        octet = parse_int(part)
        if octet is None or octet < 0 or octet > 255:
            return False
    return True


# =============================================================================
# Name server records
# =============================================================================

class Address(BaseModel):
    """A reachable TCP endpoint: host plus port."""
    host: str = Field(..., description="'localhost' or dotted-quad IPv4")
    port: int = Field(..., ge=1, le=65535, description="TCP port")

    model_config = ConfigDict(frozen=True)

    @field_validator("host")
    @classmethod
    def _check_host(cls, value: str) -> str:
        if not is_valid_host(value):
            raise ValueError(f"invalid host: {value!r}")
        return value

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class ServiceRecord(BaseModel):
    """
    One entry in the name server's table.

    Names are case-sensitive exact strings. At most one record exists per
    name; registering again replaces the record.
    """
    name: str = Field(..., min_length=1, description="Registered process name")
    address: Address

    model_config = ConfigDict(frozen=True)

    def lookup_reply(self) -> str:
        """Format this record as a LOOKUP reply (``<ip> <port>``)."""
        return format_lookup_reply(self.address.host, self.address.port)


# =============================================================================
# Catalog
# =============================================================================

class StockItem(BaseModel):
    """A Store catalog entry: an item and its price."""
    item_id: int
    price: Decimal = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    def list_line(self) -> str:
        return f"{self.item_id} {self.price}"


class ContentItem(BaseModel):
    """A Content repository entry: the deliverable for an item."""
    item_id: int
    content: str

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Purchases
# =============================================================================

class PurchaseIntent(BaseModel):
    """A single BUY request, discarded once the reply is sent."""
    credit_card: str = Field(..., description="Card number as sent by the client")
    item_id: int


class PurchaseOutcome(str, Enum):
    """
    How a purchase ended.

    APPROVED is the only successful outcome. CONTENT_MISSING is the
    non-atomic case: the bank already approved and nothing is reversed.
    """
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    CONTENT_MISSING = "CONTENT_MISSING"
    LINK_ERROR = "LINK_ERROR"
    UNKNOWN_ITEM = "UNKNOWN_ITEM"


class PurchaseResult(BaseModel):
    """The outcome of one purchase plus the line that goes back to the client."""
    item_id: str = Field(..., description="Item id token as received")
    outcome: PurchaseOutcome
    content: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == PurchaseOutcome.APPROVED

    @property
    def reply(self) -> str:
        if self.success and self.content is not None:
            return self.content
        return format_abort(self.item_id)


# =============================================================================
# Process configuration
# =============================================================================

class NodeConfig(BaseModel):
    """
    Startup configuration for one process.

    ``host``/``port`` are what the process listens on and advertises to the
    name server (port 0 binds an ephemeral port, and the bound port is what
    gets advertised); ``dependencies`` are the names it resolves before
    serving.
    """
    name: str = Field(..., min_length=1)
    host: str = Field(default=DEFAULT_HOST)
    port: int = Field(..., ge=0, le=65535)
    registry: Address
    dependencies: list[str] = Field(default_factory=list)
    threaded: bool = Field(
        default=False,
        description="Serve each connection on its own worker thread",
    )
