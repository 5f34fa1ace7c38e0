"""
HTTP gateway onto the storefront network.

The network itself speaks a line protocol over TCP. This FastAPI app lets a
browser or curl look into it: resolve names through the name server, list the
Store's catalog and place purchases. Every request is translated into the
same TCP messages a Client would send.

Run with:
    python cli.py serve --registry-port 1234

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from discovery.directory import RegistryClient
from discovery.link import RemoteLink
from services.client import parse_list_reply
from shared.errors import LinkClosedError, LookupFailedError, PeerConnectError, RegistryUnreachableError
from shared.models import Address
from shared.protocol import (
    DEFAULT_CREDIT_CARD,
    LIST_END,
    LIST_REQUEST,
    LOOKUP_ERROR,
    STORE_NAME,
    format_buy,
    is_abort,
)

logger = logging.getLogger("gateway_api")


# Response models
class ServiceAddress(BaseModel):
    """A name resolved through the name server."""
    name: str
    host: str
    port: int


class CatalogEntry(BaseModel):
    item_id: int
    price: str


class PurchaseRequest(BaseModel):
    item_id: int = Field(..., description="Item to buy")
    credit_card: str = Field(default=DEFAULT_CREDIT_CARD, description="Card number")


class PurchaseResponse(BaseModel):
    item_id: int
    success: bool
    reply: str = Field(..., description="The Store's reply line, verbatim")


# Module-level configuration (set by cli.py serve, or by tests)
_registry_address: Optional[Address] = None


def configure_gateway(registry: Optional[Address]) -> None:
    """Point the gateway at a name server (None to unconfigure)."""
    global _registry_address
    _registry_address = registry


def get_registry_client() -> RegistryClient:
    if _registry_address is None:
        raise HTTPException(status_code=503, detail="Gateway is not configured with a name server")
    return RegistryClient(_registry_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(f"Starting storefront gateway (name server: {_registry_address})")
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="Storefront Gateway",
    description="""
    HTTP view of the storefront network.

    ## Endpoints

    - `/registry/{name}` - LOOKUP a process through the name server
    - `/catalog` - LIST the Store's items
    - `/purchases` - BUY an item through the Store (Bank check, then Content)
    """,
    version="1.0.0",
    lifespan=lifespan,
)


def _store_link(registry: RegistryClient) -> RemoteLink:
    """Resolve the Store and open a one-request link to it."""
    try:
        return RemoteLink.connect(STORE_NAME, registry.lookup(STORE_NAME))
    except LookupFailedError:
        raise HTTPException(status_code=503, detail=f"{STORE_NAME} has not registered")
    except (RegistryUnreachableError, PeerConnectError) as e:
        raise HTTPException(status_code=503, detail=str(e))


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "storefront-gateway"}


# =============================================================================
# Name Server
# =============================================================================

@app.get("/registry/{name}", response_model=ServiceAddress, tags=["Name Server"])
def lookup_service(name: str, registry: RegistryClient = Depends(get_registry_client)):
    """Resolve a process name. 404 carries the name server's error line."""
    try:
        address = registry.lookup(name)
    except LookupFailedError:
        raise HTTPException(status_code=404, detail=LOOKUP_ERROR)
    except RegistryUnreachableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ServiceAddress(name=name, host=address.host, port=address.port)


# =============================================================================
# Store
# =============================================================================

@app.get("/catalog", response_model=list[CatalogEntry], tags=["Store"])
def get_catalog(registry: RegistryClient = Depends(get_registry_client)):
    """List the Store's items in ascending item id order."""
    with _store_link(registry) as link:
        try:
            items = parse_list_reply(link.request_until(LIST_REQUEST, LIST_END))
        except LinkClosedError as e:
            raise HTTPException(status_code=503, detail=str(e))
    return [CatalogEntry(item_id=item.item_id, price=str(item.price)) for item in items]


@app.post("/purchases", response_model=PurchaseResponse, tags=["Store"])
def create_purchase(request: PurchaseRequest, registry: RegistryClient = Depends(get_registry_client)):
    """
    Buy one item.

    An aborted purchase is still a 200: the abort is the Store's answer, not
    a gateway failure. ``success`` tells the two apart.
    """
    with _store_link(registry) as link:
        reply = link.request(format_buy(request.credit_card, request.item_id))
    if reply is None:
        raise HTTPException(status_code=503, detail=f"{STORE_NAME} closed the connection without replying")

    logger.info(f"Purchase of {request.item_id}: {reply}")
    return PurchaseResponse(item_id=request.item_id, success=not is_abort(reply), reply=reply)
