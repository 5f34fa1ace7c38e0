"""
Local demo network.

Starts a name server, Bank, Content and Store on ephemeral localhost ports in
background threads, using the bundled data files, and runs a few client
requests against them:

- listing the catalog
- buying an even item (approved, content delivered)
- buying an odd item (denied by the Bank)
- buying an item the Store does not stock (aborted before the Bank)
- buying an even item that has no content (approved, then aborted)
"""

import logging
from pathlib import Path
from typing import Optional

from discovery.directory import ConnectionDirectory
from discovery.name_server import create_name_server
from discovery.registry import Registry
from services.bank import Authorizer, BankService
from services.client import StoreClient, client_config, run_client
from services.content import ContentService
from services.node import ServiceNode
from services.store import StoreService
from shared.data_store import DEFAULT_DATA_DIR, DataStore
from shared.models import Address, NodeConfig
from shared.protocol import BANK_NAME, CONTENT_NAME, DEFAULT_HOST, STORE_NAME
from shared.server import LineServer, start_background

logger = logging.getLogger("demo")


class LocalNetwork:
    """
    All four servers of the network, running in this process.

    Example:
        with LocalNetwork() as network:
            print(network.run_client(0))
    """

    def __init__(
        self,
        stock_file: Path = DEFAULT_DATA_DIR / "stock.txt",
        content_file: Path = DEFAULT_DATA_DIR / "content.txt",
        authorizer: Optional[Authorizer] = None,
        threaded: bool = False,
    ):
        self.stock_file = stock_file
        self.content_file = content_file
        self.authorizer = authorizer
        self.threaded = threaded

        self.registry = Registry()
        self.name_server: Optional[LineServer] = None
        self.bank: Optional[ServiceNode] = None
        self.content: Optional[ServiceNode] = None
        self.store: Optional[ServiceNode] = None

    @property
    def registry_address(self) -> Address:
        return Address(host=DEFAULT_HOST, port=self.name_server.port)

    def _node_config(self, name: str, dependencies: Optional[list[str]] = None) -> NodeConfig:
        return NodeConfig(
            name=name,
            port=0,
            registry=self.registry_address,
            dependencies=dependencies or [],
            threaded=self.threaded,
        )

    def start(self) -> "LocalNetwork":
        self.name_server = create_name_server(0, host=DEFAULT_HOST, registry=self.registry, threaded=self.threaded)
        start_background(self.name_server)

        self.bank = ServiceNode(self._node_config(BANK_NAME), BankService(self.authorizer)).start()
        self.bank.serve_in_background()

        content_store = DataStore(content_file=self.content_file).load()
        self.content = ServiceNode(self._node_config(CONTENT_NAME), ContentService(content_store)).start()
        self.content.serve_in_background()

        stock_store = DataStore(stock_file=self.stock_file).load()
        self.store = ServiceNode(
            self._node_config(STORE_NAME, [BANK_NAME, CONTENT_NAME]),
            StoreService(stock_store),
        ).start()
        self.store.serve_in_background()

        logger.info(f"Local network up, name server on port {self.name_server.port}")
        return self

    def stop(self) -> None:
        # Dependents first, so Bank and Content see their Store link close
        for node in (self.store, self.content, self.bank):
            if node is not None:
                node.shutdown()
        if self.name_server is not None:
            self.name_server.shutdown()
            self.name_server.server_close()

    def client_config(self) -> NodeConfig:
        return client_config(self.name_server.port)

    def run_client(self, request: int) -> str:
        return run_client(self.client_config(), request)

    def connect_client(self) -> StoreClient:
        """A StoreClient with its own registered directory (caller closes client.directory)."""
        return StoreClient(ConnectionDirectory.from_config(self.client_config()))

    def __enter__(self) -> "LocalNetwork":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()


def _section(title: str) -> None:
    print("\n" + "-" * 70)
    print(title)
    print("-" * 70)


def run_purchase_demo() -> list[str]:
    """
    Demonstrate listing and the four purchase outcomes end to end.

    Returns the lines the client printed, in order.
    """
    print("\n" + "=" * 70)
    print("DEMO: Store purchase orchestration over the name server")
    print("=" * 70)

    outputs = []
    with LocalNetwork() as network:
        print(f"\nName server listening on port {network.name_server.port}")
        for record in network.registry.records():
            print(f"  {record.name:<8} -> {record.address}")

        _section("ACTION: client request 0 (list the catalog)")
        listing = network.run_client(0)
        print(listing, end="")
        outputs.append(listing)

        _section("ACTION: client request 2 (even item, Bank approves)")
        bought = network.run_client(2)
        print(bought, end="")
        outputs.append(bought)

        _section("ACTION: client request 3 (odd item, Bank denies)")
        denied = network.run_client(3)
        print(denied, end="")
        outputs.append(denied)

        client = network.connect_client()
        try:
            _section("ACTION: BUY item 99 (not stocked, Bank never contacted)")
            unknown = client.buy(99)
            print(unknown)
            outputs.append(unknown)

            _section("ACTION: BUY item 6 (Bank approves, Content has nothing)")
            missing = client.buy(6)
            print(missing)
            outputs.append(missing)
        finally:
            client.directory.close()

    print("\n" + "-" * 70)
    print("NOTE: the last purchase was approved by the Bank before Content came")
    print("back empty. Nothing reverses the approval: the workflow is not atomic.")
    print("-" * 70)
    return outputs
