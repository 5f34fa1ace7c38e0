"""
Client: lists the Store's catalog or buys one item from it.

The client registers with the name server under a placeholder address (it
never listens), resolves the Store, and then performs one request:

    request 0     LIST and print "<n>. <itemId> <price>" per item
    request n>0   LIST, pick the n-th item, BUY it and print
                  "<itemId> ($ <price>) CONTENT <content>" or the abort line

The Store closes every connection after one request, so the long-lived
Store link from the directory carries the first request and any further
request uses a fresh connection to the already resolved address.
"""

import logging
import random
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from discovery.directory import ConnectionDirectory
from discovery.link import RemoteLink
from shared.errors import BadArgumentsError, LinkClosedError, PeerConnectError
from shared.models import Address, NodeConfig, StockItem
from shared.protocol import (
    CLIENT_NAME,
    CLIENT_PLACEHOLDER_PORT,
    DEFAULT_CREDIT_CARD,
    DEFAULT_HOST,
    LIST_END,
    LIST_REQUEST,
    LIST_START,
    STORE_NAME,
    format_buy,
    is_abort,
    parse_int,
    split_message,
)

logger = logging.getLogger("store_client")

# Requests the load generator cycles through, forever
CYCLE_REQUESTS = range(0, 11)
CYCLE_MAX_DELAY_SECONDS = 4.0


def parse_list_reply(lines: list[str]) -> list[StockItem]:
    """
    Turn a LIST reply (LIST_START ... LIST_END) into stock items.

    Raises:
        LinkClosedError: if the reply is not bounded by LIST_START/LIST_END
            or an entry is malformed
    """
    if not lines or lines[0] != LIST_START or lines[-1] != LIST_END:
        raise LinkClosedError("Store sent an unbounded list")

    items = []
    for line in lines[1:-1]:
        parts = split_message(line)
        item_id = parse_int(parts[0])
        if item_id is None or len(parts) != 2:
            raise LinkClosedError(f"Store sent a malformed list entry: {line!r}")
        try:
            items.append(StockItem(item_id=item_id, price=Decimal(parts[1])))
        except (InvalidOperation, ValueError) as e:
            raise LinkClosedError(f"Store sent a malformed price: {line!r}") from e
    return items


def format_listing(items: list[StockItem]) -> str:
    return "".join(f"{number}. {item.list_line()}\n" for number, item in enumerate(items, start=1))


class StoreClient:
    """
    Talks to the Store resolved in a ConnectionDirectory.

    Example:
        client = StoreClient(directory)
        client.list_items()        # [StockItem(item_id=1, ...), ...]
        client.buy(2)              # content line or '2 "transaction aborted"'
    """

    def __init__(self, directory: ConnectionDirectory, credit_card: str = DEFAULT_CREDIT_CARD):
        self.directory = directory
        self.credit_card = credit_card
        self._directory_link_used = False

    def _with_link(self, exchange: Callable[[RemoteLink], object]):
        """Run one request cycle on the directory link first, fresh links after."""
        if not self._directory_link_used:
            self._directory_link_used = True
            link = self.directory.get(STORE_NAME)
            if link.is_alive:
                return exchange(link)

        with self.directory.open_link(STORE_NAME) as link:
            return exchange(link)

    def list_items(self) -> list[StockItem]:
        """
        Raises:
            LinkClosedError: if the Store closes before LIST_END
            PeerConnectError: if the Store cannot be reached
        """
        lines = self._with_link(lambda link: link.request_until(LIST_REQUEST, LIST_END))
        return parse_list_reply(lines)

    def buy(self, item_id: int) -> str:
        """
        Buy one item and return the Store's reply line.

        Raises:
            LinkClosedError: if the Store closes without replying
            PeerConnectError: if the Store cannot be reached
        """
        def exchange(link: RemoteLink) -> str:
            reply = link.request(format_buy(self.credit_card, item_id))
            if reply is None:
                raise LinkClosedError(f"Store closed the connection during purchase of {item_id}")
            return reply

        return self._with_link(exchange)

    def run_request(self, request: int) -> str:
        """
        Perform a numbered client request and return the text to print.

        Raises:
            BadArgumentsError: if ``request`` is negative or past the end of the list
        """
        if request < 0:
            raise BadArgumentsError(f"Invalid request number: {request}")

        items = self.list_items()
        if request == 0:
            return format_listing(items)

        if request > len(items):
            raise BadArgumentsError(f"Request {request} is past the end of a {len(items)} item list")

        item = items[request - 1]
        reply = self.buy(item.item_id)
        if is_abort(reply):
            return reply + "\n"
        return f"{item.item_id} ($ {item.price}) CONTENT {reply}\n"


def client_config(registry_port: int, registry_host: str = DEFAULT_HOST) -> NodeConfig:
    return NodeConfig(
        name=CLIENT_NAME,
        port=CLIENT_PLACEHOLDER_PORT,
        registry=Address(host=registry_host, port=registry_port),
        dependencies=[STORE_NAME],
    )


def run_client(config: NodeConfig, request: int, credit_card: str = DEFAULT_CREDIT_CARD) -> str:
    """
    Register, resolve the Store, perform one request.

    Raises:
        StartupError: BadArgumentsError, RegistryUnreachableError,
            RegistrationError, LookupFailedError or PeerConnectError
    """
    directory = ConnectionDirectory.from_config(config)
    try:
        return StoreClient(directory, credit_card).run_request(request)
    except LinkClosedError as e:
        raise PeerConnectError(f"Client lost its connection to the Store: {e}") from e
    finally:
        directory.close()


def run_cycle(
    config: NodeConfig,
    output: Callable[[str], None] = print,
    max_delay: float = CYCLE_MAX_DELAY_SECONDS,
    rounds: Optional[int] = None,
) -> None:
    """
    Repeat requests 0..10 with a random pause before each, as a load generator.

    Each request is a fresh client (register, resolve, request). Runs forever
    unless ``rounds`` is given.
    """
    completed = 0
    while rounds is None or completed < rounds:
        for request in CYCLE_REQUESTS:
            time.sleep(random.random() * max_delay)
            try:
                output(run_client(config, request).rstrip("\n"))
            except BadArgumentsError as e:
                # The catalog may be shorter than the cycle
                logger.info(f"Skipping request {request}: {e}")
        completed += 1
