"""
Store: the purchase orchestrator.

Clients ask the Store for its catalog or to buy an item. A purchase is the
only place in the network where one incoming request causes outgoing calls,
and they are strictly sequential:

    client            Store                 Bank              Content
      | BUY cc id       |                     |                   |
      |---------------->| id price cc         |                   |
      |                 |-------------------->|                   |
      |                 |<----------- 1 / 0 --|                   |
      |                 | REQ id   (only on 1)                    |
      |                 |---------------------------------------->|
      |                 |<------------------------ content / "" --|
      |<- content / abort                                         |

Each accepted connection goes through
AWAITING_REQUEST -> DISPATCHING -> LISTING | PURCHASING -> REPLIED -> CLOSED
and is closed after one request.

Known non-atomicity: there is no compensation step. If the Bank approves and
Content then has nothing (or its link is dead), the client gets the abort
line but whatever the Bank did is not undone. The outcome is reported as
CONTENT_MISSING (or LINK_ERROR) so it stays visible.
"""

import logging
from enum import Enum
from typing import Optional

from discovery.link import RemoteLink
from services.node import DirectoryAware
from shared.data_store import DataStore
from shared.models import PurchaseIntent, PurchaseOutcome, PurchaseResult
from shared.protocol import (
    BANK_NAME,
    BUY_REQUEST,
    CONTENT_NAME,
    LIST_END,
    LIST_REQUEST,
    LIST_START,
    PURCHASE_APPROVED,
    STORE_NAME,
    format_content_request,
    format_validate,
    parse_int,
    split_message,
)
from shared.server import LineConnection, LineService

logger = logging.getLogger("store_service")


class SessionState(str, Enum):
    """Where a client connection is in its single request cycle."""
    AWAITING_REQUEST = "AWAITING_REQUEST"
    DISPATCHING = "DISPATCHING"
    LISTING = "LISTING"
    PURCHASING = "PURCHASING"
    REPLIED = "REPLIED"
    CLOSED = "CLOSED"


class StoreSession:
    """State of one client connection, created per accept."""

    def __init__(self):
        self.state = SessionState.AWAITING_REQUEST
        self.history: list[SessionState] = [self.state]

    def advance(self, state: SessionState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


class StoreService(DirectoryAware, LineService):
    """
    Lists the catalog and orchestrates purchases.

    The Bank and Content links come from the ConnectionDirectory attached at
    startup; validator_name/repository_name select which dependencies play
    those roles.

    Example:
        store = StoreService(DataStore(stock_file="stock.txt"))
        store.attach(directory)                     # has Bank and Content
        store.process_message("BUY 1234567812345678 2")
    """

    name = STORE_NAME

    def __init__(
        self,
        data_store: DataStore,
        validator_name: str = BANK_NAME,
        repository_name: str = CONTENT_NAME,
    ):
        self.data_store = data_store
        self.validator_name = validator_name
        self.repository_name = repository_name

    # =========================================================================
    # Connection handling
    # =========================================================================

    def handle_connection(self, conn: LineConnection) -> None:
        session = StoreSession()
        try:
            message = conn.read_line()
            if message is None:
                return
            session.advance(SessionState.DISPATCHING)
            replies = self.process_message(message, session)
            for line in replies:
                conn.write_line(line)
            if replies:
                session.advance(SessionState.REPLIED)
        finally:
            session.advance(SessionState.CLOSED)

    def process_message(self, message: str, session: Optional[StoreSession] = None) -> list[str]:
        """
        Dispatch one client request.

        Returns:
            The reply lines in order; empty for an unrecognized request.
        """
        session = session or StoreSession()

        if message == LIST_REQUEST:
            session.advance(SessionState.LISTING)
            return self.list_lines()

        parts = split_message(message)
        if len(parts) == 3 and parts[0] == BUY_REQUEST:
            session.advance(SessionState.PURCHASING)
            return [self.buy(parts[1], parts[2]).reply]

        logger.debug(f"Ignoring message: {message!r}")
        return []

    # =========================================================================
    # Listing
    # =========================================================================

    def list_lines(self) -> list[str]:
        """LIST_START, one ``<itemId> <price>`` per item ascending, LIST_END."""
        lines = [LIST_START]
        lines.extend(item.list_line() for item in self.data_store.get_stock())
        lines.append(LIST_END)
        return lines

    # =========================================================================
    # Purchasing
    # =========================================================================

    def buy(self, credit_card: str, item_token: str) -> PurchaseResult:
        """
        Handle ``BUY <creditCard> <itemId>`` with the tokens as received.

        A malformed item id or card number aborts without contacting anyone.
        The abort line is tagged with the item id token the client sent.
        """
        item_id = parse_int(item_token)
        if item_id is None or parse_int(credit_card) is None:
            logger.info(f"Malformed purchase request for item {item_token!r}")
            return PurchaseResult(item_id=item_token, outcome=PurchaseOutcome.UNKNOWN_ITEM)

        intent = PurchaseIntent(credit_card=credit_card, item_id=item_id)
        return self.purchase(intent, item_token=item_token)

    def purchase(self, intent: PurchaseIntent, item_token: Optional[str] = None) -> PurchaseResult:
        """
        Run the validate-then-fetch workflow for one purchase.

        Returns:
            A PurchaseResult whose outcome is one of APPROVED, DENIED,
            CONTENT_MISSING, LINK_ERROR or UNKNOWN_ITEM.
        """
        tag = item_token if item_token is not None else str(intent.item_id)

        price = self.data_store.get_price(intent.item_id)
        if price is None:
            logger.info(f"Item {intent.item_id} is not stocked, aborting")
            return PurchaseResult(item_id=tag, outcome=PurchaseOutcome.UNKNOWN_ITEM)

        outcome = self._validate(intent, str(price))
        if outcome != PurchaseOutcome.APPROVED:
            return PurchaseResult(item_id=tag, outcome=outcome)

        outcome, content = self._fetch_content(intent.item_id)
        if outcome != PurchaseOutcome.APPROVED:
            logger.warning(
                f"{self.validator_name} approved item {intent.item_id} but no content was "
                f"delivered ({outcome.value}); the approval is not reversed"
            )
            return PurchaseResult(item_id=tag, outcome=outcome)

        logger.info(f"Item {intent.item_id} sold")
        return PurchaseResult(item_id=tag, outcome=PurchaseOutcome.APPROVED, content=content)

    def _link(self, name: str) -> Optional[RemoteLink]:
        """The live link to a dependency, or None if it is missing or dead."""
        if self.directory is None or name not in self.directory:
            logger.error(f"No link to {name}")
            return None
        link = self.directory.get(name)
        if not link.is_alive:
            logger.error(f"Link to {name} is dead; it is not re-resolved")
            return None
        return link

    def _validate(self, intent: PurchaseIntent, price: str) -> PurchaseOutcome:
        link = self._link(self.validator_name)
        if link is None:
            return PurchaseOutcome.LINK_ERROR

        reply = link.request(format_validate(intent.item_id, price, intent.credit_card))
        if reply is None:
            return PurchaseOutcome.LINK_ERROR
        if reply == PURCHASE_APPROVED:
            return PurchaseOutcome.APPROVED

        logger.info(f"{self.validator_name} denied item {intent.item_id} (reply {reply!r})")
        return PurchaseOutcome.DENIED

    def _fetch_content(self, item_id: int) -> tuple[PurchaseOutcome, Optional[str]]:
        link = self._link(self.repository_name)
        if link is None:
            return PurchaseOutcome.LINK_ERROR, None

        content = link.request(format_content_request(item_id))
        if content is None:
            return PurchaseOutcome.LINK_ERROR, None
        if content == "":
            return PurchaseOutcome.CONTENT_MISSING, None
        return PurchaseOutcome.APPROVED, content
