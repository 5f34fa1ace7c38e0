"""
Bank: the financial validator.

The Store sends one validation request per purchase over a long-lived
connection; the Bank answers each with a single token.

    <itemId> <price> <creditCard>   ->   1 (approve) | 0 (deny)

Requests that are not three tokens with an integer item id get no reply.

The decision itself is behind the Authorizer interface. The shipped rule,
ParityAuthorizer, approves even item ids. A real check can replace it
without touching the wire contract or the Store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from shared.models import PurchaseIntent
from shared.protocol import (
    BANK_NAME,
    PURCHASE_APPROVED,
    PURCHASE_DENIED,
    parse_int,
    split_message,
)
from shared.server import LineConnection, LineService

logger = logging.getLogger("bank_service")


class Authorizer(ABC):
    """Decides whether a purchase may be charged."""

    @abstractmethod
    def authorize(self, intent: PurchaseIntent, price: str) -> bool:
        """
        Args:
            intent: card number and item id of the purchase
            price: the price token exactly as the Store sent it

        Returns:
            True to approve, False to deny
        """
        ...


class ParityAuthorizer(Authorizer):
    """Approves even item ids and denies odd ones."""

    def authorize(self, intent: PurchaseIntent, price: str) -> bool:
        return intent.item_id % 2 == 0


class BankService(LineService):
    """
    Answers validation requests until the peer closes the connection.

    Example:
        service = BankService()
        service.process_message("2 12.50 1234567812345678")   # "1"
        service.process_message("3 9.99 1234567812345678")    # "0"
    """

    name = BANK_NAME

    def __init__(self, authorizer: Optional[Authorizer] = None):
        self.authorizer = authorizer or ParityAuthorizer()
        self.approved_count = 0
        self.denied_count = 0

    def process_message(self, message: str) -> Optional[str]:
        """Return "1"/"0", or None for a malformed request."""
        parts = split_message(message)
        if len(parts) != 3:
            logger.debug(f"Ignoring message: {message!r}")
            return None

        item_id = parse_int(parts[0])
        if item_id is None:
            logger.debug(f"Ignoring message with bad item id: {message!r}")
            return None

        _, price, credit_card = parts
        intent = PurchaseIntent(credit_card=credit_card, item_id=item_id)

        if self.authorizer.authorize(intent, price):
            self.approved_count += 1
            logger.info(f"Item {item_id} at {price}: OK")
            return PURCHASE_APPROVED

        self.denied_count += 1
        logger.info(f"Item {item_id} at {price}: NOT OK")
        return PURCHASE_DENIED

    def handle_connection(self, conn: LineConnection) -> None:
        while True:
            message = conn.read_line()
            if message is None:
                return
            reply = self.process_message(message)
            if reply is not None:
                conn.write_line(reply)
