"""
Tests for the Store orchestrator.

The Bank and Content links are replaced by in-memory fakes so every purchase
outcome, including dead links, can be driven and the downstream traffic
inspected.
"""

import logging
from typing import Callable, Optional

import pytest

from services.store import SessionState, StoreService, StoreSession
from shared.data_store import DataStore
from shared.models import PurchaseIntent, PurchaseOutcome


class FakeLink:
    """Records requests and answers them with a function (None = peer closed)."""

    def __init__(self, answer: Callable[[str], Optional[str]], alive: bool = True):
        self.answer = answer
        self.is_alive = alive
        self.requests: list[str] = []

    def request(self, line: str) -> Optional[str]:
        self.requests.append(line)
        reply = self.answer(line)
        if reply is None:
            self.is_alive = False
        return reply


class FakeDirectory:

    def __init__(self, **links: FakeLink):
        self.links = links

    def __contains__(self, name: str) -> bool:
        return name in self.links

    def get(self, name: str) -> FakeLink:
        return self.links[name]


def parity_bank(line: str) -> str:
    return "1" if int(line.split(" ")[0]) % 2 == 0 else "0"


@pytest.fixture
def bank_link() -> FakeLink:
    return FakeLink(parity_bank)


@pytest.fixture
def content_link(data_store: DataStore) -> FakeLink:
    def answer(line: str) -> str:
        return data_store.get_content(int(line.split(" ")[1])) or ""
    return FakeLink(answer)


@pytest.fixture
def store(data_store: DataStore, bank_link: FakeLink, content_link: FakeLink) -> StoreService:
    service = StoreService(data_store)
    service.attach(FakeDirectory(Bank=bank_link, Content=content_link))
    return service


class TestListing:

    def test_list_is_bounded_and_ascending(self, store: StoreService):
        lines = store.process_message("LIST")

        assert lines == [
            "LIST_START",
            "1 10.00",
            "2 12.50",
            "3 7.25",
            "4 20.00",
            "5 3.99",
            "6 15.00",
            "LIST_END",
        ]

    def test_empty_catalog(self, bank_link, content_link):
        service = StoreService(DataStore())
        service.attach(FakeDirectory(Bank=bank_link, Content=content_link))

        assert service.process_message("LIST") == ["LIST_START", "LIST_END"]


class TestPurchase:
    """The validate-then-fetch workflow and each of its outcomes."""

    def test_even_item_delivers_content(self, store: StoreService, bank_link, content_link):
        replies = store.process_message("BUY 1234567812345678 2")

        assert replies == ["a_short_film.mp4"]
        assert bank_link.requests == ["2 12.50 1234567812345678"]
        assert content_link.requests == ["REQ 2"]

    def test_odd_item_aborts_without_content_call(self, store: StoreService, bank_link, content_link):
        replies = store.process_message("BUY 1234567812345678 3")

        assert replies == ['3 "transaction aborted"']
        assert bank_link.requests == ["3 7.25 1234567812345678"]
        assert content_link.requests == []

    def test_unknown_item_contacts_nobody(self, store: StoreService, bank_link, content_link):
        result = store.purchase(PurchaseIntent(credit_card="1234567812345678", item_id=99))

        assert result.outcome == PurchaseOutcome.UNKNOWN_ITEM
        assert result.reply == '99 "transaction aborted"'
        assert bank_link.requests == []
        assert content_link.requests == []

    def test_missing_content_after_approval(self, store: StoreService, bank_link):
        result = store.purchase(PurchaseIntent(credit_card="1234567812345678", item_id=6))

        assert result.outcome == PurchaseOutcome.CONTENT_MISSING
        assert result.reply == '6 "transaction aborted"'
        # The approval already happened and is not reversed
        assert bank_link.requests == ["6 15.00 1234567812345678"]

    def test_unreversed_approval_is_logged(self, store: StoreService, caplog):
        with caplog.at_level(logging.WARNING, logger="store_service"):
            store.purchase(PurchaseIntent(credit_card="1234567812345678", item_id=6))

        assert "not reversed" in caplog.text

    def test_unrecognized_bank_reply_is_denial(self, data_store, content_link):
        service = StoreService(data_store)
        service.attach(FakeDirectory(Bank=FakeLink(lambda line: "maybe"), Content=content_link))

        result = service.purchase(PurchaseIntent(credit_card="1234567812345678", item_id=2))

        assert result.outcome == PurchaseOutcome.DENIED

    @pytest.mark.parametrize("message,tag", [
        ("BUY 1234567812345678 two", "two"),
        ("BUY card 2", "2"),
    ])
    def test_malformed_tokens_abort(self, store: StoreService, bank_link, message, tag):
        assert store.process_message(message) == [f'{tag} "transaction aborted"']
        assert bank_link.requests == []


class TestLinkFailures:
    """Dead or closing dependency links abort the purchase only."""

    def test_bank_closes_during_request(self, data_store, content_link):
        bank = FakeLink(lambda line: None)
        service = StoreService(data_store)
        service.attach(FakeDirectory(Bank=bank, Content=content_link))

        result = service.purchase(PurchaseIntent(credit_card="1234567812345678", item_id=2))

        assert result.outcome == PurchaseOutcome.LINK_ERROR
        assert not bank.is_alive
        assert content_link.requests == []

    def test_dead_bank_link_not_used(self, data_store, content_link):
        bank = FakeLink(parity_bank, alive=False)
        service = StoreService(data_store)
        service.attach(FakeDirectory(Bank=bank, Content=content_link))

        assert service.process_message("BUY 1234567812345678 2") == ['2 "transaction aborted"']
        assert bank.requests == []

    def test_content_closes_after_approval(self, data_store, bank_link):
        service = StoreService(data_store)
        service.attach(FakeDirectory(Bank=bank_link, Content=FakeLink(lambda line: None)))

        result = service.purchase(PurchaseIntent(credit_card="1234567812345678", item_id=4))

        assert result.outcome == PurchaseOutcome.LINK_ERROR
        assert bank_link.requests == ["4 20.00 1234567812345678"]

    def test_no_directory_attached(self, data_store):
        result = StoreService(data_store).purchase(PurchaseIntent(credit_card="1234567812345678", item_id=2))

        assert result.outcome == PurchaseOutcome.LINK_ERROR

    def test_later_purchases_still_answered(self, store: StoreService, content_link):
        store.directory.links["Content"] = FakeLink(lambda line: None, alive=False)

        assert store.process_message("BUY 1234567812345678 2") == ['2 "transaction aborted"']
        assert store.process_message("BUY 1234567812345678 3") == ['3 "transaction aborted"']
        assert store.process_message("LIST")[0] == "LIST_START"


class TestDispatch:

    @pytest.mark.parametrize("message", ["", "HELLO", "BUY 1234567812345678", "LIST extra", "list"])
    def test_unrecognized_requests_get_no_reply(self, store: StoreService, message):
        assert store.process_message(message) == []

    def test_session_walks_purchase_states(self, store: StoreService):
        session = StoreSession()
        session.advance(SessionState.DISPATCHING)

        store.process_message("BUY 1234567812345678 2", session)

        assert session.history == [
            SessionState.AWAITING_REQUEST,
            SessionState.DISPATCHING,
            SessionState.PURCHASING,
        ]

    def test_session_walks_listing_states(self, store: StoreService):
        session = StoreSession()

        store.process_message("LIST", session)

        assert session.state == SessionState.LISTING
