"""
Tests for the ServiceNode startup lifecycle.
"""

import pytest

from services.bank import BankService
from services.content import ContentService
from services.node import ServiceNode
from services.store import StoreService
from shared.data_store import DataStore
from shared.errors import ListenError, LookupFailedError
from shared.models import NodeConfig


def make_config(registry_address, name="Bank", port=0, dependencies=None) -> NodeConfig:
    return NodeConfig(
        name=name,
        port=port,
        registry=registry_address,
        dependencies=dependencies or [],
    )


class TestServiceNode:

    def test_advertises_bound_port(self, registry_address, registry):
        node = ServiceNode(make_config(registry_address), BankService()).start()
        try:
            assert node.port > 0
            assert registry.lookup("Bank") == f"localhost {node.port}"
        finally:
            node.shutdown()

    def test_directory_attached_to_aware_services(self, registry_address, data_store):
        bank = ServiceNode(make_config(registry_address), BankService()).start()
        bank.serve_in_background()
        content = ServiceNode(make_config(registry_address, name="Content"), ContentService(data_store)).start()
        content.serve_in_background()

        service = StoreService(data_store)
        store = ServiceNode(
            make_config(registry_address, name="Store", dependencies=["Bank", "Content"]),
            service,
        ).start()
        try:
            assert service.directory is store.directory
            assert sorted(service.directory.names) == ["Bank", "Content"]
        finally:
            store.shutdown()
            content.shutdown()
            bank.shutdown()

    def test_lookup_failure_closes_listener(self, registry_address):
        node = ServiceNode(
            make_config(registry_address, name="Store", dependencies=["Bank"]),
            StoreService(DataStore()),
        )

        with pytest.raises(LookupFailedError):
            node.start()

        assert node.server.socket.fileno() == -1

    def test_listen_failure(self, registry_address):
        first = ServiceNode(make_config(registry_address), BankService()).start()
        try:
            second = ServiceNode(make_config(registry_address, name="Bank2", port=first.port), BankService())
            with pytest.raises(ListenError):
                second.start()
        finally:
            first.shutdown()

    def test_shutdown_before_start_is_noop(self, registry_address):
        ServiceNode(make_config(registry_address), BankService()).shutdown()
