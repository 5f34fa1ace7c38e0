"""
Tests for the name server process.

Protocol behavior is checked both directly on NameServerService and over
real connections, since silence (no reply, connection closed) is part of the
contract.
"""

import pytest

from discovery.name_server import NameServerService
from discovery.registry import Registry
from shared.protocol import LOOKUP_ERROR, REGISTRATION_SUCCESS


@pytest.fixture
def service(registry: Registry) -> NameServerService:
    return NameServerService(registry)


class TestProcessMessage:

    def test_serves_the_given_empty_registry(self, registry: Registry):
        service = NameServerService(registry)

        assert service.registry is registry
        service.process_message("REG Bank 4001 localhost")
        assert registry.lookup("Bank") == "localhost 4001"

    def test_register(self, service: NameServerService):
        assert service.process_message("REG Bank 4001 localhost") == REGISTRATION_SUCCESS

    def test_lookup_registered(self, service: NameServerService):
        service.process_message("REG Bank 4001 localhost")

        assert service.process_message("LOOKUP Bank") == "localhost 4001"

    def test_lookup_unregistered(self, service: NameServerService):
        assert service.process_message("LOOKUP Bank") == LOOKUP_ERROR

    @pytest.mark.parametrize("message", [
        "REG Bank 4001",
        "REG Bank 4001 localhost extra",
        "REG Bank 0 localhost",
        "REG Bank 4001 999.0.0.1",
        "LOOKUP",
        "LOOKUP Bank Store",
        "HELLO",
        "",
        "reg Bank 4001 localhost",
    ])
    def test_dropped_messages(self, service: NameServerService, message):
        assert service.process_message(message) is None


class TestOverTheWire:
    """One request per connection, against a running name server."""

    def test_register_then_lookup(self, registry_address, send_line):
        assert send_line(registry_address, "REG Content 4002 127.0.0.1") == REGISTRATION_SUCCESS
        assert send_line(registry_address, "LOOKUP Content") == "127.0.0.1 4002"

    def test_sentinel_verbatim(self, registry_address, send_line):
        assert send_line(registry_address, "LOOKUP Store") == LOOKUP_ERROR

    def test_invalid_registration_closes_silently(self, registry_address, registry, send_line):
        assert send_line(registry_address, "REG Bank 70000 localhost") is None
        assert "Bank" not in registry

    def test_unknown_command_closes_silently(self, registry_address, send_line):
        assert send_line(registry_address, "LIST") is None

    def test_reregister_overwrites(self, registry_address, send_line):
        send_line(registry_address, "REG Bank 4001 localhost")
        send_line(registry_address, "REG Bank 4101 localhost")

        assert send_line(registry_address, "LOOKUP Bank") == "localhost 4101"

    def test_registrations_land_in_given_registry(self, registry_address, registry, send_line):
        send_line(registry_address, "REG Store 4003 localhost")

        assert [record.name for record in registry.records()] == ["Store"]
