"""
Tests for the Content repository.
"""

import pytest

from discovery.link import RemoteLink
from services.content import ContentService
from shared.data_store import DataStore
from shared.models import Address
from shared.protocol import DEFAULT_HOST
from shared.server import create_server, start_background


@pytest.fixture
def content_service(data_store: DataStore) -> ContentService:
    return ContentService(data_store)


class TestContentService:

    def test_known_item(self, content_service: ContentService):
        assert content_service.process_message("REQ 1") == "the_first_song.mp3"

    def test_missing_item_gets_empty_line(self, content_service: ContentService):
        assert content_service.process_message("REQ 6") == ""
        assert content_service.process_message("REQ 99") == ""

    @pytest.mark.parametrize("message", ["REQ", "REQ x", "REQ 1 2", "GET 1", "req 1"])
    def test_malformed_requests_get_no_reply(self, content_service: ContentService, message):
        assert content_service.process_message(message) is None

    def test_content_with_spaces(self, write_data_file):
        path = write_data_file("content.txt", "7 live at the hall.flac\n")
        service = ContentService(DataStore(content_file=path))

        assert service.process_message("REQ 7") == "live at the hall.flac"


class TestContentConnection:

    def test_many_requests_on_one_link(self, content_service: ContentService):
        server = create_server(DEFAULT_HOST, 0, content_service)
        start_background(server)
        try:
            with RemoteLink.connect("Content", Address(host=DEFAULT_HOST, port=server.port)) as link:
                assert link.request("REQ 2") == "a_short_film.mp4"
                assert link.request("REQ 6") == ""
                assert link.request("REQ 4") == "the_album.zip"
        finally:
            server.shutdown()
            server.server_close()
