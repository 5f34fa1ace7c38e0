"""
Content: the repository of purchasable deliverables.

    REQ <itemId>   ->   <content> | (empty line)

An empty line means there is no content for that id. Malformed requests get
no reply. Like the Bank, a connection carries many requests.
"""

import logging
from typing import Optional

from shared.data_store import DataStore
from shared.protocol import CONTENT_NAME, CONTENT_REQUEST, parse_int, split_message
from shared.server import LineConnection, LineService

logger = logging.getLogger("content_service")


class ContentService(LineService):
    """Serves content lines from a DataStore."""

    name = CONTENT_NAME

    def __init__(self, data_store: DataStore):
        self.data_store = data_store

    def process_message(self, message: str) -> Optional[str]:
        parts = split_message(message)
        if len(parts) != 2 or parts[0] != CONTENT_REQUEST:
            logger.debug(f"Ignoring message: {message!r}")
            return None

        item_id = parse_int(parts[1])
        if item_id is None:
            logger.debug(f"Ignoring request with bad item id: {message!r}")
            return None

        content = self.data_store.get_content(item_id)
        if content is None:
            logger.info(f"No content for item {item_id}")
            return ""

        logger.info(f"Content retrieved for item {item_id}: {content}")
        return content

    def handle_connection(self, conn: LineConnection) -> None:
        while True:
            message = conn.read_line()
            if message is None:
                return
            reply = self.process_message(message)
            if reply is not None:
                conn.write_line(reply)
