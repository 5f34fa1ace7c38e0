"""
Wire protocol for the storefront network.

Every message is one line of UTF-8 text, tokens separated by a single space.
This module holds the fixed tokens and the small helpers that format and
split messages, so no other module builds a protocol string by hand.

    Register       peer -> name server   REG <name> <port> <ip>
    Lookup         peer -> name server   LOOKUP <name>
    List           client -> Store       LIST
    Buy            client -> Store       BUY <creditCard> <itemId>
    Validate       Store -> Bank         <itemId> <price> <creditCard>
    Content fetch  Store -> Content      REQ <itemId>
"""

import re
from typing import Optional


SEPARATOR = " "
ENCODING = "utf-8"

# =============================================================================
# Name server tokens
# =============================================================================

REGISTRATION_KEYWORD = "REG"
LOOKUP_KEYWORD = "LOOKUP"
REGISTRATION_SUCCESS = "REGISTRATION_SUCCESS"
LOOKUP_ERROR = "Error: Process has not registered with the Name Server"

# =============================================================================
# Store tokens
# =============================================================================

LIST_REQUEST = "LIST"
BUY_REQUEST = "BUY"
LIST_START = "LIST_START"
LIST_END = "LIST_END"
TRANSACTION_ABORTED = '"transaction aborted"'

# Bank replies
PURCHASE_APPROVED = "1"
PURCHASE_DENIED = "0"

# Content request tag
CONTENT_REQUEST = "REQ"

# =============================================================================
# Well-known process names and addresses
# =============================================================================

NAME_SERVER_NAME = "NameServer"
STORE_NAME = "Store"
BANK_NAME = "Bank"
CONTENT_NAME = "Content"
CLIENT_NAME = "client"

DEFAULT_HOST = "localhost"

# The client never listens; it registers with a placeholder port.
CLIENT_PLACEHOLDER_PORT = 6465

# Dummy 16 digit card used by the client for every purchase.
DEFAULT_CREDIT_CARD = "1234567812345678"

_INTEGER = re.compile(r"[+-]?[0-9]+")


def split_message(line: str) -> list[str]:
    """Split a received line into tokens, ignoring the line terminator."""
    return line.rstrip("\r\n").split(SEPARATOR)


def parse_int(token: str) -> Optional[int]:
    """
    Parse a decimal integer token strictly.

    Returns None for anything that is not an optionally signed run of digits
    (no whitespace, no underscores, no floats).
    """
    if not _INTEGER.fullmatch(token):
        return None
    return int(token)


def join_tokens(*tokens: object) -> str:
    return SEPARATOR.join(str(t) for t in tokens)


# =============================================================================
# Message builders
# =============================================================================

def format_register(name: str, port: int, ip: str) -> str:
    return join_tokens(REGISTRATION_KEYWORD, name, port, ip)


def format_lookup(name: str) -> str:
    return join_tokens(LOOKUP_KEYWORD, name)


def format_lookup_reply(ip: str, port: int) -> str:
    return join_tokens(ip, port)


def parse_lookup_reply(line: str) -> Optional[tuple[str, int]]:
    """
    Parse a ``<ip> <port>`` lookup reply.

    Returns None for the not-registered sentinel or anything else that does
    not have exactly that shape.
    """
    if line == LOOKUP_ERROR:
        return None
    parts = split_message(line)
    if len(parts) != 2:
        return None
    port = parse_int(parts[1])
    if port is None:
        return None
    return parts[0], port


def format_buy(credit_card: str, item_id: int) -> str:
    return join_tokens(BUY_REQUEST, credit_card, item_id)


def format_validate(item_id: int, price: object, credit_card: str) -> str:
    return join_tokens(item_id, price, credit_card)


def format_content_request(item_id: int) -> str:
    return join_tokens(CONTENT_REQUEST, item_id)


def format_abort(item_id: object) -> str:
    """The abort sentinel, tagged with the item id as the client sent it."""
    return join_tokens(item_id, TRANSACTION_ABORTED)


def is_abort(line: str) -> bool:
    return TRANSACTION_ABORTED in line
