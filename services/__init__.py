"""
The processes of the storefront network.

- BankService: validates purchases (behind a replaceable Authorizer)
- ContentService: serves purchased content
- StoreService: lists the catalog and orchestrates purchases
- StoreClient: lists or buys from the Store
- ServiceNode: bind / register / resolve / serve lifecycle shared by all servers
"""

from services.bank import Authorizer, BankService, ParityAuthorizer
from services.content import ContentService
from services.store import StoreService
from services.client import StoreClient
from services.node import ServiceNode

__all__ = [
    "Authorizer",
    "BankService",
    "ParityAuthorizer",
    "ContentService",
    "StoreService",
    "StoreClient",
    "ServiceNode",
]
