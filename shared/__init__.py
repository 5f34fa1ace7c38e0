"""
Shared infrastructure for the storefront network.

This package contains code used by every process (name server, Bank,
Content, Store, Client):
- Domain models (ServiceRecord, StockItem, PurchaseResult, etc.)
- Wire protocol tokens and message helpers
- File-backed catalog store
- Line-oriented TCP server
- Error classes and exit codes
"""

from shared.models import (
    Address,
    ServiceRecord,
    StockItem,
    ContentItem,
    PurchaseIntent,
    PurchaseOutcome,
    PurchaseResult,
    NodeConfig,
)
from shared.data_store import DataStore
from shared.errors import ExitCode, StartupError

__all__ = [
    "Address",
    "ServiceRecord",
    "StockItem",
    "ContentItem",
    "PurchaseIntent",
    "PurchaseOutcome",
    "PurchaseResult",
    "NodeConfig",
    "DataStore",
    "ExitCode",
    "StartupError",
]
