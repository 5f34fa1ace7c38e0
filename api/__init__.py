"""
HTTP gateway for the storefront network.

This package provides a FastAPI application that exposes:
- Name server lookups
- The Store's catalog
- Purchases through the Store
"""

from api.main import app

__all__ = ["app"]
