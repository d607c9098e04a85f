"""
API v1 package initialization.

This module collects the v1 routers of the FreightDesk dispatch API.
"""

from freightdesk.api.v1.dispatch import router as dispatch_router
from freightdesk.api.v1.distance import router as distance_router
from freightdesk.api.v1.orders import router as orders_router
from freightdesk.api.v1.vocabulary import router as vocabulary_router

__all__ = [
    "dispatch_router",
    "distance_router",
    "orders_router",
    "vocabulary_router",
]
