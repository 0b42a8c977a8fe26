"""API routes."""

from .orders import router as orders_router
from .pricing import router as pricing_router
from .reviews import router as reviews_router
from .wallet import router as wallet_router

__all__ = [
    "pricing_router",
    "orders_router",
    "reviews_router",
    "wallet_router",
]
