from .flights import router as flights_router
from .pricing import router as pricing_router

__all__ = [
    "flights_router",
    "pricing_router",
]
