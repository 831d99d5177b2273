# Routers package
from . import booking_router

__all__ = [
    "booking_router",
]
