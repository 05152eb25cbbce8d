"""Routers package for FrontDesk API."""

from .patients import router as patients_router
from .queue import router as queue_router

__all__ = [
    "patients_router",
    "queue_router"
]
