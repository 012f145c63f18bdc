"""
Server Module - FastAPI gateway in front of the AI vendors
"""

from .app import create_app
from .rate_limit import SlidingWindowRateLimiter
from .vendors import VendorClients

__all__ = [
    "create_app",
    "SlidingWindowRateLimiter",
    "VendorClients",
]
