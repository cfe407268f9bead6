"""
Domain utilities for the Gateway Service.

Holds the HTTP boundary for authentication: translating pipeline errors
into 401/403 responses and exposing scope guards as FastAPI dependencies.
"""

from .auth_middleware import AuthMiddleware

__all__ = [
    "AuthMiddleware",
]
