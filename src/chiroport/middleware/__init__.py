"""ASGI middleware for the intake service."""

from .edge import EdgeMiddleware

__all__ = ["EdgeMiddleware"]
