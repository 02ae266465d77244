"""API middleware package."""

from src.podflow.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
