"""Utility decorators used across quarry."""

from .decorators import retry_with_backoff, traced

__all__ = ["traced", "retry_with_backoff"]
