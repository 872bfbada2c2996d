"""Grouped WHERE conditions."""

from typing import Any, Callable


class Brackets:
    """Conditions built by a callback and rendered inside parentheses.

    Example:
        >>> qb.where("is_active = :active", {"active": True}).and_where(
        ...     Brackets(lambda inner: inner.where("role = 'admin'").or_where("role = 'owner'"))
        ... )
        # ... WHERE is_active = :active AND (role = 'admin' OR role = 'owner')
    """

    def __init__(self, where_factory: Callable[[Any], Any]):
        self.where_factory = where_factory


class NotBrackets(Brackets):
    """Like ``Brackets`` but rendered as ``NOT(...)``."""
