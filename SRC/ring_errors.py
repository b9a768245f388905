"""Errors raised by the consistent hashing ring."""
from __future__ import annotations

from typing import Any, Optional


class RingError(Exception):
    """Base class for ring errors."""

    def __init__(self, message: str, node: Optional[Any] = None):
        super().__init__(message)
        self.node = node


class InvalidNodeIdentifier(RingError, ValueError):
    """Node identifier is not a non-empty string."""


class DuplicateNode(RingError, ValueError):
    """Node was already added to the ring."""


class UnknownNode(RingError, LookupError):
    """Node was never added to the ring."""


class EmptyRing(RingError, LookupError):
    """Ring holds no positions, so no key can be placed."""
