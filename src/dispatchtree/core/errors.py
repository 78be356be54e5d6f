# src/dispatchtree/core/errors.py
from __future__ import annotations

from typing import Any, Optional


class DispatchError(Exception):
    """Base class for routing-layer failures."""


class ExtractionError(DispatchError):
    """The event is too malformed for a node to compute its identifier.

    Distinct from a routing miss, which is reported as ``None``.
    """
    def __init__(self, message: str, *, node: Optional[str] = None, event: Any = None):
        super().__init__(message)
        self.node = node
        self.event = event

    def __str__(self) -> str:
        msg = super().__str__()
        return f"[{self.node}] {msg}" if self.node else msg


class DuplicateRegistrationError(DispatchError):
    """Raised by strict registries when an identifier is already bound."""
    def __init__(self, identifier: Any, *, node: Optional[str] = None):
        super().__init__(f"identifier already registered: {identifier!r}" + (f" in {node}" if node else ""))
        self.identifier = identifier
        self.node = node


class RoutingDepthError(DispatchError):
    def __init__(self, max_depth: int, path: list):
        super().__init__(f"dispatch walk exceeded max_depth={max_depth}: {' -> '.join(path)}")
        self.max_depth = max_depth
        self.path = path


class WiringError(DispatchError):
    """Invalid routing-tree configuration."""


class HandlerError(Exception):
    """Raised by a handler when its own processing fails."""
