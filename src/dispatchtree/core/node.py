"""Capabilities of the dispatch tree.

Two orthogonal capabilities:

- ``Handler``: anything with ``handle(event)``; processes an event terminally.
- ``RoutingNode``: ``resolve(event)`` returns the next target or ``None``.

A type may have both. The walker asks a routing node to resolve first; when
it returns ``None`` and the node is also a handler, the node is terminal.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class Handler(Protocol):
    def handle(self, event: Any) -> None: ...


class RoutingNode(ABC):
    """A node of the dispatch tree."""

    @property
    def name(self) -> str:
        return getattr(self, "_name", None) or type(self).__name__

    @abstractmethod
    def resolve(self, event: Any) -> Optional["Target"]:
        """Next target for ``event``, or None when this node cannot route it further.

        Must not mutate the event. Raises ExtractionError when the event cannot
        be inspected at all.
        """


# what a registry maps identifiers to
Target = Union[Handler, RoutingNode]


class GenericHandler(ABC):
    """Base for terminal handlers that handle every event they receive."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def handle(self, event: Any) -> None: ...


class FunctionHandler(GenericHandler):
    """Adapts a plain ``fn(event)`` to the Handler capability."""

    def __init__(self, func: Callable[[Any], Any], name: Optional[str] = None):
        if not callable(func):
            raise TypeError(f"handler function must be callable, got {func!r}")
        self.func = func
        self._name = name or getattr(func, "__qualname__", None) or repr(func)

    @property
    def name(self) -> str:
        return self._name

    def handle(self, event: Any) -> None:
        self.func(event)

    def __repr__(self) -> str:
        return f"FunctionHandler({self._name})"


def is_routing_node(obj: Any) -> bool:
    return isinstance(obj, RoutingNode)


def is_handler(obj: Any) -> bool:
    return isinstance(obj, Handler)


def as_target(obj: Any) -> Target:
    """Return ``obj`` unchanged if it already is a node or handler, wrap plain callables."""
    if is_routing_node(obj) or is_handler(obj):
        return obj
    if callable(obj):
        return FunctionHandler(obj)
    raise TypeError(f"not a handler, routing node or callable: {obj!r}")


def target_name(obj: Any) -> str:
    return getattr(obj, "name", None) or type(obj).__name__
