# src/dispatchtree/core/walker.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from dispatchtree.core import log
from dispatchtree.core.errors import ExtractionError, HandlerError, RoutingDepthError
from dispatchtree.core.metrics import Timer, inc_counter, observe_hist
from dispatchtree.core.node import Handler, Target, as_target, is_handler, is_routing_node, target_name

_log = log.get(__name__)


class DispatchStatus(str, Enum):
    HANDLED = "handled"
    UNHANDLED = "unhandled"
    EXTRACTION_FAILED = "extraction_failed"
    HANDLER_FAILED = "handler_failed"


@dataclass
class WalkOutcome:
    status: DispatchStatus
    handler: Optional[Handler] = None
    path: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None


@dataclass
class DispatchResult(WalkOutcome):
    fallback_used: bool = False

    @property
    def handled(self) -> bool:
        return self.status is DispatchStatus.HANDLED


class DispatchWalker:
    """Walks the dispatch tree from ``root`` and invokes the terminal handler.

    An ExtractionError aborts only the subtree of the node that raised it: the
    walk backs up to the nearest ancestor that can handle the event itself.
    """

    def __init__(
        self,
        root: Target,
        *,
        fallback: Any = None,
        max_depth: int = 32,
        raise_handler_errors: bool = False,
        raise_extraction_errors: bool = False,
    ):
        if max_depth <= 0:
            raise ValueError("max_depth must be > 0")
        self.root = as_target(root)
        self.fallback = as_target(fallback) if fallback is not None else None
        if self.fallback is not None and not is_handler(self.fallback):
            raise TypeError(f"fallback must be a handler, got {target_name(self.fallback)}")
        self.max_depth = int(max_depth)
        self.raise_handler_errors = raise_handler_errors
        self.raise_extraction_errors = raise_extraction_errors

    def walk(self, event: Any) -> WalkOutcome:
        """Resolve ``event`` to its terminal handler without invoking it."""
        node: Any = self.root
        path: List[str] = []
        ancestors: List[Any] = []   # visited nodes that are handlers too

        while True:
            path.append(target_name(node))
            if len(path) > self.max_depth:
                raise RoutingDepthError(self.max_depth, path)

            if not is_routing_node(node):
                if is_handler(node):
                    return WalkOutcome(DispatchStatus.HANDLED, node, path)
                return WalkOutcome(DispatchStatus.UNHANDLED, None, path)

            try:
                nxt = node.resolve(event)
            except ExtractionError as e:
                if e.node is None:
                    e.node = node.name
                if self.raise_extraction_errors:
                    raise
                _log.warning("extraction failed at %s: %s", node.name, e)
                if is_handler(node):
                    return WalkOutcome(DispatchStatus.HANDLED, node, path, error=e)
                if ancestors:
                    _log.debug("falling back to %s", target_name(ancestors[-1]))
                    return WalkOutcome(DispatchStatus.HANDLED, ancestors[-1], path, error=e)
                return WalkOutcome(DispatchStatus.EXTRACTION_FAILED, None, path, error=e)

            if nxt is None:
                if is_handler(node):
                    return WalkOutcome(DispatchStatus.HANDLED, node, path)
                return WalkOutcome(DispatchStatus.UNHANDLED, None, path)

            if is_handler(node):
                ancestors.append(node)
            node = nxt

    def dispatch(self, event: Any) -> DispatchResult:
        with Timer("dispatch_latency_ms"):
            outcome = self.walk(event)
            result = DispatchResult(outcome.status, outcome.handler, outcome.path, outcome.error)
            observe_hist("dispatch_depth", float(len(result.path)))

            if result.status is DispatchStatus.UNHANDLED and self.fallback is not None:
                result.handler = self.fallback
                result.fallback_used = True
                result.status = DispatchStatus.HANDLED

            try:
                if result.handler is not None:
                    self._invoke(result, event)
            finally:
                inc_counter("dispatch_total", status=result.status.value)

        if result.status is DispatchStatus.UNHANDLED:
            _log.debug("unhandled event via %s", " -> ".join(result.path))
        return result

    def _invoke(self, result: DispatchResult, event: Any) -> None:
        try:
            result.handler.handle(event)
        except Exception as e:
            result.status = DispatchStatus.HANDLER_FAILED
            result.error = e
            # only HandlerError is a handler-reported failure; anything else is a bug
            if self.raise_handler_errors or not isinstance(e, HandlerError):
                raise
            _log.error("handler %s failed: %s", target_name(result.handler), e, exc_info=True)
