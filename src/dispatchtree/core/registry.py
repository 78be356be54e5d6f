# src/dispatchtree/core/registry.py
from __future__ import annotations

import threading
from abc import abstractmethod
from typing import Any, Callable, Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

from dispatchtree.core import log
from dispatchtree.core.errors import DuplicateRegistrationError
from dispatchtree.core.metrics import inc_counter, set_gauge
from dispatchtree.core.node import RoutingNode, Target, as_target, target_name

K = TypeVar("K", bound=Hashable)

_log = log.get(__name__)


class KeyedDispatchRegistry(RoutingNode, Generic[K]):
    """Routes an event by a key extracted from it.

    Subclasses define ``extract_identifier``; resolution is always
    "extract key, then map lookup". The first registration of an identifier
    wins: later ones are ignored, or rejected when ``strict=True``.
    """

    def __init__(self, name: Optional[str] = None, *, strict: bool = False):
        self._name = name
        self.strict = strict
        self._handlers: Dict[K, Target] = {}
        self._lock = threading.RLock()

    # ---------------- registration ----------------
    def register_handler(self, identifier: K | List[K], handler: Any) -> None:
        """Bind ``identifier`` (or every identifier of a list) to ``handler``.

        Plain callables are wrapped in FunctionHandler.
        """
        if isinstance(identifier, list):
            self.register_handlers(identifier, handler)
            return
        target = as_target(handler)
        with self._lock:
            if identifier in self._handlers:
                inc_counter("registry_duplicate_total", registry=self.name)
                if self.strict:
                    raise DuplicateRegistrationError(identifier, node=self.name)
                _log.debug("%s: %r already bound to %s, keeping it", self.name, identifier,
                           target_name(self._handlers[identifier]))
                return
            self._handlers[identifier] = target
            size = len(self._handlers)
        inc_counter("registry_register_total", registry=self.name)
        set_gauge("registry_size", size, registry=self.name)
        _log.debug("%s: %r -> %s", self.name, identifier, target_name(target))

    def register_handlers(self, identifiers: Iterable[K], handler: Any) -> None:
        if isinstance(identifiers, (str, bytes)):
            raise TypeError(f"identifiers must be a sequence of keys, got {identifiers!r}; "
                            f"use register_handler() for a single key")
        # one target object shared by every identifier of the batch
        target = as_target(handler)
        for identifier in identifiers:
            self.register_handler(identifier, target)

    def handler(self, *identifiers: K) -> Callable:
        """Decorator form: ``@registry.handler("help", "h")``."""
        if not identifiers:
            raise TypeError("handler() needs at least one identifier")

        def deco(fn):
            self.register_handlers(identifiers, fn)
            return fn
        return deco

    def remove_handler(self, identifier: K) -> None:
        with self._lock:
            removed = self._handlers.pop(identifier, None)
            size = len(self._handlers)
        if removed is not None:
            set_gauge("registry_size", size, registry=self.name)
            _log.debug("%s: removed %r", self.name, identifier)

    # ---------------- lookup ----------------
    def get_handler(self, identifier: K) -> Optional[Target]:
        if identifier is None:
            return None
        with self._lock:
            return self._handlers.get(identifier)

    def identifiers(self) -> List[K]:
        with self._lock:
            return list(self._handlers)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, size={len(self)})"

    # ---------------- routing ----------------
    @abstractmethod
    def extract_identifier(self, event: Any) -> Optional[K]:
        """Dispatch key of ``event``; raise ExtractionError if it has none."""

    def coerce_identifier(self, raw: Any) -> K:
        """Turn a configured key (usually a string from YAML) into K."""
        return raw

    def resolve(self, event: Any) -> Optional[Target]:
        return self.get_handler(self.extract_identifier(event))
