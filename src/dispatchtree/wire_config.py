from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from dispatchtree.config import DispatchSettings
from dispatchtree.core import log
from dispatchtree.core.errors import WiringError
from dispatchtree.core.node import Target, as_target
from dispatchtree.core.registry import KeyedDispatchRegistry
from dispatchtree.core.state import ChatStateStore
from dispatchtree.core.walker import DispatchWalker
from dispatchtree.routing.registries import (
    CallbackDataRegistry,
    ChatStateRegistry,
    CommandRegistry,
    UpdateTypeRegistry,
)

_log = log.get(__name__)

DEFAULT_MODULE = "dispatchtree.routing.registries"


@dataclass
class WiredTree:
    root: KeyedDispatchRegistry
    walker: DispatchWalker
    settings: DispatchSettings
    store: ChatStateStore
    nodes: Dict[str, KeyedDispatchRegistry] = field(default_factory=dict)


def _split_ref(ref: str) -> Tuple[str, str]:
    # "pkg.mod:attr" or "pkg.mod.attr"
    if ":" in ref:
        module, _, attr = ref.partition(":")
    else:
        module, _, attr = ref.rpartition(".")
    if not module or not attr:
        raise WiringError(f"bad reference {ref!r}, expected 'module:attr'")
    return module, attr


def _imp(module: str, attr: str):
    try:
        mod = importlib.import_module(module)
        return getattr(mod, attr)
    except (ImportError, AttributeError) as e:
        raise WiringError(f"cannot import {module}:{attr}: {e}") from e


def _load_handler(ref: str, args: Dict[str, Any] | None) -> Target:
    obj = _imp(*_split_ref(ref))
    if isinstance(obj, type):
        obj = obj(**(args or {}))
    elif args:
        raise WiringError(f"args given for non-class handler {ref!r}")
    try:
        return as_target(obj)
    except TypeError as e:
        raise WiringError(str(e)) from e


def _make_node(name: str, spec: Dict[str, Any], settings: DispatchSettings, store: ChatStateStore):
    if "class" not in spec:
        raise WiringError(f"node {name!r} has no class")
    cls = _imp(spec.get("module", DEFAULT_MODULE), spec["class"])
    if not (isinstance(cls, type) and issubclass(cls, KeyedDispatchRegistry)):
        raise WiringError(f"node {name!r}: {spec['class']} is not a KeyedDispatchRegistry")

    kwargs: Dict[str, Any] = {"strict": settings.strict_registration}
    if issubclass(cls, CommandRegistry):
        kwargs.update(prefix=settings.command_prefix, bot_username=settings.bot_username)
    elif issubclass(cls, CallbackDataRegistry):
        kwargs.update(separator=settings.callback_separator)
    elif issubclass(cls, ChatStateRegistry):
        kwargs.update(store=store)
    elif issubclass(cls, UpdateTypeRegistry):
        kwargs.update(command_prefix=settings.command_prefix)
    kwargs.update(spec.get("args") or {})
    try:
        return cls(name=name, **kwargs)
    except TypeError as e:
        raise WiringError(f"node {name!r}: {e}") from e


def build_from_dict(
    data: Dict[str, Any],
    *,
    settings: Optional[DispatchSettings] = None,
    store: Optional[ChatStateStore] = None,
) -> WiredTree:
    """Assemble registries, routes and a walker from a routing description."""
    if not isinstance(data, dict):
        raise WiringError("routing config must be a mapping")
    try:
        settings = (settings or DispatchSettings()).merged(data.get("settings"))
    except ValueError as e:
        raise WiringError(str(e)) from e
    store = store if store is not None else ChatStateStore()

    node_specs = data.get("nodes") or {}
    if not node_specs:
        raise WiringError("routing config declares no nodes")

    # all nodes first so routes may point forward
    nodes = {name: _make_node(name, spec or {}, settings, store) for name, spec in node_specs.items()}

    for name, spec in node_specs.items():
        reg = nodes[name]
        for i, route in enumerate((spec or {}).get("routes") or []):
            keys = route.get("keys")
            if keys is None:
                raise WiringError(f"{name}.routes[{i}] has no keys")
            if not isinstance(keys, list):
                keys = [keys]
            if ("node" in route) == ("handler" in route):
                raise WiringError(f"{name}.routes[{i}] needs exactly one of node/handler")
            if "node" in route:
                if route["node"] not in nodes:
                    raise WiringError(f"{name}.routes[{i}] points to unknown node {route['node']!r}")
                target = nodes[route["node"]]
            else:
                target = _load_handler(route["handler"], route.get("args"))
            try:
                reg.register_handlers([reg.coerce_identifier(k) for k in keys], target)
            except ValueError as e:
                raise WiringError(f"{name}.routes[{i}]: {e}") from e

    root_name = data.get("root")
    if root_name not in nodes:
        raise WiringError(f"root {root_name!r} is not a declared node")

    fallback = data.get("fallback")
    walker = DispatchWalker(
        nodes[root_name],
        fallback=_load_handler(fallback, None) if fallback else None,
        max_depth=settings.max_depth,
        raise_handler_errors=settings.raise_handler_errors,
        raise_extraction_errors=settings.raise_extraction_errors,
    )
    _log.info("routing tree wired: root=%s nodes=%d", root_name, len(nodes))
    return WiredTree(root=nodes[root_name], walker=walker, settings=settings, store=store, nodes=nodes)


def build_from_yaml(yaml_path: str | Path, **kw) -> WiredTree:
    """Read a routing YAML file and wire it (see build_from_dict)."""
    try:
        data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise WiringError(f"invalid YAML in {yaml_path}: {e}") from e
    return build_from_dict(data, **kw)
