from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from dotenv import load_dotenv


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DispatchSettings:
    strict_registration: bool = False
    max_depth: int = 32
    raise_handler_errors: bool = False
    raise_extraction_errors: bool = False
    command_prefix: str = "/"
    bot_username: Optional[str] = None
    callback_separator: str = ":"

    @classmethod
    def from_env(cls) -> "DispatchSettings":
        """DISPATCH_* variables (and BOT_USERNAME), .env included."""
        load_dotenv()
        return cls(
            strict_registration=_flag("DISPATCH_STRICT", False),
            max_depth=int(os.getenv("DISPATCH_MAX_DEPTH", "32")),
            raise_handler_errors=_flag("DISPATCH_RAISE_HANDLER_ERRORS", False),
            raise_extraction_errors=_flag("DISPATCH_RAISE_EXTRACTION_ERRORS", False),
            command_prefix=os.getenv("DISPATCH_COMMAND_PREFIX", "/"),
            bot_username=os.getenv("BOT_USERNAME") or None,
            callback_separator=os.getenv("DISPATCH_CALLBACK_SEPARATOR", ":"),
        )

    def merged(self, overrides: Dict[str, Any] | None) -> "DispatchSettings":
        """Copy with keys from ``overrides`` applied; unknown keys raise ValueError."""
        if not overrides:
            return self
        names = {f.name for f in fields(self)}
        unknown = set(overrides) - names
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")
        data = {n: getattr(self, n) for n in names}
        data.update(overrides)
        return DispatchSettings(**data)
