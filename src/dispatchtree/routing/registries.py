# src/dispatchtree/routing/registries.py
"""Concrete keyed registries for chat-bot updates."""
from __future__ import annotations

from typing import Any, Optional

from dispatchtree.core.contracts import Update, UpdateType, classify
from dispatchtree.core.errors import ExtractionError
from dispatchtree.core.registry import KeyedDispatchRegistry
from dispatchtree.core.state import ChatStateStore


def _require_update(event: Any, node: str) -> Update:
    if not isinstance(event, Update):
        raise ExtractionError(f"expected Update, got {type(event).__name__}", node=node, event=event)
    return event


class UpdateTypeRegistry(KeyedDispatchRegistry[UpdateType]):
    """Top-level split by update kind (command, text, callback query, ...).

    ``command_prefix`` must match the CommandRegistry below it.
    """

    def __init__(self, name: Optional[str] = None, *, strict: bool = False, command_prefix: str = "/"):
        super().__init__(name, strict=strict)
        if not command_prefix:
            raise ValueError("command prefix must not be empty")
        self.command_prefix = command_prefix

    def extract_identifier(self, event: Any) -> UpdateType:
        return classify(_require_update(event, self.name), self.command_prefix)

    def coerce_identifier(self, raw: Any) -> UpdateType:
        return raw if isinstance(raw, UpdateType) else UpdateType(str(raw).lower())


class CommandRegistry(KeyedDispatchRegistry[str]):
    """Routes on the command token of a message: ``/start@mybot arg`` -> ``start``.

    A command addressed to another bot (``@otherbot``) is a miss, not an error.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        strict: bool = False,
        prefix: str = "/",
        bot_username: Optional[str] = None,
        case_sensitive: bool = False,
    ):
        super().__init__(name, strict=strict)
        if not prefix:
            raise ValueError("command prefix must not be empty")
        self.prefix = prefix
        self.bot_username = bot_username.lstrip("@").lower() if bot_username else None
        self.case_sensitive = case_sensitive

    def _norm(self, key: str) -> str:
        return key if self.case_sensitive else key.lower()

    def extract_identifier(self, event: Any) -> Optional[str]:
        update = _require_update(event, self.name)
        msg = update.message or update.edited_message
        if msg is None or not msg.text:
            raise ExtractionError("update carries no message text", node=self.name, event=event)
        text = msg.text.strip()
        if not text.startswith(self.prefix):
            raise ExtractionError(f"message is not a command: {text[:32]!r}", node=self.name, event=event)

        token = text[len(self.prefix):].split(maxsplit=1)
        if not token:
            raise ExtractionError("empty command", node=self.name, event=event)
        command, _, mention = token[0].partition("@")
        if mention and self.bot_username and mention.lower() != self.bot_username:
            return None
        return self._norm(command)

    def coerce_identifier(self, raw: Any) -> str:
        key = str(raw)
        if key.startswith(self.prefix):
            key = key[len(self.prefix):]
        return self._norm(key)

    def register_handler(self, identifier, handler) -> None:
        if isinstance(identifier, str):
            identifier = self.coerce_identifier(identifier)
        super().register_handler(identifier, handler)

    def get_handler(self, identifier):
        if isinstance(identifier, str):
            identifier = self.coerce_identifier(identifier)
        return super().get_handler(identifier)

    def remove_handler(self, identifier) -> None:
        if isinstance(identifier, str):
            identifier = self.coerce_identifier(identifier)
        super().remove_handler(identifier)


class CallbackDataRegistry(KeyedDispatchRegistry[str]):
    """Routes callback queries on the data prefix: ``vote:42`` -> ``vote``."""

    def __init__(self, name: Optional[str] = None, *, strict: bool = False, separator: str = ":"):
        super().__init__(name, strict=strict)
        self.separator = separator

    def extract_identifier(self, event: Any) -> str:
        update = _require_update(event, self.name)
        cbq = update.callback_query
        if cbq is None or cbq.data is None:
            raise ExtractionError("update carries no callback data", node=self.name, event=event)
        if not self.separator:
            return cbq.data
        return cbq.data.split(self.separator, 1)[0]


class ChatStateRegistry(KeyedDispatchRegistry[str]):
    """Routes on the chat's current conversation state.

    Chats without a state map to ``default_state`` (None means no match).
    """

    def __init__(
        self,
        store: ChatStateStore,
        name: Optional[str] = None,
        *,
        strict: bool = False,
        default_state: Optional[str] = None,
    ):
        super().__init__(name, strict=strict)
        self.store = store
        self.default_state = default_state

    def extract_identifier(self, event: Any) -> Optional[str]:
        chat = _require_update(event, self.name).effective_chat
        if chat is None:
            raise ExtractionError("update has no chat", node=self.name, event=event)
        state = self.store.get(chat.id)
        return state if state is not None else self.default_state
