from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "User",
    "Chat",
    "Message",
    "CallbackQuery",
    "Update",
    "UpdateType",
    "classify",
]


@dataclass(slots=True)
class User:
    id: int
    is_bot: bool = False
    username: Optional[str] = None
    first_name: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "User":
        return cls(
            id=d["id"],
            is_bot=bool(d.get("is_bot", False)),
            username=d.get("username"),
            first_name=d.get("first_name", ""),
        )


@dataclass(slots=True)
class Chat:
    id: int
    type: str = "private"    # private | group | supergroup | channel
    title: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Chat":
        return cls(id=d["id"], type=d.get("type", "private"), title=d.get("title"))


@dataclass(slots=True)
class Message:
    message_id: int
    chat: Chat
    date: int = 0
    text: Optional[str] = None
    from_user: Optional[User] = None

    def is_command(self, prefix: str = "/") -> bool:
        # leading whitespace is ignored, as CommandRegistry does
        return bool(self.text) and self.text.lstrip().startswith(prefix)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Message":
        sender = d.get("from")
        return cls(
            message_id=d["message_id"],
            chat=Chat.from_dict(d["chat"]),
            date=int(d.get("date", 0)),
            text=d.get("text"),
            from_user=User.from_dict(sender) if sender else None,
        )


@dataclass(slots=True)
class CallbackQuery:
    id: str
    from_user: User
    data: Optional[str] = None
    message: Optional[Message] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CallbackQuery":
        msg = d.get("message")
        return cls(
            id=str(d["id"]),
            from_user=User.from_dict(d["from"]),
            data=d.get("data"),
            message=Message.from_dict(msg) if msg else None,
        )


@dataclass(slots=True)
class Update:
    """One incoming platform update; at most one payload field is set."""
    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None
    extra: Dict[str, Any] = field(default_factory=dict)   # payload kinds not modelled here

    @property
    def effective_message(self) -> Optional[Message]:
        if self.message is not None:
            return self.message
        if self.edited_message is not None:
            return self.edited_message
        if self.callback_query is not None:
            return self.callback_query.message
        return None

    @property
    def effective_chat(self) -> Optional[Chat]:
        msg = self.effective_message
        return msg.chat if msg is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Update":
        known = {"update_id", "message", "edited_message", "callback_query"}
        msg = d.get("message")
        edited = d.get("edited_message")
        cbq = d.get("callback_query")
        return cls(
            update_id=d["update_id"],
            message=Message.from_dict(msg) if msg else None,
            edited_message=Message.from_dict(edited) if edited else None,
            callback_query=CallbackQuery.from_dict(cbq) if cbq else None,
            extra={k: v for k, v in d.items() if k not in known},
        )


class UpdateType(str, Enum):
    COMMAND = "command"
    TEXT = "text"
    MESSAGE = "message"                  # non-text message (photo, sticker, ...)
    EDITED_MESSAGE = "edited_message"
    CALLBACK_QUERY = "callback_query"
    UNKNOWN = "unknown"


def classify(update: Update, prefix: str = "/") -> UpdateType:
    if update.message is not None:
        if update.message.is_command(prefix):
            return UpdateType.COMMAND
        if update.message.text is not None:
            return UpdateType.TEXT
        return UpdateType.MESSAGE
    if update.edited_message is not None:
        return UpdateType.EDITED_MESSAGE
    if update.callback_query is not None:
        return UpdateType.CALLBACK_QUERY
    return UpdateType.UNKNOWN
