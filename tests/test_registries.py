# tests/test_registries.py
import pytest

from dispatchtree.core.contracts import Update, UpdateType
from dispatchtree.core.errors import ExtractionError
from dispatchtree.core.state import ChatStateStore
from dispatchtree.routing.registries import (
    CallbackDataRegistry,
    ChatStateRegistry,
    CommandRegistry,
    UpdateTypeRegistry,
)
from sample_handlers import Recorder


# ---------------- UpdateTypeRegistry ----------------

def test_update_type_registry_routes_by_kind(msg_update, cbq_update):
    reg = UpdateTypeRegistry("updates")
    cmd, text, cb = Recorder("cmd"), Recorder("text"), Recorder("cb")
    reg.register_handler(UpdateType.COMMAND, cmd)
    reg.register_handler(UpdateType.TEXT, text)
    reg.register_handler(UpdateType.CALLBACK_QUERY, cb)

    assert reg.resolve(msg_update("/start")) is cmd
    assert reg.resolve(msg_update("hello")) is text
    assert reg.resolve(cbq_update("vote:1")) is cb
    assert reg.resolve(msg_update("fixed", edited=True)) is None


def test_update_type_registry_unknown_update_is_a_miss():
    reg = UpdateTypeRegistry()
    assert reg.extract_identifier(Update(update_id=5)) is UpdateType.UNKNOWN
    assert reg.resolve(Update(update_id=5)) is None


def test_update_type_registry_rejects_non_updates():
    with pytest.raises(ExtractionError):
        UpdateTypeRegistry().resolve({"update_id": 1})


def test_update_type_coercion():
    reg = UpdateTypeRegistry()
    assert reg.coerce_identifier("Command") is UpdateType.COMMAND
    assert reg.coerce_identifier(UpdateType.TEXT) is UpdateType.TEXT
    with pytest.raises(ValueError):
        reg.coerce_identifier("photo")


# ---------------- CommandRegistry ----------------

def test_command_registry_extracts_token(msg_update):
    reg = CommandRegistry()
    assert reg.extract_identifier(msg_update("/start")) == "start"
    assert reg.extract_identifier(msg_update("/Start  now please")) == "start"
    assert reg.extract_identifier(msg_update("  /help")) == "help"


def test_command_registry_first_wins_and_aliases(msg_update):
    reg = CommandRegistry()
    a, b, c = Recorder("A"), Recorder("B"), Recorder("C")
    reg.register_handler("start", a)
    reg.register_handler("/start", b)
    reg.register_handler(["help", "h"], c)

    assert reg.get_handler("start") is a
    assert reg.resolve(msg_update("/start")) is a
    assert reg.resolve(msg_update("/h")) is c
    assert reg.resolve(msg_update("/help me")) is c
    assert reg.resolve(msg_update("/unknown")) is None


def test_command_registry_bot_mention(msg_update):
    reg = CommandRegistry(bot_username="@DemoBot")
    h = Recorder()
    reg.register_handler("start", h)
    assert reg.resolve(msg_update("/start@demobot")) is h
    assert reg.extract_identifier(msg_update("/start@otherbot")) is None
    assert reg.resolve(msg_update("/start@otherbot")) is None


def test_command_registry_without_username_accepts_any_mention(msg_update):
    reg = CommandRegistry()
    assert reg.extract_identifier(msg_update("/start@whoever")) == "start"


def test_command_registry_case_sensitive(msg_update):
    reg = CommandRegistry(case_sensitive=True)
    h = Recorder()
    reg.register_handler("Start", h)
    assert reg.resolve(msg_update("/Start")) is h
    assert reg.resolve(msg_update("/start")) is None


def test_command_registry_custom_prefix(msg_update):
    reg = CommandRegistry(prefix="!")
    h = Recorder()
    reg.register_handler("!ping", h)
    assert reg.resolve(msg_update("!ping")) is h
    with pytest.raises(ExtractionError):
        reg.resolve(msg_update("/ping"))


@pytest.mark.parametrize("text", [None, "", "hello", "/"])
def test_command_registry_malformed(msg_update, text):
    with pytest.raises(ExtractionError):
        CommandRegistry("commands").resolve(msg_update(text))


def test_command_registry_no_message(cbq_update):
    with pytest.raises(ExtractionError):
        CommandRegistry().resolve(cbq_update("vote:1"))


def test_command_registry_remove(msg_update):
    reg = CommandRegistry()
    reg.register_handler("x", Recorder())
    reg.remove_handler("/X")
    assert reg.resolve(msg_update("/x")) is None


def test_command_registry_empty_prefix_rejected():
    with pytest.raises(ValueError):
        CommandRegistry(prefix="")


# ---------------- CallbackDataRegistry ----------------

def test_callback_registry_prefix(cbq_update):
    reg = CallbackDataRegistry()
    vote = Recorder("vote")
    reg.register_handler("vote", vote)
    assert reg.extract_identifier(cbq_update("vote:42:yes")) == "vote"
    assert reg.resolve(cbq_update("vote:42")) is vote
    assert reg.resolve(cbq_update("vote")) is vote
    assert reg.resolve(cbq_update("page:2")) is None


def test_callback_registry_custom_and_empty_separator(cbq_update):
    assert CallbackDataRegistry(separator="|").extract_identifier(cbq_update("a|b:c")) == "a"
    assert CallbackDataRegistry(separator="").extract_identifier(cbq_update("a:b")) == "a:b"


def test_callback_registry_malformed(cbq_update, msg_update):
    reg = CallbackDataRegistry()
    with pytest.raises(ExtractionError):
        reg.resolve(cbq_update(None))
    with pytest.raises(ExtractionError):
        reg.resolve(msg_update("/start"))


# ---------------- ChatStateRegistry ----------------

def test_chat_state_registry(msg_update, cbq_update):
    store = ChatStateStore()
    reg = ChatStateRegistry(store, "states")
    asking = Recorder("asking")
    reg.register_handler("awaiting_name", asking)

    assert reg.resolve(msg_update("Alice", chat_id=5)) is None
    store.set(5, "awaiting_name")
    assert reg.resolve(msg_update("Alice", chat_id=5)) is asking
    assert reg.resolve(cbq_update("x", chat_id=5)) is asking
    assert reg.resolve(msg_update("Bob", chat_id=6)) is None
    store.clear(5)
    assert reg.resolve(msg_update("Alice", chat_id=5)) is None


def test_chat_state_registry_default_state(msg_update):
    store = ChatStateStore()
    reg = ChatStateRegistry(store, default_state="idle")
    idle = Recorder("idle")
    reg.register_handler("idle", idle)
    assert reg.extract_identifier(msg_update("hi")) == "idle"
    assert reg.resolve(msg_update("hi")) is idle


def test_chat_state_registry_without_chat():
    with pytest.raises(ExtractionError):
        ChatStateRegistry(ChatStateStore()).resolve(Update(update_id=1))


def test_chat_state_store():
    store = ChatStateStore()
    assert store.get(1) is None
    store.set(1, "a")
    store.set(1, "b")
    assert store.get(1) == "b"
    assert len(store) == 1
    store.clear(1)
    store.clear(1)
    assert len(store) == 0


def test_command_registry_register_handlers_with_string_fails():
    reg = CommandRegistry()
    with pytest.raises(TypeError):
        reg.register_handlers("start", Recorder())
    assert reg.identifiers() == []


def test_update_type_registry_uses_command_prefix(msg_update):
    reg = UpdateTypeRegistry(command_prefix="!")
    assert reg.extract_identifier(msg_update("!ping")) is UpdateType.COMMAND
    assert reg.extract_identifier(msg_update("/ping")) is UpdateType.TEXT
    assert UpdateTypeRegistry().extract_identifier(msg_update("!ping")) is UpdateType.TEXT


def test_update_type_and_command_agree_on_leading_space(msg_update):
    upd = msg_update("  /help")
    assert UpdateTypeRegistry().extract_identifier(upd) is UpdateType.COMMAND
    assert CommandRegistry().extract_identifier(upd) == "help"


def test_update_type_registry_empty_prefix_rejected():
    with pytest.raises(ValueError):
        UpdateTypeRegistry(command_prefix="")
