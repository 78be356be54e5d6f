# scripts/demo_dispatch.py
import argparse

from dispatchtree.config import DispatchSettings
from dispatchtree.core import log
from dispatchtree.core.contracts import Update, UpdateType
from dispatchtree.core.metrics import force_emit
from dispatchtree.core.state import ChatStateStore
from dispatchtree.core.walker import DispatchWalker
from dispatchtree.routing.handlers import LoggingHandler
from dispatchtree.routing.registries import (
    CallbackDataRegistry,
    ChatStateRegistry,
    CommandRegistry,
    UpdateTypeRegistry,
)

lg = log.get("demo")


def _msg(update_id, text, chat_id=100):
    return Update.from_dict({
        "update_id": update_id,
        "message": {"message_id": update_id, "chat": {"id": chat_id}, "text": text,
                    "from": {"id": 7, "username": "alice"}},
    })


def _cbq(update_id, data, chat_id=100):
    return Update.from_dict({
        "update_id": update_id,
        "callback_query": {"id": f"cb{update_id}", "from": {"id": 7}, "data": data,
                           "message": {"message_id": 1, "chat": {"id": chat_id}}},
    })


def build(settings: DispatchSettings, store: ChatStateStore) -> DispatchWalker:
    root = UpdateTypeRegistry("updates", strict=settings.strict_registration,
                              command_prefix=settings.command_prefix)
    commands = CommandRegistry("commands", prefix=settings.command_prefix,
                               bot_username=settings.bot_username)
    callbacks = CallbackDataRegistry("callbacks", separator=settings.callback_separator)
    states = ChatStateRegistry(store, "states")

    @commands.handler("start")
    def start(update):
        store.set(update.effective_chat.id, "awaiting_name")
        lg.info("start -> asking for a name")

    @commands.handler("help", "h")
    def help_(update):
        lg.info("help requested by %s", update.message.from_user.username)

    @callbacks.handler("vote")
    def vote(update):
        lg.info("vote for %s", update.callback_query.data.split(":", 1)[1])

    @states.handler("awaiting_name")
    def got_name(update):
        lg.info("hello %s", update.message.text)
        store.clear(update.effective_chat.id)

    root.register_handler(UpdateType.COMMAND, commands)
    root.register_handler(UpdateType.CALLBACK_QUERY, callbacks)
    root.register_handler(UpdateType.TEXT, states)

    return DispatchWalker(root, fallback=LoggingHandler(), max_depth=settings.max_depth,
                          raise_handler_errors=settings.raise_handler_errors)


def main():
    ap = argparse.ArgumentParser(description="route a few sample updates through a dispatch tree")
    ap.add_argument("--log-level", default=None)
    args = ap.parse_args()

    log.setup(args.log_level)
    store = ChatStateStore()
    walker = build(DispatchSettings.from_env(), store)

    for upd in (_msg(1, "/start"), _msg(2, "Alice"), _msg(3, "/h"), _cbq(4, "vote:42"),
                _msg(5, "/unknown"), _msg(6, "just chatting")):
        res = walker.dispatch(upd)
        lg.info("update %d -> %s via %s", upd.update_id, res.status.value, " -> ".join(res.path))

    force_emit()


if __name__ == "__main__":
    main()
