from __future__ import annotations

import logging
from typing import Any

from dispatchtree.core import log
from dispatchtree.core.contracts import Update, classify
from dispatchtree.core.node import GenericHandler


class LoggingHandler(GenericHandler):
    """Terminal handler that only logs the event; the usual walker fallback."""

    def __init__(self, level: str = "INFO", logger_name: str = "unhandled"):
        lvl = logging.getLevelName(level.upper())
        self.level = lvl if isinstance(lvl, int) else logging.INFO
        self.log = log.get(logger_name)

    def handle(self, event: Any) -> None:
        if isinstance(event, Update):
            chat = event.effective_chat
            self.log.log(self.level, "update %s kind=%s chat=%s dropped",
                         event.update_id, classify(event).value, chat.id if chat else "-")
        else:
            self.log.log(self.level, "event dropped: %r", event)
