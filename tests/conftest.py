# tests/conftest.py
import pytest

from dispatchtree.core import log, metrics
from dispatchtree.core.contracts import Update


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging():
    # LOG_LEVEL / LOG_JSON / .env still apply
    log.setup("WARNING")
    yield


@pytest.fixture(autouse=True)
def _fresh_metrics():
    metrics.reset()
    yield


@pytest.fixture
def msg_update():
    def make(text, chat_id=100, update_id=1, edited=False):
        payload = {"message_id": update_id, "chat": {"id": chat_id, "type": "private"},
                   "date": 1700000000, "from": {"id": 7, "username": "alice"}}
        if text is not None:
            payload["text"] = text
        key = "edited_message" if edited else "message"
        return Update.from_dict({"update_id": update_id, key: payload})
    return make


@pytest.fixture
def cbq_update():
    def make(data, chat_id=100, update_id=2):
        cbq = {"id": "cb1", "from": {"id": 7}, "message": {"message_id": 9, "chat": {"id": chat_id}}}
        if data is not None:
            cbq["data"] = data
        return Update.from_dict({"update_id": update_id, "callback_query": cbq})
    return make
