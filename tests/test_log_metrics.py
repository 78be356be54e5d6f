# tests/test_log_metrics.py
import io
import json
import logging

from dispatchtree.config import DispatchSettings
from dispatchtree.core import log
from dispatchtree.core.metrics import (
    Timer,
    counter_value,
    force_emit,
    gauge_value,
    inc_counter,
    set_gauge,
    snapshot_all,
)
from dispatchtree.routing.handlers import LoggingHandler


def test_json_handler_writes_one_object_per_line():
    handler = log.JsonHandler()
    handler.stream = io.StringIO()
    lg = log.get("json.test")
    lg.addHandler(handler)
    try:
        lg.warning("hello %s", "world")
    finally:
        lg.removeHandler(handler)
    obj = json.loads(handler.stream.getvalue().strip())
    assert obj["msg"] == "hello world"
    assert obj["name"] == "dispatchtree.json.test"
    assert obj["lvl"] == "WARNING"
    assert obj["funcName"] == "test_json_handler_writes_one_object_per_line"


def test_setup_json_mode_installs_json_handler():
    log.setup("INFO", json_mode=True, force=True)
    try:
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1 and isinstance(handlers[0], log.JsonHandler)
        assert logging.getLogger().level == logging.INFO
    finally:
        log.setup("WARNING", json_mode=False, force=True)


def test_set_level_unknown_falls_back_to_info():
    root = logging.getLogger()
    before = root.level
    log.set_level("chatty")
    assert root.level == logging.INFO
    root.setLevel(before)


def test_metrics_snapshot_and_emit(caplog):
    inc_counter("c", 2, registry="r")
    set_gauge("g", 3.5)
    with Timer("t_ms", stage="x"):
        pass
    snap = snapshot_all()
    assert snap["counters"] == [{"name": "c", "labels": {"registry": "r"}, "value": 2.0}]
    assert snap["gauges"][0]["value"] == 3.5
    assert snap["hists"][0]["count"] == 1.0

    with caplog.at_level(logging.INFO, logger="dispatchtree.metrics"):
        force_emit()
    assert any("[ctr] c" in r.getMessage() for r in caplog.records)


def test_logging_handler_logs_updates(caplog, msg_update):
    h = LoggingHandler(level="warning")
    with caplog.at_level(logging.WARNING, logger="dispatchtree.unhandled"):
        h.handle(msg_update("/nope", update_id=77))
        h.handle("raw")
    msgs = [r.getMessage() for r in caplog.records]
    assert any("update 77 kind=command chat=100" in m for m in msgs)
    assert any("'raw'" in m for m in msgs)


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DISPATCH_STRICT", "yes")
    monkeypatch.setenv("DISPATCH_MAX_DEPTH", "5")
    monkeypatch.setenv("BOT_USERNAME", "mybot")
    monkeypatch.delenv("DISPATCH_RAISE_HANDLER_ERRORS", raising=False)
    s = DispatchSettings.from_env()
    assert s.strict_registration is True
    assert s.max_depth == 5
    assert s.bot_username == "mybot"
    assert s.raise_handler_errors is False


def test_reading_missing_metric_does_not_create_it():
    assert counter_value("never_set", registry="x") == 0.0
    assert gauge_value("never_set") == 0.0
    snap = snapshot_all()
    assert snap["counters"] == [] and snap["gauges"] == []
