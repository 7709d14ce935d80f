import logging

import pytest

from hostbridge.logsink import VERBOSE, Severity, SinkHandler, severity_for_level


def make_logger(name, handler):
    log = logging.getLogger(f"hostbridge.test.{name}")
    log.setLevel(VERBOSE)
    log.addHandler(handler)
    return log


def test_severity_order_and_parse():
    assert Severity.INFO < Severity.DEBUG < Severity.VERBOSE
    assert Severity.parse("Debug") is Severity.DEBUG
    assert Severity.parse(2) is Severity.VERBOSE
    with pytest.raises(ValueError):
        Severity.parse("loud")


def test_levels_map_to_severity():
    assert severity_for_level(logging.ERROR) is Severity.INFO
    assert severity_for_level(logging.INFO) is Severity.INFO
    assert severity_for_level(logging.DEBUG) is Severity.DEBUG
    assert severity_for_level(VERBOSE) is Severity.VERBOSE
    assert Severity.VERBOSE.logging_level == VERBOSE


def test_handler_drops_messages_above_verbosity():
    seen = []
    handler = SinkHandler(lambda msg, sev: seen.append(sev), verbosity=Severity.DEBUG)
    log = make_logger("drop", handler)
    try:
        log.info("a")
        log.debug("b")
        log.log(VERBOSE, "c")
        log.warning("d")
    finally:
        log.removeHandler(handler)
    assert seen == [Severity.INFO, Severity.DEBUG, Severity.INFO]


def test_history_and_clear():
    handler = SinkHandler(None, history_size=2)
    log = make_logger("history", handler)
    try:
        for i in range(3):
            log.info("message %d", i)
    finally:
        log.removeHandler(handler)
    assert len(handler.history) == 2
    assert handler.history[-1].endswith("[INFO] message 2")
    handler.clear()
    assert not handler.history


def test_warning_text_is_tagged():
    lines = []
    handler = SinkHandler(lambda msg, sev: lines.append(msg))
    log = make_logger("tag", handler)
    try:
        log.error("disk gone")
    finally:
        log.removeHandler(handler)
    assert lines[0].endswith("[INFO] ERROR: disk gone")


def test_handler_level_follows_verbosity():
    handler = SinkHandler(None)
    assert handler.level == logging.INFO
    handler.set_verbosity(Severity.VERBOSE)
    assert handler.level == VERBOSE
