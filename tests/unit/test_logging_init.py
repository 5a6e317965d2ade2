from __future__ import annotations

import logging

from catalog_sync.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("catalog_sync.x", level, __file__, 1, msg, None, None)


def test_formatter_labels():
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.INFO, "hello")) == "INFO hello"
    assert fmt.format(_record(logging.WARNING, "careful")) == "WARN careful"
    assert fmt.format(_record(logging.ERROR, "bad")) == "ERROR bad"
    assert fmt.format(_record(SUMMARY_LEVEL, "rows=1")) == "SUMMARY rows=1"


def test_setup_is_idempotent():
    a = setup_logging()
    b = setup_logging()
    assert a is b
    assert a.name == LOGGER_NAME
    assert len(a.handlers) == 1
    assert a.propagate is False
    assert get_logger() is a


def test_debug_lowers_levels():
    logger = setup_logging(debug=True)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)


def test_module_loggers_share_output(capsys):
    setup_logging()
    logging.getLogger("catalog_sync.services.apply").warning("row 3: failed")
    log_summary("rows=1 created=1")
    out = capsys.readouterr().out.splitlines()
    assert out == ["WARN row 3: failed", "SUMMARY rows=1 created=1"]


def test_info_hidden_debug_shown_only_with_flag(capsys):
    setup_logging()
    logging.getLogger("catalog_sync.x").debug("hidden")
    assert capsys.readouterr().out == ""
