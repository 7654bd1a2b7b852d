from datetime import datetime

import pytest

from v2xnode import debug
from v2xnode.debug import LogLevel


@pytest.fixture(autouse=True)
def restore_level():
    saved = debug.get_log_level()
    yield
    debug.set_log_level(saved)


def test_default_level_is_info():
    assert debug.get_log_level() == LogLevel.INFO


def test_set_and_get_level():
    debug.set_log_level(LogLevel.DEBUG)
    assert debug.get_log_level() is LogLevel.DEBUG
    debug.set_log_level(1)
    assert debug.get_log_level() is LogLevel.WARN


def test_set_invalid_level_rejected():
    with pytest.raises(ValueError):
        debug.set_log_level(9)


def test_format_record_layout():
    now = datetime(2024, 1, 2, 3, 4, 5)
    line = debug.format_record(LogLevel.INFO, "val.c", 12, "hello", now)
    assert line == "[03:04:05][INFO ][val.c:12] hello"


def test_format_record_labels_have_equal_width():
    now = datetime(2024, 1, 2, 3, 4, 5)
    lines = [debug.format_record(lv, "f", 1, "m", now) for lv in LogLevel]
    assert len({len(s) for s in lines}) == 1


def test_info_printed_with_call_site(capsys):
    debug.info("packet ready")
    out = capsys.readouterr().out
    assert "[INFO ]" in out
    assert "[test_debug.py:" in out
    assert out.endswith("packet ready\n")


def test_debug_suppressed_at_info(capsys):
    debug.debug("hidden")
    assert capsys.readouterr().out == ""


def test_debug_shown_at_debug_level(capsys):
    debug.set_log_level(LogLevel.DEBUG)
    debug.debug("visible")
    out = capsys.readouterr().out
    assert "[DEBUG]" in out
    assert "visible" in out


def test_error_always_printed(capsys):
    debug.set_log_level(LogLevel.ERROR)
    debug.warn("quiet")
    debug.error("loud")
    out = capsys.readouterr().out
    assert "quiet" not in out
    assert "[ERROR]" in out and "loud" in out


def test_log_with_explicit_level(capsys):
    debug.log(LogLevel.WARN, "careful")
    out = capsys.readouterr().out
    assert "[WARN ]" in out
    assert "[test_debug.py:" in out