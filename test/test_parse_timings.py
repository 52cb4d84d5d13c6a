#!/usr/bin/env python3
"""Tests for parse timing utilities."""

import importlib
import time
from typing import Generator

import pytest

import conversation_flow.parse_timings as pt
from conversation_flow.parse import parse
from test.builders import linear_conversation


@pytest.fixture(autouse=True)
def restore_timing_module() -> Generator[None, None, None]:
    """Reload with the original environment after each test."""
    yield
    importlib.reload(pt)


def _reload_with(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("CONVERSATION_FLOW_DEBUG_TIMING", value)
    importlib.reload(pt)


class TestDebugTimingFlag:
    """Tests for DEBUG_TIMING environment variable."""

    @pytest.mark.parametrize("value", ["1", "true", "yes", "TRUE"])
    def test_enabled(self, monkeypatch: pytest.MonkeyPatch, value: str):
        _reload_with(monkeypatch, value)
        assert pt.DEBUG_TIMING is True

    @pytest.mark.parametrize("value", ["", "0", "no"])
    def test_disabled(self, monkeypatch: pytest.MonkeyPatch, value: str):
        _reload_with(monkeypatch, value)
        assert pt.DEBUG_TIMING is False


class TestLogTiming:
    """Tests for log_timing context manager."""

    def test_logs_phase_timing_when_enabled(
        self, monkeypatch: pytest.MonkeyPatch, capsys
    ):
        _reload_with(monkeypatch, "1")

        with pt.log_timing("Test Phase"):
            time.sleep(0.01)

        captured = capsys.readouterr()
        assert "[TIMING]" in captured.out
        assert "Test Phase" in captured.out

    def test_no_output_when_disabled(self, monkeypatch: pytest.MonkeyPatch, capsys):
        _reload_with(monkeypatch, "")

        with pt.log_timing("Test Phase"):
            pass

        assert "[TIMING]" not in capsys.readouterr().out

    def test_callable_phase_name(self, monkeypatch: pytest.MonkeyPatch, capsys):
        _reload_with(monkeypatch, "1")

        items = [1, 2, 3]
        with pt.log_timing(lambda: f"Processing ({len(items)} items)"):
            pass

        assert "Processing (3 items)" in capsys.readouterr().out

    def test_shows_total_time_when_t_start_provided(
        self, monkeypatch: pytest.MonkeyPatch, capsys
    ):
        _reload_with(monkeypatch, "1")

        with pt.log_timing("Test Phase", t_start=time.time()):
            pass

        assert "total:" in capsys.readouterr().out

    def test_module_state_unchanged_after_phase(
        self, monkeypatch: pytest.MonkeyPatch, capsys
    ):
        _reload_with(monkeypatch, "1")
        before = {name: value for name, value in vars(pt).items()}

        with pt.log_timing("First", t_start=time.time()):
            pass
        with pt.log_timing("Second"):
            pass

        after = vars(pt)
        assert set(after) == set(before)
        assert all(after[name] is before[name] for name in before)
        assert capsys.readouterr().out.count("[TIMING]") == 2


class TestParsePhases:
    def test_parse_reports_every_phase(
        self, monkeypatch: pytest.MonkeyPatch, capsys
    ):
        _reload_with(monkeypatch, "1")

        parse(linear_conversation(4))

        out = capsys.readouterr().out
        for phase in (
            "Validation",
            "Indexing (4 messages)",
            "Structuring",
            "Context tree",
            "Flat list (4 items)",
            "Message map",
        ):
            assert phase in out

    def test_parse_silent_by_default(self, monkeypatch: pytest.MonkeyPatch, capsys):
        _reload_with(monkeypatch, "")

        parse(linear_conversation(4))

        assert capsys.readouterr().out == ""
