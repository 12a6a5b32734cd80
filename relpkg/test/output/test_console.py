"""Tests for relpkg.output.console module."""

from __future__ import annotations

import pytest

from relpkg.output.console import (
    ConsoleProtocol,
    MockConsole,
    NullConsole,
    OutputRecord,
    RichConsole,
    Style,
)


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.DEBUG) == "debug"
        assert str(Style.DEFAULT) == "default"


class TestMockConsole:
    """Test MockConsole capture helpers."""

    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs == [OutputRecord("hello", Style.DEFAULT)]

    def test_prefixed_levels(self) -> None:
        console = MockConsole()
        console.success("built")
        console.error("failed")
        console.warning("skipped link")
        console.info("extracting")
        console.debug("entry a.dll")

        assert console.messages == [
            "OK built",
            "error: failed",
            "warning: skipped link",
            "info: extracting",
            "debug: entry a.dll",
        ]
        assert console.has_error()
        assert console.has_warning()
        assert console.count(Style.DEBUG) == 1

    def test_find_and_clear(self) -> None:
        console = MockConsole()
        console.info("Removing unnecessary data")
        console.newline()

        assert len(console.find("unnecessary")) == 1
        assert console.text == "info: Removing unnecessary data\n"

        console.clear()
        assert console.outputs == []
        assert not console.has_error()

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.header("MyApp 1.0.0")


def test_null_console_discards_everything() -> None:
    console: ConsoleProtocol = NullConsole()
    console.print("x")
    console.error("x")
    console.debug("x")


class TestRichConsole:
    def test_markup_in_messages_is_escaped(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole()
        console.info("wrote [Content_Types].xml")

        out = capsys.readouterr().out
        assert "[Content_Types].xml" in out

    def test_debug_hidden_unless_verbose(self, capsys: pytest.CaptureFixture[str]) -> None:
        RichConsole().debug("quiet")
        assert "quiet" not in capsys.readouterr().out

        loud = RichConsole(verbose=True)
        loud.debug("loud")
        assert loud.verbose
        assert "debug: loud" in capsys.readouterr().out
