"""Unit tests for console output and confirmation prompts."""

from __future__ import annotations

import io
import typing as typ

import pytest

from opskit.console import Console

if typ.TYPE_CHECKING:
    from tests.conftest import ConsoleCapture


def test_plain_output_has_no_escape_codes(capture: ConsoleCapture) -> None:
    """A colourless console writes bare prefixes."""
    capture.console.success("done")
    capture.console.info("note")
    capture.console.warning("careful")

    assert capture.stdout.splitlines() == ["[OK] done", "[INFO] note", "[WARN] careful"]
    assert "\033[" not in capture.stdout


def test_errors_go_to_error_stream(capture: ConsoleCapture) -> None:
    """Error lines are kept out of regular output."""
    capture.console.error("failed")

    assert capture.stdout == ""
    assert capture.stderr == "[ERROR] failed\n"


def test_colour_wraps_prefix() -> None:
    """A colour console styles the prefix and resets afterwards."""
    out = io.StringIO()
    Console(color=True, stream=out).success("done")

    assert out.getvalue() == "\033[0;32m[OK]\033[0m done\n"


def test_header_and_section(capture: ConsoleCapture) -> None:
    """Headers are boxed by rules; sections are dashed titles."""
    capture.console.header("S3 Bucket")
    capture.console.section("Objects")

    lines = capture.stdout.splitlines()
    assert lines[1] == "=" * 50
    assert lines[2] == "  S3 Bucket"
    assert lines[-1] == "--- Objects ---"


def test_debug_only_when_enabled() -> None:
    """Debug lines are dropped unless enabled."""
    quiet = io.StringIO()
    loud = io.StringIO()
    Console(color=False, stream=quiet).debug("hidden")
    Console(color=False, debug_enabled=True, stream=loud).debug("shown")

    assert quiet.getvalue() == ""
    assert loud.getvalue() == "[DEBUG] shown\n"


class TestConfirm:
    """Tests for yes/no prompts."""

    @pytest.mark.parametrize(
        ("reply", "expected"),
        [("y", True), ("YES", True), (" yes ", True), ("n", False), ("maybe", False)],
    )
    def test_replies(
        self, capture: ConsoleCapture, reply: str, *, expected: bool
    ) -> None:
        """Only y or yes, in any case, confirm."""
        capture.answers.append(reply)

        assert capture.console.confirm("Proceed?") is expected
        assert capture.prompts == ["Proceed? (y/N): "]

    def test_empty_reply_uses_default(self, capture: ConsoleCapture) -> None:
        """An empty answer returns the default."""
        capture.answers.extend(["", ""])

        assert capture.console.confirm("Proceed?") is False
        assert capture.console.confirm("Proceed?", default=True) is True
        assert capture.prompts[1] == "Proceed? (Y/n): "

    def test_end_of_input_declines(self, capture: ConsoleCapture) -> None:
        """Non-interactive runs never block and take the default."""
        assert capture.console.confirm("Proceed?") is False

    def test_assume_yes_skips_prompt(self, capture: ConsoleCapture) -> None:
        """An assume-yes console answers without asking."""
        console = capture.console.with_assume_yes(assume_yes=True)

        assert console.confirm("Delete everything?") is True
        assert capture.prompts == []
