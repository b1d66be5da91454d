"""Operator-facing console output and confirmation prompts.

:class:`Console` is passed explicitly to every flow so colour and debug
settings are values rather than process-wide state.

Examples
--------
    console = Console(color=False)
    console.header("S3 Bucket")
    console.success("Bucket created")
    if console.confirm("Delete bucket?"):
        ...

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import sys
import typing as typ

_GREEN = "\033[0;32m"
_YELLOW = "\033[1;33m"
_RED = "\033[0;31m"
_BLUE = "\033[0;34m"
_CYAN = "\033[0;36m"
_BOLD = "\033[1m"
_RESET = "\033[0m"

_RULE_WIDTH = 50


@dataclasses.dataclass(frozen=True, slots=True)
class Console:
    """Styled terminal output.

    Attributes
    ----------
    color
        Emit ANSI colour codes.
    debug_enabled
        Print :meth:`debug` lines.
    assume_yes
        Answer every confirmation with yes without prompting.
    stream
        Destination for regular output; ``None`` means ``sys.stdout`` at
        call time.
    error_stream
        Destination for errors; ``None`` means ``sys.stderr`` at call time.
    reader
        Prompt reader used by :meth:`confirm`; defaults to :func:`input`.

    """

    color: bool = True
    debug_enabled: bool = False
    assume_yes: bool = False
    stream: typ.TextIO | None = None
    error_stream: typ.TextIO | None = None
    reader: cabc.Callable[[str], str] | None = None

    def with_assume_yes(self, *, assume_yes: bool) -> Console:
        """Return a copy with ``assume_yes`` replaced."""
        return dataclasses.replace(self, assume_yes=assume_yes)

    def _style(self, code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if self.color else text

    def _write(self, text: str, *, error: bool = False) -> None:
        if error:
            target = self.error_stream or sys.stderr
        else:
            target = self.stream or sys.stdout
        print(text, file=target)

    def line(self, text: str = "") -> None:
        """Print ``text`` without decoration."""
        self._write(text)

    def blank(self) -> None:
        """Print an empty line."""
        self._write("")

    def header(self, title: str) -> None:
        """Print a boxed section header."""
        rule = "=" * _RULE_WIDTH
        self._write("")
        self._write(self._style(_BLUE, rule))
        self._write(self._style(_BOLD, f"  {title}"))
        self._write(self._style(_BLUE, rule))

    def section(self, title: str) -> None:
        """Print a sub-section title."""
        self._write("")
        self._write(self._style(_CYAN, f"--- {title} ---"))

    def success(self, message: str) -> None:
        """Print a success line."""
        self._write(f"{self._style(_GREEN, '[OK]')} {message}")

    def info(self, message: str) -> None:
        """Print an informational line."""
        self._write(f"{self._style(_BLUE, '[INFO]')} {message}")

    def warning(self, message: str) -> None:
        """Print a warning line."""
        self._write(f"{self._style(_YELLOW, '[WARN]')} {message}")

    def error(self, message: str) -> None:
        """Print an error line to the error stream."""
        self._write(f"{self._style(_RED, '[ERROR]')} {message}", error=True)

    def debug(self, message: str) -> None:
        """Print a debug line when debug output is enabled."""
        if self.debug_enabled:
            self._write(f"{self._style(_CYAN, '[DEBUG]')} {message}")

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """Ask a yes/no question.

        Parameters
        ----------
        message : str
            Question to ask.
        default : bool, optional
            Answer used when the reply is empty.

        Returns
        -------
        bool
            ``True`` when the operator answered yes.

        Notes
        -----
        End of input (``EOFError``) is treated as the default answer so
        non-interactive runs never block.

        """
        if self.assume_yes:
            return True
        suffix = "(Y/n)" if default else "(y/N)"
        read = self.reader or input
        try:
            reply = read(f"{self._style(_YELLOW, message)} {suffix}: ")
        except EOFError:
            return default
        reply = reply.strip().lower()
        if not reply:
            return default
        return reply in {"y", "yes"}


__all__ = ["Console"]
