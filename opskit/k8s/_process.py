"""Subprocess helpers shared by the kubectl, kind and helm wrappers."""

from __future__ import annotations

import subprocess
import typing as typ

import msgspec

from opskit.errors import PrerequisiteError, RemoteCallError
from opskit.formatting import mask_value
from opskit.logging import get_logger, log_debug

logger = get_logger(__name__)

# Default timeout for short CLI queries (seconds).
DEFAULT_TIMEOUT = 30

T = typ.TypeVar("T")

_FROM_LITERAL = "--from-literal="
# Options whose next argument is a key=value pair that may hold a secret.
_VALUE_OPTIONS = frozenset({"--set", "--set-string"})


def _mask_assignment(text: str) -> str:
    key, sep, value = text.partition("=")
    return f"{key}={mask_value(value)}" if sep else mask_value(text)


def redact_args(args: typ.Sequence[str]) -> str:
    """Join ``args`` for logging with literal values masked.

    ``--from-literal=key=value`` and the ``key=value`` following ``--set``
    keep their keys; only the values are masked.
    """
    redacted: list[str] = []
    mask_next = False
    for arg in args:
        if mask_next:
            redacted.append(_mask_assignment(arg))
            mask_next = False
        elif arg.startswith(_FROM_LITERAL):
            redacted.append(_FROM_LITERAL + _mask_assignment(arg[len(_FROM_LITERAL) :]))
        else:
            redacted.append(arg)
            mask_next = arg in _VALUE_OPTIONS
    return " ".join(redacted)


def run_tool(
    args: list[str],
    *,
    input_text: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Run a CLI tool and return its stripped stdout.

    Parameters
    ----------
    args : list[str]
        Full argument list; ``args[0]`` is looked up on ``PATH``.
    input_text : str, optional
        Text written to the process's stdin.
    timeout : float
        Seconds before the process is killed.

    Returns
    -------
    str
        Standard output with surrounding whitespace removed.

    Raises
    ------
    PrerequisiteError
        If the executable cannot be started.
    RemoteCallError
        If the process exits non-zero or times out; the exit code is kept.

    """
    log_debug(logger, "Running %s", redact_args(args))
    try:
        # S603: argument lists only, never a shell; tools resolved from PATH
        result = subprocess.run(  # noqa: S603
            args,
            input=input_text,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise PrerequisiteError.missing_executable(args[0]) from exc
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
        raise RemoteCallError.from_process(exc) from exc
    return result.stdout.strip()


def probe(args: list[str], *, timeout: float = DEFAULT_TIMEOUT) -> bool:
    """Return whether a command exits zero.

    Missing executables and timeouts count as failure.
    """
    log_debug(logger, "Probing %s", redact_args(args))
    try:
        # S603: argument lists only, never a shell; tools resolved from PATH
        result = subprocess.run(  # noqa: S603
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def decode_json(payload: str, type_: type[T], *, args: list[str]) -> T:
    """Decode tool JSON output into ``type_``.

    Raises
    ------
    RemoteCallError
        If the output is not valid JSON of the expected shape.

    """
    try:
        return msgspec.json.decode(payload or "null", type=type_)
    except msgspec.DecodeError as exc:
        tool = args[0] if args else "subprocess"
        operation = " ".join(args[1:3])
        msg = f"{tool} {operation} returned unexpected output: {exc}"
        raise RemoteCallError(msg, service=tool, operation=operation) from exc
