"""Poll a status check until it reaches a target state or time runs out.

The loop is deliberately simple: check, then sleep and re-check until the
accumulated wait reaches the timeout. Elapsed time is the sum of the sleeps
requested, not wall-clock time, so behaviour is deterministic under an
injected ``sleep``.

Examples
--------
Wait for a DynamoDB table:

    result = poll_until(
        lambda: table_status(client, "orders"),
        {"ACTIVE"},
        timeout=120,
        interval=5,
    )
    if not result.ready:
        console.warning(f"Table still {result.status} after {result.elapsed:.0f}s")

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import math
import threading
import time

from opskit.logging import get_logger, log_debug

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class PollResult:
    """Outcome of a :func:`poll_until` call.

    Attributes
    ----------
    ready
        Whether the last observed status was a target status.
    status
        Last observed status, ``None`` when the check reported nothing.
    elapsed
        Seconds spent sleeping between checks.
    attempts
        Number of times the check ran.
    cancelled
        Whether polling stopped because the cancel event was set.

    """

    ready: bool
    status: str | None
    elapsed: float
    attempts: int
    cancelled: bool = False

    def __bool__(self) -> bool:
        """Truthiness mirrors :attr:`ready`."""
        return self.ready


def _validate(timeout: float, interval: float, backoff: float) -> None:
    limits = {"timeout": timeout, "interval": interval, "backoff": backoff}
    for name, value in limits.items():
        if not math.isfinite(value):
            msg = f"{name} must be a finite number, got {value}"
            raise ValueError(msg)
    if timeout < 0:
        msg = f"timeout must be zero or greater, got {timeout}"
        raise ValueError(msg)
    if interval <= 0:
        msg = f"interval must be greater than zero, got {interval}"
        raise ValueError(msg)
    if backoff < 1:
        msg = f"backoff must be at least 1, got {backoff}"
        raise ValueError(msg)


def poll_until(  # noqa: PLR0913
    check: cabc.Callable[[], str | None],
    targets: cabc.Collection[str],
    *,
    timeout: float,
    interval: float,
    backoff: float = 1.0,
    max_interval: float | None = None,
    sleep: cabc.Callable[[float], object] = time.sleep,
    cancel: threading.Event | None = None,
    on_wait: cabc.Callable[[str | None, float], None] | None = None,
) -> PollResult:
    """Call ``check`` until it returns one of ``targets`` or time runs out.

    Parameters
    ----------
    check : Callable[[], str | None]
        Returns the current status. Exceptions propagate to the caller.
    targets : Collection[str]
        Statuses that end polling successfully.
    timeout : float
        Maximum accumulated sleep in seconds. ``0`` checks exactly once.
    interval : float
        Initial delay between checks in seconds.
    backoff : float, default 1.0
        Multiplier applied to the delay after each sleep.
    max_interval : float | None, optional
        Upper bound for the delay when ``backoff`` is greater than one.
    sleep : Callable[[float], object], default time.sleep
        Sleep function; ignored when ``cancel`` is given.
    cancel : threading.Event | None, optional
        Event that aborts polling when set. Sleeping waits on the event.
    on_wait : Callable[[str | None, float], None], optional
        Called with the last status and elapsed seconds before each sleep.

    Returns
    -------
    PollResult
        ``ready`` is ``False`` on timeout or cancellation; a timeout is
        never raised.

    Raises
    ------
    ValueError
        If ``timeout`` is negative, ``interval`` is not positive or
        ``backoff`` is below one.

    """
    _validate(timeout, interval, backoff)
    target_set = frozenset(targets)
    elapsed = 0.0
    delay = interval

    status = check()
    attempts = 1
    while status not in target_set and elapsed < timeout:
        if cancel is not None and cancel.is_set():
            return PollResult(False, status, elapsed, attempts, cancelled=True)
        if on_wait is not None:
            on_wait(status, elapsed)
        step = min(delay, timeout - elapsed)
        log_debug(
            logger,
            "Status %s; sleeping %.1fs (%.1f/%.1fs)",
            status,
            step,
            elapsed,
            timeout,
        )
        if cancel is not None:
            if cancel.wait(step):
                return PollResult(False, status, elapsed, attempts, cancelled=True)
        else:
            sleep(step)
        elapsed += step
        if backoff > 1:
            delay *= backoff
            if max_interval is not None:
                delay = min(delay, max_interval)
        status = check()
        attempts += 1

    return PollResult(status in target_set, status, elapsed, attempts)


__all__ = ["PollResult", "poll_until"]
