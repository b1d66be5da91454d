"""Create-if-absent provisioning with confirm-before-overwrite.

Every provisioning flow funnels through :func:`ensure`: query existence
fresh, create when absent, and only touch an existing resource after the
operator confirms. Nothing is cached between calls, so running a flow twice
re-queries the remote state each time.

Examples
--------
    result = ensure(
        "S3 bucket",
        "my-bucket",
        exists=lambda: s3.bucket_exists(client, "my-bucket"),
        create=lambda: s3.create_bucket(client, "my-bucket", region),
    )
    if result.outcome is ProvisionOutcome.EXISTS:
        console.info("Bucket already exists")

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import enum
import subprocess
import typing as typ

from botocore.exceptions import BotoCoreError, ClientError

from opskit.errors import CreateFailedError, OpsKitError
from opskit.logging import get_logger, log_debug, log_error

if typ.TYPE_CHECKING:
    from opskit.console import Console

logger = get_logger(__name__)

# Failures from these types during create are reported as CreateFailedError.
_CREATE_FAILURES = (
    OpsKitError,
    ClientError,
    BotoCoreError,
    subprocess.CalledProcessError,
    subprocess.TimeoutExpired,
)


class ProvisionOutcome(enum.StrEnum):
    """What :func:`ensure` did to the resource."""

    CREATED = "created"
    EXISTS = "exists"
    UPDATED = "updated"
    DECLINED = "declined"


@dataclasses.dataclass(frozen=True, slots=True)
class ProvisionResult:
    """Result of a provisioning step.

    Attributes
    ----------
    kind
        Human-readable resource type, such as ``"DynamoDB table"``.
    name
        Resource name.
    outcome
        What happened.
    value
        Return value of the create or update callable, if either ran.

    """

    kind: str
    name: str
    outcome: ProvisionOutcome
    value: object = None

    @property
    def changed(self) -> bool:
        """Whether the remote resource was created or modified."""
        return self.outcome in {ProvisionOutcome.CREATED, ProvisionOutcome.UPDATED}


def ensure(  # noqa: PLR0913
    kind: str,
    name: str,
    *,
    exists: cabc.Callable[[], bool],
    create: cabc.Callable[[], object],
    update: cabc.Callable[[], object] | None = None,
    confirm: cabc.Callable[[str], bool] | None = None,
) -> ProvisionResult:
    """Create a resource when absent, optionally updating it when present.

    Parameters
    ----------
    kind : str
        Resource type used in prompts and error messages.
    name : str
        Resource name.
    exists : Callable[[], bool]
        Existence predicate; queried on every call.
    create : Callable[[], object]
        Creates the resource. Called at most once, never retried.
    update : Callable[[], object] | None, optional
        Overwrites an existing resource. When omitted an existing resource
        is left untouched.
    confirm : Callable[[str], bool] | None, optional
        Asked before ``update`` runs. Without it an update is declined.

    Returns
    -------
    ProvisionResult
        The outcome and whatever ``create`` or ``update`` returned.

    Raises
    ------
    CreateFailedError
        If ``create`` fails. Related resources created earlier in the same
        flow are not rolled back.

    """
    if not exists():
        log_debug(logger, "%s '%s' not found; creating", kind, name)
        try:
            value = create()
        except CreateFailedError:
            raise
        except _CREATE_FAILURES as exc:
            log_error(logger, "Creating %s '%s' failed: %s", kind, name, exc)
            raise CreateFailedError.for_resource(kind, name, exc) from exc
        return ProvisionResult(kind, name, ProvisionOutcome.CREATED, value)

    if update is None:
        log_debug(logger, "%s '%s' already exists", kind, name)
        return ProvisionResult(kind, name, ProvisionOutcome.EXISTS)

    if confirm is None or not confirm(f"Update existing {kind} '{name}'?"):
        log_debug(logger, "Update of %s '%s' declined", kind, name)
        return ProvisionResult(kind, name, ProvisionOutcome.DECLINED)

    return ProvisionResult(kind, name, ProvisionOutcome.UPDATED, update())


def confirm_destroy(console: Console, message: str, *, force: bool = False) -> bool:
    """Gate a destructive action behind an operator confirmation.

    ``force`` skips the prompt. A declined prompt prints a cancellation
    notice and returns ``False``; callers exit cleanly in that case.
    """
    if force or console.confirm(message):
        return True
    console.info("Cancelled")
    return False


__all__ = ["ProvisionOutcome", "ProvisionResult", "confirm_destroy", "ensure"]
