"""Console helpers shared by every flow."""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import typing as typ

from opskit.prerequisites import require_exes

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console

EXIT_OK = 0
EXIT_FAILED = 1

Clock = cabc.Callable[[], dt.datetime]


def utc_now() -> dt.datetime:
    """Return the current UTC time."""
    return dt.datetime.now(dt.UTC)


def iso_timestamp(now: dt.datetime) -> str:
    """Format ``now`` as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return now.astimezone(dt.UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def print_lines(console: Console, lines: cabc.Iterable[str]) -> None:
    """Print pre-rendered lines such as a table."""
    for line in lines:
        console.line(line)


def show_environment(console: Console, environment: str, region: str) -> None:
    """Print the environment banner used by provisioning flows."""
    console.section("Environment Information")
    console.info(f"Environment: {environment}")
    console.info(f"Region: {region}")


def require_aws(console: Console, aws: AwsContext) -> str:
    """Verify AWS credentials and return the account id.

    Raises
    ------
    PrerequisiteError
        If no usable credentials are configured.

    """
    identity = aws.require_credentials()
    account = str(identity.get("Account", ""))
    console.debug(f"AWS account: {account}")
    return account


def require_tools(console: Console, *names: str) -> None:
    """Verify CLI tools are installed, reporting each one found."""
    require_exes(*names)
    for name in names:
        console.success(f"{name} is installed")


def finish(console: Console, exit_code: int) -> int:
    """Print the closing status line and return ``exit_code``."""
    console.blank()
    if exit_code == EXIT_OK:
        console.success("Setup complete! All operations completed successfully.")
    else:
        console.warning("Setup completed with warnings. Some operations failed.")
    return exit_code
