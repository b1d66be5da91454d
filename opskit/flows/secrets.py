"""Secrets Manager and Parameter Store flows."""

from __future__ import annotations

import collections.abc as cabc
import json
import os
import re
import typing as typ
from pathlib import Path

from opskit.aws import secrets, ssm
from opskit.errors import ConfigError
from opskit.flows.common import EXIT_FAILED, EXIT_OK, print_lines, require_aws
from opskit.formatting import (
    PLACEHOLDER,
    Column,
    format_scalar,
    render_fields,
    render_table,
    truncate,
)
from opskit.provisioning import ProvisionOutcome, confirm_destroy, ensure

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console

_PARAMETER_NAME = re.compile(r"^/[A-Za-z0-9/_.\-]*$")
_HIDDEN = "**********"
_VALUE_PREVIEW = 50
_VERSION_PREVIEW = 5
_VERSION_ID_PREVIEW = 32


def resolve_secret_value(
    value: str | None,
    *,
    from_file: Path | None = None,
    from_env: str | None = None,
    environ: cabc.Mapping[str, str] | None = None,
) -> tuple[str, str]:
    """Return the secret value and a description of where it came from.

    Exactly one source is used: a file, an environment variable or the
    literal argument, checked in that order.

    Raises
    ------
    ConfigError
        If the chosen source is missing or empty.

    """
    if from_file is not None:
        if not from_file.is_file():
            msg = f"File not found: {from_file}"
            raise ConfigError(msg)
        return from_file.read_text(encoding="utf-8"), f"file: {from_file}"
    if from_env is not None:
        env = os.environ if environ is None else environ
        env_value = env.get(from_env, "")
        if not env_value:
            msg = f"Environment variable '{from_env}' is empty or not set"
            raise ConfigError(msg)
        return env_value, f"environment: {from_env}"
    if not value:
        msg = "Secret value is required"
        raise ConfigError(msg)
    return value, "argument"


def create_secret_flow(
    console: Console,
    aws: AwsContext,
    name: str,
    value: str,
    *,
    description: str | None = None,
) -> int:
    """Create ``name`` or, once confirmed, store a new version of it.

    Only a masked preview of ``value`` is printed.
    """
    console.header(f"Create Secret: {name}")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    client = aws.client(secrets.SERVICE)

    console.info(f"Secret type: {'JSON' if secrets.is_json(value) else 'String'}")
    console.info("Value preview:")
    for line in secrets.preview_lines(value):
        console.line(f"    {line}")

    def exists() -> bool:
        info = secrets.describe_secret(client, name)
        if info is None:
            return False
        console.warning(f"Secret '{name}' already exists")
        console.info(f"Created: {format_scalar(info.get('CreatedDate', PLACEHOLDER))}")
        console.info(
            f"Modified: {format_scalar(info.get('LastChangedDate', PLACEHOLDER))}"
        )
        return True

    def create() -> str:
        console.section("Creating Secret")
        return secrets.create_secret(client, name, value, description)

    def update() -> str:
        console.section("Updating Secret")
        return secrets.update_secret(client, name, value)

    result = ensure(
        "secret",
        name,
        exists=exists,
        create=create,
        update=update,
        confirm=console.confirm,
    )
    if result.outcome is ProvisionOutcome.DECLINED:
        console.info("Cancelled")
        return EXIT_OK
    if result.outcome is ProvisionOutcome.CREATED:
        console.success("Secret created")
        console.info(f"ARN: {result.value}")
    else:
        console.success("Secret updated")

    console.blank()
    console.success("Secret operation completed!")
    console.info("Useful commands:")
    console.line(f"  Show:   opskit secrets show {name}")
    console.line("  List:   opskit secrets list")
    console.line(f"  Delete: opskit secrets delete {name}")
    return EXIT_OK


def show_secret_flow(
    console: Console, aws: AwsContext, name: str, *, reveal: bool = False
) -> int:
    """Print secret metadata, tags and versions; the value only if revealed."""
    require_aws(console, aws)
    client = aws.client(secrets.SERVICE)
    info = secrets.describe_secret(client, name)
    if info is None:
        console.error(f"Secret '{name}' not found in {aws.region}")
        return EXIT_FAILED

    console.header(f"Secret: {name}")
    console.section("Metadata")
    print_lines(
        console,
        render_fields(
            info,
            [
                ("Name", "Name"),
                ("ARN", "ARN"),
                ("Description", "Description"),
                ("Created", "CreatedDate"),
                ("Modified", "LastChangedDate"),
                ("Rotation", lambda i: bool(i.get("RotationEnabled", False))),
            ],
            label_width=13,
        ),
    )
    if info.get("DeletedDate"):
        console.warning(
            f"Scheduled for deletion: {format_scalar(info['DeletedDate'])}"
        )

    tags = info.get("Tags") or []
    if tags:
        console.section("Tags")
        for tag in tags:
            console.line(f"  {tag.get('Key')}: {tag.get('Value')}")

    versions = list((info.get("VersionIdsToStages") or {}).items())
    if versions:
        console.section(f"Versions (latest {_VERSION_PREVIEW})")
        for version_id, stages in versions[:_VERSION_PREVIEW]:
            console.line(
                f"  {version_id[:_VERSION_ID_PREVIEW]}... -> {', '.join(stages)}"
            )

    if reveal:
        console.section("Secret Value")
        value = secrets.secret_value(client, name)
        decoded = secrets.parse_json_object(value)
        if decoded is None:
            console.line(value)
        else:
            print_lines(console, json.dumps(decoded, indent=2).splitlines())
    else:
        console.blank()
        console.info("Use --reveal to show the actual secret value")
    return EXIT_OK


def list_secrets_flow(console: Console, aws: AwsContext) -> int:
    """Print every secret with its description and modification time."""
    console.header("Secrets Manager Secrets")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    entries = secrets.list_secrets(aws.client(secrets.SERVICE))
    if not entries:
        console.info("No secrets found")
        return EXIT_OK
    print_lines(
        console,
        render_table(
            entries,
            [
                Column("NAME", "Name", 40),
                Column("DESCRIPTION", "Description", 30),
                Column("MODIFIED", "LastChangedDate"),
            ],
        ),
    )
    console.blank()
    console.info(f"Total: {len(entries)} secrets")
    return EXIT_OK


def delete_secret_flow(
    console: Console,
    aws: AwsContext,
    name: str,
    *,
    force: bool = False,
) -> int:
    """Delete ``name`` after confirmation.

    ``force`` deletes without the recovery window; the confirmation is
    still asked unless the console assumes yes.
    """
    console.header(f"Delete Secret: {name}")
    require_aws(console, aws)
    client = aws.client(secrets.SERVICE)
    if not secrets.secret_exists(client, name):
        console.warning(f"Secret '{name}' does not exist")
        return EXIT_OK
    console.warning("This will schedule the secret for deletion")
    if force:
        console.warning(
            "Force delete: Secret will be immediately deleted (unrecoverable)"
        )
    else:
        console.info(
            f"Secret will be recoverable for {secrets.RECOVERY_WINDOW_DAYS} days"
        )
    if not confirm_destroy(console, f"Delete secret '{name}'?"):
        return EXIT_OK
    secrets.delete_secret(client, name, force=force)
    console.success("Secret deleted")
    return EXIT_OK


# Parameter Store


def validate_parameter_name(name: str) -> None:
    """Check ``name`` is an absolute Parameter Store path.

    Raises
    ------
    ConfigError
        If the name lacks the leading ``/`` or has disallowed characters.

    """
    if not name.startswith("/"):
        raise ConfigError.invalid_parameter(
            "parameter name", name, "Must start with '/', e.g. /myapp/config/db_host"
        )
    if not _PARAMETER_NAME.match(name):
        raise ConfigError.invalid_parameter(
            "parameter name", name, "Allowed: letters, numbers, /, _, ., -"
        )


def display_value(parameter: dict[str, typ.Any], *, reveal: bool = False) -> str:
    """Return a parameter value for display, hiding SecureStrings."""
    if parameter.get("Type") == ssm.SECURE_STRING and not reveal:
        return f"{_HIDDEN} (SecureString)"
    return str(parameter.get("Value", PLACEHOLDER))


def get_parameter_flow(
    console: Console, aws: AwsContext, name: str, *, reveal: bool = False
) -> int:
    """Print a single parameter's details."""
    console.header("Check Parameter Store")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    parameter = ssm.get_parameter(aws.client(ssm.SERVICE), name, decrypt=reveal)
    if parameter is None:
        console.error(f"Parameter not found: {name}")
        return EXIT_FAILED
    console.section("Parameter Details")
    print_lines(
        console,
        render_fields(
            parameter,
            [
                ("Name", "Name"),
                ("Type", "Type"),
                ("Value", lambda p: display_value(p, reveal=reveal)),
                ("Version", "Version"),
                ("Last Modified", "LastModifiedDate"),
                ("ARN", "ARN"),
            ],
        ),
    )
    return EXIT_OK


def list_parameters_flow(
    console: Console,
    aws: AwsContext,
    path: str = "/",
    *,
    show_values: bool = False,
    recursive: bool = True,
) -> int:
    """Print every parameter under ``path``."""
    console.header("Check Parameter Store")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    parameters = ssm.parameters_by_path(
        aws.client(ssm.SERVICE), path, recursive=recursive, decrypt=show_values
    )
    console.section(f"Parameters: {path}")
    if not parameters:
        console.info(f"No parameters found under: {path}")
        return EXIT_OK
    console.info(f"Found {len(parameters)} parameter(s)")
    columns = [
        Column("NAME", "Name", 50),
        Column("TYPE", "Type", 12),
        Column("VERSION", lambda p: f"v{p.get('Version')}", 10),
    ]
    if show_values:
        columns.append(
            Column("VALUE", lambda p: display_value(p, reveal=True), _VALUE_PREVIEW)
        )
    else:
        columns.append(Column("LAST MODIFIED", "LastModifiedDate"))
    print_lines(console, render_table(parameters, columns))
    return EXIT_OK


def set_parameter_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    name: str,
    value: str,
    *,
    parameter_type: str = "String",
    description: str | None = None,
    overwrite: bool = True,
) -> int:
    """Create or overwrite a parameter and print what was stored."""
    validate_parameter_name(name)
    if parameter_type not in ssm.PARAMETER_TYPES:
        raise ConfigError.invalid_parameter(
            "--type", parameter_type, f"Valid types: {', '.join(ssm.PARAMETER_TYPES)}"
        )
    console.header("Setup Parameter Store")
    require_aws(console, aws)
    console.info(f"Region: {aws.region}")
    client = aws.client(ssm.SERVICE)

    console.section("Parameter Configuration")
    console.info(f"Name: {name}")
    console.info(f"Type: {parameter_type}")
    if description:
        console.info(f"Description: {description}")
    if parameter_type == ssm.SECURE_STRING:
        console.info(f"Value: {_HIDDEN} (hidden)")
    else:
        console.info(f"Value: {truncate(value, _VALUE_PREVIEW + 3)}")

    existed = ssm.parameter_exists(client, name)
    if existed and not overwrite:
        console.warning(f"Parameter '{name}' already exists (--no-overwrite specified)")
        return EXIT_OK
    console.info(f"{'Updating' if existed else 'Creating'} parameter: {name}")
    version = ssm.put_parameter(
        client,
        name,
        value,
        parameter_type=parameter_type,
        description=description,
        overwrite=overwrite,
    )
    action = "updated" if existed else "created"
    console.success(f"Parameter {action} (version: {version})")

    console.section("Parameter Info")
    stored = ssm.get_parameter(client, name, decrypt=False)
    if stored is None:
        console.warning("Could not retrieve parameter info")
        return EXIT_OK
    console.info(f"Name: {name}")
    console.info(f"Type: {stored.get('Type', parameter_type)}")
    console.info(f"Version: {stored.get('Version', version)}")
    console.info(
        f"Last Modified: {format_scalar(stored.get('LastModifiedDate', PLACEHOLDER))}"
    )
    console.info(f"ARN: {stored.get('ARN', PLACEHOLDER)}")
    console.info(f"Value: {display_value(stored)}")
    return EXIT_OK


def delete_parameter_flow(console: Console, aws: AwsContext, name: str) -> int:
    """Delete a parameter after confirmation."""
    console.header("Setup Parameter Store")
    require_aws(console, aws)
    client = aws.client(ssm.SERVICE)
    if not ssm.parameter_exists(client, name):
        console.warning(f"Parameter '{name}' does not exist")
        return EXIT_OK
    if not confirm_destroy(console, f"Delete parameter '{name}'?"):
        return EXIT_OK
    console.info(f"Deleting parameter: {name}")
    ssm.delete_parameter(client, name)
    console.success("Parameter deleted")
    return EXIT_OK
