"""Secrets Manager operations and secret value previews."""

from __future__ import annotations

import json
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found, paginate
from opskit.errors import RemoteCallError
from opskit.formatting import mask_value

SERVICE = "secretsmanager"
RECOVERY_WINDOW_DAYS = 30
# JSON previews list at most this many keys.
_PREVIEW_KEYS = 3


def describe_secret(client: typ.Any, name: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return secret metadata, or ``None`` when absent."""
    try:
        return client.describe_secret(SecretId=name)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(
            SERVICE, "describe_secret", exc
        ) from exc


def secret_exists(client: typ.Any, name: str) -> bool:  # noqa: ANN401
    """Return whether secret ``name`` exists."""
    return describe_secret(client, name) is not None


def create_secret(
    client: typ.Any,  # noqa: ANN401
    name: str,
    value: str,
    description: str | None = None,
) -> str:
    """Create a string secret and return its ARN."""
    kwargs: dict[str, object] = {"Name": name, "SecretString": value}
    if description:
        kwargs["Description"] = description
    return str(call(client, SERVICE, "create_secret", **kwargs).get("ARN", ""))


def update_secret(client: typ.Any, name: str, value: str) -> str:  # noqa: ANN401
    """Store a new current version of ``name`` and return its version id."""
    response = call(
        client, SERVICE, "put_secret_value", SecretId=name, SecretString=value
    )
    return str(response.get("VersionId", ""))


def delete_secret(client: typ.Any, name: str, *, force: bool = False) -> None:  # noqa: ANN401
    """Schedule deletion, or delete immediately without recovery when forced."""
    kwargs: dict[str, object] = {"SecretId": name}
    if force:
        kwargs["ForceDeleteWithoutRecovery"] = True
    else:
        kwargs["RecoveryWindowInDays"] = RECOVERY_WINDOW_DAYS
    call(client, SERVICE, "delete_secret", **kwargs)


def secret_value(client: typ.Any, name: str) -> str:  # noqa: ANN401
    """Return the current ``SecretString`` of ``name``."""
    response = call(client, SERVICE, "get_secret_value", SecretId=name)
    return str(response.get("SecretString", ""))


def list_secrets(client: typ.Any) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return metadata for every secret."""
    return list(paginate(client, SERVICE, "list_secrets", "SecretList"))


def parse_json_object(value: str) -> dict[str, typ.Any] | None:
    """Return ``value`` decoded as a JSON object, or ``None``.

    Scalars and arrays are valid JSON but are previewed as plain strings.
    """
    try:
        decoded = json.loads(value)
    except ValueError:
        return None
    return decoded if isinstance(decoded, dict) else None


def is_json(value: str) -> bool:
    """Return whether ``value`` is a JSON object."""
    return parse_json_object(value) is not None


def preview_lines(value: str) -> list[str]:
    """Return masked preview lines for a secret value.

    JSON objects list up to three keys with masked values; anything else is
    masked with :func:`~opskit.formatting.mask_value`.
    """
    decoded = parse_json_object(value)
    if decoded is None:
        return [mask_value(value)]
    return [f"{key}: ****" for key in list(decoded)[:_PREVIEW_KEYS]]
