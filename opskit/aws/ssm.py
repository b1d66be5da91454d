"""Systems Manager Parameter Store operations."""

from __future__ import annotations

import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found, paginate
from opskit.errors import RemoteCallError

SERVICE = "ssm"
PARAMETER_TYPES = ("String", "StringList", "SecureString")
SECURE_STRING = "SecureString"


def get_parameter(
    client: typ.Any,  # noqa: ANN401
    name: str,
    *,
    decrypt: bool = True,
) -> dict[str, typ.Any] | None:
    """Return parameter ``name``, or ``None`` when absent."""
    try:
        response = client.get_parameter(Name=name, WithDecryption=decrypt)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(SERVICE, "get_parameter", exc) from exc
    return response.get("Parameter", {})


def parameter_exists(client: typ.Any, name: str) -> bool:  # noqa: ANN401
    """Return whether parameter ``name`` exists."""
    return get_parameter(client, name, decrypt=False) is not None


def put_parameter(  # noqa: PLR0913
    client: typ.Any,  # noqa: ANN401
    name: str,
    value: str,
    *,
    parameter_type: str = "String",
    description: str | None = None,
    overwrite: bool = True,
) -> int:
    """Write parameter ``name`` and return its new version.

    Raises
    ------
    ValueError
        If ``parameter_type`` is not a Parameter Store type.

    """
    if parameter_type not in PARAMETER_TYPES:
        msg = f"parameter_type must be one of {', '.join(PARAMETER_TYPES)}"
        raise ValueError(msg)
    kwargs: dict[str, object] = {
        "Name": name,
        "Value": value,
        "Type": parameter_type,
        "Overwrite": overwrite,
    }
    if description:
        kwargs["Description"] = description
    return int(call(client, SERVICE, "put_parameter", **kwargs).get("Version", 0))


def delete_parameter(client: typ.Any, name: str) -> None:  # noqa: ANN401
    """Delete parameter ``name``."""
    call(client, SERVICE, "delete_parameter", Name=name)


def parameters_by_path(
    client: typ.Any,  # noqa: ANN401
    path: str = "/",
    *,
    recursive: bool = True,
    decrypt: bool = False,
) -> list[dict[str, typ.Any]]:
    """Return every parameter under ``path``."""
    return list(
        paginate(
            client,
            SERVICE,
            "get_parameters_by_path",
            "Parameters",
            Path=path,
            Recursive=recursive,
            WithDecryption=decrypt,
        )
    )
