"""Lambda function operations and the bundled sample handler."""

from __future__ import annotations

import dataclasses
import io
import os
import textwrap
import time
import typing as typ
import zipfile

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found, paginate
from opskit.errors import ConfigError, RemoteCallError

SERVICE = "lambda"
LOGS_SERVICE = "logs"

_DEFAULT_RUNTIME = "python3.12"
_DEFAULT_HANDLER = "index.handler"
_DEFAULT_MEMORY_MB = 128
_DEFAULT_TIMEOUT_S = 30
_RECENT_LOG_WINDOW_MS = 3600 * 1000

SAMPLE_HANDLER_SOURCE = textwrap.dedent(
    '''\
    import json


    def handler(event, context):
        """Sample Lambda handler"""
        print(f"Received event: {json.dumps(event)}")
        return {
            "statusCode": 200,
            "body": json.dumps({"message": "Hello from Lambda!", "input": event}),
        }
    '''
)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid_parameter(name, raw, "Must be an integer") from exc
    if value <= 0:
        raise ConfigError.invalid_parameter(name, raw, "Must be greater than zero")
    return value


@dataclasses.dataclass(frozen=True, slots=True)
class FunctionSettings:
    """Runtime configuration for a new function.

    Attributes
    ----------
    runtime
        Lambda runtime identifier.
    handler
        ``module.function`` entry point.
    memory
        Memory size in MB.
    timeout
        Timeout in seconds.
    role_arn
        Execution role; ``None`` means a role is created per function.

    """

    runtime: str = _DEFAULT_RUNTIME
    handler: str = _DEFAULT_HANDLER
    memory: int = _DEFAULT_MEMORY_MB
    timeout: int = _DEFAULT_TIMEOUT_S
    role_arn: str | None = None

    @classmethod
    def from_env(cls) -> FunctionSettings:
        """Build settings from ``LAMBDA_*`` environment variables.

        Reads ``LAMBDA_RUNTIME``, ``LAMBDA_HANDLER``, ``LAMBDA_MEMORY``,
        ``LAMBDA_TIMEOUT`` and ``LAMBDA_ROLE_ARN``.

        Raises
        ------
        ConfigError
            If memory or timeout is not a positive integer.

        """
        return cls(
            runtime=os.environ.get("LAMBDA_RUNTIME", "").strip() or _DEFAULT_RUNTIME,
            handler=os.environ.get("LAMBDA_HANDLER", "").strip() or _DEFAULT_HANDLER,
            memory=_env_int("LAMBDA_MEMORY", _DEFAULT_MEMORY_MB),
            timeout=_env_int("LAMBDA_TIMEOUT", _DEFAULT_TIMEOUT_S),
            role_arn=os.environ.get("LAMBDA_ROLE_ARN", "").strip() or None,
        )


def role_name(function: str) -> str:
    """Return the execution role name created for ``function``."""
    return f"lambda-{function}-role"


def get_function(client: typ.Any, function: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return the ``get_function`` response, or ``None`` when absent."""
    try:
        return client.get_function(FunctionName=function)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(SERVICE, "get_function", exc) from exc


def create_function(
    client: typ.Any,  # noqa: ANN401
    function: str,
    zip_bytes: bytes,
    role_arn: str,
    settings: FunctionSettings,
) -> dict[str, typ.Any]:
    """Create ``function`` from a deployment package and return its config."""
    return call(
        client,
        SERVICE,
        "create_function",
        FunctionName=function,
        Runtime=settings.runtime,
        Handler=settings.handler,
        Role=role_arn,
        Code={"ZipFile": zip_bytes},
        MemorySize=settings.memory,
        Timeout=settings.timeout,
    )


def update_function_code(
    client: typ.Any,  # noqa: ANN401
    function: str,
    zip_bytes: bytes,
) -> dict[str, typ.Any]:
    """Replace the code of ``function`` and return its config."""
    return call(
        client,
        SERVICE,
        "update_function_code",
        FunctionName=function,
        ZipFile=zip_bytes,
    )


def list_functions(client: typ.Any) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return the configuration of every function in the region."""
    return list(paginate(client, SERVICE, "list_functions", "Functions"))


def recent_log_events(
    client: typ.Any,  # noqa: ANN401
    function: str,
    *,
    limit: int = 10,
    now_ms: int | None = None,
) -> list[dict[str, typ.Any]]:
    """Return up to ``limit`` log events from the last hour.

    A missing log group means the function never ran and yields no events.
    """
    start = (now_ms if now_ms is not None else int(time.time() * 1000)) - (
        _RECENT_LOG_WINDOW_MS
    )
    try:
        response = client.filter_log_events(
            logGroupName=f"/aws/lambda/{function}", startTime=start, limit=limit
        )
    except ClientError as exc:
        if is_not_found(exc):
            return []
        raise RemoteCallError.from_client_error(
            LOGS_SERVICE, "filter_log_events", exc
        ) from exc
    return response.get("events", [])


def sample_function_zip() -> bytes:
    """Return a deployment package holding the sample ``index.py`` handler."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("index.py", SAMPLE_HANDLER_SOURCE)
    return buffer.getvalue()
