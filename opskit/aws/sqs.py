"""SQS queue operations."""

from __future__ import annotations

import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found, paginate
from opskit.errors import RemoteCallError

SERVICE = "sqs"
FIFO_SUFFIX = ".fifo"
DEFAULT_VISIBILITY_TIMEOUT_S = 30
DEFAULT_RETENTION_S = 345600  # four days


def fifo_name(name: str) -> str:
    """Return ``name`` with the mandatory ``.fifo`` suffix."""
    return name if name.endswith(FIFO_SUFFIX) else f"{name}{FIFO_SUFFIX}"


def queue_url(client: typ.Any, name: str) -> str | None:  # noqa: ANN401
    """Return the queue URL, or ``None`` when the queue does not exist."""
    try:
        return client.get_queue_url(QueueName=name)["QueueUrl"]
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(SERVICE, "get_queue_url", exc) from exc


def queue_exists(client: typ.Any, name: str) -> bool:  # noqa: ANN401
    """Return whether queue ``name`` exists."""
    return queue_url(client, name) is not None


def create_queue(
    client: typ.Any,  # noqa: ANN401
    name: str,
    *,
    fifo: bool = False,
    visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT_S,
    retention: int = DEFAULT_RETENTION_S,
) -> str:
    """Create a standard or FIFO queue and return its URL.

    FIFO queues use content-based deduplication; ``name`` must already
    carry the ``.fifo`` suffix (see :func:`fifo_name`).
    """
    if fifo:
        attributes = {"FifoQueue": "true", "ContentBasedDeduplication": "true"}
    else:
        attributes = {
            "VisibilityTimeout": str(visibility_timeout),
            "MessageRetentionPeriod": str(retention),
        }
    response = call(
        client, SERVICE, "create_queue", QueueName=name, Attributes=attributes
    )
    return str(response["QueueUrl"])


def queue_attributes(client: typ.Any, url: str) -> dict[str, str]:  # noqa: ANN401
    """Return every attribute of the queue at ``url``."""
    response = call(
        client, SERVICE, "get_queue_attributes", QueueUrl=url, AttributeNames=["All"]
    )
    return response.get("Attributes", {})


def list_queues(client: typ.Any, prefix: str | None = None) -> list[str]:  # noqa: ANN401
    """Return queue URLs, optionally filtered by name prefix."""
    kwargs: dict[str, object] = {}
    if prefix:
        kwargs["QueueNamePrefix"] = prefix
    return list(paginate(client, SERVICE, "list_queues", "QueueUrls", **kwargs))


def queue_name_from_url(url: str) -> str:
    """Return the queue name, the last path segment of its URL."""
    return url.rstrip("/").rsplit("/", 1)[-1]
