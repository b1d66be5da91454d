"""Kinesis Data Firehose delivery stream operations."""

from __future__ import annotations

import collections.abc as cabc
import time
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found
from opskit.errors import RemoteCallError
from opskit.polling import PollResult, poll_until

SERVICE = "firehose"
ACTIVE = "ACTIVE"

# Date-partitioned layout under which delivered records land.
DATA_PREFIX = "data/year=!{timestamp:yyyy}/month=!{timestamp:MM}/day=!{timestamp:dd}/"
ERROR_PREFIX = (
    "errors/!{firehose:error-output-type}/"
    "year=!{timestamp:yyyy}/month=!{timestamp:MM}/day=!{timestamp:dd}/"
)

# Stream activation is slower than table creation; poll less often.
DEFAULT_WAIT_TIMEOUT = 120
DEFAULT_WAIT_INTERVAL = 10


def describe_stream(client: typ.Any, stream: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return the stream description, or ``None`` when absent."""
    try:
        response = client.describe_delivery_stream(DeliveryStreamName=stream)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(
            SERVICE, "describe_delivery_stream", exc
        ) from exc
    return response.get("DeliveryStreamDescription", {})


def stream_exists(client: typ.Any, stream: str) -> bool:  # noqa: ANN401
    """Return whether delivery stream ``stream`` exists."""
    return describe_stream(client, stream) is not None


def s3_destination(
    bucket: str, role_arn: str, *, buffer_size_mb: int = 5, buffer_interval_s: int = 300
) -> dict[str, typ.Any]:
    """Build the extended S3 destination used for new streams."""
    return {
        "RoleARN": role_arn,
        "BucketARN": f"arn:aws:s3:::{bucket}",
        "Prefix": DATA_PREFIX,
        "ErrorOutputPrefix": ERROR_PREFIX,
        "BufferingHints": {
            "SizeInMBs": buffer_size_mb,
            "IntervalInSeconds": buffer_interval_s,
        },
        "CompressionFormat": "GZIP",
        "CloudWatchLoggingOptions": {"Enabled": False},
    }


def create_stream(
    client: typ.Any,  # noqa: ANN401
    stream: str,
    destination: dict[str, typ.Any],
) -> str:
    """Create a ``DirectPut`` stream and return its ARN."""
    response = call(
        client,
        SERVICE,
        "create_delivery_stream",
        DeliveryStreamName=stream,
        DeliveryStreamType="DirectPut",
        ExtendedS3DestinationConfiguration=destination,
    )
    return str(response.get("DeliveryStreamARN", ""))


def stream_status(client: typ.Any, stream: str) -> str | None:  # noqa: ANN401
    """Return the delivery stream status, or ``None`` when absent."""
    description = describe_stream(client, stream)
    return None if description is None else description.get("DeliveryStreamStatus")


def wait_stream_active(  # noqa: PLR0913
    client: typ.Any,  # noqa: ANN401
    stream: str,
    *,
    timeout: float = DEFAULT_WAIT_TIMEOUT,
    interval: float = DEFAULT_WAIT_INTERVAL,
    sleep: cabc.Callable[[float], object] = time.sleep,
    on_wait: cabc.Callable[[str | None, float], None] | None = None,
) -> PollResult:
    """Poll until the stream reports ``ACTIVE`` or ``timeout`` elapses."""
    return poll_until(
        lambda: stream_status(client, stream),
        {ACTIVE},
        timeout=timeout,
        interval=interval,
        sleep=sleep,
        on_wait=on_wait,
    )


def put_record(client: typ.Any, stream: str, data: str) -> str:  # noqa: ANN401
    """Send one record and return its record id.

    boto3 base64-encodes the blob itself, so ``data`` is sent as raw bytes.
    """
    response = call(
        client,
        SERVICE,
        "put_record",
        DeliveryStreamName=stream,
        Record={"Data": data.encode("utf-8")},
    )
    return str(response.get("RecordId", ""))


def list_streams(client: typ.Any) -> list[str]:  # noqa: ANN401
    """Return every delivery stream name, following pagination."""
    names: list[str] = []
    kwargs: dict[str, object] = {"Limit": 100}
    while True:
        response = call(client, SERVICE, "list_delivery_streams", **kwargs)
        batch = response.get("DeliveryStreamNames", [])
        names.extend(batch)
        if not response.get("HasMoreDeliveryStreams") or not batch:
            return names
        kwargs["ExclusiveStartDeliveryStreamName"] = batch[-1]
