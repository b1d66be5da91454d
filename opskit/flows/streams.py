"""Firehose delivery stream flows."""

from __future__ import annotations

import collections.abc as cabc
import json
import time
import typing as typ

from opskit.aws import firehose, iam, s3
from opskit.errors import RemoteCallError
from opskit.flows.common import (
    EXIT_FAILED,
    EXIT_OK,
    Clock,
    finish,
    iso_timestamp,
    print_lines,
    require_aws,
    show_environment,
    utc_now,
)
from opskit.formatting import get_path, render_fields
from opskit.provisioning import ProvisionOutcome, ensure

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console

DEFAULT_BUFFER_SIZE_MB = 5
DEFAULT_BUFFER_INTERVAL_S = 300


def destination_bucket(stream: str, account_id: str) -> str:
    """Return the S3 bucket name that receives ``stream``'s records."""
    return f"{stream}-destination-{account_id}"


def role_name(stream: str) -> str:
    """Return the IAM role name Firehose assumes for ``stream``."""
    return f"{stream}-firehose-role"


def sample_record(stream: str, environment: str, timestamp: str) -> str:
    """Return the JSON test record sent after setup."""
    return json.dumps(
        {
            "event_type": "test",
            "message": "Hello from Firehose!",
            "timestamp": timestamp,
            "stream": stream,
            "environment": environment,
        }
    )


def _report(console: Console, result_outcome: ProvisionOutcome, label: str) -> None:
    if result_outcome is ProvisionOutcome.CREATED:
        console.success(f"{label} created")
    else:
        console.success(f"{label} already exists")


def create_stream_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    stream: str,
    environment: str = "dev",
    *,
    buffer_size_mb: int = DEFAULT_BUFFER_SIZE_MB,
    buffer_interval_s: int = DEFAULT_BUFFER_INTERVAL_S,
    wait_timeout: float = firehose.DEFAULT_WAIT_TIMEOUT,
    wait_interval: float = firehose.DEFAULT_WAIT_INTERVAL,
    sleep: cabc.Callable[[float], object] = time.sleep,
    now: Clock = utc_now,
) -> int:
    """Ensure a stream delivering into its own bucket, then send a test record.

    The bucket is ``<stream>-destination-<account>`` and the role is
    ``<stream>-firehose-role``. Each is created only when absent; nothing
    created earlier is rolled back if a later step fails.
    """
    account_id = require_aws(console, aws)
    bucket = destination_bucket(stream, account_id)
    role = role_name(stream)
    console.header(f"Setting Up Firehose: {stream}")
    show_environment(console, environment, aws.region)
    console.info(f"Stream Name: {stream}")
    console.info(f"Bucket Name: {bucket}")
    console.info(f"Role Name: {role}")
    console.info(f"Buffer Size: {buffer_size_mb} MB")
    console.info(f"Buffer Interval: {buffer_interval_s} seconds")

    s3_client = aws.client(s3.SERVICE)
    iam_client = aws.client(iam.SERVICE)
    firehose_client = aws.client(firehose.SERVICE)

    console.info(f"Checking if S3 bucket '{bucket}' exists...")
    bucket_result = ensure(
        "S3 bucket",
        bucket,
        exists=lambda: s3.bucket_exists(s3_client, bucket),
        create=lambda: s3.create_bucket(s3_client, bucket, aws.region),
    )
    _report(console, bucket_result.outcome, f"S3 bucket '{bucket}'")

    console.info(f"Checking if IAM role '{role}' exists...")
    role_result = ensure(
        "IAM role",
        role,
        exists=lambda: iam.role_exists(iam_client, role),
        create=lambda: iam.create_firehose_role(
            iam_client, role, bucket, account_id, sleep=sleep
        ),
    )
    _report(console, role_result.outcome, f"IAM role '{role}'")
    role_arn = iam.role_arn(iam_client, role)
    console.info(f"Role ARN: {role_arn}")

    console.info(f"Checking if Firehose '{stream}' exists...")
    stream_result = ensure(
        "Firehose stream",
        stream,
        exists=lambda: firehose.stream_exists(firehose_client, stream),
        create=lambda: firehose.create_stream(
            firehose_client,
            stream,
            firehose.s3_destination(
                bucket,
                role_arn,
                buffer_size_mb=buffer_size_mb,
                buffer_interval_s=buffer_interval_s,
            ),
        ),
    )
    _report(console, stream_result.outcome, f"Firehose '{stream}'")
    if stream_result.outcome is ProvisionOutcome.CREATED:
        console.info("Waiting for Firehose to become active...")
        waited = firehose.wait_stream_active(
            firehose_client,
            stream,
            timeout=wait_timeout,
            interval=wait_interval,
            sleep=sleep,
            on_wait=lambda status, elapsed: console.debug(
                f"Stream status: {status} ({elapsed:.0f}/{wait_timeout:.0f}s)"
            ),
        )
        if not waited.ready:
            console.warning("Firehose may not be fully active")

    exit_code = EXIT_OK
    console.section("Sending Test Record")
    record = sample_record(stream, environment, iso_timestamp(now()))
    console.info(f"Data: {record}")
    try:
        firehose.put_record(firehose_client, stream, record)
    except RemoteCallError as exc:
        console.warning(f"Failed to send test record: {exc}")
        exit_code = EXIT_FAILED
    else:
        console.success("Test record sent successfully")
        console.info(
            "Note: Data will appear in S3 after buffer interval "
            f"({buffer_interval_s}s) or buffer size ({buffer_size_mb}MB) is reached"
        )

    finish(console, exit_code)
    console.section("Connection Information")
    console.line(f"  Stream Name:    {stream}")
    console.line(f"  S3 Bucket:      {bucket}")
    console.line("  S3 Prefix:      data/year=YYYY/month=MM/day=DD/")
    console.line(f"  IAM Role:       {role}")
    console.line(f"  Region:         {aws.region}")
    return exit_code


def show_stream_flow(console: Console, aws: AwsContext, stream: str) -> int:
    """Print the stream's status and S3 destination settings."""
    console.header(f"Firehose: {stream}")
    require_aws(console, aws)
    description = firehose.describe_stream(aws.client(firehose.SERVICE), stream)
    if description is None:
        console.error(f"Firehose '{stream}' not found")
        return EXIT_FAILED
    console.section("Stream Information")
    print_lines(
        console,
        render_fields(
            description,
            [
                ("Name", "DeliveryStreamName"),
                ("Status", "DeliveryStreamStatus"),
                ("ARN", "DeliveryStreamARN"),
                ("Type", "DeliveryStreamType"),
                ("Created", "CreateTimestamp"),
            ],
        ),
    )
    destinations = description.get("Destinations", [])
    s3_config = (
        destinations[0].get("ExtendedS3DestinationDescription")
        if destinations
        else None
    )
    if s3_config:
        console.section("S3 Destination")
        print_lines(
            console,
            render_fields(
                s3_config,
                [
                    ("Bucket", lambda c: c.get("BucketARN", "").rsplit(":", 1)[-1]),
                    ("Prefix", "Prefix"),
                    ("Error Prefix", "ErrorOutputPrefix"),
                    (
                        "Buffer Size",
                        lambda c: f"{get_path(c, 'BufferingHints.SizeInMBs')} MB",
                    ),
                    (
                        "Buffer Interval",
                        lambda c: f"{get_path(c, 'BufferingHints.IntervalInSeconds')}s",
                    ),
                    ("Compression", "CompressionFormat"),
                    ("Role ARN", "RoleARN"),
                ],
            ),
        )
    return EXIT_OK


def list_streams_flow(console: Console, aws: AwsContext) -> int:
    """Print every delivery stream name."""
    console.header("Firehose Delivery Streams")
    require_aws(console, aws)
    names = firehose.list_streams(aws.client(firehose.SERVICE))
    if not names:
        console.info("No delivery streams found")
        return EXIT_OK
    console.success(f"Found {len(names)} stream(s)")
    for name in names:
        console.line(f"  - {name}")
    return EXIT_OK
