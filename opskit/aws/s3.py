"""S3 bucket operations."""

from __future__ import annotations

import dataclasses
import typing as typ

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from opskit.aws.session import call, error_code, is_not_found, paginate
from opskit.errors import RemoteCallError

SERVICE = "s3"
US_EAST_1 = "us-east-1"

_BLOCK_ALL_PUBLIC_ACCESS = {
    "BlockPublicAcls": True,
    "IgnorePublicAcls": True,
    "BlockPublicPolicy": True,
    "RestrictPublicBuckets": True,
}


def bucket_exists(client: typ.Any, bucket: str) -> bool:  # noqa: ANN401
    """Return whether ``bucket`` exists and is reachable."""
    try:
        client.head_bucket(Bucket=bucket)
    except ClientError as exc:
        if is_not_found(exc):
            return False
        raise RemoteCallError.from_client_error(SERVICE, "head_bucket", exc) from exc
    return True


def create_bucket(client: typ.Any, bucket: str, region: str) -> None:  # noqa: ANN401
    """Create ``bucket`` in ``region``.

    ``us-east-1`` rejects an explicit ``LocationConstraint``, so the
    configuration is only sent for other regions.
    """
    kwargs: dict[str, object] = {"Bucket": bucket}
    if region != US_EAST_1:
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
    call(client, SERVICE, "create_bucket", **kwargs)


def block_public_access(client: typ.Any, bucket: str) -> None:  # noqa: ANN401
    """Enable all four public access blocks on ``bucket``."""
    call(
        client,
        SERVICE,
        "put_public_access_block",
        Bucket=bucket,
        PublicAccessBlockConfiguration=dict(_BLOCK_ALL_PUBLIC_ACCESS),
    )


def enable_versioning(client: typ.Any, bucket: str) -> None:  # noqa: ANN401
    """Turn on object versioning for ``bucket``."""
    call(
        client,
        SERVICE,
        "put_bucket_versioning",
        Bucket=bucket,
        VersioningConfiguration={"Status": "Enabled"},
    )


def put_text(
    client: typ.Any,  # noqa: ANN401
    bucket: str,
    key: str,
    body: str,
    content_type: str = "text/plain",
) -> None:
    """Upload ``body`` as a UTF-8 object."""
    call(
        client,
        SERVICE,
        "put_object",
        Bucket=bucket,
        Key=key,
        Body=body.encode("utf-8"),
        ContentType=content_type,
    )


def upload_file(client: typ.Any, path: str, bucket: str, key: str) -> None:  # noqa: ANN401
    """Upload a local file with boto3's managed (multipart) transfer.

    Raises
    ------
    RemoteCallError
        If the transfer fails.

    """
    try:
        call(client, SERVICE, "upload_file", Filename=path, Bucket=bucket, Key=key)
    except S3UploadFailedError as exc:
        msg = f"Upload of {path} to s3://{bucket}/{key} failed: {exc}"
        raise RemoteCallError(msg, service=SERVICE, operation="upload_file") from exc


def has_objects(client: typ.Any, bucket: str, prefix: str = "") -> bool:  # noqa: ANN401
    """Return whether any object exists under ``prefix``."""
    response = call(
        client, SERVICE, "list_objects_v2", Bucket=bucket, Prefix=prefix, MaxKeys=1
    )
    return response.get("KeyCount", len(response.get("Contents", []))) > 0


def list_objects(
    client: typ.Any,  # noqa: ANN401
    bucket: str,
    prefix: str = "",
    limit: int | None = None,
) -> list[dict[str, typ.Any]]:
    """List objects under ``prefix``, stopping after ``limit`` when given."""
    objects: list[dict[str, typ.Any]] = []
    for obj in paginate(
        client, SERVICE, "list_objects_v2", "Contents", Bucket=bucket, Prefix=prefix
    ):
        objects.append(obj)
        if limit is not None and len(objects) >= limit:
            break
    return objects


def list_buckets(client: typ.Any) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return every bucket owned by the caller."""
    return call(client, SERVICE, "list_buckets").get("Buckets", [])


@dataclasses.dataclass(frozen=True, slots=True)
class BucketDetails:
    """Summary of a bucket's configuration."""

    name: str
    region: str
    versioning: str
    public_access: str
    encryption: str


def _optional_call(
    client: typ.Any,  # noqa: ANN401
    operation: str,
    missing_codes: frozenset[str],
    **kwargs: object,
) -> dict[str, typ.Any] | None:
    """Call an S3 getter whose "not configured" answer is an error code."""
    try:
        return getattr(client, operation)(**kwargs)
    except ClientError as exc:
        if error_code(exc) in missing_codes:
            return None
        raise RemoteCallError.from_client_error(SERVICE, operation, exc) from exc


def describe_bucket(client: typ.Any, bucket: str) -> BucketDetails:  # noqa: ANN401
    """Collect region, versioning, public access and encryption settings."""
    location = call(client, SERVICE, "get_bucket_location", Bucket=bucket)
    versioning = call(client, SERVICE, "get_bucket_versioning", Bucket=bucket)

    public_access = "Unknown"
    block = _optional_call(
        client,
        "get_public_access_block",
        frozenset({"NoSuchPublicAccessBlockConfiguration"}),
        Bucket=bucket,
    )
    if block is not None:
        config = block.get("PublicAccessBlockConfiguration", {})
        public_access = "Blocked" if config.get("BlockPublicAcls") else "Allowed"

    encryption = "None"
    enc = _optional_call(
        client,
        "get_bucket_encryption",
        frozenset({"ServerSideEncryptionConfigurationNotFoundError"}),
        Bucket=bucket,
    )
    if enc is not None:
        rules = enc.get("ServerSideEncryptionConfiguration", {}).get("Rules", [])
        if rules:
            default = rules[0].get("ApplyServerSideEncryptionByDefault", {})
            encryption = default.get("SSEAlgorithm", "None")

    return BucketDetails(
        name=bucket,
        region=location.get("LocationConstraint") or US_EAST_1,
        versioning=versioning.get("Status") or "Disabled",
        public_access=public_access,
        encryption=encryption,
    )


def bucket_usage(client: typ.Any, bucket: str) -> tuple[int, int]:  # noqa: ANN401
    """Return the object count and total size in bytes of ``bucket``."""
    count = 0
    total = 0
    for obj in paginate(client, SERVICE, "list_objects_v2", "Contents", Bucket=bucket):
        count += 1
        total += int(obj.get("Size", 0))
    return count, total
