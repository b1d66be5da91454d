"""S3 bucket, S3 backup and DynamoDB table flows.

Both provisioning flows are safe to re-run: the resource is created only
when absent, and sample data is written only when the bucket prefix or the
table is still empty.
"""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import json
import tarfile
import tempfile
import textwrap
import time
import typing as typ
from pathlib import Path

from opskit.aws import dynamodb, s3
from opskit.errors import ConfigError, RemoteCallError
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
from opskit.formatting import (
    PLACEHOLDER,
    Column,
    format_scalar,
    get_path,
    human_size,
    render_fields,
    render_table,
)
from opskit.provisioning import ProvisionOutcome, ensure

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console

SAMPLE_PREFIX = "sample/"
DEFAULT_ENVIRONMENT = "dev"
_OBJECT_LIMIT = 20
_ITEM_LIMIT = 10


# S3


def sample_files(
    bucket: str, environment: str, timestamp: str
) -> list[tuple[str, str, str]]:
    """Return ``(key, body, content_type)`` for the three sample objects."""
    hello = textwrap.dedent(
        f"""\
        Hello from S3!
        This is a sample file for PoC testing.
        Created at: {timestamp}
        Bucket: {bucket}
        Environment: {environment}"""
    )
    config = json.dumps(
        {
            "name": "poc-config",
            "version": "1.0.0",
            "environment": environment,
            "created_at": timestamp,
            "settings": {"debug": True, "log_level": "info", "max_retries": 3},
            "features": {"feature_a": True, "feature_b": False, "feature_c": True},
        },
        indent=2,
    )
    rows = [
        "id,name,value,created_at",
        *(
            f"{number},item_{letter},{number * 100},{timestamp}"
            for number, letter in enumerate("abc", start=1)
        ),
    ]
    return [
        (f"{SAMPLE_PREFIX}hello.txt", hello, "text/plain"),
        (f"{SAMPLE_PREFIX}config.json", config, "application/json"),
        (f"{SAMPLE_PREFIX}data.csv", "\n".join(rows), "text/csv"),
    ]


def _upload_samples(
    console: Console,
    client: typ.Any,  # noqa: ANN401
    bucket: str,
    environment: str,
    timestamp: str,
) -> bool:
    console.section("Uploading Sample Files")
    ok = True
    for key, body, content_type in sample_files(bucket, environment, timestamp):
        console.info(f"Uploading {key}...")
        try:
            s3.put_text(client, bucket, key, body, content_type)
        except RemoteCallError as exc:
            console.error(f"Failed to upload {key}: {exc}")
            ok = False
        else:
            console.success(f"Uploaded {key}")
    return ok


def _object_lines(objects: cabc.Sequence[dict[str, typ.Any]]) -> list[str]:
    return render_table(
        objects,
        [
            Column("MODIFIED", "LastModified", 19),
            Column("SIZE", lambda obj: human_size(obj.get("Size", 0)), 12),
            Column("KEY", "Key"),
        ],
    )


def create_bucket_flow(
    console: Console,
    aws: AwsContext,
    bucket: str,
    environment: str = DEFAULT_ENVIRONMENT,
    *,
    now: Clock = utc_now,
) -> int:
    """Ensure ``bucket`` exists with sample objects under ``sample/``.

    A new bucket gets public access blocked and versioning enabled. Sample
    objects are uploaded only when the ``sample/`` prefix is empty, so a
    second run leaves existing objects untouched.

    Returns
    -------
    int
        ``0`` on success, ``1`` when an upload or the verification failed.

    """
    console.header(f"Setting Up S3 Bucket: {bucket}")
    show_environment(console, environment, aws.region)
    console.info(f"Bucket Name: {bucket}")
    require_aws(console, aws)
    client = aws.client(s3.SERVICE)
    exit_code = EXIT_OK

    result = ensure(
        "S3 bucket",
        bucket,
        exists=lambda: s3.bucket_exists(client, bucket),
        create=lambda: s3.create_bucket(client, bucket, aws.region),
    )
    if result.outcome is ProvisionOutcome.CREATED:
        console.success("Bucket created successfully")
        s3.block_public_access(client, bucket)
        console.success("Public access blocked")
        s3.enable_versioning(client, bucket)
        console.success("Versioning enabled")
    else:
        console.success(f"Bucket '{bucket}' already exists")

    if s3.has_objects(client, bucket, SAMPLE_PREFIX):
        console.success("Sample files already exist. Skipping upload.")
    else:
        if result.outcome is not ProvisionOutcome.CREATED:
            console.info("Bucket exists but has no sample files. Uploading...")
        timestamp = iso_timestamp(now())
        if not _upload_samples(console, client, bucket, environment, timestamp):
            console.warning("Some file uploads failed")
            exit_code = EXIT_FAILED

    console.section("Verifying Uploaded Files")
    objects = s3.list_objects(client, bucket)
    if objects:
        print_lines(console, _object_lines(objects))
        console.success(f"Found {len(objects)} file(s) in the bucket")
    else:
        console.error("No files found in the bucket")
        exit_code = EXIT_FAILED
    return finish(console, exit_code)


def show_bucket_flow(
    console: Console,
    aws: AwsContext,
    bucket: str,
    *,
    limit: int = _OBJECT_LIMIT,
) -> int:
    """Print bucket configuration, usage and the first ``limit`` objects."""
    console.header(f"S3 Bucket: {bucket}")
    require_aws(console, aws)
    client = aws.client(s3.SERVICE)
    if not s3.bucket_exists(client, bucket):
        console.error(f"Bucket '{bucket}' not found")
        return EXIT_FAILED

    details = s3.describe_bucket(client, bucket)
    console.section("Bucket Information")
    print_lines(
        console,
        render_fields(
            details,
            [
                ("Name", lambda d: d.name),
                ("Region", lambda d: d.region),
                ("Versioning", lambda d: d.versioning),
                ("Public Access", lambda d: d.public_access),
                ("Encryption", lambda d: d.encryption),
            ],
        ),
    )

    console.section("Bucket Size")
    count, total = s3.bucket_usage(client, bucket)
    if count == 0:
        console.info("Bucket is empty")
        return EXIT_OK
    console.line(f"  Total Objects:  {count}")
    console.line(f"  Total Size:     {human_size(total)}")

    console.section(f"Objects (up to {limit})")
    objects = s3.list_objects(client, bucket, limit=limit)
    console.success(f"Showing {len(objects)} object(s)")
    print_lines(console, _object_lines(objects))
    return EXIT_OK


def list_buckets_flow(console: Console, aws: AwsContext) -> int:
    """Print every bucket with its creation date."""
    console.header("S3 Buckets")
    require_aws(console, aws)
    buckets = s3.list_buckets(aws.client(s3.SERVICE))
    if not buckets:
        console.info("No buckets found")
        return EXIT_OK
    console.success(f"Found {len(buckets)} bucket(s)")
    print_lines(
        console,
        render_table(
            buckets, [Column("NAME", "Name", 50), Column("CREATED", "CreationDate")]
        ),
    )
    return EXIT_OK


# Backups

DEFAULT_BACKUP_PREFIX = "backups"
_BACKUP_STAMP = "%Y%m%d-%H%M%S"


def backup_key(prefix: str, *parts: str) -> str:
    """Join ``prefix`` and ``parts`` into an object key, dropping empty parts."""
    return "/".join(part for part in (prefix.strip("/"), *parts) if part)


def local_files(source: Path) -> list[tuple[Path, str]]:
    """Return ``(path, relative key)`` for a file or every file under a directory."""
    if source.is_file():
        return [(source, source.name)]
    return [
        (path, path.relative_to(source).as_posix())
        for path in sorted(source.rglob("*"))
        if path.is_file()
    ]


def needs_sync(path: Path, remote: cabc.Mapping[str, typ.Any] | None) -> bool:
    """Return whether a local file differs from its uploaded copy.

    Files not yet uploaded, or whose size or modification time changed,
    need a new upload.
    """
    if remote is None:
        return True
    stat = path.stat()
    if stat.st_size != int(remote.get("Size", -1)):
        return True
    modified = remote.get("LastModified")
    return isinstance(modified, dt.datetime) and stat.st_mtime > modified.timestamp()


def _upload(
    console: Console,
    client: typ.Any,  # noqa: ANN401
    files: cabc.Iterable[tuple[Path, str]],
    bucket: str,
) -> int:
    count = 0
    for path, key in files:
        console.line(f"  upload: {path} -> s3://{bucket}/{key}")
        s3.upload_file(client, str(path), bucket, key)
        count += 1
    return count


def _archive(source: Path, directory: Path, stamp: str) -> Path:
    archive = directory / f"{source.name}-{stamp}.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(source, arcname=source.name)
    return archive


def _sync(
    console: Console,
    client: typ.Any,  # noqa: ANN401
    source: Path,
    bucket: str,
    prefix: str,
) -> None:
    # A single file syncs to <prefix>/<name>; a directory mirrors below it.
    root = backup_key(prefix, "" if source.is_file() else source.name)
    listing = s3.list_objects(client, bucket, f"{root}/" if root else "")
    remote = {obj["Key"]: obj for obj in listing}
    files = local_files(source)
    pending = [
        (path, backup_key(root, relative))
        for path, relative in files
        if needs_sync(path, remote.get(backup_key(root, relative)))
    ]
    uploaded = _upload(console, client, pending, bucket)
    console.info(f"{uploaded} uploaded, {len(files) - uploaded} unchanged")


def backup_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    source: Path,
    bucket: str,
    prefix: str = DEFAULT_BACKUP_PREFIX,
    *,
    compress: bool = False,
    sync: bool = False,
    now: Clock = utc_now,
) -> int:
    """Back up a file or directory to ``s3://bucket/prefix``.

    Plain copies land under ``<name>-<YYYYmmdd-HHMMSS>``. ``compress``
    uploads a single ``tar.gz`` archive instead, and ``sync`` mirrors the
    source under ``<name>/`` uploading only new or changed files.

    Raises
    ------
    ConfigError
        If both ``compress`` and ``sync`` are requested.

    """
    if compress and sync:
        msg = "--compress and --sync cannot be combined"
        raise ConfigError(msg)
    console.header("Backup to S3")
    if not source.exists():
        console.error(f"Source not found: {source}")
        return EXIT_FAILED
    console.info(f"Source: {source}")
    console.info(f"Bucket: s3://{bucket}/{prefix.strip('/')}")
    require_aws(console, aws)
    client = aws.client(s3.SERVICE)
    if not s3.bucket_exists(client, bucket):
        console.error(f"Bucket '{bucket}' not found")
        return EXIT_FAILED

    stamp = now().astimezone(dt.UTC).strftime(_BACKUP_STAMP)
    if compress:
        console.section("Compressing")
        with tempfile.TemporaryDirectory(prefix="opskit-backup-") as workdir:
            archive = _archive(source, Path(workdir), stamp)
            console.success(
                f"Created: {archive.name} ({human_size(archive.stat().st_size)})"
            )
            console.section("Uploading")
            _upload(
                console, client, [(archive, backup_key(prefix, archive.name))], bucket
            )
    elif sync:
        console.section("Syncing")
        _sync(console, client, source, bucket, prefix)
    else:
        console.section("Uploading")
        target = backup_key(prefix, f"{source.name}-{stamp}")
        if source.is_file():
            files = [(source, target)]
        else:
            files = [
                (path, backup_key(target, relative))
                for path, relative in local_files(source)
            ]
        _upload(console, client, files, bucket)

    console.success("Backup completed")
    console.blank()
    console.info(f"List backups: opskit s3 backup {bucket} {prefix} --list")
    return EXIT_OK


def list_backups_flow(
    console: Console,
    aws: AwsContext,
    bucket: str,
    prefix: str = DEFAULT_BACKUP_PREFIX,
) -> int:
    """Print every object under ``s3://bucket/prefix/``."""
    root = backup_key(prefix)
    console.header(f"Backups in s3://{bucket}/{root}")
    require_aws(console, aws)
    client = aws.client(s3.SERVICE)
    objects = s3.list_objects(client, bucket, f"{root}/" if root else "")
    if not objects:
        console.info("No backups found")
        return EXIT_OK
    console.success(f"Found {len(objects)} object(s)")
    print_lines(console, _object_lines(objects))
    return EXIT_OK


# DynamoDB


def item_preview(
    item: dict[str, typ.Any], key_name: str = "id", key_type: str = "N"
) -> str:
    """Return the one-line preview of a sample item.

    Missing attributes are shown as ``N/A``.
    """
    key = get_path(item, f"{key_name}.{key_type}")
    name = get_path(item, "name.S")
    price = get_path(item, "price.N")
    category = get_path(item, "category.S")
    return f"  ID: {key} | Name: {name} | Price: {price} | Category: {category}"


def _insert_samples(  # noqa: PLR0913
    console: Console,
    client: typ.Any,  # noqa: ANN401
    table: str,
    timestamp: str,
    key_name: str,
    key_type: str,
) -> bool:
    items = dynamodb.sample_items(timestamp, key_name=key_name, key_type=key_type)
    console.section(f"Inserting sample data ({len(items)} items)...")
    inserted = 0
    for item in items:
        try:
            dynamodb.put_item(client, table, item)
        except RemoteCallError as exc:
            console.error(f"Failed to insert item: {exc}")
            continue
        inserted += 1
        console.success(f"Inserted item {inserted}/{len(items)}")
    if inserted == len(items):
        console.success("All sample data inserted successfully")
        return True
    console.warning(f"Only {inserted}/{len(items)} items were inserted")
    return False


def _verify_items(
    console: Console,
    client: typ.Any,  # noqa: ANN401
    table: str,
    key_name: str,
    key_type: str,
) -> bool:
    console.section("Verifying inserted data...")
    items = dynamodb.scan_items(client, table)
    if not items:
        console.error("No items found in the table")
        return False
    console.success(f"Found {len(items)} item(s) in the table")
    console.info("Sample data preview:")
    for item in items:
        console.line(item_preview(item, key_name, key_type))
    return True


def create_table_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    table: str,
    environment: str = DEFAULT_ENVIRONMENT,
    *,
    key_name: str = "id",
    key_type: str = "N",
    read_capacity: int = 5,
    write_capacity: int = 5,
    wait_timeout: float = 120,
    wait_interval: float = 5,
    sleep: cabc.Callable[[float], object] = time.sleep,
    now: Clock = utc_now,
) -> int:
    """Ensure ``table`` exists, is active and holds sample items.

    Sample items are inserted only when the table is empty. A table that
    does not become ``ACTIVE`` within ``wait_timeout`` produces a warning and
    the flow carries on.
    """
    console.header(f"Setting Up DynamoDB Table: {table}")
    show_environment(console, environment, aws.region)
    console.info(f"Table Name: {table}")
    require_aws(console, aws)
    client = aws.client(dynamodb.SERVICE)

    def create() -> object:
        console.info(f"Table '{table}' does not exist. Creating...")
        console.info(f"Attribute Name: {key_name} ({key_type})")
        console.info(f"Read Capacity: {read_capacity}")
        console.info(f"Write Capacity: {write_capacity}")
        return dynamodb.create_table(
            client,
            table,
            key_name=key_name,
            key_type=key_type,
            read_capacity=read_capacity,
            write_capacity=write_capacity,
        )

    result = ensure(
        "DynamoDB table",
        table,
        exists=lambda: dynamodb.table_exists(client, table),
        create=create,
    )
    if result.outcome is ProvisionOutcome.CREATED:
        console.success("Table creation initiated")
        console.info("Waiting for table to become active...")
        waited = dynamodb.wait_table_active(
            client,
            table,
            timeout=wait_timeout,
            interval=wait_interval,
            sleep=sleep,
            on_wait=lambda status, elapsed: console.debug(
                f"Table status: {status} ({elapsed:.0f}/{wait_timeout:.0f}s)"
            ),
        )
        if waited.ready:
            console.success("Table is active")
        else:
            console.warning(
                f"Table still {waited.status or 'unavailable'} after "
                f"{waited.elapsed:.0f}s; continuing"
            )
    else:
        console.success(f"Table '{table}' already exists")
        console.info("Checking if table has data...")
        if dynamodb.item_count(client, table) > 0:
            console.success("Table already contains data. Skipping data insertion.")
            return finish(console, EXIT_OK)
        console.info("Table exists but has no data. Inserting sample data...")

    exit_code = EXIT_OK
    timestamp = iso_timestamp(now())
    if not _insert_samples(console, client, table, timestamp, key_name, key_type):
        console.warning("Some data insertion failed")
        exit_code = EXIT_FAILED
    if not _verify_items(console, client, table, key_name, key_type):
        exit_code = EXIT_FAILED
    return finish(console, exit_code)


def _key_label(table: dict[str, typ.Any]) -> str:
    name = get_path(table, "KeySchema.0.AttributeName")
    for definition in table.get("AttributeDefinitions", []):
        if definition.get("AttributeName") == name:
            return f"{name} ({definition.get('AttributeType')})"
    return str(name)


def _item_line(item: dict[str, typ.Any]) -> str:
    parts = [
        f"{key}: {format_scalar(dynamodb.attribute_value(value))}"
        for key, value in item.items()
    ]
    return "  " + " | ".join(parts)


def show_table_flow(
    console: Console,
    aws: AwsContext,
    table: str,
    *,
    limit: int = _ITEM_LIMIT,
) -> int:
    """Print table settings, secondary indexes and the first items."""
    console.header(f"DynamoDB Table: {table}")
    require_aws(console, aws)
    client = aws.client(dynamodb.SERVICE)
    described = dynamodb.describe_table(client, table)
    if described is None:
        console.error(f"Table '{table}' not found")
        return EXIT_FAILED

    info = described.get("Table", {})
    billing = get_path(info, "BillingModeSummary.BillingMode", "PROVISIONED")
    fields: list[tuple[str, str | cabc.Callable[[typ.Any], object]]] = [
        ("Name", "TableName"),
        ("ARN", "TableArn"),
        ("Status", "TableStatus"),
        ("Created", "CreationDateTime"),
        ("Item Count", "ItemCount"),
        ("Size", lambda t: f"{int(t.get('TableSizeBytes', 0)) // 1024} KB"),
        ("Primary Key", _key_label),
        ("Billing Mode", lambda _t: billing),
    ]
    if billing == "PROVISIONED":
        fields.extend(
            [
                ("Read Capacity", "ProvisionedThroughput.ReadCapacityUnits"),
                ("Write Capacity", "ProvisionedThroughput.WriteCapacityUnits"),
            ]
        )
    console.section("Table Information")
    print_lines(console, render_fields(info, fields))

    indexes = info.get("GlobalSecondaryIndexes", [])
    if indexes:
        console.section(f"Global Secondary Indexes ({len(indexes)})")
        for index in indexes:
            keys = ", ".join(
                f"{key['AttributeName']}:{key['KeyType']}"
                for key in index.get("KeySchema", [])
            )
            status = index.get("IndexStatus", PLACEHOLDER)
            console.line(f"  {index.get('IndexName')} - {keys} [{status}]")

    console.section(f"Items (up to {limit})")
    items = dynamodb.scan_items(client, table, limit=limit)
    if not items:
        console.info("No items found")
        return EXIT_OK
    console.success(f"Showing {len(items)} item(s)")
    for item in items:
        console.line(_item_line(item))
    return EXIT_OK


def list_tables_flow(console: Console, aws: AwsContext) -> int:
    """Print every table with its status and item count."""
    console.header("DynamoDB Tables")
    require_aws(console, aws)
    client = aws.client(dynamodb.SERVICE)
    names = dynamodb.list_tables(client)
    if not names:
        console.info("No tables found")
        return EXIT_OK
    console.success(f"Found {len(names)} table(s)")
    rows = []
    for name in names:
        described = dynamodb.describe_table(client, name) or {}
        rows.append(described.get("Table", {"TableName": name}))
    print_lines(
        console,
        render_table(
            rows,
            [
                Column("TABLE", "TableName", 40),
                Column("STATUS", "TableStatus", 10),
                Column("ITEMS", "ItemCount"),
            ],
        ),
    )
    return EXIT_OK
