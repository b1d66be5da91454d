"""Unit tests for the S3 bucket, S3 backup and DynamoDB table flows."""

from __future__ import annotations

import datetime as dt
import io
import tarfile
import typing as typ

import pytest

from opskit.errors import ConfigError
from opskit.flows import storage
from tests.fakes import FakeClient, FakeS3, client_error, sequence

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from opskit.aws import AwsContext
    from tests.conftest import ConsoleCapture

FIXED_NOW = dt.datetime(2026, 1, 2, 3, 4, 5, tzinfo=dt.UTC)


def _now() -> dt.datetime:
    return FIXED_NOW


class TestCreateBucketFlow:
    """Tests for bucket provisioning."""

    def test_new_bucket_gets_samples(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """A fresh bucket is locked down and seeded with three objects."""
        fake = FakeS3()

        code = storage.create_bucket_flow(
            capture.console, make_aws(s3=fake), "assets", now=_now
        )

        assert code == 0
        assert sorted(fake.buckets["assets"]) == [
            "sample/config.json",
            "sample/data.csv",
            "sample/hello.txt",
        ]
        assert "put_public_access_block" in fake.calls
        assert "put_bucket_versioning" in fake.calls
        assert "[OK] Found 3 file(s) in the bucket" in capture.stdout
        hello = fake.buckets["assets"]["sample/hello.txt"].decode()
        assert "Created at: 2026-01-02T03:04:05Z" in hello

    def test_second_run_changes_nothing(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """Re-running against a seeded bucket creates and uploads nothing."""
        fake = FakeS3()
        aws = make_aws(s3=fake)
        storage.create_bucket_flow(capture.console, aws, "assets", now=_now)
        fake.calls.clear()

        code = storage.create_bucket_flow(capture.console, aws, "assets", now=_now)

        assert code == 0
        assert "create_bucket" not in fake.calls
        assert "put_object" not in fake.calls
        assert "Sample files already exist. Skipping upload." in capture.stdout

    def test_existing_empty_bucket_is_seeded(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """An existing bucket without samples is seeded but not reconfigured."""
        fake = FakeS3(buckets={"assets": {"other/file": b"x"}})

        code = storage.create_bucket_flow(
            capture.console, make_aws(s3=fake), "assets", now=_now
        )

        assert code == 0
        assert "put_bucket_versioning" not in fake.calls
        assert fake.calls.count("put_object") == 3
        assert "Bucket exists but has no sample files" in capture.stdout


def test_sample_files_content() -> None:
    """Sample objects carry the bucket, environment and timestamp."""
    files = storage.sample_files("assets", "staging", "2026-01-02T03:04:05Z")

    keys = [key for key, _, _ in files]
    assert keys == ["sample/hello.txt", "sample/config.json", "sample/data.csv"]
    csv_body = files[2][1]
    assert csv_body.splitlines()[1] == "1,item_a,100,2026-01-02T03:04:05Z"
    assert '"environment": "staging"' in files[1][1]


def test_show_missing_bucket(
    capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
) -> None:
    """Showing an unknown bucket fails with an error line."""
    code = storage.show_bucket_flow(capture.console, make_aws(s3=FakeS3()), "nope")

    assert code == 1
    assert capture.stderr == "[ERROR] Bucket 'nope' not found\n"


def test_list_buckets_empty(
    capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
) -> None:
    """An account without buckets says so."""
    client = FakeClient({"list_buckets": {"Buckets": []}})

    assert storage.list_buckets_flow(capture.console, make_aws(s3=client)) == 0
    assert "[INFO] No buckets found" in capture.stdout


def _source_tree(root: Path) -> Path:
    source = root / "data"
    (source / "nested").mkdir(parents=True)
    (source / "a.txt").write_text("alpha", encoding="utf-8")
    (source / "nested" / "b.txt").write_text("beta", encoding="utf-8")
    return source


class TestBackupFlow:
    """Tests for backing up local files to S3."""

    def test_directory_copied_under_timestamp(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """Every file lands under ``<prefix>/<name>-<stamp>/``."""
        fake = FakeS3(buckets={"vault": {}})

        code = storage.backup_flow(
            capture.console,
            make_aws(s3=fake),
            _source_tree(tmp_path),
            "vault",
            now=_now,
        )

        assert code == 0
        assert sorted(fake.buckets["vault"]) == [
            "backups/data-20260102-030405/a.txt",
            "backups/data-20260102-030405/nested/b.txt",
        ]
        assert "[OK] Backup completed" in capture.stdout
        assert "opskit s3 backup vault backups --list" in capture.stdout

    def test_single_file_copied(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """A file becomes one timestamped object under a custom prefix."""
        dump = tmp_path / "db.sql"
        dump.write_text("select 1;", encoding="utf-8")
        fake = FakeS3(buckets={"vault": {}})

        storage.backup_flow(
            capture.console, make_aws(s3=fake), dump, "vault", "/nightly/", now=_now
        )

        assert fake.buckets["vault"] == {"nightly/db.sql-20260102-030405": b"select 1;"}

    def test_compressed_archive(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """Compression uploads a single tar.gz rooted at the source name."""
        fake = FakeS3(buckets={"vault": {}})

        code = storage.backup_flow(
            capture.console,
            make_aws(s3=fake),
            _source_tree(tmp_path),
            "vault",
            compress=True,
            now=_now,
        )

        assert code == 0
        body = fake.buckets["vault"]["backups/data-20260102-030405.tar.gz"]
        with tarfile.open(fileobj=io.BytesIO(body), mode="r:gz") as archive:
            names = sorted(archive.getnames())
        assert "data/a.txt" in names
        assert "data/nested/b.txt" in names
        assert "[OK] Created: data-20260102-030405.tar.gz" in capture.stdout

    def test_sync_skips_unchanged_files(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """Sync uploads new and resized files only."""
        source = _source_tree(tmp_path)
        (source / "c.txt").write_text("gamma", encoding="utf-8")
        fake = FakeS3(
            buckets={
                "vault": {
                    "backups/data/a.txt": b"alpha",
                    "backups/data/c.txt": b"old",
                }
            },
            modified={
                "backups/data/a.txt": dt.datetime(2100, 1, 1, tzinfo=dt.UTC),
                "backups/data/c.txt": dt.datetime(2100, 1, 1, tzinfo=dt.UTC),
            },
        )

        code = storage.backup_flow(
            capture.console, make_aws(s3=fake), source, "vault", sync=True, now=_now
        )

        assert code == 0
        assert fake.calls.count("upload_file") == 2
        assert fake.buckets["vault"]["backups/data/c.txt"] == b"gamma"
        assert fake.buckets["vault"]["backups/data/nested/b.txt"] == b"beta"
        assert "[INFO] 2 uploaded, 1 unchanged" in capture.stdout

    def test_missing_source(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """A missing source fails before S3 is touched."""
        fake = FakeS3(buckets={"vault": {}})

        code = storage.backup_flow(
            capture.console, make_aws(s3=fake), tmp_path / "gone", "vault"
        )

        assert code == 1
        assert f"[ERROR] Source not found: {tmp_path / 'gone'}" in capture.stderr
        assert fake.calls == []

    def test_missing_bucket(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """An unknown bucket fails without uploading."""
        fake = FakeS3()

        code = storage.backup_flow(
            capture.console, make_aws(s3=fake), _source_tree(tmp_path), "vault"
        )

        assert code == 1
        assert "[ERROR] Bucket 'vault' not found" in capture.stderr
        assert "upload_file" not in fake.calls

    def test_compress_and_sync_rejected(
        self,
        capture: ConsoleCapture,
        make_aws: cabc.Callable[..., AwsContext],
        tmp_path: Path,
    ) -> None:
        """Only one transfer mode may be chosen."""
        with pytest.raises(ConfigError, match="cannot be combined"):
            storage.backup_flow(
                capture.console,
                make_aws(s3=FakeS3()),
                tmp_path,
                "vault",
                compress=True,
                sync=True,
            )


def test_needs_sync_compares_size_and_time(tmp_path: Path) -> None:
    """Files changed after the upload, or resized, need syncing."""
    path = tmp_path / "a.txt"
    path.write_text("alpha", encoding="utf-8")
    old = dt.datetime(2000, 1, 1, tzinfo=dt.UTC)
    future = dt.datetime(2100, 1, 1, tzinfo=dt.UTC)

    assert storage.needs_sync(path, None)
    assert storage.needs_sync(path, {"Size": 5, "LastModified": old})
    assert storage.needs_sync(path, {"Size": 4, "LastModified": future})
    assert not storage.needs_sync(path, {"Size": 5, "LastModified": future})


def test_list_backups_under_prefix(
    capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
) -> None:
    """Only objects under the backup prefix are listed."""
    fake = FakeS3(
        buckets={
            "vault": {
                "backups/data-20260102-030405.tar.gz": b"x" * 10,
                "backups-old/stale.tar.gz": b"x",
                "logs/app.log": b"x",
            }
        }
    )

    code = storage.list_backups_flow(capture.console, make_aws(s3=fake), "vault")

    assert code == 0
    assert "[OK] Found 1 object(s)" in capture.stdout
    assert "backups/data-20260102-030405.tar.gz" in capture.stdout
    assert "stale.tar.gz" not in capture.stdout


def _scan(items: list[dict[str, object]]) -> dict[str, object]:
    return {"Items": items, "Count": len(items)}


class TestCreateTableFlow:
    """Tests for table provisioning."""

    def test_new_table_waits_and_seeds(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """A created table is polled until active, then seeded and verified."""
        items = [
            {
                "id": {"N": "1"},
                "name": {"S": "Sample Product 1"},
                "price": {"N": "100"},
            }
        ]
        client = FakeClient(
            {
                "describe_table": sequence(
                    client_error("ResourceNotFoundException"),
                    {"Table": {"TableStatus": "CREATING"}},
                    {"Table": {"TableStatus": "ACTIVE"}},
                ),
                "scan": _scan(items),
            }
        )
        sleeps: list[float] = []

        code = storage.create_table_flow(
            capture.console,
            make_aws(dynamodb=client),
            "orders",
            sleep=sleeps.append,
            now=_now,
        )

        assert code == 0
        assert sleeps == [5]
        assert client.operations().count("put_item") == 3
        assert "[OK] Table is active" in capture.stdout
        assert (
            "  ID: 1 | Name: Sample Product 1 | Price: 100 | Category: N/A"
            in capture.stdout
        )

    def test_slow_table_warns_and_continues(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """A table that never activates produces a warning, not a failure."""
        client = FakeClient(
            {
                "describe_table": sequence(
                    client_error("ResourceNotFoundException"),
                    {"Table": {"TableStatus": "CREATING"}},
                ),
                "scan": _scan([{"id": {"N": "1"}}]),
            }
        )

        code = storage.create_table_flow(
            capture.console,
            make_aws(dynamodb=client),
            "orders",
            wait_timeout=10,
            sleep=lambda _seconds: None,
            now=_now,
        )

        assert code == 0
        assert "[WARN] Table still CREATING after 10s; continuing" in capture.stdout

    def test_table_with_data_is_left_alone(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """An existing non-empty table is not written to."""
        client = FakeClient(
            {
                "describe_table": {"Table": {"TableStatus": "ACTIVE"}},
                "scan": {"Count": 7},
            }
        )

        code = storage.create_table_flow(
            capture.console, make_aws(dynamodb=client), "orders", now=_now
        )

        assert code == 0
        assert "create_table" not in client.operations()
        assert "put_item" not in client.operations()
        assert "Skipping data insertion" in capture.stdout

    def test_failed_inserts_exit_nonzero(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """Per-item failures are reported and turn the exit status to 1."""
        client = FakeClient(
            {
                "describe_table": {"Table": {"TableStatus": "ACTIVE"}},
                "scan": sequence({"Count": 0}, _scan([{"id": {"N": "2"}}])),
                "put_item": sequence(
                    client_error("ProvisionedThroughputExceededException"), {}
                ),
            }
        )

        code = storage.create_table_flow(
            capture.console, make_aws(dynamodb=client), "orders", now=_now
        )

        assert code == 1
        assert "Only 2/3 items were inserted" in capture.stdout
        assert "Failed to insert item" in capture.stderr


def test_item_preview_placeholders() -> None:
    """Missing attributes are shown as N/A."""
    assert storage.item_preview({"id": {"N": "4"}}) == (
        "  ID: 4 | Name: N/A | Price: N/A | Category: N/A"
    )
