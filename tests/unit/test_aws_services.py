"""Unit tests for the per-service AWS adapters."""

from __future__ import annotations

import base64
import datetime as dt
import json

import pytest
from boto3.exceptions import S3UploadFailedError

from opskit.aws import cost, dynamodb, ecr, s3, secrets, sqs, ssm
from opskit.errors import RemoteCallError
from tests.fakes import FakeClient, FakeS3, client_error, sequence


class TestS3:
    """Tests for bucket helpers."""

    def test_bucket_exists(self) -> None:
        """A 404 from head_bucket means absent; the bucket is then creatable."""
        client = FakeS3()

        assert s3.bucket_exists(client, "assets") is False
        s3.create_bucket(client, "assets", "eu-west-1")
        assert s3.bucket_exists(client, "assets") is True

    def test_bucket_exists_raises_on_other_errors(self) -> None:
        """Forbidden buckets are an error, not a missing bucket."""
        client = FakeClient({"head_bucket": client_error("403", "HeadBucket")})

        with pytest.raises(RemoteCallError) as excinfo:
            s3.bucket_exists(client, "someone-elses")

        assert excinfo.value.code == "403"

    @pytest.mark.parametrize(
        ("region", "expected"),
        [
            ("us-east-1", None),
            ("ap-northeast-1", {"LocationConstraint": "ap-northeast-1"}),
        ],
    )
    def test_location_constraint(
        self, region: str, expected: dict[str, str] | None
    ) -> None:
        """us-east-1 buckets are created without a location constraint."""
        client = FakeClient()

        s3.create_bucket(client, "assets", region)

        assert client.kwargs_for("create_bucket").get(
            "CreateBucketConfiguration"
        ) == expected

    def test_has_objects_and_usage(self) -> None:
        """Object checks respect the prefix; usage sums sizes."""
        client = FakeS3(buckets={"b": {"raw/a": b"12345", "logs/x": b"1"}})

        assert s3.has_objects(client, "b", "raw/") is True
        assert s3.has_objects(client, "b", "missing/") is False
        assert s3.bucket_usage(client, "b") == (2, 6)

    def test_upload_failure_is_a_remote_error(self) -> None:
        """A failed managed transfer names the file and destination."""
        client = FakeClient({"upload_file": S3UploadFailedError("Access Denied")})

        with pytest.raises(RemoteCallError, match="s3://b/k failed") as excinfo:
            s3.upload_file(client, "archive.tar.gz", "b", "k")

        assert excinfo.value.operation == "upload_file"

    def test_describe_bucket_defaults(self) -> None:
        """Missing optional configuration is reported, not raised."""
        client = FakeClient(
            {
                "get_bucket_location": {"LocationConstraint": None},
                "get_bucket_versioning": {},
                "get_public_access_block": client_error(
                    "NoSuchPublicAccessBlockConfiguration"
                ),
                "get_bucket_encryption": {
                    "ServerSideEncryptionConfiguration": {
                        "Rules": [
                            {
                                "ApplyServerSideEncryptionByDefault": {
                                    "SSEAlgorithm": "AES256"
                                }
                            }
                        ]
                    }
                },
            }
        )

        details = s3.describe_bucket(client, "b")

        assert details.region == "us-east-1"
        assert details.versioning == "Disabled"
        assert details.public_access == "Unknown"
        assert details.encryption == "AES256"


class TestEcr:
    """Tests for repository and image helpers."""

    def test_images_to_delete_keeps_newest(self) -> None:
        """Everything beyond the newest ``keep`` images is selected."""
        images = [{"imageDigest": f"sha256:{n}"} for n in range(5)]

        assert ecr.images_to_delete(images, keep=3) == images[3:]
        assert ecr.images_to_delete(images, keep=10) == []

    def test_images_to_delete_rejects_negative_keep(self) -> None:
        """A negative keep count is a programming error."""
        with pytest.raises(ValueError, match="zero or greater"):
            ecr.images_to_delete([], keep=-1)

    def test_list_images_sorted_newest_first(self) -> None:
        """Images are ordered by push time, untimed images last."""
        january = dt.datetime(2026, 1, 1, tzinfo=dt.UTC)
        march = dt.datetime(2026, 3, 1, tzinfo=dt.UTC)
        old = {"imageDigest": "a", "imagePushedAt": january}
        new = {"imageDigest": "b", "imagePushedAt": march}
        untimed = {"imageDigest": "c"}
        page = {"imageDetails": [old, untimed, new]}
        client = FakeClient({"describe_images": [page]})

        assert [i["imageDigest"] for i in ecr.list_images(client, "web")] == [
            "b",
            "a",
            "c",
        ]

    def test_lifecycle_policy(self) -> None:
        """The policy expires images beyond the configured count."""
        policy = json.loads(ecr.lifecycle_policy(7))
        rule = policy["rules"][0]

        assert rule["selection"]["countNumber"] == 7
        assert rule["selection"]["countType"] == "imageCountMoreThan"
        assert rule["action"] == {"type": "expire"}

    def test_delete_images_batches(self) -> None:
        """Digests are deleted in batches of at most one hundred."""
        images = [{"imageDigest": f"sha256:{n}"} for n in range(150)]
        client = FakeClient(
            {"batch_delete_image": lambda **kw: {"imageIds": kw["imageIds"]}}
        )

        assert ecr.delete_images(client, "web", images) == 150
        batches = [kw["imageIds"] for _, kw in client.calls]
        assert [len(batch) for batch in batches] == [100, 50]

    def test_login_password(self) -> None:
        """The token decodes to ``AWS:<password>``."""
        token = base64.b64encode(b"AWS:s3cr3t:with-colon").decode()
        data = [{"authorizationToken": token}]
        client = FakeClient({"get_authorization_token": {"authorizationData": data}})

        assert ecr.login_password(client) == "s3cr3t:with-colon"

    def test_login_password_without_data(self) -> None:
        """An empty authorization response is an error."""
        client = FakeClient({"get_authorization_token": {"authorizationData": []}})

        with pytest.raises(RemoteCallError, match="no authorization data"):
            ecr.login_password(client)

    def test_registry_url(self) -> None:
        """Registry hosts combine account and region."""
        assert (
            ecr.registry_url("123456789012", "ap-northeast-1")
            == "123456789012.dkr.ecr.ap-northeast-1.amazonaws.com"
        )


class TestCost:
    """Tests for Cost Explorer helpers."""

    @pytest.mark.parametrize(
        ("today", "expected"),
        [
            (dt.date(2026, 5, 1), dt.date(2026, 5, 2)),
            (dt.date(2026, 5, 17), dt.date(2026, 5, 17)),
        ],
    )
    def test_query_end(self, today: dt.date, expected: dt.date) -> None:
        """The first of the month widens the period by one day."""
        assert cost.query_end(today) == expected

    def test_next_month_start_wraps_year(self) -> None:
        """December rolls over into January."""
        assert cost.next_month_start(dt.date(2026, 12, 9)) == dt.date(2027, 1, 1)

    def test_costs_by_service_sorted_with_full_total(self) -> None:
        """Rows are sorted descending; the total includes trimmed rows."""

        def group(name: str, amount: str) -> dict[str, object]:
            return {
                "Keys": [name],
                "Metrics": {"BlendedCost": {"Amount": amount, "Unit": "USD"}},
            }

        client = FakeClient(
            {
                "get_cost_and_usage": {
                    "ResultsByTime": [
                        {
                            "Groups": [
                                group("S3", "1.5"),
                                group("EC2", "10"),
                                group("Lambda", "0.5"),
                            ]
                        }
                    ]
                }
            }
        )

        rows, total = cost.costs_by_service(client, dt.date(2026, 5, 17), top=2)

        assert [row.label for row in rows] == ["EC2", "S3"]
        assert total == pytest.approx(12.0)

    def test_forecast_unavailable(self) -> None:
        """Accounts without history get no forecast instead of an error."""
        client = FakeClient(
            {"get_cost_forecast": client_error("DataUnavailableException")}
        )

        assert cost.forecast(client, dt.date(2026, 5, 17)) is None

    def test_forecast_bounds(self) -> None:
        """Prediction intervals are parsed when present."""
        client = FakeClient(
            {
                "get_cost_forecast": {
                    "Total": {"Amount": "42.5", "Unit": "USD"},
                    "ForecastResultsByTime": [
                        {
                            "PredictionIntervalLowerBound": "40",
                            "PredictionIntervalUpperBound": "45",
                        }
                    ],
                }
            }
        )

        result = cost.forecast(client, dt.date(2026, 5, 17))

        assert result is not None
        assert result.amount == pytest.approx(42.5)
        assert (result.lower, result.upper) == (40.0, 45.0)
        assert result.end == dt.date(2026, 6, 1)


class TestSqs:
    """Tests for queue helpers."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("jobs", "jobs.fifo"), ("jobs.fifo", "jobs.fifo")],
    )
    def test_fifo_name(self, name: str, expected: str) -> None:
        """The suffix is appended once."""
        assert sqs.fifo_name(name) == expected

    def test_queue_url_missing(self) -> None:
        """A missing queue has no URL."""
        client = FakeClient(
            {"get_queue_url": client_error("AWS.SimpleQueueService.NonExistentQueue")}
        )

        assert sqs.queue_url(client, "jobs") is None

    def test_create_fifo_queue_attributes(self) -> None:
        """FIFO queues enable content-based deduplication."""
        client = FakeClient({"create_queue": {"QueueUrl": "https://sqs/1/jobs.fifo"}})

        url = sqs.create_queue(client, "jobs.fifo", fifo=True)

        assert url == "https://sqs/1/jobs.fifo"
        assert client.kwargs_for("create_queue")["Attributes"] == {
            "FifoQueue": "true",
            "ContentBasedDeduplication": "true",
        }

    def test_queue_name_from_url(self) -> None:
        """The name is the last path segment."""
        assert sqs.queue_name_from_url("https://sqs.example/1234/jobs/") == "jobs"


class TestSecrets:
    """Tests for secret previews and deletion."""

    def test_preview_of_json_object(self) -> None:
        """At most three keys are listed with masked values."""
        value = json.dumps({"a": 1, "b": 2, "c": 3, "d": 4})

        assert secrets.preview_lines(value) == ["a: ****", "b: ****", "c: ****"]

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("short", "****"),
            ("a-long-api-key-value", "a-lo****alue"),
            ("[1, 2, 3]", "[1, ****, 3]"),
        ],
    )
    def test_preview_of_plain_values(self, value: str, expected: str) -> None:
        """Scalars and arrays are masked as plain strings."""
        assert secrets.preview_lines(value) == [expected]

    def test_parse_json_object(self) -> None:
        """Only objects count as JSON secrets."""
        assert secrets.parse_json_object('{"k": "v"}') == {"k": "v"}
        assert secrets.parse_json_object('"text"') is None
        assert secrets.parse_json_object("not json") is None

    @pytest.mark.parametrize(
        ("force", "expected"),
        [
            (False, {"SecretId": "api", "RecoveryWindowInDays": 30}),
            (True, {"SecretId": "api", "ForceDeleteWithoutRecovery": True}),
        ],
    )
    def test_delete_secret(self, *, force: bool, expected: dict[str, object]) -> None:
        """Forced deletion skips the recovery window."""
        client = FakeClient()

        secrets.delete_secret(client, "api", force=force)

        assert client.kwargs_for("delete_secret") == expected


class TestSsm:
    """Tests for Parameter Store helpers."""

    def test_put_parameter_rejects_unknown_type(self) -> None:
        """Only Parameter Store types are accepted."""
        with pytest.raises(ValueError, match="SecureString"):
            ssm.put_parameter(FakeClient(), "/app/key", "v", parameter_type="Secret")

    def test_put_parameter_returns_version(self) -> None:
        """The new version number is returned."""
        client = FakeClient({"put_parameter": {"Version": 4}})

        version = ssm.put_parameter(
            client, "/app/key", "v", parameter_type="SecureString", description="d"
        )

        assert version == 4
        assert client.kwargs_for("put_parameter")["Description"] == "d"

    def test_get_missing_parameter(self) -> None:
        """A missing parameter is ``None``."""
        client = FakeClient({"get_parameter": client_error("ParameterNotFound")})

        assert ssm.get_parameter(client, "/nope") is None
        assert ssm.parameter_exists(client, "/nope") is False


class TestDynamoDb:
    """Tests for table helpers."""

    def test_item_count_follows_pages(self) -> None:
        """Counting scans continue until no page key is returned."""
        client = FakeClient(
            {
                "scan": sequence(
                    {"Count": 3, "LastEvaluatedKey": {"id": {"N": "3"}}},
                    {"Count": 2},
                )
            }
        )

        assert dynamodb.item_count(client, "orders") == 5
        assert client.calls[1][1]["ExclusiveStartKey"] == {"id": {"N": "3"}}

    @pytest.mark.parametrize(
        ("value", "expected"),
        [({"S": "abc"}, "abc"), ({"N": "12"}, "12"), ({}, None), (None, None)],
    )
    def test_attribute_value(
        self, value: dict[str, str] | None, expected: object
    ) -> None:
        """Attribute values unwrap to their single payload."""
        assert dynamodb.attribute_value(value) == expected

    def test_wait_table_active(self) -> None:
        """The table is polled until it reports ACTIVE."""
        client = FakeClient(
            {
                "describe_table": sequence(
                    {"Table": {"TableStatus": "CREATING"}},
                    {"Table": {"TableStatus": "ACTIVE"}},
                )
            }
        )
        sleeps: list[float] = []

        result = dynamodb.wait_table_active(
            client, "orders", timeout=30, interval=5, sleep=sleeps.append
        )

        assert result.ready
        assert sleeps == [5]

    def test_sample_items(self) -> None:
        """Three products are seeded using the table's key."""
        items = dynamodb.sample_items("2026-01-01", key_name="sku", key_type="S")

        assert [item["sku"] for item in items] == [{"S": "1"}, {"S": "2"}, {"S": "3"}]
        assert items[2]["category"] == {"S": "premium"}
