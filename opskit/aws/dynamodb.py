"""DynamoDB table operations."""

from __future__ import annotations

import collections.abc as cabc
import time
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, is_not_found, paginate
from opskit.errors import RemoteCallError
from opskit.polling import PollResult, poll_until

SERVICE = "dynamodb"
ACTIVE = "ACTIVE"


def describe_table(client: typ.Any, table: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return the ``describe_table`` response, or ``None`` when absent."""
    try:
        return client.describe_table(TableName=table)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(SERVICE, "describe_table", exc) from exc


def table_exists(client: typ.Any, table: str) -> bool:  # noqa: ANN401
    """Return whether ``table`` exists."""
    return describe_table(client, table) is not None


def create_table(  # noqa: PLR0913
    client: typ.Any,  # noqa: ANN401
    table: str,
    *,
    key_name: str = "id",
    key_type: str = "N",
    read_capacity: int = 5,
    write_capacity: int = 5,
) -> dict[str, typ.Any]:
    """Create a provisioned-throughput table with a single hash key."""
    return call(
        client,
        SERVICE,
        "create_table",
        TableName=table,
        AttributeDefinitions=[{"AttributeName": key_name, "AttributeType": key_type}],
        KeySchema=[{"AttributeName": key_name, "KeyType": "HASH"}],
        ProvisionedThroughput={
            "ReadCapacityUnits": read_capacity,
            "WriteCapacityUnits": write_capacity,
        },
    )


def table_status(client: typ.Any, table: str) -> str | None:  # noqa: ANN401
    """Return the table status, or ``None`` while it is not visible yet."""
    description = describe_table(client, table)
    if description is None:
        return None
    return description.get("Table", {}).get("TableStatus")


def wait_table_active(  # noqa: PLR0913
    client: typ.Any,  # noqa: ANN401
    table: str,
    *,
    timeout: float = 120,
    interval: float = 5,
    sleep: cabc.Callable[[float], object] = time.sleep,
    on_wait: cabc.Callable[[str | None, float], None] | None = None,
) -> PollResult:
    """Poll until the table reports ``ACTIVE`` or ``timeout`` elapses."""
    return poll_until(
        lambda: table_status(client, table),
        {ACTIVE},
        timeout=timeout,
        interval=interval,
        sleep=sleep,
        on_wait=on_wait,
    )


def item_count(client: typ.Any, table: str) -> int:  # noqa: ANN401
    """Count items with a ``COUNT`` scan (the described count lags writes)."""
    total = 0
    kwargs: dict[str, object] = {"TableName": table, "Select": "COUNT"}
    while True:
        response = call(client, SERVICE, "scan", **kwargs)
        total += int(response.get("Count", 0))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return total
        kwargs["ExclusiveStartKey"] = last_key


def put_item(client: typ.Any, table: str, item: dict[str, typ.Any]) -> None:  # noqa: ANN401
    """Write one item in DynamoDB attribute-value format."""
    call(client, SERVICE, "put_item", TableName=table, Item=item)


def scan_items(
    client: typ.Any,  # noqa: ANN401
    table: str,
    limit: int | None = None,
) -> list[dict[str, typ.Any]]:
    """Return up to ``limit`` items from a single scan page."""
    kwargs: dict[str, object] = {"TableName": table}
    if limit is not None:
        kwargs["Limit"] = limit
    return call(client, SERVICE, "scan", **kwargs).get("Items", [])


def list_tables(client: typ.Any) -> list[str]:  # noqa: ANN401
    """Return every table name in the region."""
    return list(paginate(client, SERVICE, "list_tables", "TableNames"))


def attribute_value(value: cabc.Mapping[str, typ.Any] | None) -> object:
    """Unwrap a DynamoDB attribute value such as ``{"S": "abc"}``.

    ``None`` and empty mappings unwrap to ``None``.
    """
    if not value:
        return None
    return next(iter(value.values()))


def sample_items(
    timestamp: str, *, key_name: str = "id", key_type: str = "N"
) -> list[dict[str, dict[str, str]]]:
    """Build the three sample products seeded into an empty table."""
    tiers = ("basic", "standard", "premium")
    return [
        {
            key_name: {key_type: str(number)},
            "name": {"S": f"Sample Product {number}"},
            "price": {"N": str(number * 100)},
            "description": {"S": f"This is a sample product {number}"},
            "category": {"S": tier},
            "created_at": {"S": timestamp},
        }
        for number, tier in enumerate(tiers, start=1)
    ]
