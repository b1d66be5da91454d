"""SNS topic operations."""

from __future__ import annotations

import typing as typ

from opskit.aws.session import call, paginate

SERVICE = "sns"


def list_topics(client: typ.Any) -> list[str]:  # noqa: ANN401
    """Return every topic ARN in the region."""
    topics = paginate(client, SERVICE, "list_topics", "Topics")
    return [topic["TopicArn"] for topic in topics]


def topic_name(arn: str) -> str:
    """Return the topic name, the final ARN segment."""
    return arn.rsplit(":", 1)[-1]


def topic_arn(client: typ.Any, name: str) -> str | None:  # noqa: ANN401
    """Return the ARN of topic ``name``, or ``None`` when absent.

    Matching is on the final ARN segment, so ``orders`` never matches
    ``orders-dlq``.
    """
    for arn in list_topics(client):
        if arn.endswith(f":{name}"):
            return arn
    return None


def topic_exists(client: typ.Any, name: str) -> bool:  # noqa: ANN401
    """Return whether topic ``name`` exists."""
    return topic_arn(client, name) is not None


def create_topic(client: typ.Any, name: str) -> str:  # noqa: ANN401
    """Create topic ``name`` and return its ARN."""
    return str(call(client, SERVICE, "create_topic", Name=name)["TopicArn"])


def topic_attributes(client: typ.Any, arn: str) -> dict[str, str]:  # noqa: ANN401
    """Return the attributes of topic ``arn``."""
    return call(client, SERVICE, "get_topic_attributes", TopicArn=arn).get(
        "Attributes", {}
    )


def list_subscriptions(client: typ.Any, arn: str) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return the subscriptions of topic ``arn``."""
    return list(
        paginate(
            client,
            SERVICE,
            "list_subscriptions_by_topic",
            "Subscriptions",
            TopicArn=arn,
        )
    )


def subscribe_email(client: typ.Any, arn: str, email: str) -> str:  # noqa: ANN401
    """Subscribe ``email`` to topic ``arn`` and return the subscription ARN.

    The ARN reads ``pending confirmation`` until the recipient confirms.
    """
    response = call(
        client,
        SERVICE,
        "subscribe",
        TopicArn=arn,
        Protocol="email",
        Endpoint=email,
        ReturnSubscriptionArn=False,
    )
    return str(response.get("SubscriptionArn", ""))
