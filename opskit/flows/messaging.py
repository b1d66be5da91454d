"""SQS queue and SNS topic flows."""

from __future__ import annotations

import typing as typ

from opskit.aws import sns, sqs
from opskit.flows.common import EXIT_FAILED, EXIT_OK, print_lines, require_aws
from opskit.formatting import Column, render_fields, render_table
from opskit.provisioning import ProvisionOutcome, ensure

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console


# SQS


def create_queue_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    queue: str,
    *,
    fifo: bool = False,
    visibility_timeout: int = sqs.DEFAULT_VISIBILITY_TIMEOUT_S,
    retention: int = sqs.DEFAULT_RETENTION_S,
) -> int:
    """Ensure a standard or FIFO queue exists and print its URL.

    FIFO queue names gain the ``.fifo`` suffix when it is missing.
    """
    name = sqs.fifo_name(queue) if fifo else queue
    console.header(f"Create SQS Queue: {name}")
    require_aws(console, aws)
    client = aws.client(sqs.SERVICE)

    def create() -> str:
        console.section("Creating Queue")
        console.info(f"Type: {'FIFO' if fifo else 'Standard'}")
        return sqs.create_queue(
            client,
            name,
            fifo=fifo,
            visibility_timeout=visibility_timeout,
            retention=retention,
        )

    result = ensure(
        "SQS queue",
        name,
        exists=lambda: sqs.queue_exists(client, name),
        create=create,
    )
    if result.outcome is ProvisionOutcome.CREATED:
        url = str(result.value)
        console.success("Queue created")
    else:
        url = sqs.queue_url(client, name) or ""
        console.warning(f"Queue '{name}' already exists")
    console.section("Queue Information")
    console.line(f"  Name: {name}")
    console.line(f"  URL:  {url}")
    return EXIT_OK


def show_queue_flow(console: Console, aws: AwsContext, queue: str) -> int:
    """Print queue message counts and configuration."""
    console.header(f"SQS Queue: {queue}")
    require_aws(console, aws)
    client = aws.client(sqs.SERVICE)
    url = sqs.queue_url(client, queue)
    if url is None:
        console.error(f"Queue '{queue}' not found")
        return EXIT_FAILED
    attrs = sqs.queue_attributes(client, url)

    console.section("Queue Details")
    print_lines(
        console,
        render_fields(
            attrs,
            [("Name", lambda _a: queue), ("URL", lambda _a: url), ("ARN", "QueueArn")],
            label_width=6,
        ),
    )
    console.section("Messages")
    print_lines(
        console,
        render_fields(
            attrs,
            [
                ("Available", "ApproximateNumberOfMessages"),
                ("In-flight", "ApproximateNumberOfMessagesNotVisible"),
                ("Delayed", "ApproximateNumberOfMessagesDelayed"),
            ],
            label_width=12,
        ),
    )
    console.section("Configuration")
    print_lines(
        console,
        render_fields(
            attrs,
            [
                ("Visibility Timeout", lambda a: f"{a.get('VisibilityTimeout')}s"),
                ("Message Retention", lambda a: f"{a.get('MessageRetentionPeriod')}s"),
                (
                    "Max Message Size",
                    lambda a: f"{a.get('MaximumMessageSize')} bytes",
                ),
                ("Delay Seconds", lambda a: f"{a.get('DelaySeconds')}s"),
            ],
            label_width=20,
        ),
    )
    if attrs.get("FifoQueue") == "true":
        console.section("FIFO Settings")
        print_lines(
            console,
            render_fields(
                attrs,
                [
                    ("Content Deduplication", "ContentBasedDeduplication"),
                    (
                        "Deduplication Scope",
                        lambda a: a.get("DeduplicationScope") or "queue",
                    ),
                ],
                label_width=23,
            ),
        )
    return EXIT_OK


def list_queues_flow(console: Console, aws: AwsContext) -> int:
    """Print every queue with its visible and in-flight message counts."""
    console.header("SQS Queues")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    client = aws.client(sqs.SERVICE)
    urls = sqs.list_queues(client)
    if not urls:
        console.info("No queues found")
        return EXIT_OK
    rows = []
    for url in urls:
        attrs = sqs.queue_attributes(client, url)
        rows.append({"Name": sqs.queue_name_from_url(url), **attrs})
    print_lines(
        console,
        render_table(
            rows,
            [
                Column("QUEUE", "Name", 35),
                Column("MESSAGES", "ApproximateNumberOfMessages", 10),
                Column("IN-FLIGHT", "ApproximateNumberOfMessagesNotVisible"),
            ],
        ),
    )
    return EXIT_OK


# SNS


def create_topic_flow(
    console: Console,
    aws: AwsContext,
    topic: str,
    *,
    subscribe: str | None = None,
) -> int:
    """Ensure ``topic`` exists, optionally subscribing an email address."""
    console.header(f"Create SNS Topic: {topic}")
    require_aws(console, aws)
    client = aws.client(sns.SERVICE)
    result = ensure(
        "SNS topic",
        topic,
        exists=lambda: sns.topic_exists(client, topic),
        create=lambda: sns.create_topic(client, topic),
    )
    if result.outcome is ProvisionOutcome.CREATED:
        arn = str(result.value)
        console.success("Topic created")
    else:
        arn = sns.topic_arn(client, topic) or ""
        console.warning(f"Topic '{topic}' already exists")
    console.section("Topic Information")
    console.line(f"  Name: {topic}")
    console.line(f"  ARN:  {arn}")
    if subscribe:
        console.section("Adding Subscription")
        sns.subscribe_email(client, arn, subscribe)
        console.success("Subscription pending confirmation")
        console.info(f"Check {subscribe} for confirmation")
    return EXIT_OK


def show_topic_flow(console: Console, aws: AwsContext, topic: str) -> int:
    """Print topic owner, subscriptions and delivery status counts."""
    console.header(f"SNS Topic: {topic}")
    require_aws(console, aws)
    client = aws.client(sns.SERVICE)
    arn = sns.topic_arn(client, topic)
    if arn is None:
        console.error(f"Topic '{topic}' not found or access denied")
        return EXIT_FAILED
    attrs = sns.topic_attributes(client, arn)
    console.section("Topic Details")
    console.line(f"  Name:  {topic}")
    console.line(f"  ARN:   {arn}")
    console.line(f"  Owner: {attrs.get('Owner', 'N/A')}")

    console.section("Subscriptions")
    subscriptions = sns.list_subscriptions(client, arn)
    if subscriptions:
        print_lines(
            console,
            render_table(
                subscriptions,
                [Column("PROTOCOL", "Protocol", 10), Column("ENDPOINT", "Endpoint")],
            ),
        )
    else:
        console.info("No subscriptions")

    console.section("Delivery Status")
    print_lines(
        console,
        render_fields(
            attrs,
            [
                ("Confirmed", "SubscriptionsConfirmed"),
                ("Pending", "SubscriptionsPending"),
                ("Deleted", "SubscriptionsDeleted"),
            ],
            label_width=11,
        ),
    )
    return EXIT_OK


def list_topics_flow(console: Console, aws: AwsContext) -> int:
    """Print every topic name and ARN."""
    console.header("SNS Topics")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    arns = sns.list_topics(aws.client(sns.SERVICE))
    if not arns:
        console.info("No topics found")
        return EXIT_OK
    rows = [{"Name": sns.topic_name(arn), "TopicArn": arn} for arn in arns]
    print_lines(
        console,
        render_table(
            rows, [Column("TOPIC NAME", "Name", 40), Column("ARN", "TopicArn")]
        ),
    )
    return EXIT_OK
