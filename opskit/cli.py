"""Command-line entry point for opskit.

Usage:
    opskit s3 create my-bucket dev
    opskit dynamodb show my-table
    opskit kind create
    opskit health https://example.com --k8s --aws

Each area is a cyclopts sub-app. Commands build a :class:`Runtime` from the
environment, hand it to the matching flow and return the flow's exit code.
Errors derived from :class:`~opskit.errors.OpsKitError` are reported on the
console and turned into their exit code.

Environment variables:
    AWS_REGION / AWS_DEFAULT_REGION - Region (default: ap-northeast-1)
    AWS_PROFILE                     - Named AWS profile
    DEBUG                           - Enable debug output
    OPSKIT_LOG_LEVEL                - femtologging level
    OPSKIT_POLL_INTERVAL            - Seconds between readiness checks
    OPSKIT_POLL_TIMEOUT             - Seconds before a readiness wait gives up
    NO_COLOR                        - Disable ANSI colours
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import sys
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter, validators

from opskit import __version__
from opskit.aws import AwsContext, ecr, lambdas, sqs
from opskit.config import Settings
from opskit.console import Console
from opskit.errors import ConfigError, OpsKitError, PrerequisiteError
from opskit.flows import (
    clusters,
    cost,
    functions,
    health,
    identity,
    messaging,
    registry,
    secrets,
    storage,
    streams,
    workloads,
)
from opskit.k8s import kind, kubectl
from opskit.logging import configure_logging, get_logger, log_debug, log_warning

logger = get_logger(__name__)

PositiveInt = typ.Annotated[int, Parameter(validator=validators.Number(gt=0))]

app = App(
    name="opskit",
    help="Idempotent provisioning and inspection for AWS and Kubernetes",
    version=__version__,
)


@dataclasses.dataclass(frozen=True, slots=True)
class Runtime:
    """Everything a command needs to run a flow."""

    settings: Settings
    console: Console
    aws: AwsContext


def build_runtime(*, assume_yes: bool = False) -> Runtime:
    """Resolve settings, configure logging and build the console and AWS context.

    Raises
    ------
    ConfigError
        If an environment variable holds an invalid value.

    """
    settings = Settings.from_env()
    normalized, invalid = configure_logging(settings.log_level, force=True)
    if invalid:
        log_warning(
            logger,
            "Invalid OPSKIT_LOG_LEVEL %r, falling back to %s",
            settings.log_level,
            normalized,
        )
    console = Console(
        color=settings.color,
        debug_enabled=settings.debug,
        assume_yes=assume_yes,
    )
    return Runtime(settings, console, AwsContext.from_settings(settings))


def report_error(console: Console, exc: OpsKitError) -> int:
    """Print ``exc`` (and its hint, if any) and return its exit code."""
    console.error(str(exc))
    if isinstance(exc, PrerequisiteError) and exc.hint:
        console.info(exc.hint)
    return exc.exit_code


def _run(action: cabc.Callable[[Runtime], int], *, assume_yes: bool = False) -> int:
    try:
        runtime = build_runtime(assume_yes=assume_yes)
    except ConfigError as exc:
        return report_error(Console(color=False), exc)
    try:
        return action(runtime)
    except OpsKitError as exc:
        log_debug(logger, "Command failed: %s", exc)
        return report_error(runtime.console, exc)


# S3

s3_app = App(name="s3", help="S3 buckets")
app.command(s3_app)


@s3_app.command(name="create")
def s3_create(bucket: str, environment: str = storage.DEFAULT_ENVIRONMENT) -> int:
    """Create a bucket with versioning, a public-access block and sample files.

    Args:
        bucket: Bucket name.
        environment: Environment tag and sample-file prefix.

    """
    return _run(
        lambda rt: storage.create_bucket_flow(rt.console, rt.aws, bucket, environment)
    )


@s3_app.command(name="show")
def s3_show(bucket: str) -> int:
    """Show a bucket's settings and objects."""
    return _run(lambda rt: storage.show_bucket_flow(rt.console, rt.aws, bucket))


@s3_app.command(name="list")
def s3_list() -> int:
    """List buckets."""
    return _run(lambda rt: storage.list_buckets_flow(rt.console, rt.aws))


@s3_app.command(name="backup")
def s3_backup(
    source: str,
    bucket: str | None = None,
    prefix: str | None = None,
    *,
    compress: bool = False,
    sync: bool = False,
    list_backups: typ.Annotated[bool, Parameter(name="--list")] = False,
) -> int:
    """Back up a file or directory to S3, or list earlier backups.

    With ``--list`` the positional arguments are ``BUCKET [PREFIX]``.

    Args:
        source: File or directory to back up.
        bucket: Destination bucket.
        prefix: Key prefix (default: backups).
        compress: Upload one ``tar.gz`` archive.
        sync: Mirror the source, uploading only new or changed files.
        list_backups: List objects under the prefix instead.

    """

    def action(rt: Runtime) -> int:
        if list_backups:
            return storage.list_backups_flow(
                rt.console,
                rt.aws,
                source,
                bucket or storage.DEFAULT_BACKUP_PREFIX,
            )
        if bucket is None:
            msg = "Source and bucket required"
            raise ConfigError(msg)
        return storage.backup_flow(
            rt.console,
            rt.aws,
            Path(source),
            bucket,
            prefix or storage.DEFAULT_BACKUP_PREFIX,
            compress=compress,
            sync=sync,
        )

    return _run(action)


# DynamoDB

dynamodb_app = App(name="dynamodb", help="DynamoDB tables")
app.command(dynamodb_app)


@dynamodb_app.command(name="create")
def dynamodb_create(  # noqa: PLR0913
    table: str,
    environment: str = storage.DEFAULT_ENVIRONMENT,
    *,
    attribute_name: str = "id",
    attribute_type: typ.Literal["S", "N", "B"] = "N",
    read_capacity: PositiveInt = 5,
    write_capacity: PositiveInt = 5,
) -> int:
    """Create a provisioned table, wait for it and insert sample items.

    Args:
        table: Table name.
        environment: Environment tag.
        attribute_name: Partition key attribute.
        attribute_type: Partition key type.
        read_capacity: Provisioned read capacity units.
        write_capacity: Provisioned write capacity units.

    """
    return _run(
        lambda rt: storage.create_table_flow(
            rt.console,
            rt.aws,
            table,
            environment,
            key_name=attribute_name,
            key_type=attribute_type,
            read_capacity=read_capacity,
            write_capacity=write_capacity,
            wait_timeout=rt.settings.poll_timeout,
            wait_interval=rt.settings.poll_interval,
        )
    )


@dynamodb_app.command(name="show")
def dynamodb_show(table: str) -> int:
    """Show a table's schema, throughput and sample items."""
    return _run(lambda rt: storage.show_table_flow(rt.console, rt.aws, table))


@dynamodb_app.command(name="list")
def dynamodb_list() -> int:
    """List tables."""
    return _run(lambda rt: storage.list_tables_flow(rt.console, rt.aws))


# Firehose

firehose_app = App(name="firehose", help="Kinesis Data Firehose delivery streams")
app.command(firehose_app)


@firehose_app.command(name="create")
def firehose_create(
    stream: str,
    environment: str = "dev",
    *,
    buffer_size: PositiveInt = streams.DEFAULT_BUFFER_SIZE_MB,
    buffer_interval: PositiveInt = streams.DEFAULT_BUFFER_INTERVAL_S,
) -> int:
    """Create a stream delivering to S3 along with its bucket and IAM role.

    Args:
        stream: Delivery stream name.
        environment: Environment tag.
        buffer_size: Buffer size in MB before delivery.
        buffer_interval: Buffer interval in seconds before delivery.

    """
    return _run(
        lambda rt: streams.create_stream_flow(
            rt.console,
            rt.aws,
            stream,
            environment,
            buffer_size_mb=buffer_size,
            buffer_interval_s=buffer_interval,
            wait_timeout=rt.settings.poll_timeout,
            wait_interval=rt.settings.poll_interval,
        )
    )


@firehose_app.command(name="show")
def firehose_show(stream: str) -> int:
    """Show a stream's status and S3 destination."""
    return _run(lambda rt: streams.show_stream_flow(rt.console, rt.aws, stream))


@firehose_app.command(name="list")
def firehose_list() -> int:
    """List delivery streams."""
    return _run(lambda rt: streams.list_streams_flow(rt.console, rt.aws))


# ECR

ecr_app = App(name="ecr", help="ECR repositories")
app.command(ecr_app)


@ecr_app.command(name="create")
def ecr_create(
    repo: str,
    *,
    scan_on_push: typ.Annotated[
        bool, Parameter(env_var="ECR_SCAN_ON_PUSH")
    ] = True,
    tag_mutability: typ.Annotated[
        typ.Literal["MUTABLE", "IMMUTABLE"], Parameter(env_var="ECR_TAG_MUTABILITY")
    ] = "MUTABLE",
    max_images: typ.Annotated[
        int, Parameter(env_var="ECR_LIFECYCLE_MAX_IMAGES")
    ] = ecr.DEFAULT_LIFECYCLE_MAX_IMAGES,
) -> int:
    """Create a repository with scanning and an image-count lifecycle policy.

    Args:
        repo: Repository name.
        scan_on_push: Scan images when pushed.
        tag_mutability: Whether tags may be overwritten.
        max_images: Images kept by the lifecycle policy.

    """
    return _run(
        lambda rt: registry.create_repository_flow(
            rt.console,
            rt.aws,
            repo,
            scan_on_push=scan_on_push,
            tag_mutability=tag_mutability,
            max_images=max_images,
        )
    )


@ecr_app.command(name="show")
def ecr_show(repo: str) -> int:
    """Show a repository and its most recent images."""
    return _run(lambda rt: registry.show_repository_flow(rt.console, rt.aws, repo))


@ecr_app.command(name="list")
def ecr_list() -> int:
    """List repositories."""
    return _run(lambda rt: registry.list_repositories_flow(rt.console, rt.aws))


@ecr_app.command(name="login")
def ecr_login() -> int:
    """Log Docker in to the account's registry."""
    return _run(lambda rt: registry.login_flow(rt.console, rt.aws))


@ecr_app.command(name="cleanup")
def ecr_cleanup(
    repo: str,
    *,
    keep: typ.Annotated[
        int,
        Parameter(env_var="ECR_KEEP_COUNT", validator=validators.Number(gte=0)),
    ] = ecr.DEFAULT_KEEP_COUNT,
    dry_run: bool = False,
    yes: bool = False,
) -> int:
    """Delete all but the newest images in a repository.

    Args:
        repo: Repository name.
        keep: Number of newest images to keep.
        dry_run: Only list what would be deleted.
        yes: Skip the confirmation prompt.

    """
    return _run(
        lambda rt: registry.cleanup_flow(
            rt.console, rt.aws, repo, keep=keep, dry_run=dry_run, force=yes
        )
    )


# SQS

sqs_app = App(name="sqs", help="SQS queues")
app.command(sqs_app)


@sqs_app.command(name="create")
def sqs_create(
    queue: str,
    *,
    fifo: bool = False,
    visibility_timeout: typ.Annotated[
        int, Parameter(env_var="SQS_VISIBILITY_TIMEOUT")
    ] = sqs.DEFAULT_VISIBILITY_TIMEOUT_S,
    retention: typ.Annotated[
        int, Parameter(env_var="SQS_MESSAGE_RETENTION")
    ] = sqs.DEFAULT_RETENTION_S,
) -> int:
    """Create a standard or FIFO queue.

    Args:
        queue: Queue name; ``.fifo`` is appended for FIFO queues.
        fifo: Create a FIFO queue with content-based deduplication.
        visibility_timeout: Visibility timeout in seconds.
        retention: Message retention in seconds.

    """
    return _run(
        lambda rt: messaging.create_queue_flow(
            rt.console,
            rt.aws,
            queue,
            fifo=fifo,
            visibility_timeout=visibility_timeout,
            retention=retention,
        )
    )


@sqs_app.command(name="show")
def sqs_show(queue: str) -> int:
    """Show a queue's attributes and message counts."""
    return _run(lambda rt: messaging.show_queue_flow(rt.console, rt.aws, queue))


@sqs_app.command(name="list")
def sqs_list() -> int:
    """List queues."""
    return _run(lambda rt: messaging.list_queues_flow(rt.console, rt.aws))


# SNS

sns_app = App(name="sns", help="SNS topics")
app.command(sns_app)


@sns_app.command(name="create")
def sns_create(topic: str, *, subscribe: str | None = None) -> int:
    """Create a topic, optionally subscribing an email address.

    Args:
        topic: Topic name.
        subscribe: Email address to subscribe.

    """
    return _run(
        lambda rt: messaging.create_topic_flow(
            rt.console, rt.aws, topic, subscribe=subscribe
        )
    )


@sns_app.command(name="show")
def sns_show(topic: str) -> int:
    """Show a topic's attributes and subscriptions."""
    return _run(lambda rt: messaging.show_topic_flow(rt.console, rt.aws, topic))


@sns_app.command(name="list")
def sns_list() -> int:
    """List topics."""
    return _run(lambda rt: messaging.list_topics_flow(rt.console, rt.aws))


# Secrets Manager

secrets_app = App(name="secrets", help="Secrets Manager secrets")
app.command(secrets_app)


@secrets_app.command(name="create")
def secrets_create(  # noqa: PLR0913
    name: str,
    value: str | None = None,
    *,
    from_file: Path | None = None,
    from_env: str | None = None,
    description: str | None = None,
    yes: bool = False,
) -> int:
    """Create a secret or store a new version of an existing one.

    Args:
        name: Secret name.
        value: Literal secret value.
        from_file: Read the value from this file.
        from_env: Read the value from this environment variable.
        description: Secret description.
        yes: Update an existing secret without asking.

    """

    def action(rt: Runtime) -> int:
        secret, source = secrets.resolve_secret_value(
            value, from_file=from_file, from_env=from_env
        )
        rt.console.debug(f"Secret value from {source}")
        return secrets.create_secret_flow(
            rt.console, rt.aws, name, secret, description=description
        )

    return _run(action, assume_yes=yes)


@secrets_app.command(name="show")
def secrets_show(name: str, *, reveal: bool = False) -> int:
    """Show a secret's metadata and, with ``--reveal``, its value."""
    return _run(
        lambda rt: secrets.show_secret_flow(rt.console, rt.aws, name, reveal=reveal)
    )


@secrets_app.command(name="list")
def secrets_list() -> int:
    """List secrets."""
    return _run(lambda rt: secrets.list_secrets_flow(rt.console, rt.aws))


@secrets_app.command(name="delete")
def secrets_delete(name: str, *, force: bool = False, yes: bool = False) -> int:
    """Schedule a secret for deletion.

    Args:
        name: Secret name.
        force: Delete immediately without a recovery window.
        yes: Skip the confirmation prompt.

    """
    return _run(
        lambda rt: secrets.delete_secret_flow(rt.console, rt.aws, name, force=force),
        assume_yes=yes,
    )


# Parameter Store

param_app = App(name="param", help="SSM Parameter Store parameters")
app.command(param_app)


@param_app.command(name="get")
def param_get(name: str, *, reveal: bool = False) -> int:
    """Show one parameter; SecureString values stay masked without ``--reveal``."""
    return _run(
        lambda rt: secrets.get_parameter_flow(rt.console, rt.aws, name, reveal=reveal)
    )


@param_app.command(name="list")
def param_list(
    path: str = "/", *, show_values: bool = False, recursive: bool = True
) -> int:
    """List parameters under a path.

    Args:
        path: Path prefix to list.
        show_values: Print values alongside names.
        recursive: Include parameters in nested paths.

    """
    return _run(
        lambda rt: secrets.list_parameters_flow(
            rt.console, rt.aws, path, show_values=show_values, recursive=recursive
        )
    )


@param_app.command(name="set")
def param_set(  # noqa: PLR0913
    name: str,
    value: str,
    *,
    type: typ.Literal["String", "StringList", "SecureString"] = "String",  # noqa: A002
    secure: bool = False,
    description: str | None = None,
    overwrite: bool = True,
) -> int:
    """Create or overwrite a parameter.

    Args:
        name: Parameter name, starting with ``/``.
        value: Parameter value.
        type: Parameter type.
        secure: Shorthand for ``--type SecureString``.
        description: Parameter description.
        overwrite: Replace an existing value.

    """
    parameter_type = "SecureString" if secure else type
    return _run(
        lambda rt: secrets.set_parameter_flow(
            rt.console,
            rt.aws,
            name,
            value,
            parameter_type=parameter_type,
            description=description,
            overwrite=overwrite,
        )
    )


@param_app.command(name="delete")
def param_delete(name: str, *, yes: bool = False) -> int:
    """Delete a parameter after confirmation."""
    return _run(
        lambda rt: secrets.delete_parameter_flow(rt.console, rt.aws, name),
        assume_yes=yes,
    )


# Cognito

cognito_app = App(name="cognito", help="Cognito user pools")
app.command(cognito_app)


@cognito_app.command(name="create")
def cognito_create(
    pool: str,
    environment: str = "dev",
    *,
    email: typ.Annotated[str | None, Parameter(env_var="TEST_USER_EMAIL")] = None,
    password: typ.Annotated[
        str | None, Parameter(env_var="TEST_USER_PASSWORD")
    ] = None,
) -> int:
    """Create a user pool with an app client and a confirmed test user.

    Args:
        pool: User pool name.
        environment: Environment tag.
        email: Test user email.
        password: Test user password.

    """
    overrides = {
        key: val
        for key, val in (("email", email), ("password", password))
        if val is not None
    }
    return _run(
        lambda rt: identity.create_pool_flow(
            rt.console, rt.aws, pool, environment, **overrides
        )
    )


@cognito_app.command(name="show")
def cognito_show(pool: str) -> int:
    """Show a pool's settings, app clients and users."""
    return _run(lambda rt: identity.show_pool_flow(rt.console, rt.aws, pool))


@cognito_app.command(name="auth")
def cognito_auth(
    *,
    username: str,
    password: str,
    client_id: str | None = None,
    pool: str | None = None,
    pool_id: str | None = None,
) -> int:
    """Try a username/password login and print the resulting tokens.

    Args:
        username: User to log in as.
        password: User password.
        client_id: App client id; looked up from the pool when omitted.
        pool: User pool name.
        pool_id: User pool id.

    Returns:
        0 on success, 2 when a challenge is required, 1 on failure.

    """
    return _run(
        lambda rt: identity.auth_flow(
            rt.console,
            rt.aws,
            username,
            password,
            pool=pool,
            pool_id=pool_id,
            client_id=client_id,
        )
    )


# Lambda

lambda_app = App(name="lambda", help="Lambda functions")
app.command(lambda_app)


@lambda_app.command(name="create")
def lambda_create(  # noqa: PLR0913
    function: str,
    *,
    zip_file: Path | None = None,
    runtime: str | None = None,
    handler: str | None = None,
    memory: int | None = None,
    timeout: int | None = None,
    role_arn: str | None = None,
    yes: bool = False,
) -> int:
    """Create a function, or replace its code once confirmed.

    Options left unset fall back to the ``LAMBDA_*`` environment variables.

    Args:
        function: Function name.
        zip_file: Deployment package; a sample handler is used when omitted.
        runtime: Lambda runtime.
        handler: ``module.function`` entry point.
        memory: Memory size in MB.
        timeout: Timeout in seconds.
        role_arn: Existing execution role.
        yes: Update an existing function without asking.

    """

    def action(rt: Runtime) -> int:
        base = lambdas.FunctionSettings.from_env()
        settings = lambdas.FunctionSettings(
            runtime=runtime or base.runtime,
            handler=handler or base.handler,
            memory=memory or base.memory,
            timeout=timeout or base.timeout,
            role_arn=role_arn or base.role_arn,
        )
        return functions.create_function_flow(
            rt.console, rt.aws, function, zip_file=zip_file, settings=settings
        )

    return _run(action, assume_yes=yes)


@lambda_app.command(name="show")
def lambda_show(function: str) -> int:
    """Show a function's configuration and recent logs."""
    return _run(lambda rt: functions.show_function_flow(rt.console, rt.aws, function))


@lambda_app.command(name="list")
def lambda_list() -> int:
    """List functions."""
    return _run(lambda rt: functions.list_functions_flow(rt.console, rt.aws))


# Cost Explorer


@app.command(name="cost")
def cost_report(
    *, daily: bool = False, services: bool = False, forecast: bool = False
) -> int:
    """Print AWS cost reports; a summary when no report is selected.

    Args:
        daily: Daily costs for the last two weeks.
        services: Month-to-date cost per service.
        forecast: Month-end cost forecast.

    """
    return _run(
        lambda rt: cost.cost_flow(
            rt.console, rt.aws, daily=daily, services=services, forecast=forecast
        )
    )


# kind

kind_app = App(name="kind", help="Local kind clusters")
app.command(kind_app)


@kind_app.command(name="create")
def kind_create(
    cluster: typ.Annotated[
        str, Parameter(env_var="KIND_CLUSTER")
    ] = kind.DEFAULT_CLUSTER,
    *,
    config: Path | None = None,
    image: str | None = None,
) -> int:
    """Create a kind cluster, or reuse an existing one, and wait for its nodes.

    Args:
        cluster: Cluster name.
        config: kind configuration file; defaults to ``KIND_CONFIG``.
        image: Node image; defaults to ``KIND_IMAGE``.

    """
    return _run(
        lambda rt: clusters.create_kind_flow(
            rt.console,
            cluster,
            config=config or rt.settings.kind_config,
            image=image or rt.settings.kind_image,
        )
    )


@kind_app.command(name="delete")
def kind_delete(
    cluster: typ.Annotated[
        str, Parameter(env_var="KIND_CLUSTER")
    ] = kind.DEFAULT_CLUSTER,
    *,
    all: bool = False,  # noqa: A002
    force: bool = False,
) -> int:
    """Delete one kind cluster, or all of them with ``--all``.

    Args:
        cluster: Cluster name.
        all: Delete every kind cluster.
        force: Skip the confirmation prompt.

    """
    return _run(
        lambda rt: clusters.delete_kind_flow(
            rt.console, cluster, delete_all=all, force=force
        )
    )


# EKS

eks_app = App(name="eks", help="EKS clusters")
app.command(eks_app)


@eks_app.command(name="config")
def eks_config(cluster: str) -> int:
    """Point kubectl at an EKS cluster and verify the connection."""
    return _run(lambda rt: clusters.eks_config_flow(rt.console, rt.aws, cluster))


@eks_app.command(name="list")
def eks_list() -> int:
    """List EKS clusters in the current region."""
    return _run(lambda rt: clusters.list_eks_flow(rt.console, rt.aws))


# Kubernetes secrets

k8s_app = App(name="k8s", help="Kubernetes resources")
app.command(k8s_app)
k8s_secret_app = App(name="secret", help="Kubernetes secrets")
k8s_app.command(k8s_secret_app)


@k8s_secret_app.command(name="create")
def k8s_secret_create(  # noqa: PLR0913
    name: str,
    *,
    literal: list[str] | None = None,
    from_file: Path | None = None,
    tls: tuple[Path, Path] | None = None,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
    yes: bool = False,
) -> int:
    """Create a generic secret from literals or a file, or a TLS secret.

    Args:
        name: Secret name.
        literal: ``KEY=VALUE`` pair; repeat for more keys.
        from_file: File stored under its base name.
        tls: Certificate and key PEM files for a TLS secret.
        namespace: Target namespace.
        yes: Recreate an existing secret without asking.

    """

    def action(rt: Runtime) -> int:
        literals = workloads.parse_literals(literal or [])
        return workloads.create_secret_flow(
            rt.console,
            name,
            literals,
            namespace=namespace,
            from_file=from_file,
            tls=tls,
        )

    return _run(action, assume_yes=yes)


@k8s_secret_app.command(name="show")
def k8s_secret_show(
    name: str, *, namespace: str = kubectl.DEFAULT_NAMESPACE, reveal: bool = False
) -> int:
    """Show a secret's keys; values are masked without ``--reveal``."""
    return _run(
        lambda rt: workloads.show_secret_flow(
            rt.console, name, namespace=namespace, reveal=reveal
        )
    )


@k8s_secret_app.command(name="list")
def k8s_secret_list(*, namespace: str | None = None) -> int:
    """List secrets in one namespace, or all namespaces."""
    return _run(lambda rt: workloads.list_secrets_flow(rt.console, namespace=namespace))


@k8s_secret_app.command(name="delete")
def k8s_secret_delete(
    name: str, *, namespace: str = kubectl.DEFAULT_NAMESPACE, yes: bool = False
) -> int:
    """Delete a secret after confirmation."""
    return _run(
        lambda rt: workloads.delete_secret_flow(rt.console, name, namespace=namespace),
        assume_yes=yes,
    )


# Helm

helm_app = App(name="helm", help="Helm repositories and releases")
app.command(helm_app)


@helm_app.command(name="repo-add")
def helm_repo_add(
    name: str | None = None, url: str | None = None, *, common: bool = False
) -> int:
    """Add a chart repository, or the common set with ``--common``.

    Args:
        name: Repository name.
        url: Repository URL.
        common: Add bitnami, ingress-nginx, jetstack and prometheus-community.

    """
    if common:
        return _run(lambda rt: workloads.add_common_repos_flow(rt.console))
    if name is None or url is None:
        msg = "NAME and URL are required unless --common is given"
        return report_error(Console(color=False), ConfigError(msg))
    return _run(lambda rt: workloads.add_repo_flow(rt.console, name, url))


@helm_app.command(name="repos")
def helm_repos() -> int:
    """List configured chart repositories."""
    return _run(lambda rt: workloads.list_repos_flow(rt.console))


@helm_app.command(name="install")
def helm_install(  # noqa: PLR0913
    release: str,
    chart: str,
    *,
    namespace: str = "default",
    values: Path | None = None,
    set: list[str] | None = None,  # noqa: A002
    dry_run: bool = False,
    yes: bool = False,
) -> int:
    """Install a chart, or upgrade an existing release once confirmed.

    Args:
        release: Release name.
        chart: Chart reference, such as ``bitnami/nginx``.
        namespace: Target namespace, created when missing.
        values: Values file.
        set: ``key=value`` override; repeat for more.
        dry_run: Render without installing.
        yes: Upgrade an existing release without asking.

    """
    return _run(
        lambda rt: workloads.install_flow(
            rt.console,
            release,
            chart,
            namespace=namespace,
            values_file=values,
            set_values=set or (),
            dry_run=dry_run,
        ),
        assume_yes=yes,
    )


@helm_app.command(name="uninstall")
def helm_uninstall(
    release: str, *, namespace: str = "default", yes: bool = False
) -> int:
    """Uninstall a release after confirmation."""
    return _run(
        lambda rt: workloads.uninstall_flow(
            rt.console, release, namespace=namespace, force=yes
        )
    )


@helm_app.command(name="list")
def helm_list(*, namespace: str | None = None) -> int:
    """List releases in one namespace, or all namespaces."""
    return _run(
        lambda rt: workloads.list_releases_flow(rt.console, namespace=namespace)
    )


# Ingress

ingress_app = App(name="ingress", help="Kubernetes ingresses")
app.command(ingress_app)


@ingress_app.command(name="create")
def ingress_create(  # noqa: PLR0913
    name: str,
    *,
    host: str | None = None,
    service: str | None = None,
    port: PositiveInt | None = None,
    path: str = "/",
    tls_secret: str | None = None,
    ingress_class: str = kubectl.DEFAULT_INGRESS_CLASS,
    file: Path | None = None,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
    yes: bool = False,
) -> int:
    """Route a host to a service, updating an existing ingress once confirmed.

    With ``--file`` the manifest is applied as written and the routing
    options are ignored.

    Args:
        name: Ingress name.
        host: Host name to route.
        service: Backend service name.
        port: Backend service port.
        path: Path prefix.
        tls_secret: TLS secret to terminate HTTPS with.
        ingress_class: Ingress class.
        file: Ingress manifest to apply instead of rendering one.
        namespace: Target namespace.
        yes: Update an existing ingress without asking.

    """

    def action(rt: Runtime) -> int:
        if file is not None:
            return workloads.apply_ingress_file_flow(
                rt.console, file, namespace=namespace
            )
        if host is None or service is None or port is None:
            msg = f"Ingress '{name}' needs --host, --service and --port, or --file"
            raise ConfigError(msg)
        return workloads.create_ingress_flow(
            rt.console,
            name,
            host=host,
            service=service,
            port=port,
            namespace=namespace,
            path=path,
            tls_secret=tls_secret,
            ingress_class=ingress_class,
        )

    return _run(action, assume_yes=yes)


@ingress_app.command(name="show")
def ingress_show(name: str, *, namespace: str = kubectl.DEFAULT_NAMESPACE) -> int:
    """Show an ingress's rules and load balancer address."""
    return _run(
        lambda rt: workloads.show_ingress_flow(rt.console, name, namespace=namespace)
    )


@ingress_app.command(name="list")
def ingress_list(*, namespace: str | None = None) -> int:
    """List ingresses in one namespace, or all namespaces."""
    return _run(
        lambda rt: workloads.list_ingresses_flow(rt.console, namespace=namespace)
    )


# Health


@app.command(name="health")
def health_check(  # noqa: PLR0913
    *urls: str,
    k8s: bool = False,
    aws: bool = False,
    db: list[str] | None = None,
    file: Path | None = None,
    timeout: typ.Annotated[
        float, Parameter(env_var="HEALTH_TIMEOUT")
    ] = health.DEFAULT_TIMEOUT_S,
) -> int:
    """Check HTTP endpoints, the Kubernetes cluster, AWS and databases.

    Args:
        urls: HTTP endpoints to probe.
        k8s: Check the current Kubernetes cluster.
        aws: Check AWS credentials and S3.
        db: PostgreSQL or MongoDB URL; repeat for more.
        file: File listing endpoints, one per line.
        timeout: Per-check timeout in seconds.

    """
    return _run(
        lambda rt: health.health_flow(
            rt.console,
            urls,
            aws=rt.aws if aws else None,
            k8s=k8s,
            db_urls=db or (),
            urls_file=file,
            timeout=timeout,
        )
    )


def main() -> int:
    """Run the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
