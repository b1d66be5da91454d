"""Lambda function create, show and list flows."""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import time
import typing as typ

from opskit.aws import iam, lambdas
from opskit.flows.common import EXIT_FAILED, EXIT_OK, print_lines, require_aws
from opskit.formatting import PLACEHOLDER, Column, render_fields, render_table, truncate
from opskit.provisioning import ProvisionOutcome, ensure

if typ.TYPE_CHECKING:
    from pathlib import Path

    from opskit.aws import AwsContext
    from opskit.console import Console

_LOG_MESSAGE_WIDTH = 100


def _resolve_role(
    console: Console,
    aws: AwsContext,
    function: str,
    *,
    sleep: cabc.Callable[[float], object],
) -> str:
    client = aws.client(iam.SERVICE)
    role = lambdas.role_name(function)
    result = ensure(
        "IAM role",
        role,
        exists=lambda: iam.role_exists(client, role),
        create=lambda: iam.create_lambda_role(client, role, sleep=sleep),
    )
    if result.outcome is ProvisionOutcome.CREATED:
        console.success(f"Created role: {role}")
        return str(result.value)
    console.info(f"Using existing role: {role}")
    return iam.role_arn(client, role)


def create_function_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    function: str,
    *,
    zip_file: Path | None = None,
    settings: lambdas.FunctionSettings | None = None,
    sleep: cabc.Callable[[float], object] = time.sleep,
) -> int:
    """Create ``function`` or, once confirmed, replace its code.

    Without ``zip_file`` the sample ``index.py`` handler is packaged. The
    execution role comes from ``settings.role_arn`` or is ensured as
    ``lambda-<function>-role``.
    """
    settings = settings or lambdas.FunctionSettings.from_env()
    console.header(f"Create Lambda Function: {function}")
    console.info(f"Region: {aws.region}")
    console.info(f"Runtime: {settings.runtime}")
    console.info(f"Handler: {settings.handler}")
    console.info(f"Memory: {settings.memory}MB")
    console.info(f"Timeout: {settings.timeout}s")
    require_aws(console, aws)
    client = aws.client(lambdas.SERVICE)

    console.section("Preparing Code")
    if zip_file is None:
        console.info("Creating sample Python function...")
        zip_bytes = lambdas.sample_function_zip()
        console.success("Created sample function")
    elif not zip_file.is_file():
        console.error(f"ZIP file not found: {zip_file}")
        return EXIT_FAILED
    else:
        zip_bytes = zip_file.read_bytes()
        console.info(f"ZIP file: {zip_file}")

    def exists() -> bool:
        current = lambdas.get_function(client, function)
        if current is None:
            return False
        configuration = current.get("Configuration", {})
        console.warning(f"Function '{function}' already exists")
        console.info(f"Runtime: {configuration.get('Runtime', PLACEHOLDER)}")
        console.info(f"Modified: {configuration.get('LastModified', PLACEHOLDER)}")
        return True

    def create() -> dict[str, typ.Any]:
        console.section("IAM Role")
        role_arn = settings.role_arn or _resolve_role(
            console, aws, function, sleep=sleep
        )
        console.info(f"Role ARN: {role_arn}")
        console.section("Creating Function")
        return lambdas.create_function(client, function, zip_bytes, role_arn, settings)

    def update() -> dict[str, typ.Any]:
        console.section("Updating Function Code")
        return lambdas.update_function_code(client, function, zip_bytes)

    result = ensure(
        "Lambda function",
        function,
        exists=exists,
        create=create,
        update=update,
        confirm=console.confirm,
    )
    if result.outcome is ProvisionOutcome.DECLINED:
        console.info("Cancelled")
        return EXIT_OK
    if result.outcome is ProvisionOutcome.UPDATED:
        console.success("Function updated")
        return EXIT_OK

    configuration = typ.cast("dict[str, typ.Any]", result.value)
    console.success("Function created")
    console.blank()
    console.success("Lambda function created successfully!")
    console.section("Function Information")
    console.line(f"  Name:    {function}")
    console.line(f"  ARN:     {configuration.get('FunctionArn', PLACEHOLDER)}")
    console.line(f"  Runtime: {settings.runtime}")
    console.line(f"  Handler: {settings.handler}")
    console.line(f"  Memory:  {settings.memory}MB")
    console.line(f"  Timeout: {settings.timeout}s")
    return EXIT_OK


def log_line(event: dict[str, typ.Any]) -> str:
    """Format a CloudWatch log event as ``[timestamp] message``."""
    stamp = dt.datetime.fromtimestamp(int(event.get("timestamp", 0)) / 1000, dt.UTC)
    message = str(event.get("message", "")).replace("\n", " ").strip()
    return f"[{stamp:%Y-%m-%d %H:%M:%S}] {message[:_LOG_MESSAGE_WIDTH]}"


def show_function_flow(console: Console, aws: AwsContext, function: str) -> int:
    """Print a function's configuration, role, environment and recent logs."""
    console.header(f"Lambda Function: {function}")
    require_aws(console, aws)
    details = lambdas.get_function(aws.client(lambdas.SERVICE), function)
    if details is None:
        console.error(f"Function '{function}' not found in {aws.region}")
        return EXIT_FAILED
    configuration = details.get("Configuration", {})

    console.section("Configuration")
    print_lines(
        console,
        render_fields(
            configuration,
            [
                ("Name", "FunctionName"),
                ("ARN", "FunctionArn"),
                ("Runtime", "Runtime"),
                ("Handler", "Handler"),
                ("Memory", lambda c: f"{c.get('MemorySize')}MB"),
                ("Timeout", lambda c: f"{c.get('Timeout')}s"),
                ("Code Size", lambda c: f"{int(c.get('CodeSize', 0)) // 1024}KB"),
                ("State", "State"),
                ("Modified", "LastModified"),
                ("Description", "Description"),
            ],
            label_width=13,
        ),
    )
    console.section("IAM Role")
    console.line(f"  {configuration.get('Role', PLACEHOLDER)}")

    variables = (configuration.get("Environment") or {}).get("Variables") or {}
    if variables:
        console.section("Environment Variables")
        for key, value in variables.items():
            console.line(f"  {key}={value}")

    vpc = configuration.get("VpcConfig") or {}
    if vpc.get("VpcId"):
        console.section("VPC Configuration")
        console.line(f"  VPC ID: {vpc['VpcId']}")
        console.line(f"  Subnets: {', '.join(vpc.get('SubnetIds', []))}")
        console.line(f"  Security Groups: {', '.join(vpc.get('SecurityGroupIds', []))}")

    layers = configuration.get("Layers") or []
    if layers:
        console.section("Layers")
        for layer in layers:
            console.line(f"  {layer.get('Arn')}")

    console.section("Recent Logs (last hour)")
    events = lambdas.recent_log_events(aws.client(lambdas.LOGS_SERVICE), function)
    if not events:
        console.info("No recent logs found")
    for event in events:
        console.line(log_line(event))
    return EXIT_OK


def list_functions_flow(console: Console, aws: AwsContext) -> int:
    """Print every function with runtime, memory, timeout and modification date."""
    console.header("Lambda Functions")
    console.info(f"Region: {aws.region}")
    require_aws(console, aws)
    functions = lambdas.list_functions(aws.client(lambdas.SERVICE))
    if not functions:
        console.info(f"No Lambda functions found in {aws.region}")
        return EXIT_OK
    print_lines(
        console,
        render_table(
            functions,
            [
                Column("NAME", "FunctionName", 30),
                Column("RUNTIME", "Runtime", 15),
                Column("MEMORY", lambda f: f"{f.get('MemorySize')}MB", 8),
                Column("TIMEOUT", lambda f: f"{f.get('Timeout')}s", 8),
                Column(
                    "MODIFIED",
                    lambda f: truncate(str(f.get("LastModified", "")), 19),
                ),
            ],
        ),
    )
    return EXIT_OK
