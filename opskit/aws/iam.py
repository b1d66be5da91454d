"""IAM roles for Firehose delivery and Lambda execution."""

from __future__ import annotations

import collections.abc as cabc
import json
import time
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, error_code, is_not_found
from opskit.errors import RemoteCallError
from opskit.logging import get_logger, log_info

SERVICE = "iam"
LAMBDA_BASIC_EXECUTION_POLICY = (
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)
# IAM is eventually consistent; new roles cannot be assumed immediately.
PROPAGATION_DELAY_S = 10

_FIREHOSE_S3_ACTIONS = [
    "s3:AbortMultipartUpload",
    "s3:GetBucketLocation",
    "s3:GetObject",
    "s3:ListBucket",
    "s3:ListBucketMultipartUploads",
    "s3:PutObject",
]

logger = get_logger(__name__)


def get_role(client: typ.Any, role: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return the role document, or ``None`` when absent."""
    try:
        return client.get_role(RoleName=role).get("Role", {})
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(SERVICE, "get_role", exc) from exc


def role_exists(client: typ.Any, role: str) -> bool:  # noqa: ANN401
    """Return whether IAM role ``role`` exists."""
    return get_role(client, role) is not None


def role_arn(client: typ.Any, role: str) -> str:  # noqa: ANN401
    """Return the ARN of an existing role."""
    document = call(client, SERVICE, "get_role", RoleName=role)
    return str(document["Role"]["Arn"])


def _trust_policy(service: str, external_id: str | None = None) -> str:
    statement: dict[str, typ.Any] = {
        "Effect": "Allow",
        "Principal": {"Service": service},
        "Action": "sts:AssumeRole",
    }
    if external_id is not None:
        statement["Condition"] = {"StringEquals": {"sts:ExternalId": external_id}}
    return json.dumps({"Version": "2012-10-17", "Statement": [statement]})


def firehose_bucket_policy(bucket: str) -> str:
    """Return the policy granting Firehose write access to ``bucket``."""
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": _FIREHOSE_S3_ACTIONS,
                    "Resource": [
                        f"arn:aws:s3:::{bucket}",
                        f"arn:aws:s3:::{bucket}/*",
                    ],
                }
            ],
        }
    )


def _ensure_policy(
    client: typ.Any,  # noqa: ANN401
    name: str,
    document: str,
    account_id: str,
) -> str:
    """Create a managed policy, reusing it when the name is taken."""
    try:
        response = client.create_policy(PolicyName=name, PolicyDocument=document)
    except ClientError as exc:
        if error_code(exc) != "EntityAlreadyExists":
            raise RemoteCallError.from_client_error(
                SERVICE, "create_policy", exc
            ) from exc
        return f"arn:aws:iam::{account_id}:policy/{name}"
    return str(response["Policy"]["Arn"])


def create_firehose_role(  # noqa: PLR0913
    client: typ.Any,  # noqa: ANN401
    role: str,
    bucket: str,
    account_id: str,
    *,
    sleep: cabc.Callable[[float], object] = time.sleep,
) -> str:
    """Create a role Firehose can assume to write into ``bucket``.

    The trust policy pins ``sts:ExternalId`` to the account id. A managed
    policy named ``<role>-policy`` grants the S3 permissions.

    Returns
    -------
    str
        The new role's ARN.

    """
    response = call(
        client,
        SERVICE,
        "create_role",
        RoleName=role,
        AssumeRolePolicyDocument=_trust_policy(
            "firehose.amazonaws.com", external_id=account_id
        ),
    )
    policy_arn = _ensure_policy(
        client, f"{role}-policy", firehose_bucket_policy(bucket), account_id
    )
    call(client, SERVICE, "attach_role_policy", RoleName=role, PolicyArn=policy_arn)
    log_info(
        logger, "Waiting %ss for IAM role %s to propagate", PROPAGATION_DELAY_S, role
    )
    sleep(PROPAGATION_DELAY_S)
    return str(response["Role"]["Arn"])


def create_lambda_role(
    client: typ.Any,  # noqa: ANN401
    role: str,
    *,
    sleep: cabc.Callable[[float], object] = time.sleep,
) -> str:
    """Create a Lambda execution role with basic CloudWatch logging.

    Returns
    -------
    str
        The new role's ARN.

    """
    response = call(
        client,
        SERVICE,
        "create_role",
        RoleName=role,
        AssumeRolePolicyDocument=_trust_policy("lambda.amazonaws.com"),
    )
    call(
        client,
        SERVICE,
        "attach_role_policy",
        RoleName=role,
        PolicyArn=LAMBDA_BASIC_EXECUTION_POLICY,
    )
    log_info(
        logger, "Waiting %ss for IAM role %s to propagate", PROPAGATION_DELAY_S, role
    )
    sleep(PROPAGATION_DELAY_S)
    return str(response["Role"]["Arn"])
