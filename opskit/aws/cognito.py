"""Cognito user pool, app client and test-user operations."""

from __future__ import annotations

import base64
import binascii
import dataclasses
import json
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, error_code, is_not_found, paginate
from opskit.errors import RemoteCallError

SERVICE = "cognito-idp"
TEST_USER_EMAIL = "test@example.com"
TEST_USER_PASSWORD = "TempPass123!"  # noqa: S105
USER_PASSWORD_AUTH = "USER_PASSWORD_AUTH"
CLIENT_AUTH_FLOWS = (
    "ALLOW_USER_PASSWORD_AUTH",
    "ALLOW_REFRESH_TOKEN_AUTH",
    "ALLOW_USER_SRP_AUTH",
)
# list_user_pools rejects page sizes above 60.
_LIST_POOLS_PAGE_SIZE = 60

AUTH_FAILURE_MESSAGES = {
    "NotAuthorizedException": "Incorrect username or password",
    "UserNotFoundException": "User does not exist",
    "UserNotConfirmedException": "User is not confirmed",
    "PasswordResetRequiredException": "Password reset is required",
}


def find_user_pool_id(client: typ.Any, name: str) -> str | None:  # noqa: ANN401
    """Return the id of the user pool called ``name``, or ``None``."""
    pools = paginate(
        client,
        SERVICE,
        "list_user_pools",
        "UserPools",
        MaxResults=_LIST_POOLS_PAGE_SIZE,
    )
    for pool in pools:
        if pool.get("Name") == name:
            return str(pool["Id"])
    return None


def create_user_pool(client: typ.Any, name: str) -> str:  # noqa: ANN401
    """Create an email-login user pool and return its id.

    Passwords need eight characters with upper case, lower case and digits.
    Email addresses are usernames and are auto-verified, and self sign-up is
    allowed.
    """
    response = call(
        client,
        SERVICE,
        "create_user_pool",
        PoolName=name,
        Policies={
            "PasswordPolicy": {
                "MinimumLength": 8,
                "RequireUppercase": True,
                "RequireLowercase": True,
                "RequireNumbers": True,
                "RequireSymbols": False,
            }
        },
        AutoVerifiedAttributes=["email"],
        UsernameAttributes=["email"],
        AdminCreateUserConfig={"AllowAdminCreateUserOnly": False},
    )
    return str(response["UserPool"]["Id"])


def client_name(pool_name: str) -> str:
    """Return the app client name used for ``pool_name``."""
    return f"{pool_name}-client"


def list_app_clients(client: typ.Any, pool_id: str) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return the app clients of ``pool_id``."""
    return list(
        paginate(
            client,
            SERVICE,
            "list_user_pool_clients",
            "UserPoolClients",
            UserPoolId=pool_id,
        )
    )


def find_client_id(
    client: typ.Any,  # noqa: ANN401
    pool_id: str,
    name: str | None = None,
) -> str | None:
    """Return the id of app client ``name``, or the first client when unnamed."""
    for app_client in list_app_clients(client, pool_id):
        if name is None or app_client.get("ClientName") == name:
            return str(app_client["ClientId"])
    return None


def create_app_client(client: typ.Any, pool_id: str, name: str) -> str:  # noqa: ANN401
    """Create a public app client allowing password auth and return its id."""
    response = call(
        client,
        SERVICE,
        "create_user_pool_client",
        UserPoolId=pool_id,
        ClientName=name,
        GenerateSecret=False,
        ExplicitAuthFlows=list(CLIENT_AUTH_FLOWS),
    )
    return str(response["UserPoolClient"]["ClientId"])


def user_exists(client: typ.Any, pool_id: str, username: str) -> bool:  # noqa: ANN401
    """Return whether ``username`` exists in ``pool_id``."""
    try:
        client.admin_get_user(UserPoolId=pool_id, Username=username)
    except ClientError as exc:
        if is_not_found(exc):
            return False
        raise RemoteCallError.from_client_error(SERVICE, "admin_get_user", exc) from exc
    return True


def create_user(
    client: typ.Any,  # noqa: ANN401
    pool_id: str,
    email: str,
    password: str,
) -> None:
    """Create a verified user with a permanent password and no invite email."""
    call(
        client,
        SERVICE,
        "admin_create_user",
        UserPoolId=pool_id,
        Username=email,
        UserAttributes=[
            {"Name": "email", "Value": email},
            {"Name": "email_verified", "Value": "true"},
        ],
        MessageAction="SUPPRESS",
    )
    call(
        client,
        SERVICE,
        "admin_set_user_password",
        UserPoolId=pool_id,
        Username=email,
        Password=password,
        Permanent=True,
    )


def describe_user_pool(client: typ.Any, pool_id: str) -> dict[str, typ.Any]:  # noqa: ANN401
    """Return the user pool description."""
    return call(client, SERVICE, "describe_user_pool", UserPoolId=pool_id).get(
        "UserPool", {}
    )


def list_users(client: typ.Any, pool_id: str) -> list[dict[str, typ.Any]]:  # noqa: ANN401
    """Return every user in ``pool_id``."""
    return list(paginate(client, SERVICE, "list_users", "Users", UserPoolId=pool_id))


def user_attribute(user: dict[str, typ.Any], name: str) -> str | None:
    """Return attribute ``name`` from a ``list_users`` entry."""
    for attribute in user.get("Attributes", []):
        if attribute.get("Name") == name:
            return attribute.get("Value")
    return None


@dataclasses.dataclass(frozen=True, slots=True)
class AuthResult:
    """Outcome of a password authentication attempt.

    Exactly one of ``tokens``, ``challenge`` or ``failure`` is set.
    """

    tokens: dict[str, typ.Any] | None = None
    challenge: str | None = None
    failure: str | None = None
    code: str | None = None

    @property
    def succeeded(self) -> bool:
        """Return whether tokens were issued."""
        return self.tokens is not None


def authenticate(
    client: typ.Any,  # noqa: ANN401
    client_id: str,
    username: str,
    password: str,
) -> AuthResult:
    """Attempt ``USER_PASSWORD_AUTH`` and classify the outcome.

    Rejected credentials produce a failed :class:`AuthResult` with a
    readable message instead of an exception. Other API errors raise.

    Raises
    ------
    RemoteCallError
        If Cognito fails for a reason unrelated to the credentials.

    """
    try:
        response = client.initiate_auth(
            ClientId=client_id,
            AuthFlow=USER_PASSWORD_AUTH,
            AuthParameters={"USERNAME": username, "PASSWORD": password},
        )
    except ClientError as exc:
        code = error_code(exc)
        if code in AUTH_FAILURE_MESSAGES:
            return AuthResult(failure=AUTH_FAILURE_MESSAGES[code], code=code)
        raise RemoteCallError.from_client_error(SERVICE, "initiate_auth", exc) from exc
    if response.get("ChallengeName"):
        return AuthResult(challenge=str(response["ChallengeName"]))
    return AuthResult(tokens=response.get("AuthenticationResult", {}))


def decode_id_token_claims(token: str) -> dict[str, typ.Any]:
    """Return the payload claims of a JWT without verifying its signature.

    Malformed tokens decode to an empty mapping.
    """
    parts = token.split(".")
    if len(parts) < 2:  # noqa: PLR2004
        return {}
    payload = parts[1]
    padded = payload + "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}
