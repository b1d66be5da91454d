"""Cognito user pool setup, inspection and login test flows."""

from __future__ import annotations

import typing as typ

from opskit.aws import cognito
from opskit.errors import RemoteCallError
from opskit.flows.common import (
    EXIT_FAILED,
    EXIT_OK,
    finish,
    print_lines,
    require_aws,
    show_environment,
)
from opskit.formatting import (
    PLACEHOLDER,
    Column,
    format_scalar,
    mask_value,
    render_fields,
    render_table,
    truncate,
)
from opskit.provisioning import ProvisionOutcome, ensure

if typ.TYPE_CHECKING:
    from opskit.aws import AwsContext
    from opskit.console import Console

# A login that ends in a challenge is neither a pass nor a failure.
EXIT_CHALLENGE = 2
NEW_PASSWORD_REQUIRED = "NEW_PASSWORD_REQUIRED"
_TOKEN_PREVIEW = 53


def create_pool_flow(
    console: Console,
    aws: AwsContext,
    pool: str,
    environment: str = "dev",
    *,
    email: str = cognito.TEST_USER_EMAIL,
    password: str = cognito.TEST_USER_PASSWORD,
) -> int:
    """Ensure a user pool, its app client and a test user exist.

    The app client is ``<pool>-client``. A failure to create the test
    user is reported as a warning and turns the exit code to 1.
    """
    app_client = cognito.client_name(pool)
    console.header(f"Setting Up Cognito User Pool: {pool}")
    show_environment(console, environment, aws.region)
    console.info(f"Pool Name: {pool}")
    console.info(f"App Client Name: {app_client}")
    console.info(f"Test User Email: {email}")
    require_aws(console, aws)
    client = aws.client(cognito.SERVICE)

    existing_pool = cognito.find_user_pool_id(client, pool)
    pool_result = ensure(
        "Cognito user pool",
        pool,
        exists=lambda: existing_pool is not None,
        create=lambda: cognito.create_user_pool(client, pool),
    )
    if pool_result.outcome is ProvisionOutcome.CREATED:
        pool_id = str(pool_result.value)
        console.success(f"User Pool created: {pool_id}")
    else:
        pool_id = str(existing_pool)
        console.success(f"User Pool '{pool}' already exists: {pool_id}")

    existing_client = cognito.find_client_id(client, pool_id, app_client)
    client_result = ensure(
        "Cognito app client",
        app_client,
        exists=lambda: existing_client is not None,
        create=lambda: cognito.create_app_client(client, pool_id, app_client),
    )
    if client_result.outcome is ProvisionOutcome.CREATED:
        client_id = str(client_result.value)
        console.success(f"App Client created: {client_id}")
    else:
        client_id = str(existing_client)
        console.success(f"App Client '{app_client}' already exists: {client_id}")

    exit_code = EXIT_OK
    if cognito.user_exists(client, pool_id, email):
        console.success(f"Test user '{email}' already exists")
    else:
        console.info(f"Test user '{email}' does not exist. Creating...")
        try:
            cognito.create_user(client, pool_id, email, password)
        except RemoteCallError as exc:
            console.warning(f"Failed to create test user: {exc}")
            exit_code = EXIT_FAILED
        else:
            console.success("Test user created")

    console.section("Verifying Setup")
    _print_pool(console, cognito.describe_user_pool(client, pool_id))
    console.info(f"App Client ID: {client_id}")
    console.success("Setup verified")

    finish(console, exit_code)
    console.section("Connection Information")
    console.line(f"  User Pool ID:  {pool_id}")
    console.line(f"  Client ID:     {client_id}")
    console.line(f"  Region:        {aws.region}")
    console.line(f"  Test User:     {email}")
    console.line(f"  Password:      {mask_value(password)}")
    return exit_code


def _print_pool(console: Console, description: dict[str, typ.Any]) -> None:
    console.info("User Pool Details:")
    print_lines(
        console,
        render_fields(
            description,
            [
                ("Name", "Name"),
                ("ID", "Id"),
                ("Status", "Status"),
                ("Created", "CreationDate"),
                ("MFA", "MfaConfiguration"),
                ("Users", "EstimatedNumberOfUsers"),
            ],
            label_width=9,
        ),
    )


def show_pool_flow(console: Console, aws: AwsContext, pool: str) -> int:
    """Print a user pool with its app clients and users."""
    console.header(f"Cognito User Pool: {pool}")
    require_aws(console, aws)
    client = aws.client(cognito.SERVICE)
    pool_id = cognito.find_user_pool_id(client, pool)
    if pool_id is None:
        console.error(f"User Pool '{pool}' not found")
        return EXIT_FAILED
    console.section("User Pool")
    _print_pool(console, cognito.describe_user_pool(client, pool_id))

    console.section("App Clients")
    clients = cognito.list_app_clients(client, pool_id)
    if clients:
        print_lines(
            console,
            render_table(
                clients,
                [Column("NAME", "ClientName", 30), Column("CLIENT ID", "ClientId")],
            ),
        )
    else:
        console.info("No app clients")

    console.section("Users")
    users = cognito.list_users(client, pool_id)
    if users:
        print_lines(
            console,
            render_table(
                users,
                [
                    Column("USERNAME", "Username", 40),
                    Column("EMAIL", lambda u: cognito.user_attribute(u, "email"), 30),
                    Column("STATUS", "UserStatus", 22),
                    Column("ENABLED", "Enabled"),
                ],
            ),
        )
    else:
        console.info("No users")
    return EXIT_OK


def _print_tokens(console: Console, tokens: dict[str, typ.Any]) -> None:
    console.section("Token Information")
    for label, key in (
        ("Access Token", "AccessToken"),
        ("ID Token", "IdToken"),
        ("Refresh Token", "RefreshToken"),
    ):
        token = str(tokens.get(key) or PLACEHOLDER)
        console.line(f"  {(label + ':').ljust(15)}{truncate(token, _TOKEN_PREVIEW)}")
    console.line(f"  Expires In:    {tokens.get('ExpiresIn', PLACEHOLDER)} seconds")

    id_token = tokens.get("IdToken")
    if not id_token:
        return
    claims = cognito.decode_id_token_claims(str(id_token))
    console.section("User Information (from ID Token)")
    print_lines(
        console,
        render_fields(
            claims,
            [
                ("Email", "email"),
                ("User Sub", "sub"),
                ("Email Verified", lambda c: format_scalar(c.get("email_verified"))),
            ],
        ),
    )


def auth_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    username: str,
    password: str,
    *,
    pool: str | None = None,
    pool_id: str | None = None,
    client_id: str | None = None,
) -> int:
    """Try a password login and report tokens or the failure reason.

    Either ``client_id`` or a pool (by name or id) must be given; a pool's
    first app client is used when no client id is.

    Returns
    -------
    int
        0 on success, 2 when a challenge is required, 1 otherwise.

    """
    console.header("Cognito Login Check")
    require_aws(console, aws)
    client = aws.client(cognito.SERVICE)

    if client_id is None:
        if pool_id is None:
            if pool is None:
                console.error(
                    "Either a pool name, --pool-id or --client-id is required"
                )
                return EXIT_FAILED
            console.info(f"Looking up User Pool ID for '{pool}'...")
            pool_id = cognito.find_user_pool_id(client, pool)
            if pool_id is None:
                console.error(f"User Pool '{pool}' not found")
                return EXIT_FAILED
            console.success(f"Found Pool ID: {pool_id}")
        console.info("Looking up App Client ID...")
        client_id = cognito.find_client_id(client, pool_id)
        if client_id is None:
            console.error("No App Client found for User Pool")
            return EXIT_FAILED
        console.success(f"Found Client ID: {client_id}")

    console.section("Testing Authentication")
    if pool_id:
        console.info(f"User Pool ID: {pool_id}")
    console.info(f"Client ID: {client_id}")
    console.info(f"Email: {username}")
    console.info(f"Region: {aws.region}")
    console.info("Attempting login...")
    result = cognito.authenticate(client, client_id, username, password)

    if result.challenge:
        console.warning(f"Authentication requires challenge: {result.challenge}")
        if result.challenge == NEW_PASSWORD_REQUIRED:
            console.info("User needs to set a new password")
            console.info("Use admin-set-user-password to set permanent password")
        exit_code = EXIT_CHALLENGE
    elif result.succeeded:
        console.success("Authentication successful!")
        _print_tokens(console, result.tokens or {})
        exit_code = EXIT_OK
    else:
        console.error("Authentication failed!")
        console.error(result.failure or "Unknown error")
        exit_code = EXIT_FAILED

    console.section("Summary")
    if exit_code == EXIT_OK:
        console.success("Login test passed! User can authenticate successfully.")
    elif exit_code == EXIT_CHALLENGE:
        console.warning("Login requires additional action (challenge).")
    else:
        console.error("Login test failed! Check credentials and try again.")
    return exit_code
