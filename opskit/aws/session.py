"""boto3 session handling and botocore error translation.

Adapters in :mod:`opskit.aws` receive plain boto3 clients and route their
calls through :func:`call` or :func:`paginate`, which log the request and
turn botocore failures into :class:`~opskit.errors.RemoteCallError`.
Existence predicates inspect :func:`error_code` instead so a "not found"
answer becomes ``False`` rather than an error.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from opskit.errors import PrerequisiteError, RemoteCallError
from opskit.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    from opskit.config import Settings

logger = get_logger(__name__)

NOT_FOUND_CODES = frozenset(
    {
        "404",
        "NoSuchBucket",
        "NotFound",
        "NoSuchEntity",
        "ResourceNotFoundException",
        "RepositoryNotFoundException",
        "ParameterNotFound",
        "AWS.SimpleQueueService.NonExistentQueue",
        "QueueDoesNotExist",
        "UserNotFoundException",
    }
)


def error_code(exc: ClientError) -> str | None:
    """Return the structured AWS error code carried by ``exc``."""
    return exc.response.get("Error", {}).get("Code")


def is_not_found(exc: ClientError) -> bool:
    """Return whether ``exc`` reports a missing resource."""
    return error_code(exc) in NOT_FOUND_CODES


def call(  # noqa: ANN401
    client: typ.Any,  # noqa: ANN401
    service: str,
    operation: str,
    **kwargs: object,
) -> typ.Any:
    """Invoke ``client.<operation>(**kwargs)`` with error translation.

    Parameters
    ----------
    client : Any
        boto3 client (or a test double exposing the same method).
    service : str
        Service name used in log lines and errors.
    operation : str
        Client method name, such as ``"create_bucket"``.
    **kwargs : object
        Request parameters passed through unchanged.

    Returns
    -------
    Any
        The response dictionary.

    Raises
    ------
    RemoteCallError
        If botocore raises ``ClientError`` or ``BotoCoreError``.

    """
    log_debug(logger, "Calling %s.%s", service, operation)
    try:
        return getattr(client, operation)(**kwargs)
    except ClientError as exc:
        raise RemoteCallError.from_client_error(service, operation, exc) from exc
    except BotoCoreError as exc:
        raise RemoteCallError.from_botocore(service, operation, exc) from exc


def paginate(
    client: typ.Any,  # noqa: ANN401
    service: str,
    operation: str,
    result_key: str,
    **kwargs: object,
) -> cabc.Iterator[typ.Any]:
    """Yield every item under ``result_key`` across all result pages."""
    log_debug(logger, "Paginating %s.%s", service, operation)
    try:
        for page in client.get_paginator(operation).paginate(**kwargs):
            yield from page.get(result_key, [])
    except ClientError as exc:
        raise RemoteCallError.from_client_error(service, operation, exc) from exc
    except BotoCoreError as exc:
        raise RemoteCallError.from_botocore(service, operation, exc) from exc


ClientFactory = cabc.Callable[[str], typ.Any]


@dataclasses.dataclass(slots=True)
class AwsContext:
    """Lazily created boto3 clients sharing one session.

    Attributes
    ----------
    region
        Region passed to every client.
    profile
        Optional named profile for the session.
    factory
        Optional client factory replacing boto3, used by tests.

    """

    region: str
    profile: str | None = None
    factory: ClientFactory | None = None
    _clients: dict[str, typ.Any] = dataclasses.field(
        default_factory=dict, init=False, repr=False
    )
    _session: boto3.Session | None = dataclasses.field(
        default=None, init=False, repr=False
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> AwsContext:
        """Build a context from resolved settings."""
        return cls(region=settings.region, profile=settings.profile)

    def client(self, service: str) -> typ.Any:  # noqa: ANN401
        """Return the cached client for ``service``, creating it on first use."""
        if service not in self._clients:
            if self.factory is not None:
                self._clients[service] = self.factory(service)
            else:
                if self._session is None:
                    self._session = boto3.Session(
                        profile_name=self.profile, region_name=self.region
                    )
                self._clients[service] = self._session.client(
                    service, region_name=self.region
                )
        return self._clients[service]

    def caller_identity(self) -> dict[str, typ.Any]:
        """Return the STS caller identity."""
        return call(self.client("sts"), "sts", "get_caller_identity")

    def account_id(self) -> str:
        """Return the AWS account id of the active credentials."""
        return str(self.caller_identity()["Account"])

    def require_credentials(self) -> dict[str, typ.Any]:
        """Verify credentials by calling STS.

        Returns
        -------
        dict[str, Any]
            The caller identity.

        Raises
        ------
        PrerequisiteError
            If no credentials are configured or STS rejects them.

        """
        try:
            return self.caller_identity()
        except RemoteCallError as exc:
            raise PrerequisiteError.no_aws_credentials(str(exc)) from exc


__all__ = [
    "NOT_FOUND_CODES",
    "AwsContext",
    "call",
    "error_code",
    "is_not_found",
    "paginate",
]
