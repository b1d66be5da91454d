"""Test doubles for boto3 clients.

The adapters in :mod:`opskit.aws` only call methods on the client they are
given, so a duck-typed fake that records calls and returns canned responses
is enough. Failures are real ``botocore`` ``ClientError`` instances so the
adapters' error translation is exercised unchanged.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ
from pathlib import Path

from botocore.exceptions import ClientError


def client_error(
    code: str, operation: str = "Operation", message: str = ""
) -> ClientError:
    """Build a ``ClientError`` carrying ``code``."""
    return ClientError(
        {"Error": {"Code": code, "Message": message or code}}, operation
    )


class _Paginator:
    def __init__(self, client: FakeClient, operation: str) -> None:
        self._client = client
        self._operation = operation

    def paginate(self, **kwargs: object) -> cabc.Iterator[dict[str, typ.Any]]:
        result = self._client.invoke(self._operation, kwargs)
        pages = result if isinstance(result, list) else [result]
        yield from pages


@dataclasses.dataclass(slots=True)
class FakeClient:
    """Record calls and answer from a table of canned responses.

    ``responses`` maps an operation name to a response dict, an exception to
    raise, a callable receiving the call's keyword arguments, or a list of
    any of those consumed in order. Unlisted operations return ``{}``.
    Paginated operations may answer with a list of pages.
    """

    responses: dict[str, typ.Any] = dataclasses.field(default_factory=dict)
    calls: list[tuple[str, dict[str, object]]] = dataclasses.field(
        default_factory=list
    )

    def invoke(self, operation: str, kwargs: dict[str, object]) -> typ.Any:  # noqa: ANN401
        """Record one call and return its canned response."""
        self.calls.append((operation, kwargs))
        response = self.responses.get(operation, {})
        if isinstance(response, _Sequence):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(**kwargs)
        return response

    def get_paginator(self, operation: str) -> _Paginator:
        """Return a paginator yielding the canned pages for ``operation``."""
        return _Paginator(self, operation)

    def operations(self) -> list[str]:
        """Return the recorded operation names in call order."""
        return [name for name, _ in self.calls]

    def kwargs_for(self, operation: str) -> dict[str, object]:
        """Return the keyword arguments of the last call to ``operation``."""
        for name, kwargs in reversed(self.calls):
            if name == operation:
                return kwargs
        msg = f"{operation} was not called"
        raise AssertionError(msg)

    def __getattr__(self, operation: str) -> cabc.Callable[..., typ.Any]:
        if operation.startswith("_"):
            raise AttributeError(operation)
        return lambda **kwargs: self.invoke(operation, kwargs)


class _Sequence(list):
    """Marks a list of responses consumed one per call."""


def sequence(*responses: object) -> list[object]:
    """Return responses handed out in order, repeating the last one."""
    return _Sequence(responses)


def sts_client(account: str = "123456789012") -> FakeClient:
    """Return an STS fake answering ``get_caller_identity``."""
    return FakeClient(
        {
            "get_caller_identity": {
                "Account": account,
                "Arn": f"arn:aws:iam::{account}:user/tester",
                "UserId": "AIDATESTER",
            }
        }
    )


@dataclasses.dataclass(slots=True)
class FakeS3:
    """In-memory S3 holding buckets and their objects.

    Only the operations the bucket and backup flows call are implemented.
    """

    buckets: dict[str, dict[str, bytes]] = dataclasses.field(default_factory=dict)
    modified: dict[str, object] = dataclasses.field(default_factory=dict)
    calls: list[str] = dataclasses.field(default_factory=list)

    def head_bucket(self, *, Bucket: str) -> dict[str, typ.Any]:  # noqa: N803
        self.calls.append("head_bucket")
        if Bucket not in self.buckets:
            raise client_error("404", "HeadBucket", "Not Found")
        return {}

    def create_bucket(self, *, Bucket: str, **_: object) -> dict[str, typ.Any]:  # noqa: N803
        self.calls.append("create_bucket")
        if Bucket in self.buckets:
            raise client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        self.buckets[Bucket] = {}
        return {"Location": f"/{Bucket}"}

    def put_public_access_block(self, **_: object) -> dict[str, typ.Any]:
        self.calls.append("put_public_access_block")
        return {}

    def put_bucket_versioning(self, **_: object) -> dict[str, typ.Any]:
        self.calls.append("put_bucket_versioning")
        return {}

    def put_object(
        self,
        *,
        Bucket: str,  # noqa: N803
        Key: str,  # noqa: N803
        Body: bytes,  # noqa: N803
        **_: object,
    ) -> dict[str, typ.Any]:
        self.calls.append("put_object")
        self.buckets[Bucket][Key] = Body
        return {"ETag": '"etag"'}

    def upload_file(
        self,
        *,
        Filename: str,  # noqa: N803
        Bucket: str,  # noqa: N803
        Key: str,  # noqa: N803
    ) -> None:
        self.calls.append("upload_file")
        self.buckets[Bucket][Key] = Path(Filename).read_bytes()

    def _contents(self, bucket: str, prefix: str) -> list[dict[str, typ.Any]]:
        return [
            {
                "Key": key,
                "Size": len(body),
                "LastModified": self.modified.get(key, "2026-01-01T00:00:00"),
            }
            for key, body in sorted(self.buckets[bucket].items())
            if key.startswith(prefix)
        ]

    def list_objects_v2(
        self,
        *,
        Bucket: str,  # noqa: N803
        Prefix: str = "",  # noqa: N803
        MaxKeys: int | None = None,  # noqa: N803
    ) -> dict[str, typ.Any]:
        self.calls.append("list_objects_v2")
        contents = self._contents(Bucket, Prefix)
        if MaxKeys is not None:
            contents = contents[:MaxKeys]
        return {"Contents": contents, "KeyCount": len(contents)}

    def get_paginator(self, operation: str) -> _Paginator:
        delegate = FakeClient({operation: getattr(self, operation)})
        return _Paginator(delegate, operation)
