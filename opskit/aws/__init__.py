"""Thin typed wrappers over boto3 clients, one module per AWS service.

Each module exposes an existence predicate for its resource plus the create,
describe and list calls the flows need. Functions take the client as their
first argument so tests can pass a fake.
"""

from __future__ import annotations

from .session import AwsContext, call, error_code, is_not_found, paginate

__all__ = ["AwsContext", "call", "error_code", "is_not_found", "paginate"]
