"""Unit tests for the create-if-absent provisioner."""

from __future__ import annotations

import subprocess
import typing as typ

import pytest

from opskit.errors import CreateFailedError, RemoteCallError
from opskit.provisioning import ProvisionOutcome, confirm_destroy, ensure
from tests.fakes import client_error

if typ.TYPE_CHECKING:
    from tests.conftest import ConsoleCapture


class _Resource:
    """A remote resource whose existence the test controls."""

    def __init__(self, *, present: bool = False) -> None:
        self.present = present
        self.exists_calls = 0
        self.created = 0
        self.updated = 0

    def exists(self) -> bool:
        self.exists_calls += 1
        return self.present

    def create(self) -> str:
        self.created += 1
        self.present = True
        return "arn:created"

    def update(self) -> str:
        self.updated += 1
        return "v2"


def test_creates_absent_resource() -> None:
    """A missing resource is created once and its value returned."""
    resource = _Resource()

    result = ensure("S3 bucket", "b", exists=resource.exists, create=resource.create)

    assert result.outcome is ProvisionOutcome.CREATED
    assert result.value == "arn:created"
    assert result.changed
    assert resource.created == 1


def test_second_run_is_a_no_op() -> None:
    """Existence is queried afresh each run; the second run creates nothing."""
    resource = _Resource()

    first = ensure("S3 bucket", "b", exists=resource.exists, create=resource.create)
    second = ensure("S3 bucket", "b", exists=resource.exists, create=resource.create)

    assert first.outcome is ProvisionOutcome.CREATED
    assert second.outcome is ProvisionOutcome.EXISTS
    assert not second.changed
    assert resource.created == 1
    assert resource.exists_calls == 2


def test_existing_resource_update_needs_confirmation() -> None:
    """Without a confirm callback an existing resource is never touched."""
    resource = _Resource(present=True)

    result = ensure(
        "secret",
        "s",
        exists=resource.exists,
        create=resource.create,
        update=resource.update,
    )

    assert result.outcome is ProvisionOutcome.DECLINED
    assert resource.updated == 0


def test_confirmed_update_runs() -> None:
    """A yes answer runs the update and reports UPDATED."""
    resource = _Resource(present=True)
    prompts: list[str] = []

    def confirm(message: str) -> bool:
        prompts.append(message)
        return True

    result = ensure(
        "secret",
        "db-password",
        exists=resource.exists,
        create=resource.create,
        update=resource.update,
        confirm=confirm,
    )

    assert result.outcome is ProvisionOutcome.UPDATED
    assert result.value == "v2"
    assert prompts == ["Update existing secret 'db-password'?"]


def test_declined_update_leaves_resource() -> None:
    """A no answer is a clean DECLINED outcome."""
    resource = _Resource(present=True)

    result = ensure(
        "secret",
        "s",
        exists=resource.exists,
        create=resource.create,
        update=resource.update,
        confirm=lambda _message: False,
    )

    assert result.outcome is ProvisionOutcome.DECLINED
    assert resource.updated == 0
    assert resource.created == 0


@pytest.mark.parametrize(
    "failure",
    [
        client_error("AccessDenied", "CreateBucket"),
        subprocess.CalledProcessError(1, ["kind", "create", "cluster"]),
        RemoteCallError("boom", service="s3", operation="create_bucket"),
    ],
)
def test_create_failures_name_the_resource(failure: Exception) -> None:
    """Create failures surface as CreateFailedError naming the resource."""

    def create() -> None:
        raise failure

    with pytest.raises(CreateFailedError, match="Failed to create S3 bucket 'b'"):
        ensure("S3 bucket", "b", exists=lambda: False, create=create)


def test_create_failure_keeps_remote_code() -> None:
    """The structured code of a RemoteCallError is carried over."""
    cause = RemoteCallError(
        "denied", service="s3", operation="create_bucket", code="AccessDenied"
    )

    def create() -> None:
        raise cause

    with pytest.raises(CreateFailedError) as excinfo:
        ensure("S3 bucket", "b", exists=lambda: False, create=create)

    assert excinfo.value.code == "AccessDenied"
    assert excinfo.value.__cause__ is cause


def test_unexpected_errors_propagate_unchanged() -> None:
    """Programming errors are not disguised as create failures."""

    def create() -> None:
        msg = "bug"
        raise KeyError(msg)

    with pytest.raises(KeyError):
        ensure("S3 bucket", "b", exists=lambda: False, create=create)


class TestConfirmDestroy:
    """Tests for the destructive-action gate."""

    def test_force_skips_prompt(self, capture: ConsoleCapture) -> None:
        """Forced deletions never ask."""
        assert confirm_destroy(capture.console, "Delete?", force=True)
        assert capture.prompts == []

    def test_yes_proceeds(self, capture: ConsoleCapture) -> None:
        """A yes answer allows the deletion."""
        capture.answers.append("y")

        assert confirm_destroy(capture.console, "Delete cluster 'kind'?")
        assert "Delete cluster 'kind'?" in capture.prompts[0]

    def test_decline_prints_cancelled(self, capture: ConsoleCapture) -> None:
        """Declining prints a cancellation notice."""
        capture.answers.append("n")

        assert not confirm_destroy(capture.console, "Delete?")
        assert "Cancelled" in capture.stdout
