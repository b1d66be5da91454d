"""Exception hierarchy for opskit operations.

Every failure a command can surface derives from :class:`OpsKitError` so the
CLI has a single catch point. Poll timeouts and declined confirmations are
reported as results, not raised.
"""

from __future__ import annotations

import subprocess
import typing as typ

if typ.TYPE_CHECKING:
    from botocore.exceptions import BotoCoreError, ClientError

# Exit code used when no subprocess return code is available.
_DEFAULT_EXIT_CODE = 1


class OpsKitError(Exception):
    """Base exception for all opskit errors."""

    exit_code: int = _DEFAULT_EXIT_CODE


class PrerequisiteError(OpsKitError):
    """A required tool, daemon or credential is unavailable.

    Attributes
    ----------
    hint
        Optional remediation hint shown after the message.

    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        """Store the remediation hint alongside the message."""
        self.hint = hint
        super().__init__(message)

    @classmethod
    def missing_executable(cls, name: str) -> PrerequisiteError:
        """Create error for a CLI tool that is not on ``PATH``."""
        msg = f"Required executable '{name}' not found in PATH"
        return cls(msg, hint=f"Install {name} and re-run the command")

    @classmethod
    def docker_not_running(cls) -> PrerequisiteError:
        """Create error for an unreachable Docker daemon."""
        return cls("Docker daemon is not running", hint="Start Docker and retry")

    @classmethod
    def no_aws_credentials(cls, detail: str) -> PrerequisiteError:
        """Create error for missing or rejected AWS credentials."""
        msg = f"AWS credentials are not configured: {detail}"
        return cls(msg, hint="Run 'aws configure' or set AWS_PROFILE")


class RemoteCallError(OpsKitError):
    """A remote API or CLI call failed.

    Attributes
    ----------
    service
        AWS service or CLI tool that was called.
    operation
        Operation or subcommand that failed.
    code
        Structured AWS error code, when one is available.
    exit_code
        Process exit code to propagate from the CLI.

    """

    def __init__(
        self,
        message: str,
        *,
        service: str,
        operation: str,
        code: str | None = None,
        exit_code: int = _DEFAULT_EXIT_CODE,
    ) -> None:
        """Initialise the error with call context."""
        self.service = service
        self.operation = operation
        self.code = code
        self.exit_code = exit_code
        super().__init__(message)

    @classmethod
    def from_client_error(
        cls, service: str, operation: str, exc: ClientError
    ) -> RemoteCallError:
        """Create error from a botocore ``ClientError``.

        Parameters
        ----------
        service
            AWS service name, such as ``"s3"``.
        operation
            Client method that raised.
        exc
            The botocore exception.

        Returns
        -------
        RemoteCallError
            Error carrying the structured AWS error code.

        """
        error = exc.response.get("Error", {})
        code = error.get("Code")
        detail = error.get("Message") or str(exc)
        msg = f"{service}.{operation} failed ({code}): {detail}"
        return cls(msg, service=service, operation=operation, code=code)

    @classmethod
    def from_botocore(
        cls, service: str, operation: str, exc: BotoCoreError
    ) -> RemoteCallError:
        """Create error from a transport-level botocore failure."""
        msg = f"{service}.{operation} failed: {exc}"
        return cls(msg, service=service, operation=operation)

    @classmethod
    def from_process(
        cls, exc: subprocess.CalledProcessError | subprocess.TimeoutExpired
    ) -> RemoteCallError:
        """Create error from a failed or timed-out subprocess.

        Parameters
        ----------
        exc
            The subprocess exception.

        Returns
        -------
        RemoteCallError
            Error propagating the process exit code where available.

        """
        cmd = exc.cmd if isinstance(exc.cmd, list | tuple) else [exc.cmd]
        args = [str(arg) for arg in cmd]
        tool = args[0] if args else "subprocess"
        operation = " ".join(args[1:3])
        if isinstance(exc, subprocess.TimeoutExpired):
            msg = f"{tool} {operation} timed out after {exc.timeout}s"
            return cls(msg, service=tool, operation=operation)
        stderr = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
        msg = f"{tool} {operation} exited with status {exc.returncode}"
        if stderr:
            msg = f"{msg}: {stderr}"
        return cls(
            msg,
            service=tool,
            operation=operation,
            exit_code=exc.returncode or _DEFAULT_EXIT_CODE,
        )


class CreateFailedError(RemoteCallError):
    """Creating a resource failed after it was found to be absent."""

    @classmethod
    def for_resource(
        cls, kind: str, name: str, cause: BaseException
    ) -> CreateFailedError:
        """Create error naming the resource whose creation failed.

        The code and exit status of ``cause`` are carried over when it is a
        :class:`RemoteCallError`.
        """
        msg = f"Failed to create {kind} '{name}': {cause}"
        if isinstance(cause, RemoteCallError):
            return cls(
                msg,
                service=cause.service,
                operation=cause.operation,
                code=cause.code,
                exit_code=cause.exit_code,
            )
        return cls(msg, service=kind, operation="create")


class ConfigError(OpsKitError):
    """An environment or command-line setting is invalid."""

    @classmethod
    def invalid_parameter(cls, name: str, value: str, constraint: str) -> ConfigError:
        """Create error for an invalid configuration value.

        Parameters
        ----------
        name
            Environment variable or option that failed validation.
        value
            The invalid value that was provided.
        constraint
            A description of the valid value requirements.

        Returns
        -------
        ConfigError
            Error with a formatted message describing the invalid value.

        """
        message = f"Invalid {name} '{value}'. {constraint}"
        return cls(message)

    @classmethod
    def empty(cls, name: str) -> ConfigError:
        """Create error for a value that must be non-empty."""
        return cls(f"{name} must be non-empty")


__all__ = [
    "ConfigError",
    "CreateFailedError",
    "OpsKitError",
    "PrerequisiteError",
    "RemoteCallError",
]
