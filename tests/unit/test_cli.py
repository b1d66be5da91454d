"""Unit tests for the command-line entry point."""

from __future__ import annotations

import typing as typ

import pytest
from cyclopts import CycloptsError

from opskit import cli
from opskit.config import Settings
from opskit.errors import ConfigError, PrerequisiteError, RemoteCallError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from opskit.aws import AwsContext
    from opskit.console import Console
    from tests.conftest import ConsoleCapture


@pytest.fixture
def runtime_calls(
    monkeypatch: pytest.MonkeyPatch,
    capture: ConsoleCapture,
    make_aws: cabc.Callable[..., AwsContext],
) -> list[bool]:
    """Serve commands a captured runtime and record each ``assume_yes``."""
    calls: list[bool] = []

    def fake_build_runtime(*, assume_yes: bool = False) -> cli.Runtime:
        calls.append(assume_yes)
        console = capture.console.with_assume_yes(assume_yes=assume_yes)
        return cli.Runtime(Settings(region="ap-northeast-1"), console, make_aws())

    monkeypatch.setattr(cli, "build_runtime", fake_build_runtime)
    return calls


@pytest.mark.parametrize(
    "path",
    [
        ("s3", "create"),
        ("s3", "backup"),
        ("dynamodb", "show"),
        ("firehose", "list"),
        ("ecr", "cleanup"),
        ("sqs", "create"),
        ("sns", "create"),
        ("secrets", "delete"),
        ("param", "set"),
        ("cognito", "auth"),
        ("lambda", "create"),
        ("kind", "delete"),
        ("eks", "config"),
        ("k8s", "secret", "create"),
        ("helm", "repo-add"),
        ("ingress", "create"),
        ("cost",),
        ("health",),
    ],
)
def test_command_tree(path: tuple[str, ...]) -> None:
    """Every area and operation is registered under its command name."""
    node = cli.app
    for name in path:
        node = node[name]
    assert node is not None


@pytest.mark.usefixtures("runtime_calls")
def test_prerequisite_error_reports_hint(
    capture: ConsoleCapture, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Prerequisite failures print the message and the remediation hint."""

    def flow(*_args: object, **_kwargs: object) -> int:
        raise PrerequisiteError.missing_executable("kind")

    monkeypatch.setattr(cli.clusters, "create_kind_flow", flow)

    code = cli.kind_create()

    assert code == 1
    assert "[ERROR] Required executable 'kind' not found in PATH" in capture.stderr
    assert "[INFO] Install kind and re-run the command" in capture.stdout


@pytest.mark.usefixtures("runtime_calls")
def test_remote_exit_code_propagates(
    capture: ConsoleCapture, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failing tool's exit code becomes the command's exit code."""

    def flow(*_args: object, **_kwargs: object) -> int:
        msg = "kind create cluster failed"
        raise RemoteCallError(msg, service="kind", operation="create", exit_code=4)

    monkeypatch.setattr(cli.clusters, "create_kind_flow", flow)

    assert cli.kind_create("dev") == 4
    assert "[ERROR] kind create cluster failed" in capture.stderr


def test_yes_flag_reaches_console(
    runtime_calls: list[bool], monkeypatch: pytest.MonkeyPatch
) -> None:
    """``--yes`` builds an assume-yes console."""
    seen: list[bool] = []

    def flow(console: Console, *_args: object, **_kwargs: object) -> int:
        seen.append(console.assume_yes)
        return 0

    monkeypatch.setattr(cli.secrets, "delete_secret_flow", flow)

    assert cli.secrets_delete("api", yes=True) == 0
    assert runtime_calls == [True]
    assert seen == [True]


@pytest.mark.usefixtures("runtime_calls")
def test_config_error_inside_command(capture: ConsoleCapture) -> None:
    """Invalid input raised inside a command is reported, not raised."""
    code = cli.secrets_create("api", from_env="OPSKIT_TEST_UNSET_VARIABLE")

    assert code == 1
    assert "[ERROR] Environment variable 'OPSKIT_TEST_UNSET_VARIABLE'" in (
        capture.stderr
    )


def test_invalid_environment_fails_before_command(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """A broken environment is reported on a plain console."""

    def broken(*, assume_yes: bool = False) -> cli.Runtime:  # noqa: ARG001
        raise ConfigError.invalid_parameter(
            "OPSKIT_POLL_TIMEOUT", "soon", "Must be a number of seconds"
        )

    monkeypatch.setattr(cli, "build_runtime", broken)

    code = cli.s3_list()

    assert code == 1
    assert "[ERROR] Invalid OPSKIT_POLL_TIMEOUT 'soon'" in capsys.readouterr().err


def test_build_runtime_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """The runtime carries the configured region and a colourless console."""
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("OPSKIT_POLL_TIMEOUT", raising=False)
    monkeypatch.delenv("OPSKIT_POLL_INTERVAL", raising=False)
    monkeypatch.setattr(cli, "configure_logging", lambda *_a, **_k: ("INFO", False))

    runtime = cli.build_runtime(assume_yes=True)

    assert runtime.settings.region == "eu-west-1"
    assert runtime.aws.region == "eu-west-1"
    assert runtime.console.assume_yes
    assert not runtime.console.color


class TestEcrCleanupKeep:
    """Tests for the ``ecr cleanup --keep`` bound."""

    def test_negative_keep_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A negative keep count fails argument parsing."""
        monkeypatch.delenv("ECR_KEEP_COUNT", raising=False)

        with pytest.raises(CycloptsError):
            cli.app.parse_args(
                ["ecr", "cleanup", "web", "--keep=-1"],
                exit_on_error=False,
                print_error=False,
            )

    def test_zero_keep_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Keeping no images is allowed."""
        monkeypatch.delenv("ECR_KEEP_COUNT", raising=False)

        command, bound, _ignored = cli.app.parse_args(
            ["ecr", "cleanup", "web", "--keep=0"],
            exit_on_error=False,
            print_error=False,
        )

        assert command is cli.ecr_cleanup
        assert bound.arguments["keep"] == 0


@pytest.mark.usefixtures("runtime_calls")
def test_ingress_create_needs_routing_or_file(capture: ConsoleCapture) -> None:
    """Without ``--file`` the routing options are required."""
    code = cli.ingress_create("web", host="app.example.com")

    assert code == 1
    assert "[ERROR] Ingress 'web' needs --host, --service and --port" in (
        capture.stderr
    )


@pytest.mark.usefixtures("runtime_calls")
class TestS3Backup:
    """Tests for ``s3 backup`` argument handling."""

    def test_list_takes_bucket_and_prefix(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """With ``--list`` the positionals are the bucket and prefix."""
        seen: list[tuple[object, ...]] = []

        def flow(_console: Console, _aws: AwsContext, *args: object) -> int:
            seen.append(args)
            return 0

        monkeypatch.setattr(cli.storage, "list_backups_flow", flow)

        assert cli.s3_backup("vault", "nightly", list_backups=True) == 0
        assert seen == [("vault", "nightly")]

    def test_bucket_required(self, capture: ConsoleCapture) -> None:
        """A backup without a bucket is reported as an error."""
        assert cli.s3_backup("./data") == 1
        assert "[ERROR] Source and bucket required" in capture.stderr


def test_s3_create_help_matches_provisioning() -> None:
    """The help describes what bucket creation configures."""
    summary = (cli.s3_create.__doc__ or "").splitlines()[0]

    assert "versioning" in summary
    assert "public-access block" in summary
    assert "encryption" not in summary
