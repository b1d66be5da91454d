"""Unit tests for the Secrets Manager and Parameter Store flows."""

from __future__ import annotations

import json
import typing as typ

import pytest

from opskit.errors import ConfigError
from opskit.flows import secrets as flows
from tests.fakes import FakeClient, client_error, sequence

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from opskit.aws import AwsContext
    from tests.conftest import ConsoleCapture


class TestResolveSecretValue:
    """Tests for choosing where a secret value comes from."""

    def test_file_wins(self, tmp_path: Path) -> None:
        """A file source is read verbatim."""
        path = tmp_path / "secret.json"
        path.write_text('{"k": "v"}', encoding="utf-8")

        value, source = flows.resolve_secret_value("ignored", from_file=path)

        assert value == '{"k": "v"}'
        assert source == f"file: {path}"

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a configuration error."""
        with pytest.raises(ConfigError, match="File not found"):
            flows.resolve_secret_value(None, from_file=tmp_path / "absent")

    def test_environment_variable(self) -> None:
        """An environment variable must be set and non-empty."""
        environ = {"API_KEY": "abc", "EMPTY": ""}

        assert flows.resolve_secret_value(
            None, from_env="API_KEY", environ=environ
        ) == ("abc", "environment: API_KEY")
        with pytest.raises(ConfigError, match="'EMPTY' is empty or not set"):
            flows.resolve_secret_value(None, from_env="EMPTY", environ=environ)

    def test_value_required(self) -> None:
        """Without any source the value is required."""
        with pytest.raises(ConfigError, match="Secret value is required"):
            flows.resolve_secret_value(None)


class TestCreateSecretFlow:
    """Tests for secret creation and update."""

    def test_creates_missing_secret(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """A new secret is created and only a masked preview is printed."""
        client = FakeClient(
            {
                "describe_secret": client_error("ResourceNotFoundException"),
                "create_secret": {"ARN": "arn:aws:secretsmanager:secret:api"},
            }
        )
        value = json.dumps({"user": "app", "password": "hunter22"})

        code = flows.create_secret_flow(
            capture.console, make_aws(secretsmanager=client), "api", value
        )

        assert code == 0
        assert "hunter22" not in capture.stdout
        assert "    password: ****" in capture.stdout
        assert "[INFO] Secret type: JSON" in capture.stdout
        assert "[INFO] ARN: arn:aws:secretsmanager:secret:api" in capture.stdout

    def test_existing_secret_declined(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """Declining the update leaves the secret alone and exits cleanly."""
        client = FakeClient({"describe_secret": {"Name": "api"}})
        capture.answers.append("n")

        code = flows.create_secret_flow(
            capture.console, make_aws(secretsmanager=client), "api", "new-value"
        )

        assert code == 0
        assert "put_secret_value" not in client.operations()
        assert capture.prompts == ["Update existing secret 'api'? (y/N): "]
        assert "[INFO] Cancelled" in capture.stdout

    def test_existing_secret_confirmed(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """Confirming stores a new version."""
        client = FakeClient(
            {"describe_secret": {"Name": "api"}, "put_secret_value": {"VersionId": "2"}}
        )
        capture.answers.append("y")

        code = flows.create_secret_flow(
            capture.console, make_aws(secretsmanager=client), "api", "new-value"
        )

        assert code == 0
        assert client.kwargs_for("put_secret_value") == {
            "SecretId": "api",
            "SecretString": "new-value",
        }
        assert "[OK] Secret updated" in capture.stdout


def test_show_secret_hides_value_by_default(
    capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
) -> None:
    """The value is fetched only when revealed."""
    client = FakeClient(
        {
            "describe_secret": {
                "Name": "api",
                "ARN": "arn:1",
                "Tags": [{"Key": "team", "Value": "ops"}],
                "VersionIdsToStages": {"v1": ["AWSCURRENT"]},
            }
        }
    )

    code = flows.show_secret_flow(
        capture.console, make_aws(secretsmanager=client), "api"
    )

    assert code == 0
    assert "get_secret_value" not in client.operations()
    assert "  team: ops" in capture.stdout
    assert "  v1... -> AWSCURRENT" in capture.stdout
    assert "Use --reveal" in capture.stdout


def test_delete_secret_cancelled(
    capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
) -> None:
    """Declining the confirmation prints Cancelled and deletes nothing."""
    client = FakeClient({"describe_secret": {"Name": "api"}})

    code = flows.delete_secret_flow(
        capture.console, make_aws(secretsmanager=client), "api"
    )

    assert code == 0
    assert "delete_secret" not in client.operations()
    assert capture.stdout.rstrip().endswith("[INFO] Cancelled")


def test_delete_secret_with_assume_yes(
    capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
) -> None:
    """An assume-yes console deletes without prompting."""
    client = FakeClient({"describe_secret": {"Name": "api"}})
    console = capture.console.with_assume_yes(assume_yes=True)

    code = flows.delete_secret_flow(
        console, make_aws(secretsmanager=client), "api", force=True
    )

    assert code == 0
    assert client.kwargs_for("delete_secret") == {
        "SecretId": "api",
        "ForceDeleteWithoutRecovery": True,
    }
    assert capture.prompts == []


class TestParameterStore:
    """Tests for Parameter Store flows."""

    @pytest.mark.parametrize(
        ("name", "message"),
        [
            ("app/db", "Must start with '/'"),
            ("/app/db host", "Allowed: letters"),
        ],
    )
    def test_invalid_names(self, name: str, message: str) -> None:
        """Names must be absolute paths of allowed characters."""
        with pytest.raises(ConfigError, match=message):
            flows.validate_parameter_name(name)

    def test_secure_values_hidden(self) -> None:
        """SecureString values are hidden unless revealed."""
        parameter = {"Type": "SecureString", "Value": "s3cr3t"}

        assert flows.display_value(parameter) == "********** (SecureString)"
        assert flows.display_value(parameter, reveal=True) == "s3cr3t"

    def test_set_creates_parameter(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """A new parameter is created and its stored details printed."""
        client = FakeClient(
            {
                "get_parameter": sequence(
                    client_error("ParameterNotFound"),
                    {"Parameter": {"Type": "String", "Version": 1, "Value": "db1"}},
                ),
                "put_parameter": {"Version": 1},
            }
        )

        code = flows.set_parameter_flow(
            capture.console, make_aws(ssm=client), "/app/db_host", "db1"
        )

        assert code == 0
        assert "[INFO] Creating parameter: /app/db_host" in capture.stdout
        assert "[OK] Parameter created (version: 1)" in capture.stdout
        assert "[INFO] Value: db1" in capture.stdout

    def test_set_without_overwrite_keeps_existing(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """An existing parameter is not replaced when overwrite is off."""
        client = FakeClient({"get_parameter": {"Parameter": {"Name": "/app/x"}}})

        code = flows.set_parameter_flow(
            capture.console, make_aws(ssm=client), "/app/x", "v", overwrite=False
        )

        assert code == 0
        assert "put_parameter" not in client.operations()

    def test_set_rejects_unknown_type(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """Types are validated before any AWS call."""
        with pytest.raises(ConfigError, match="Valid types"):
            flows.set_parameter_flow(
                capture.console,
                make_aws(ssm=FakeClient()),
                "/app/x",
                "v",
                parameter_type="Binary",
            )

    def test_get_missing_parameter(
        self, capture: ConsoleCapture, make_aws: cabc.Callable[..., AwsContext]
    ) -> None:
        """A missing parameter exits 1."""
        client = FakeClient({"get_parameter": client_error("ParameterNotFound")})

        code = flows.get_parameter_flow(capture.console, make_aws(ssm=client), "/x")

        assert code == 1
        assert "[ERROR] Parameter not found: /x" in capture.stderr
