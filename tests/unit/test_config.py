"""Unit tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from opskit.config import Settings
from opskit.errors import ConfigError

_ENV_VARS = (
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_PROFILE",
    "KIND_CONFIG",
    "KIND_IMAGE",
    "DEBUG",
    "OPSKIT_LOG_LEVEL",
    "OPSKIT_POLL_INTERVAL",
    "OPSKIT_POLL_TIMEOUT",
    "NO_COLOR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test from an environment without opskit variables."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    """Unset variables fall back to the documented defaults."""
    settings = Settings.from_env()

    assert settings.region == "ap-northeast-1"
    assert settings.profile is None
    assert settings.kind_config is None
    assert settings.debug is False
    assert settings.log_level == "INFO"
    assert settings.poll_interval == 5.0
    assert settings.poll_timeout == 120.0


def test_region_prefers_aws_region(monkeypatch: pytest.MonkeyPatch) -> None:
    """AWS_REGION wins over AWS_DEFAULT_REGION."""
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    assert Settings.from_env().region == "eu-west-1"

    monkeypatch.setenv("AWS_REGION", "us-east-1")
    assert Settings.from_env().region == "us-east-1"


def test_blank_region_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    """An explicitly empty region is a configuration error."""
    monkeypatch.setenv("AWS_REGION", "  ")

    with pytest.raises(ConfigError, match="AWS_REGION must be non-empty"):
        Settings.from_env()


def test_optional_values(monkeypatch: pytest.MonkeyPatch) -> None:
    """Profile and kind overrides are read when set; blanks count as unset."""
    monkeypatch.setenv("AWS_PROFILE", "staging")
    monkeypatch.setenv("KIND_CONFIG", "/tmp/kind.yaml")  # noqa: S108
    monkeypatch.setenv("KIND_IMAGE", " ")

    settings = Settings.from_env()

    assert settings.profile == "staging"
    assert settings.kind_config == Path("/tmp/kind.yaml")  # noqa: S108
    assert settings.kind_image is None


@pytest.mark.parametrize(
    ("debug", "log_level", "expected"),
    [
        ("1", None, "DEBUG"),
        ("true", "warning", "warning"),
        ("0", None, "INFO"),
    ],
)
def test_debug_and_log_level(
    monkeypatch: pytest.MonkeyPatch,
    debug: str,
    log_level: str | None,
    expected: str,
) -> None:
    """DEBUG implies DEBUG logging unless a log level is given explicitly."""
    monkeypatch.setenv("DEBUG", debug)
    if log_level is not None:
        monkeypatch.setenv("OPSKIT_LOG_LEVEL", log_level)

    assert Settings.from_env().log_level == expected


def test_no_color_disables_colour(monkeypatch: pytest.MonkeyPatch) -> None:
    """NO_COLOR turns colour off whatever its value."""
    monkeypatch.setenv("NO_COLOR", "")

    assert Settings.from_env().color is False


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("OPSKIT_POLL_INTERVAL", "soon", "Must be a number of seconds"),
        ("OPSKIT_POLL_INTERVAL", "0", "Must be greater than zero"),
        ("OPSKIT_POLL_TIMEOUT", "-5", "Must be zero or greater"),
        ("OPSKIT_POLL_TIMEOUT", "inf", "Must be a finite number of seconds"),
        ("OPSKIT_POLL_TIMEOUT", "nan", "Must be a finite number of seconds"),
        ("OPSKIT_POLL_INTERVAL", "-Infinity", "Must be a finite number of seconds"),
    ],
)
def test_invalid_durations(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    """Durations must be numbers in range."""
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError, match=message):
        Settings.from_env()


def test_zero_poll_timeout_allowed(monkeypatch: pytest.MonkeyPatch) -> None:
    """A zero timeout means check once."""
    monkeypatch.setenv("OPSKIT_POLL_TIMEOUT", "0")

    assert Settings.from_env().poll_timeout == 0.0
