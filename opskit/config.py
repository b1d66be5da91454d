"""Runtime settings resolved from the process environment."""

from __future__ import annotations

import dataclasses
import math
import os
import sys
from pathlib import Path

from opskit.errors import ConfigError

# Default configuration values - single source of truth
_DEFAULT_REGION = "ap-northeast-1"
_DEFAULT_LOG_LEVEL = "INFO"
_DEFAULT_POLL_INTERVAL_S = 5.0
_DEFAULT_POLL_TIMEOUT_S = 120.0

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str) -> bool:
    """Return whether an environment flag is set to a truthy value."""
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def _optional(name: str) -> str | None:
    """Return a stripped environment value, treating blanks as unset."""
    value = os.environ.get(name, "").strip()
    return value or None


@dataclasses.dataclass(frozen=True, slots=True)
class Settings:
    """Settings shared by every command.

    Attributes
    ----------
    region
        AWS region used for every client.
    profile
        Named AWS profile, or ``None`` for the default credential chain.
    kind_config
        Optional kind cluster configuration file.
    kind_image
        Optional kind node image.
    debug
        Whether debug console output is enabled.
    log_level
        femtologging level name.
    poll_interval
        Default seconds between readiness checks.
    poll_timeout
        Default seconds before a readiness wait gives up.
    color
        Whether console output may use ANSI colours.

    """

    region: str = _DEFAULT_REGION
    profile: str | None = None
    kind_config: Path | None = None
    kind_image: str | None = None
    debug: bool = False
    log_level: str = _DEFAULT_LOG_LEVEL
    poll_interval: float = _DEFAULT_POLL_INTERVAL_S
    poll_timeout: float = _DEFAULT_POLL_TIMEOUT_S
    color: bool = True

    @staticmethod
    def _parse_seconds(name: str, default: float, *, allow_zero: bool) -> float:
        """Parse and validate a duration in seconds from the environment.

        Raises
        ------
        ConfigError
            If the value is not a number or is out of range.

        """
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return default

        try:
            seconds = float(raw)
        except ValueError as exc:
            raise ConfigError.invalid_parameter(
                name, raw, "Must be a number of seconds"
            ) from exc

        if not math.isfinite(seconds):
            raise ConfigError.invalid_parameter(
                name, raw, "Must be a finite number of seconds"
            )

        if seconds < 0 or (seconds == 0 and not allow_zero):
            constraint = (
                "Must be zero or greater" if allow_zero else "Must be greater than zero"
            )
            raise ConfigError.invalid_parameter(name, raw, constraint)

        return seconds

    @staticmethod
    def _parse_region() -> str:
        raw = os.environ.get("AWS_REGION")
        if raw is None:
            raw = os.environ.get("AWS_DEFAULT_REGION", _DEFAULT_REGION)
        region = raw.strip()
        if not region:
            raise ConfigError.empty("AWS_REGION")
        return region

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables.

        Reads the following environment variables:

        - ``AWS_REGION`` / ``AWS_DEFAULT_REGION``: region (default
          ``ap-northeast-1``)
        - ``AWS_PROFILE``: optional named profile
        - ``KIND_CONFIG`` / ``KIND_IMAGE``: optional kind overrides
        - ``DEBUG``: enables debug output and DEBUG logging
        - ``OPSKIT_LOG_LEVEL``: femtologging level
        - ``OPSKIT_POLL_INTERVAL`` / ``OPSKIT_POLL_TIMEOUT``: readiness waits
        - ``NO_COLOR``: disables ANSI colours

        Returns
        -------
        Settings
            Settings instance with values from the environment.

        Raises
        ------
        ConfigError
            If a value is present but invalid.

        """
        debug = _env_flag("DEBUG")
        log_level = _optional("OPSKIT_LOG_LEVEL") or (
            "DEBUG" if debug else _DEFAULT_LOG_LEVEL
        )
        kind_config = _optional("KIND_CONFIG")
        color = "NO_COLOR" not in os.environ and sys.stdout.isatty()

        return cls(
            region=cls._parse_region(),
            profile=_optional("AWS_PROFILE"),
            kind_config=Path(kind_config) if kind_config else None,
            kind_image=_optional("KIND_IMAGE"),
            debug=debug,
            log_level=log_level,
            poll_interval=cls._parse_seconds(
                "OPSKIT_POLL_INTERVAL", _DEFAULT_POLL_INTERVAL_S, allow_zero=False
            ),
            poll_timeout=cls._parse_seconds(
                "OPSKIT_POLL_TIMEOUT", _DEFAULT_POLL_TIMEOUT_S, allow_zero=True
            ),
            color=color,
        )
