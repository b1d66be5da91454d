"""Checks for external tools that commands shell out to."""

from __future__ import annotations

import shutil
import subprocess

from opskit.errors import PrerequisiteError

_DOCKER_INFO_TIMEOUT = 30

INSTALL_HINTS = {
    "kubectl": "https://kubernetes.io/docs/tasks/tools/install-kubectl/",
    "kind": "https://kind.sigs.k8s.io/docs/user/quick-start/#installation",
    "helm": "https://helm.sh/docs/intro/install/",
    "docker": "https://docs.docker.com/engine/install/",
    "aws": (
        "https://docs.aws.amazon.com/cli/latest/userguide/"
        "getting-started-install.html"
    ),
}


def require_exe(name: str) -> None:
    """Verify a CLI tool is available in PATH.

    Parameters
    ----------
    name : str
        Name of the executable to check for.

    Raises
    ------
    PrerequisiteError
        If the executable is not found in PATH.

    """
    if shutil.which(name) is None:
        error = PrerequisiteError.missing_executable(name)
        if name in INSTALL_HINTS:
            error.hint = f"Install: {INSTALL_HINTS[name]}"
        raise error


def require_exes(*names: str) -> None:
    """Verify every named CLI tool is available, in order."""
    for name in names:
        require_exe(name)


def docker_running() -> bool:
    """Return whether the Docker daemon answers ``docker info``."""
    try:
        # S603/S607: docker via PATH is standard; no user input
        result = subprocess.run(  # noqa: S603
            ["docker", "info"],  # noqa: S607
            capture_output=True,
            timeout=_DOCKER_INFO_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def require_docker() -> None:
    """Verify docker is installed and its daemon is running.

    Raises
    ------
    PrerequisiteError
        If docker is missing or the daemon is not reachable.

    """
    require_exe("docker")
    if not docker_running():
        raise PrerequisiteError.docker_not_running()


__all__ = ["docker_running", "require_docker", "require_exe", "require_exes"]
