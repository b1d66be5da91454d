"""Helm repository and release operations."""

from __future__ import annotations

import collections.abc as cabc

from opskit.errors import RemoteCallError
from opskit.k8s._process import decode_json, run_tool
from opskit.k8s.models import HelmRelease, HelmRepo

DEFAULT_NAMESPACE = "default"

# Timeouts for Helm operations (in seconds).
_HELM_REPO_TIMEOUT = 60
_HELM_INSTALL_TIMEOUT = 600

COMMON_REPOS = {
    "bitnami": "https://charts.bitnami.com/bitnami",
    "ingress-nginx": "https://kubernetes.github.io/ingress-nginx",
    "jetstack": "https://charts.jetstack.io",
    "prometheus-community": "https://prometheus-community.github.io/helm-charts",
    "grafana": "https://grafana.github.io/helm-charts",
}


def list_repos() -> list[HelmRepo]:
    """Return configured chart repositories.

    ``helm repo list`` exits non-zero when no repository is configured;
    that case is reported as an empty list.
    """
    args = ["helm", "repo", "list", "-o", "json"]
    try:
        output = run_tool(args, timeout=_HELM_REPO_TIMEOUT)
    except RemoteCallError as exc:
        if "no repositories" in str(exc):
            return []
        raise
    return decode_json(output, list[HelmRepo], args=args)


def repo_exists(name: str) -> bool:
    """Return whether a repository is registered under exactly ``name``."""
    return any(repo.name == name for repo in list_repos())


def add_repo(name: str, url: str) -> None:
    """Register chart repository ``name``."""
    run_tool(["helm", "repo", "add", name, url], timeout=_HELM_REPO_TIMEOUT)


def update_repo(name: str | None = None) -> None:
    """Refresh one repository's index, or all of them."""
    args = ["helm", "repo", "update"]
    if name:
        args.append(name)
    run_tool(args, timeout=_HELM_REPO_TIMEOUT)


def list_releases(namespace: str | None = None) -> list[HelmRelease]:
    """Return releases in ``namespace``, or across all namespaces."""
    args = ["helm", "list", "-o", "json"]
    args.extend(["-n", namespace] if namespace else ["-A"])
    return decode_json(run_tool(args), list[HelmRelease], args=args)


def release_exists(name: str, namespace: str = DEFAULT_NAMESPACE) -> bool:
    """Return whether release ``name`` is installed in ``namespace``."""
    return any(release.name == name for release in list_releases(namespace))


def install_command(  # noqa: PLR0913
    release: str,
    chart: str,
    namespace: str = DEFAULT_NAMESPACE,
    *,
    values_file: str | None = None,
    set_values: cabc.Sequence[str] = (),
    dry_run: bool = False,
) -> list[str]:
    """Return the ``helm upgrade --install`` argument list."""
    args = [
        "helm",
        "upgrade",
        "--install",
        release,
        chart,
        "-n",
        namespace,
        "--create-namespace",
    ]
    if values_file:
        args.extend(["-f", values_file])
    for value in set_values:
        args.extend(["--set", value])
    if dry_run:
        args.append("--dry-run")
    return args


def install_release(  # noqa: PLR0913
    release: str,
    chart: str,
    namespace: str = DEFAULT_NAMESPACE,
    *,
    values_file: str | None = None,
    set_values: cabc.Sequence[str] = (),
    dry_run: bool = False,
) -> str:
    """Install or upgrade ``release`` and return helm's output.

    Raises
    ------
    RemoteCallError
        If helm fails or times out.

    """
    return run_tool(
        install_command(
            release,
            chart,
            namespace,
            values_file=values_file,
            set_values=set_values,
            dry_run=dry_run,
        ),
        timeout=_HELM_INSTALL_TIMEOUT,
    )


def uninstall_release(release: str, namespace: str = DEFAULT_NAMESPACE) -> None:
    """Uninstall ``release`` from ``namespace``."""
    run_tool(
        ["helm", "uninstall", release, "-n", namespace], timeout=_HELM_INSTALL_TIMEOUT
    )
