"""kind cluster lifecycle operations.

kind names each cluster's kubeconfig context ``kind-<cluster>``; use
:func:`context_name` rather than building the string by hand.
"""

from __future__ import annotations

from pathlib import Path

from opskit.k8s._process import run_tool

DEFAULT_CLUSTER = "kind"

# Cluster creation pulls node images and can take several minutes.
_CREATE_TIMEOUT = 600
_DELETE_TIMEOUT = 180


def context_name(cluster: str) -> str:
    """Return the kubeconfig context kind creates for ``cluster``."""
    return f"kind-{cluster}"


def list_clusters() -> list[str]:
    """Return the names of every kind cluster."""
    output = run_tool(["kind", "get", "clusters"])
    # kind prints "No kind clusters found." to stderr, so stdout is empty.
    return [line.strip() for line in output.splitlines() if line.strip()]


def cluster_exists(cluster: str) -> bool:
    """Return whether kind cluster ``cluster`` exists, by exact name."""
    return cluster in list_clusters()


def create_command(
    cluster: str, config: Path | None = None, image: str | None = None
) -> list[str]:
    """Return the ``kind create cluster`` argument list.

    ``config`` is passed only when the file exists, so a stale
    ``KIND_CONFIG`` falls back to kind's default single-node layout.
    """
    args = ["kind", "create", "cluster", "--name", cluster]
    if config is not None and config.is_file():
        args.extend(["--config", str(config)])
    if image:
        args.extend(["--image", image])
    return args


def create_cluster(
    cluster: str,
    config: Path | None = None,
    image: str | None = None,
    *,
    timeout: float = _CREATE_TIMEOUT,
) -> None:
    """Create kind cluster ``cluster``.

    Raises
    ------
    RemoteCallError
        If ``kind create cluster`` fails or times out.

    """
    run_tool(create_command(cluster, config, image), timeout=timeout)


def delete_cluster(cluster: str, *, timeout: float = _DELETE_TIMEOUT) -> None:
    """Delete kind cluster ``cluster``."""
    run_tool(["kind", "delete", "cluster", "--name", cluster], timeout=timeout)
