"""EKS cluster lookup and kubeconfig registration."""

from __future__ import annotations

import subprocess
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import is_not_found, paginate
from opskit.errors import RemoteCallError

SERVICE = "eks"
_UPDATE_KUBECONFIG_TIMEOUT = 60


def describe_cluster(client: typ.Any, cluster: str) -> dict[str, typ.Any] | None:  # noqa: ANN401
    """Return the cluster description, or ``None`` when absent."""
    try:
        return client.describe_cluster(name=cluster).get("cluster", {})
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise RemoteCallError.from_client_error(
            SERVICE, "describe_cluster", exc
        ) from exc


def cluster_exists(client: typ.Any, cluster: str) -> bool:  # noqa: ANN401
    """Return whether EKS cluster ``cluster`` exists."""
    return describe_cluster(client, cluster) is not None


def list_clusters(client: typ.Any) -> list[str]:  # noqa: ANN401
    """Return the names of every cluster in the region."""
    return list(paginate(client, SERVICE, "list_clusters", "clusters"))


def update_kubeconfig_command(
    cluster: str, region: str, profile: str | None = None
) -> list[str]:
    """Return the ``aws eks update-kubeconfig`` argument list."""
    args = ["aws", "eks", "update-kubeconfig", "--name", cluster, "--region", region]
    if profile:
        args.extend(["--profile", profile])
    return args


def update_kubeconfig(cluster: str, region: str, profile: str | None = None) -> str:
    """Merge the cluster's credentials into the local kubeconfig.

    Returns
    -------
    str
        The AWS CLI's confirmation message.

    Raises
    ------
    RemoteCallError
        If the AWS CLI fails or times out.

    """
    try:
        # S603: arguments are a list built from validated names
        result = subprocess.run(  # noqa: S603
            update_kubeconfig_command(cluster, region, profile),
            capture_output=True,
            text=True,
            check=True,
            timeout=_UPDATE_KUBECONFIG_TIMEOUT,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
        raise RemoteCallError.from_process(exc) from exc
    return result.stdout.strip()
