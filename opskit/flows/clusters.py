"""kind cluster lifecycle and EKS kubeconfig flows."""

from __future__ import annotations

import collections.abc as cabc
import time
import typing as typ

from opskit.aws import eks
from opskit.errors import RemoteCallError
from opskit.flows.common import (
    EXIT_FAILED,
    EXIT_OK,
    print_lines,
    require_aws,
    require_tools,
)
from opskit.formatting import PLACEHOLDER, truncate
from opskit.k8s import kind, kubectl
from opskit.prerequisites import require_docker
from opskit.provisioning import ProvisionOutcome, confirm_destroy, ensure

if typ.TYPE_CHECKING:
    from pathlib import Path

    from opskit.aws import AwsContext
    from opskit.console import Console

NODE_WAIT_TIMEOUT = 60
NODE_WAIT_INTERVAL = 5
_ENDPOINT_PREVIEW = 63


def _print_nodes(console: Console) -> None:
    console.info("Nodes:")
    try:
        nodes = kubectl.get_nodes()
    except RemoteCallError as exc:
        console.warning(f"Could not get nodes: {exc}")
        return
    print_lines(console, kubectl.nodes_table(nodes))


def create_kind_flow(  # noqa: PLR0913
    console: Console,
    cluster: str = kind.DEFAULT_CLUSTER,
    *,
    config: Path | None = None,
    image: str | None = None,
    wait_timeout: float = NODE_WAIT_TIMEOUT,
    wait_interval: float = NODE_WAIT_INTERVAL,
    sleep: cabc.Callable[[float], object] = time.sleep,
) -> int:
    """Ensure a local kind cluster exists and its nodes are ready.

    An existing cluster is reused and its context selected. Nodes still
    not ready after ``wait_timeout`` seconds produce a warning, not a
    failure.
    """
    console.header(f"Setting Up Kind Cluster: {cluster}")
    console.section("Prerequisites")
    require_tools(console, "docker")
    require_docker()
    console.success("Docker daemon is running")
    require_tools(console, "kind", "kubectl")

    console.section("Cluster Setup")
    context = kind.context_name(cluster)

    def create() -> None:
        console.info(f"Creating cluster '{cluster}'...")
        if config is not None and config.is_file():
            console.info(f"Using config: {config}")
        kind.create_cluster(cluster, config, image)

    result = ensure(
        "kind cluster",
        cluster,
        exists=lambda: kind.cluster_exists(cluster),
        create=create,
    )
    if result.outcome is ProvisionOutcome.CREATED:
        console.success("Cluster created successfully")
    else:
        console.success(f"Cluster '{cluster}' already exists")
        if kubectl.context_exists(context):
            kubectl.use_context(context)
            console.success(f"Context set to: {context}")

    console.section("Cluster Verification")
    if not kubectl.cluster_reachable():
        console.error("Cannot connect to cluster")
        return EXIT_FAILED
    console.success("Connected to cluster")

    console.info(f"Waiting for nodes to be ready (timeout: {wait_timeout:.0f}s)...")
    waited = kubectl.wait_for_nodes_ready(
        timeout=wait_timeout,
        interval=wait_interval,
        sleep=sleep,
        on_wait=lambda status, elapsed: console.debug(
            f"Nodes: {status} ({elapsed:.0f}/{wait_timeout:.0f}s)"
        ),
    )
    if waited.ready:
        console.success("All nodes are ready")
    else:
        console.warning("Timeout waiting for nodes to be ready")

    console.section("Cluster Information")
    _print_nodes(console)
    console.info(f"Cluster Context: {context}")
    console.blank()
    console.success(f"Kind cluster '{cluster}' is ready!")
    console.info("Useful commands:")
    console.info("  Get nodes:    kubectl get nodes")
    console.info("  Get pods:     kubectl get pods -A")
    console.info(
        f"  Load image:   kind load docker-image my-image:tag --name {cluster}"
    )
    console.info(f"  Delete:       opskit kind delete {cluster}")
    return EXIT_OK


def delete_kind_flow(
    console: Console,
    cluster: str = kind.DEFAULT_CLUSTER,
    *,
    delete_all: bool = False,
    force: bool = False,
) -> int:
    """Delete one kind cluster, or every kind cluster with ``delete_all``.

    Deleting a cluster that does not exist is a warning, not an error.
    Each deletion failure is reported and the remaining clusters are still
    attempted.
    """
    console.header("Delete Kind Cluster")
    require_tools(console, "kind")
    clusters = kind.list_clusters()
    if not clusters:
        console.info("No kind clusters found")
        return EXIT_OK
    console.section("Current Clusters")
    for name in clusters:
        console.line(f"  - {name}")

    if delete_all:
        targets = clusters
        console.warning(f"Found {len(targets)} cluster(s) to delete:")
        prompt = f"Delete ALL {len(targets)} clusters?"
    elif cluster not in clusters:
        console.warning(f"Cluster '{cluster}' does not exist")
        return EXIT_OK
    else:
        targets = [cluster]
        prompt = f"Delete cluster '{cluster}'?"

    if not confirm_destroy(console, prompt, force=force):
        return EXIT_OK

    exit_code = EXIT_OK
    for name in targets:
        console.info(f"Deleting '{name}'...")
        try:
            kind.delete_cluster(name)
        except RemoteCallError as exc:
            console.error(f"Failed to delete '{name}': {exc}")
            exit_code = EXIT_FAILED
        else:
            console.success(f"Deleted '{name}'")

    remaining = kind.list_clusters()
    if remaining:
        console.info("Remaining clusters:")
        for name in remaining:
            console.line(f"  - {name}")
    return exit_code


def list_eks_flow(console: Console, aws: AwsContext) -> int:
    """Print the EKS clusters in the current region."""
    console.section("Available EKS Clusters")
    require_aws(console, aws)
    names = eks.list_clusters(aws.client(eks.SERVICE))
    if not names:
        console.info(f"No EKS clusters found in {aws.region}")
        return EXIT_OK
    for name in names:
        console.line(f"  - {name}")
    return EXIT_OK


def eks_config_flow(console: Console, aws: AwsContext, cluster: str) -> int:
    """Point kubectl at an existing EKS cluster and verify the connection."""
    console.header(f"Setup EKS Kubeconfig: {cluster}")
    console.section("Prerequisites")
    require_aws(console, aws)
    console.success("AWS CLI is configured")
    require_tools(console, "aws", "kubectl")

    console.section("Configuration")
    console.info(f"Cluster: {cluster}")
    console.info(f"Region: {aws.region}")
    if aws.profile:
        console.info(f"Profile: {aws.profile}")

    console.section("Cluster Verification")
    console.info("Checking if cluster exists...")
    description = eks.describe_cluster(aws.client(eks.SERVICE), cluster)
    if description is None:
        console.error(f"Cluster '{cluster}' not found in {aws.region}")
        list_eks_flow(console, aws)
        return EXIT_FAILED
    console.success(f"Cluster '{cluster}' exists")
    status = description.get("status", PLACEHOLDER)
    version = description.get("version", PLACEHOLDER)
    console.info(f"Status: {status}")
    console.info(f"Version: {version}")
    if status != "ACTIVE":
        console.warning(f"Cluster is not ACTIVE (status: {status})")

    console.section("Kubeconfig Update")
    console.info("Updating kubeconfig...")
    eks.update_kubeconfig(cluster, aws.region, aws.profile)
    console.success("Kubeconfig updated")

    console.section("Connection Verification")
    console.info("Testing connection...")
    if not kubectl.cluster_reachable():
        console.error("Cannot connect to cluster")
        console.info("Check your network and AWS credentials")
        return EXIT_FAILED
    console.success("Connected to cluster")
    _print_nodes(console)

    console.blank()
    console.success("EKS kubeconfig configured successfully!")
    console.section("Connection Information")
    console.line(f"  Cluster:  {cluster}")
    console.line(f"  Region:   {aws.region}")
    console.line(f"  Version:  {version}")
    endpoint = str(description.get("endpoint", PLACEHOLDER))
    console.line(f"  Endpoint: {truncate(endpoint, _ENDPOINT_PREVIEW)}")
    console.line(f"  Context:  {kubectl.current_context() or PLACEHOLDER}")
    return EXIT_OK
