"""kubectl operations: contexts, namespaces, nodes, secrets and ingresses.

Every function shells out to ``kubectl`` with an argument list and the
current kubeconfig context. Read commands request ``-o json`` and decode the
output into :mod:`opskit.k8s.models` structs. Existence checks use the exit
status only, so a missing resource is ``False`` rather than an error.

Examples
--------
Wait for a fresh cluster before deploying:

    result = wait_for_nodes_ready(timeout=60)
    if not result.ready:
        console.warning("Nodes are not ready yet")

Render and apply an ingress:

    manifest = ingress_manifest(
        "web", host="app.example.com", service="web", port=80
    )
    apply_manifest(manifest)

"""

from __future__ import annotations

import base64
import binascii
import collections.abc as cabc
import io
import re
import time

from ruamel.yaml import YAML

from opskit.errors import RemoteCallError
from opskit.formatting import Column, render_table
from opskit.k8s._process import decode_json, probe, run_tool
from opskit.k8s.models import (
    Ingress,
    IngressList,
    Node,
    NodeList,
    Pod,
    PodList,
    Secret,
    SecretList,
)
from opskit.polling import PollResult, poll_until

DEFAULT_NAMESPACE = "default"
DEFAULT_INGRESS_CLASS = "nginx"
NODES_READY = "Ready"
NODES_NOT_READY = "NotReady"
NO_NODES = "NoNodes"

# Kubernetes secret keys must contain only alphanumeric, dot, underscore, or hyphen
_SECRET_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_APPLY_TIMEOUT = 60
_CLUSTER_INFO_TIMEOUT = 15


def _namespace_args(namespace: str | None) -> list[str]:
    return ["-n", namespace] if namespace else ["-A"]


# Contexts


def current_context() -> str | None:
    """Return the active kubeconfig context, or ``None`` when unset."""
    try:
        return run_tool(["kubectl", "config", "current-context"]) or None
    except RemoteCallError:
        return None


def context_exists(name: str) -> bool:
    """Return whether kubeconfig context ``name`` exists."""
    return probe(["kubectl", "config", "get-contexts", name])


def use_context(name: str) -> None:
    """Switch the active kubeconfig context."""
    run_tool(["kubectl", "config", "use-context", name])


def cluster_reachable() -> bool:
    """Return whether the API server of the active context answers."""
    return probe(["kubectl", "cluster-info"], timeout=_CLUSTER_INFO_TIMEOUT)


# Namespaces


def namespace_exists(namespace: str) -> bool:
    """Return whether ``namespace`` exists."""
    return probe(["kubectl", "get", "namespace", namespace])


def create_namespace(namespace: str) -> None:
    """Create ``namespace``."""
    run_tool(["kubectl", "create", "namespace", namespace])


def ensure_namespace(namespace: str) -> bool:
    """Create ``namespace`` when absent and return whether it was created."""
    if namespace_exists(namespace):
        return False
    create_namespace(namespace)
    return True


# Nodes and pods


def get_nodes() -> list[Node]:
    """Return every node of the active cluster."""
    args = ["kubectl", "get", "nodes", "-o", "json"]
    return decode_json(run_tool(args), NodeList, args=args).items


def node_readiness() -> str:
    """Summarise node readiness as a single status.

    Returns
    -------
    str
        ``Ready`` when at least one node exists and every node is ready,
        ``NoNodes`` for an empty or unreachable cluster, otherwise
        ``NotReady``.

    """
    try:
        nodes = get_nodes()
    except RemoteCallError:
        # The API server is often not answering yet right after creation.
        return NO_NODES
    if not nodes:
        return NO_NODES
    return NODES_READY if all(node.ready for node in nodes) else NODES_NOT_READY


def wait_for_nodes_ready(
    *,
    timeout: float = 120,
    interval: float = 5,
    sleep: cabc.Callable[[float], object] = time.sleep,
    on_wait: cabc.Callable[[str | None, float], None] | None = None,
) -> PollResult:
    """Poll :func:`node_readiness` until ``Ready`` or ``timeout`` elapses."""
    return poll_until(
        node_readiness,
        {NODES_READY},
        timeout=timeout,
        interval=interval,
        sleep=sleep,
        on_wait=on_wait,
    )


def nodes_table(nodes: cabc.Sequence[Node]) -> list[str]:
    """Render nodes as ``NAME STATUS ROLES VERSION CREATED`` rows."""
    return render_table(
        nodes,
        [
            Column("NAME", lambda node: node.metadata.name, 30),
            Column(
                "STATUS",
                lambda node: NODES_READY if node.ready else NODES_NOT_READY,
                10,
            ),
            Column("ROLES", lambda node: ", ".join(node.roles), 15),
            Column("VERSION", lambda node: node.version, 12),
            Column("CREATED", lambda node: node.metadata.creation_timestamp),
        ],
    )


def list_pods(namespace: str | None = None) -> list[Pod]:
    """Return pods in ``namespace``, or across all namespaces."""
    args = ["kubectl", "get", "pods", *_namespace_args(namespace), "-o", "json"]
    return decode_json(run_tool(args), PodList, args=args).items


def pods_summary(namespace: str | None = None) -> tuple[int, int]:
    """Return ``(running, total)`` pod counts."""
    pods = list_pods(namespace)
    running = sum(1 for pod in pods if pod.status.phase == "Running")
    return running, len(pods)


# Manifests


def apply_manifest(manifest: str, namespace: str | None = None) -> str:
    """Apply a YAML manifest read from stdin and return kubectl's summary."""
    args = ["kubectl", "apply", "-f", "-"]
    if namespace:
        args.extend(["-n", namespace])
    return run_tool(args, input_text=manifest, timeout=_APPLY_TIMEOUT)


def apply_file(path: str, namespace: str | None = None) -> str:
    """Apply a manifest file and return kubectl's summary."""
    args = ["kubectl", "apply", "-f", path]
    if namespace:
        args.extend(["-n", namespace])
    return run_tool(args, timeout=_APPLY_TIMEOUT)


# Secrets


def validate_secret_key(key: str) -> None:
    """Reject keys Kubernetes does not accept in secret data.

    Raises
    ------
    ValueError
        If ``key`` is empty or has characters outside ``[A-Za-z0-9._-]``.

    """
    if not _SECRET_KEY_PATTERN.match(key):
        msg = (
            f"secret key '{key}' is invalid; "
            "only alphanumeric, dot, underscore, and hyphen are allowed"
        )
        raise ValueError(msg)


def secret_exists(name: str, namespace: str = DEFAULT_NAMESPACE) -> bool:
    """Return whether secret ``name`` exists in ``namespace``."""
    return probe(["kubectl", "get", "secret", name, "-n", namespace])


def create_generic_secret(
    name: str,
    literals: cabc.Mapping[str, str],
    namespace: str = DEFAULT_NAMESPACE,
    *,
    files: cabc.Sequence[str] = (),
) -> None:
    """Create an ``Opaque`` secret from key/value literals and files.

    Each file is stored under its base name, as ``kubectl`` does for a
    bare ``--from-file``.

    Raises
    ------
    ValueError
        If neither literals nor files are given or a key is invalid.

    """
    if not literals and not files:
        msg = "at least one key=value literal or file is required"
        raise ValueError(msg)
    args = ["kubectl", "create", "secret", "generic", name, "-n", namespace]
    for key, value in literals.items():
        validate_secret_key(key)
        args.append(f"--from-literal={key}={value}")
    args.extend(f"--from-file={path}" for path in files)
    run_tool(args)


def create_tls_secret(
    name: str,
    cert_file: str,
    key_file: str,
    namespace: str = DEFAULT_NAMESPACE,
) -> None:
    """Create a ``kubernetes.io/tls`` secret from PEM files."""
    run_tool(
        [
            "kubectl",
            "create",
            "secret",
            "tls",
            name,
            "-n",
            namespace,
            f"--cert={cert_file}",
            f"--key={key_file}",
        ]
    )


def get_secret(name: str, namespace: str = DEFAULT_NAMESPACE) -> Secret:
    """Return secret ``name``."""
    args = ["kubectl", "get", "secret", name, "-n", namespace, "-o", "json"]
    return decode_json(run_tool(args), Secret, args=args)


def list_secrets(namespace: str | None = None) -> list[Secret]:
    """Return secrets in ``namespace``, or across all namespaces."""
    args = ["kubectl", "get", "secrets", *_namespace_args(namespace), "-o", "json"]
    return decode_json(run_tool(args), SecretList, args=args).items


def delete_secret(name: str, namespace: str = DEFAULT_NAMESPACE) -> None:
    """Delete secret ``name``."""
    run_tool(["kubectl", "delete", "secret", name, "-n", namespace])


def decode_secret_data(secret: Secret) -> dict[str, str]:
    """Return the secret's data with values base64-decoded.

    Binary values that are not UTF-8 are shown as ``<binary N bytes>``.
    """
    decoded = {}
    for key, value in secret.data.items():
        try:
            raw = base64.b64decode(value, validate=True)
        except binascii.Error:
            decoded[key] = value
            continue
        try:
            decoded[key] = raw.decode("utf-8")
        except UnicodeDecodeError:
            decoded[key] = f"<binary {len(raw)} bytes>"
    return decoded


# Ingresses


def ingress_exists(name: str, namespace: str = DEFAULT_NAMESPACE) -> bool:
    """Return whether ingress ``name`` exists in ``namespace``."""
    return probe(["kubectl", "get", "ingress", name, "-n", namespace])


def get_ingress(name: str, namespace: str = DEFAULT_NAMESPACE) -> Ingress:
    """Return ingress ``name``."""
    args = ["kubectl", "get", "ingress", name, "-n", namespace, "-o", "json"]
    return decode_json(run_tool(args), Ingress, args=args)


def list_ingresses(namespace: str | None = None) -> list[Ingress]:
    """Return ingresses in ``namespace``, or across all namespaces."""
    args = ["kubectl", "get", "ingress", *_namespace_args(namespace), "-o", "json"]
    return decode_json(run_tool(args), IngressList, args=args).items


def ingress_manifest(  # noqa: PLR0913
    name: str,
    *,
    host: str,
    service: str,
    port: int,
    namespace: str = DEFAULT_NAMESPACE,
    path: str = "/",
    tls_secret: str | None = None,
    ingress_class: str = DEFAULT_INGRESS_CLASS,
) -> str:
    """Render a ``networking.k8s.io/v1`` Ingress routing ``host`` to a service.

    Parameters
    ----------
    name : str
        Ingress name.
    host : str
        Hostname matched by the single rule.
    service : str
        Backend service name.
    port : int
        Backend service port number.
    namespace : str, default "default"
        Target namespace.
    path : str, default "/"
        Path prefix routed to the service.
    tls_secret : str, optional
        TLS secret terminating ``host``; omitted means plain HTTP.
    ingress_class : str, default "nginx"
        Value of the ``kubernetes.io/ingress.class`` annotation.

    Returns
    -------
    str
        YAML manifest.

    """
    spec: dict[str, object] = {
        "rules": [
            {
                "host": host,
                "http": {
                    "paths": [
                        {
                            "path": path,
                            "pathType": "Prefix",
                            "backend": {
                                "service": {"name": service, "port": {"number": port}}
                            },
                        }
                    ]
                },
            }
        ]
    }
    if tls_secret:
        spec["tls"] = [{"hosts": [host], "secretName": tls_secret}]
    manifest = {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": {"kubernetes.io/ingress.class": ingress_class},
        },
        "spec": spec,
    }
    yaml_serializer = YAML(typ="safe")
    yaml_serializer.default_flow_style = False
    yaml_serializer.indent(mapping=2, sequence=4, offset=2)
    with io.StringIO() as stream:
        yaml_serializer.dump(manifest, stream)
        return stream.getvalue()
