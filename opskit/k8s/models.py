"""Typed views over ``kubectl -o json`` and ``helm -o json`` output.

Only the fields the commands read are declared; msgspec ignores the rest.
Kubernetes objects use camelCase keys, mapped onto snake_case attributes.
"""

from __future__ import annotations

import msgspec


class ObjectMeta(msgspec.Struct, kw_only=True, rename="camel"):
    """Object metadata shared by every resource."""

    name: str
    namespace: str | None = None
    creation_timestamp: str | None = None
    labels: dict[str, str] = msgspec.field(default_factory=dict)
    annotations: dict[str, str] = msgspec.field(default_factory=dict)


class NodeCondition(msgspec.Struct, kw_only=True):
    """A node condition such as ``Ready``."""

    type: str
    status: str


class NodeInfo(msgspec.Struct, kw_only=True, rename="camel"):
    """Software versions reported by the kubelet."""

    kubelet_version: str | None = None
    os_image: str | None = None


class NodeStatus(msgspec.Struct, kw_only=True, rename="camel"):
    """Node status block."""

    conditions: list[NodeCondition] = msgspec.field(default_factory=list)
    node_info: NodeInfo | None = None


class Node(msgspec.Struct, kw_only=True):
    """A cluster node.

    Attributes
    ----------
    metadata : ObjectMeta
        Node metadata; ``labels`` carry the role markers.
    status : NodeStatus
        Conditions and kubelet information.

    """

    metadata: ObjectMeta
    status: NodeStatus = msgspec.field(default_factory=NodeStatus)

    @property
    def ready(self) -> bool:
        """Return whether the ``Ready`` condition is ``True``."""
        return any(
            condition.type == "Ready" and condition.status == "True"
            for condition in self.status.conditions
        )

    @property
    def roles(self) -> list[str]:
        """Return role names from ``node-role.kubernetes.io/*`` labels."""
        prefix = "node-role.kubernetes.io/"
        return sorted(
            label[len(prefix) :]
            for label in self.metadata.labels
            if label.startswith(prefix)
        )

    @property
    def version(self) -> str | None:
        """Return the kubelet version."""
        info = self.status.node_info
        return info.kubelet_version if info is not None else None


class NodeList(msgspec.Struct, kw_only=True):
    """``kubectl get nodes -o json``."""

    items: list[Node] = msgspec.field(default_factory=list)


class PodStatus(msgspec.Struct, kw_only=True):
    """Pod status block."""

    phase: str | None = None


class Pod(msgspec.Struct, kw_only=True):
    """A pod."""

    metadata: ObjectMeta
    status: PodStatus = msgspec.field(default_factory=PodStatus)


class PodList(msgspec.Struct, kw_only=True):
    """``kubectl get pods -o json``."""

    items: list[Pod] = msgspec.field(default_factory=list)


class Secret(msgspec.Struct, kw_only=True):
    """A secret; ``data`` values are base64 encoded."""

    metadata: ObjectMeta
    type: str = "Opaque"
    data: dict[str, str] = msgspec.field(default_factory=dict)


class SecretList(msgspec.Struct, kw_only=True):
    """``kubectl get secrets -o json``."""

    items: list[Secret] = msgspec.field(default_factory=list)


class ServiceBackendPort(msgspec.Struct, kw_only=True):
    """Backend service port, by number or name."""

    number: int | None = None
    name: str | None = None


class IngressServiceBackend(msgspec.Struct, kw_only=True):
    """Service an ingress path routes to."""

    name: str
    port: ServiceBackendPort = msgspec.field(default_factory=ServiceBackendPort)


class IngressBackend(msgspec.Struct, kw_only=True):
    """Ingress path backend."""

    service: IngressServiceBackend | None = None


class HTTPIngressPath(msgspec.Struct, kw_only=True, rename="camel"):
    """A single routed path."""

    path: str = "/"
    path_type: str = "Prefix"
    backend: IngressBackend = msgspec.field(default_factory=IngressBackend)


class HTTPIngressRuleValue(msgspec.Struct, kw_only=True):
    """Paths of an ingress rule."""

    paths: list[HTTPIngressPath] = msgspec.field(default_factory=list)


class IngressRule(msgspec.Struct, kw_only=True):
    """Host rule."""

    host: str | None = None
    http: HTTPIngressRuleValue | None = None


class IngressTLS(msgspec.Struct, kw_only=True, rename="camel"):
    """TLS termination entry."""

    hosts: list[str] = msgspec.field(default_factory=list)
    secret_name: str | None = None


class IngressSpec(msgspec.Struct, kw_only=True, rename="camel"):
    """Desired state of an Ingress."""

    ingress_class_name: str | None = None
    rules: list[IngressRule] = msgspec.field(default_factory=list)
    tls: list[IngressTLS] = msgspec.field(default_factory=list)


class LoadBalancerIngress(msgspec.Struct, kw_only=True):
    """Address assigned by the ingress controller."""

    ip: str | None = None
    hostname: str | None = None


class LoadBalancerStatus(msgspec.Struct, kw_only=True):
    """Load balancer addresses."""

    ingress: list[LoadBalancerIngress] = msgspec.field(default_factory=list)


class IngressStatus(msgspec.Struct, kw_only=True, rename="camel"):
    """Ingress status block."""

    load_balancer: LoadBalancerStatus = msgspec.field(
        default_factory=LoadBalancerStatus
    )


class Ingress(msgspec.Struct, kw_only=True):
    """An ingress resource."""

    metadata: ObjectMeta
    spec: IngressSpec = msgspec.field(default_factory=IngressSpec)
    status: IngressStatus = msgspec.field(default_factory=IngressStatus)

    @property
    def ingress_class(self) -> str | None:
        """Return ``ingressClassName`` or the legacy class annotation."""
        return self.spec.ingress_class_name or self.metadata.annotations.get(
            "kubernetes.io/ingress.class"
        )

    @property
    def hosts(self) -> list[str]:
        """Return the hosts of every rule."""
        return [rule.host for rule in self.spec.rules if rule.host]

    @property
    def addresses(self) -> list[str]:
        """Return load balancer IPs or hostnames."""
        return [
            entry.ip or entry.hostname or ""
            for entry in self.status.load_balancer.ingress
            if entry.ip or entry.hostname
        ]


class IngressList(msgspec.Struct, kw_only=True):
    """``kubectl get ingress -o json``."""

    items: list[Ingress] = msgspec.field(default_factory=list)


class HelmRelease(msgspec.Struct, kw_only=True):
    """An entry of ``helm list -o json``."""

    name: str
    namespace: str
    revision: str = ""
    updated: str = ""
    status: str = ""
    chart: str = ""
    app_version: str = ""


class HelmRepo(msgspec.Struct, kw_only=True):
    """An entry of ``helm repo list -o json``."""

    name: str
    url: str


__all__ = [
    "HelmRelease",
    "HelmRepo",
    "Ingress",
    "IngressList",
    "Node",
    "NodeCondition",
    "NodeList",
    "ObjectMeta",
    "Pod",
    "PodList",
    "Secret",
    "SecretList",
]
