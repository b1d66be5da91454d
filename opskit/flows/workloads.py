"""Kubernetes secret, Helm release and ingress flows."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from opskit.errors import ConfigError
from opskit.flows.common import EXIT_FAILED, EXIT_OK, print_lines, require_tools
from opskit.formatting import PLACEHOLDER, Column, mask_value, render_table
from opskit.k8s import helm, kubectl
from opskit.provisioning import ProvisionOutcome, confirm_destroy, ensure

if typ.TYPE_CHECKING:
    from pathlib import Path

    from opskit.console import Console
    from opskit.k8s.models import Ingress


def _scope(console: Console, namespace: str | None) -> None:
    if namespace:
        console.info(f"Namespace: {namespace}")
    else:
        console.info("All namespaces")


# Secrets


def parse_literals(pairs: cabc.Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` arguments into a mapping.

    Only the first ``=`` separates key from value, so values may contain
    ``=``. A repeated key keeps its last value.

    Raises
    ------
    ConfigError
        If a pair has no ``=`` or an invalid key.

    """
    literals: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ConfigError.invalid_parameter("--literal", pair, "Expected KEY=VALUE")
        try:
            kubectl.validate_secret_key(key)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        literals[key] = value
    return literals


def _require_file(path: Path, label: str) -> None:
    if not path.is_file():
        msg = f"{label} not found: {path}"
        raise ConfigError(msg)


def create_secret_flow(  # noqa: PLR0913
    console: Console,
    name: str,
    literals: cabc.Mapping[str, str],
    *,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
    from_file: Path | None = None,
    tls: tuple[Path, Path] | None = None,
) -> int:
    """Create a secret, recreating an existing one once confirmed.

    Literals and ``from_file`` build a generic secret; ``tls`` takes a
    certificate and key file and builds a ``kubernetes.io/tls`` secret
    instead.

    Raises
    ------
    ConfigError
        If no source is given, TLS is mixed with other sources or a file
        is missing.

    """
    if tls is not None and (literals or from_file is not None):
        msg = "--tls cannot be combined with KEY=VALUE literals or --from-file"
        raise ConfigError(msg)
    if tls is None and not literals and from_file is None:
        msg = "At least one KEY=VALUE literal or --from-file is required"
        raise ConfigError(msg)
    if from_file is not None:
        _require_file(from_file, "File")
    if tls is not None:
        _require_file(tls[0], "Certificate file")
        _require_file(tls[1], "Key file")

    secret_type = "generic" if tls is None else "tls"
    console.header(f"Create Kubernetes Secret: {name}")
    console.info(f"Namespace: {namespace}")
    console.info(f"Type: {secret_type}")
    require_tools(console, "kubectl")

    def create() -> None:
        kubectl.ensure_namespace(namespace)
        if tls is not None:
            console.section("Creating TLS Secret")
            kubectl.create_tls_secret(name, str(tls[0]), str(tls[1]), namespace)
            return
        console.section("Creating Generic Secret")
        files = [] if from_file is None else [str(from_file)]
        kubectl.create_generic_secret(name, literals, namespace, files=files)

    def recreate() -> None:
        kubectl.delete_secret(name, namespace)
        create()

    def exists() -> bool:
        if not kubectl.secret_exists(name, namespace):
            return False
        console.warning(f"Secret '{name}' already exists")
        return True

    result = ensure(
        "Kubernetes secret",
        name,
        exists=exists,
        create=create,
        update=recreate,
        confirm=lambda _message: console.confirm("Delete and recreate?"),
    )
    if result.outcome is ProvisionOutcome.DECLINED:
        console.info("Cancelled")
        return EXIT_OK
    console.success(f"Secret created: {name}")
    console.section("Secret Details")
    if tls is not None:
        keys = ["tls.crt", "tls.key"]
    else:
        keys = list(literals)
        if from_file is not None:
            keys.append(from_file.name)
    for key in keys:
        console.line(f"  {key}")
    console.info(f"View secret: opskit k8s secret show {name} --namespace {namespace}")
    return EXIT_OK


def show_secret_flow(
    console: Console,
    name: str,
    *,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
    reveal: bool = False,
) -> int:
    """Print a secret's metadata and keys; values only when revealed."""
    require_tools(console, "kubectl")
    if not kubectl.secret_exists(name, namespace):
        console.error(f"Secret '{name}' not found in namespace '{namespace}'")
        return EXIT_FAILED
    secret = kubectl.get_secret(name, namespace)
    console.header(f"Kubernetes Secret: {name}")
    console.section("Metadata")
    console.line(f"  Name:      {secret.metadata.name}")
    console.line(f"  Namespace: {secret.metadata.namespace or namespace}")
    console.line(f"  Type:      {secret.type}")
    console.line(f"  Created:   {secret.metadata.creation_timestamp or PLACEHOLDER}")

    if not secret.data:
        console.info("Secret has no data")
        return EXIT_OK
    decoded = kubectl.decode_secret_data(secret)
    console.section("Data Keys")
    for key, value in decoded.items():
        console.line(f"  {key:<30} {len(value.encode('utf-8'))} bytes")

    console.section("Decoded Values" if reveal else "Masked Values")
    for key, value in decoded.items():
        console.line(f"  {key}: {value if reveal else mask_value(value)}")
    if not reveal:
        console.info("Use --reveal to show actual values")

    if secret.metadata.labels:
        console.section("Labels")
        for key, value in secret.metadata.labels.items():
            console.line(f"  {key}={value}")
    return EXIT_OK


def list_secrets_flow(console: Console, *, namespace: str | None = None) -> int:
    """Print secrets in ``namespace``, or in every namespace."""
    console.header("Kubernetes Secrets")
    _scope(console, namespace)
    require_tools(console, "kubectl")
    secrets = kubectl.list_secrets(namespace)
    if not secrets:
        console.info("No secrets found")
        return EXIT_OK
    print_lines(
        console,
        render_table(
            secrets,
            [
                Column("NAMESPACE", lambda s: s.metadata.namespace, 20),
                Column("NAME", lambda s: s.metadata.name, 40),
                Column("TYPE", lambda s: s.type, 36),
                Column("KEYS", lambda s: len(s.data)),
            ],
        ),
    )
    return EXIT_OK


def delete_secret_flow(
    console: Console,
    name: str,
    *,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
) -> int:
    """Delete a secret after confirmation."""
    console.header(f"Delete Kubernetes Secret: {name}")
    require_tools(console, "kubectl")
    if not kubectl.secret_exists(name, namespace):
        console.warning(f"Secret '{name}' not found in namespace '{namespace}'")
        return EXIT_OK
    if not confirm_destroy(console, f"Delete secret '{name}'?"):
        return EXIT_OK
    kubectl.delete_secret(name, namespace)
    console.success(f"Secret '{name}' deleted")
    return EXIT_OK


# Helm


def add_repo_flow(console: Console, name: str, url: str) -> int:
    """Register a chart repository unless one by that name exists."""
    console.header(f"Adding Helm Repository: {name}")
    require_tools(console, "helm")
    result = ensure(
        "Helm repository",
        name,
        exists=lambda: helm.repo_exists(name),
        create=lambda: helm.add_repo(name, url),
    )
    if result.outcome is ProvisionOutcome.CREATED:
        console.success(f"Repository added: {name}")
    else:
        console.warning(f"Repository '{name}' already exists")
    console.info("Updating repository index...")
    helm.update_repo(name)
    console.success("Repository updated")
    return EXIT_OK


def add_common_repos_flow(console: Console) -> int:
    """Register every well-known repository that is not yet configured."""
    console.header("Adding Common Helm Repositories")
    require_tools(console, "helm")
    configured = {repo.name for repo in helm.list_repos()}
    for name, url in helm.COMMON_REPOS.items():
        if name in configured:
            console.info(f"Already configured: {name}")
            continue
        helm.add_repo(name, url)
        console.success(f"Added: {name}")
    console.info("Updating all repositories...")
    helm.update_repo()
    console.success("All repositories updated")
    return EXIT_OK


def list_repos_flow(console: Console) -> int:
    """Print configured chart repositories."""
    console.header("Helm Repositories")
    require_tools(console, "helm")
    repos = helm.list_repos()
    if not repos:
        console.info("No Helm repositories configured")
        console.info("Add common repos: opskit helm repo-add --common")
        return EXIT_OK
    print_lines(
        console,
        render_table(
            repos,
            [Column("NAME", lambda r: r.name, 25), Column("URL", lambda r: r.url)],
        ),
    )
    return EXIT_OK


def install_flow(  # noqa: PLR0913
    console: Console,
    release: str,
    chart: str,
    *,
    namespace: str = helm.DEFAULT_NAMESPACE,
    values_file: Path | None = None,
    set_values: cabc.Sequence[str] = (),
    dry_run: bool = False,
) -> int:
    """Install ``chart`` as ``release``, upgrading an existing one once confirmed."""
    console.header("Installing Helm Chart")
    console.info(f"Release:   {release}")
    console.info(f"Chart:     {chart}")
    console.info(f"Namespace: {namespace}")
    if values_file is not None:
        console.info(f"Values:    {values_file}")
        if not values_file.is_file():
            console.error(f"Values file not found: {values_file}")
            return EXIT_FAILED
    require_tools(console, "helm")
    if dry_run:
        console.info("Dry run mode")

    def install() -> str:
        console.section("Installing")
        return helm.install_release(
            release,
            chart,
            namespace,
            values_file=str(values_file) if values_file else None,
            set_values=set_values,
            dry_run=dry_run,
        )

    def exists() -> bool:
        if not helm.release_exists(release, namespace):
            return False
        console.warning(f"Release '{release}' already exists")
        return True

    result = ensure(
        "Helm release",
        release,
        exists=exists,
        create=install,
        update=install,
        confirm=lambda _message: console.confirm("Upgrade existing release?"),
    )
    if result.outcome is ProvisionOutcome.DECLINED:
        console.info("Cancelled")
        return EXIT_OK
    if dry_run:
        console.info("Dry run complete, nothing was installed")
    elif result.outcome is ProvisionOutcome.UPDATED:
        console.success("Release upgraded successfully")
    else:
        console.success("Release installed successfully")
    if result.value:
        console.section("Dry Run Output" if dry_run else "Release Status")
        print_lines(console, str(result.value).splitlines())
    return EXIT_OK


def uninstall_flow(
    console: Console,
    release: str,
    *,
    namespace: str = helm.DEFAULT_NAMESPACE,
    force: bool = False,
) -> int:
    """Uninstall ``release`` after confirmation."""
    console.header("Uninstall Helm Release")
    require_tools(console, "helm")
    match = next(
        (r for r in helm.list_releases(namespace) if r.name == release), None
    )
    if match is None:
        console.warning(f"Release '{release}' not found")
        return EXIT_OK
    console.info(f"Release: {release}")
    console.info(f"Namespace: {namespace}")
    console.info(f"Status: {match.status or PLACEHOLDER}")
    if not confirm_destroy(console, f"Uninstall release '{release}'?", force=force):
        return EXIT_OK
    helm.uninstall_release(release, namespace)
    console.success(f"Release '{release}' uninstalled")
    return EXIT_OK


def list_releases_flow(console: Console, *, namespace: str | None = None) -> int:
    """Print Helm releases in ``namespace``, or in every namespace."""
    console.header("Helm Releases")
    _scope(console, namespace)
    require_tools(console, "helm")
    releases = helm.list_releases(namespace)
    if not releases:
        console.info("No Helm releases found")
        return EXIT_OK
    print_lines(
        console,
        render_table(
            releases,
            [
                Column("NAME", lambda r: r.name, 25),
                Column("NAMESPACE", lambda r: r.namespace, 20),
                Column("REVISION", lambda r: r.revision, 9),
                Column("STATUS", lambda r: r.status, 12),
                Column("CHART", lambda r: r.chart, 30),
                Column("APP VERSION", lambda r: r.app_version),
            ],
        ),
    )
    console.blank()
    console.info(f"Total: {len(releases)} releases")
    return EXIT_OK


# Ingresses


def create_ingress_flow(  # noqa: PLR0913
    console: Console,
    name: str,
    *,
    host: str,
    service: str,
    port: int,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
    path: str = "/",
    tls_secret: str | None = None,
    ingress_class: str = kubectl.DEFAULT_INGRESS_CLASS,
) -> int:
    """Apply an ingress routing ``host`` to ``service:port``.

    An existing ingress is only re-applied once confirmed.
    """
    console.header(f"Create Kubernetes Ingress: {name}")
    console.info(f"Namespace: {namespace}")
    console.info(f"Host: {host}")
    console.info(f"Service: {service}:{port}")
    console.info(f"Path: {path}")
    console.info(f"Class: {ingress_class}")
    if tls_secret:
        console.info(f"TLS: {tls_secret}")
    require_tools(console, "kubectl")

    manifest = kubectl.ingress_manifest(
        name,
        host=host,
        service=service,
        port=port,
        namespace=namespace,
        path=path,
        tls_secret=tls_secret,
        ingress_class=ingress_class,
    )

    def apply() -> str:
        console.section("Creating Ingress")
        kubectl.ensure_namespace(namespace)
        return kubectl.apply_manifest(manifest, namespace)

    def exists() -> bool:
        if not kubectl.ingress_exists(name, namespace):
            return False
        console.warning(f"Ingress '{name}' already exists")
        return True

    result = ensure(
        "ingress",
        name,
        exists=exists,
        create=apply,
        update=apply,
        confirm=lambda _message: console.confirm("Update existing ingress?"),
    )
    if result.outcome is ProvisionOutcome.DECLINED:
        console.info("Cancelled")
        return EXIT_OK
    verb = "updated" if result.outcome is ProvisionOutcome.UPDATED else "created"
    console.success(f"Ingress {verb}: {name}")
    console.section("Ingress Details")
    _print_ingress_rules(console, kubectl.get_ingress(name, namespace))
    console.info("Note: Ensure ingress controller is installed")
    console.info(
        "Install nginx-ingress: opskit helm install nginx ingress-nginx/ingress-nginx"
    )
    return EXIT_OK


def apply_ingress_file_flow(
    console: Console,
    path: Path,
    *,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
) -> int:
    """Apply an ingress manifest file as written."""
    _require_file(path, "File")
    console.header(f"Create Kubernetes Ingress from {path}")
    console.info(f"Namespace: {namespace}")
    require_tools(console, "kubectl")
    console.section("Creating Ingress from file")
    kubectl.ensure_namespace(namespace)
    summary = kubectl.apply_file(str(path), namespace)
    if summary:
        console.line(summary)
    console.success(f"Ingress created from {path}")
    return EXIT_OK


def _print_ingress_rules(console: Console, ingress: Ingress) -> None:
    for rule in ingress.spec.rules:
        paths = rule.http.paths if rule.http else []
        for route in paths:
            backend = route.backend.service
            target = (
                f"{backend.name}:{backend.port.number or backend.port.name}"
                if backend
                else PLACEHOLDER
            )
            console.line(f"  {rule.host or '*'}{route.path} -> {target}")


def show_ingress_flow(
    console: Console,
    name: str,
    *,
    namespace: str = kubectl.DEFAULT_NAMESPACE,
) -> int:
    """Print an ingress's class, TLS hosts, routing rules and addresses."""
    require_tools(console, "kubectl")
    if not kubectl.ingress_exists(name, namespace):
        console.error(f"Ingress '{name}' not found")
        return EXIT_FAILED
    ingress = kubectl.get_ingress(name, namespace)
    console.header(f"Kubernetes Ingress: {name}")
    console.section("Metadata")
    console.line(f"  Name:      {ingress.metadata.name}")
    console.line(f"  Namespace: {ingress.metadata.namespace or namespace}")
    console.line(f"  Class:     {ingress.ingress_class or PLACEHOLDER}")
    console.line(f"  Created:   {ingress.metadata.creation_timestamp or PLACEHOLDER}")
    if ingress.spec.tls:
        console.section("TLS Configuration")
        for tls in ingress.spec.tls:
            console.line(
                f"  {', '.join(tls.hosts)} -> {tls.secret_name or PLACEHOLDER}"
            )
    console.section("Routing Rules")
    _print_ingress_rules(console, ingress)
    console.section("Status")
    addresses = ingress.addresses
    console.line(f"  Address: {', '.join(addresses) if addresses else 'Pending'}")
    return EXIT_OK


def list_ingresses_flow(console: Console, *, namespace: str | None = None) -> int:
    """Print ingresses in ``namespace``, or in every namespace."""
    console.header("Kubernetes Ingresses")
    _scope(console, namespace)
    require_tools(console, "kubectl")
    ingresses = kubectl.list_ingresses(namespace)
    if not ingresses:
        console.info("No ingresses found")
        return EXIT_OK
    print_lines(
        console,
        render_table(
            ingresses,
            [
                Column("NAMESPACE", lambda i: i.metadata.namespace, 20),
                Column("NAME", lambda i: i.metadata.name, 30),
                Column("CLASS", lambda i: i.ingress_class, 10),
                Column("HOSTS", lambda i: ", ".join(i.hosts), 35),
                Column("ADDRESS", lambda i: ", ".join(i.addresses)),
            ],
        ),
    )
    console.blank()
    console.info(f"Total: {len(ingresses)} ingress(es)")
    return EXIT_OK
