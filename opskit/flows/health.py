"""Health checks for HTTP endpoints, Kubernetes, AWS and databases.

Each check prints its own section and returns whether it passed; the flow
exits 1 if any requested check failed.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import enum
import time
import typing as typ

import httpx

from opskit.aws import s3
from opskit.errors import OpsKitError, RemoteCallError
from opskit.flows.common import EXIT_FAILED, EXIT_OK, Clock, iso_timestamp, utc_now
from opskit.formatting import mask_url_password
from opskit.k8s import kubectl
from opskit.logging import get_logger, log_debug
from opskit.prerequisites import require_exe
from opskit.urls import check_dns, check_port, parse_database_url

if typ.TYPE_CHECKING:
    from pathlib import Path

    from opskit.aws import AwsContext
    from opskit.console import Console

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 10.0
_URL_WIDTH = 50
_HTTP_OK_MIN = 200
_HTTP_REDIRECT_MIN = 300
_HTTP_CLIENT_ERROR_MIN = 400
# Reported when no HTTP response was received at all.
NO_RESPONSE = "000"


class UrlState(enum.StrEnum):
    """Classification of an HTTP probe."""

    OK = "OK"
    REDIRECT = "REDIRECT"
    FAIL = "FAIL"


@dataclasses.dataclass(frozen=True, slots=True)
class UrlCheck:
    """Result of probing one URL."""

    url: str
    status: str
    duration_ms: int
    state: UrlState

    @property
    def healthy(self) -> bool:
        """Whether the probe counts as passing; redirects do."""
        return self.state is not UrlState.FAIL


def classify_status(status_code: int) -> UrlState:
    """Map an HTTP status code to OK (2xx), REDIRECT (3xx) or FAIL."""
    if _HTTP_OK_MIN <= status_code < _HTTP_REDIRECT_MIN:
        return UrlState.OK
    if _HTTP_REDIRECT_MIN <= status_code < _HTTP_CLIENT_ERROR_MIN:
        return UrlState.REDIRECT
    return UrlState.FAIL


def check_url(
    client: httpx.Client,
    url: str,
    *,
    timer: cabc.Callable[[], float] = time.perf_counter,
) -> UrlCheck:
    """Send a GET to ``url`` without following redirects and time it.

    Transport failures and malformed URLs are reported as status ``000``
    rather than raised.
    """
    started = timer()
    try:
        response = client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        log_debug(logger, "GET %s failed: %s", url, exc)
        status, state = NO_RESPONSE, UrlState.FAIL
    else:
        status, state = str(response.status_code), classify_status(response.status_code)
    duration_ms = int((timer() - started) * 1000)
    return UrlCheck(url, status, duration_ms, state)


def read_urls(path: Path) -> list[str]:
    """Return the URLs in ``path``, one per line, ignoring blanks and comments.

    Raises
    ------
    OpsKitError
        If the file does not exist.

    """
    if not path.is_file():
        msg = f"File not found: {path}"
        raise OpsKitError(msg)
    lines = (line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    return [line for line in lines if line and not line.startswith("#")]


def check_http_endpoints(
    console: Console, urls: cabc.Sequence[str], client: httpx.Client
) -> bool:
    """Probe each URL and print one status line per endpoint."""
    console.section("HTTP Endpoints")
    passed = 0
    for url in urls:
        result = check_url(client, url)
        if result.healthy:
            passed += 1
        console.line(
            f"  [{result.state}] {url:<{_URL_WIDTH}} {result.status} "
            f"({result.duration_ms}ms)"
        )
    failed = len(urls) - passed
    if failed == 0:
        console.success(f"All {len(urls)} endpoints healthy")
        return True
    console.warning(f"{passed}/{len(urls)} endpoints healthy, {failed} failed")
    return False


def check_kubernetes(console: Console) -> bool:
    """Check the current context, node readiness and kube-system pods."""
    console.section("Kubernetes Cluster")
    try:
        require_exe("kubectl")
    except OpsKitError:
        console.error("kubectl not installed")
        return False
    if not kubectl.cluster_reachable():
        console.error("Cannot connect to cluster")
        return False
    console.success(f"Connected to: {kubectl.current_context() or 'unknown'}")

    healthy = True
    try:
        nodes = kubectl.get_nodes()
        running, total = kubectl.pods_summary("kube-system")
    except RemoteCallError as exc:
        console.error(f"Failed to query cluster: {exc}")
        return False
    ready = sum(1 for node in nodes if node.ready)
    if nodes and ready == len(nodes):
        console.success(f"Nodes: {ready}/{len(nodes)} ready")
    else:
        console.warning(f"Nodes: {ready}/{len(nodes)} ready")
        healthy = False
    if running == total:
        console.success(f"System pods: {running}/{total} running")
    else:
        console.warning(f"System pods: {running}/{total} running")
        healthy = False
    return healthy


def check_aws(console: Console, aws: AwsContext) -> bool:
    """Check credentials and that S3 answers a list call."""
    console.section("AWS Services")
    try:
        identity = aws.require_credentials()
    except OpsKitError:
        console.error("AWS credentials invalid")
        return False
    console.success(f"AWS Account: {identity.get('Account')}")
    try:
        s3.list_buckets(aws.client(s3.SERVICE))
    except RemoteCallError:
        console.warning("S3: not accessible")
        return False
    console.success("S3: accessible")
    return True


def check_database(console: Console, url: str, *, timeout: float) -> bool:
    """Parse a database URL, resolve its host and open a TCP connection.

    ``mongodb+srv`` URLs have no fixed port, so only DNS is checked.
    """
    masked = mask_url_password(url)
    try:
        info = parse_database_url(url)
    except ValueError as exc:
        console.error(f"{masked}: {exc}")
        return False
    if not check_dns(info.host):
        console.error(f"{masked}: cannot resolve {info.host}")
        return False
    if info.port is None:
        console.success(f"{masked}: {info.host} resolves")
        return True
    if not check_port(info.host, info.port, timeout):
        console.error(f"{masked}: cannot connect to {info.host}:{info.port}")
        return False
    console.success(f"{masked}: {info.host}:{info.port} reachable")
    return True


def check_databases(
    console: Console, urls: cabc.Sequence[str], *, timeout: float
) -> bool:
    """Check every database URL; all must pass."""
    console.section("Databases")
    results = [check_database(console, url, timeout=timeout) for url in urls]
    return all(results)


def health_flow(  # noqa: PLR0913
    console: Console,
    urls: cabc.Sequence[str] = (),
    *,
    aws: AwsContext | None = None,
    k8s: bool = False,
    db_urls: cabc.Sequence[str] = (),
    urls_file: Path | None = None,
    timeout: float = DEFAULT_TIMEOUT_S,
    http_client: httpx.Client | None = None,
    now: Clock = utc_now,
) -> int:
    """Run the requested checks and summarise.

    Parameters
    ----------
    console : Console
        Output sink.
    urls : Sequence[str]
        HTTP endpoints to probe.
    aws : AwsContext | None
        Run the AWS check with this context when given.
    k8s : bool
        Run the Kubernetes check.
    db_urls : Sequence[str]
        PostgreSQL or MongoDB URLs to check.
    urls_file : Path | None
        File of extra endpoints, one per line.
    timeout : float
        Per-request and per-connection timeout in seconds.
    http_client : httpx.Client | None
        Client used for HTTP probes; one is created and closed when omitted.
    now : Clock
        Source of the printed timestamp.

    Returns
    -------
    int
        0 when every requested check passed, else 1.

    """
    console.header("Health Check")
    console.info(f"Timestamp: {iso_timestamp(now())}")
    endpoints = list(urls)
    if urls_file is not None:
        endpoints.extend(read_urls(urls_file))

    results: list[bool] = []
    if endpoints:
        if http_client is None:
            with httpx.Client(timeout=timeout, follow_redirects=False) as client:
                results.append(check_http_endpoints(console, endpoints, client))
        else:
            results.append(check_http_endpoints(console, endpoints, http_client))
    if k8s:
        results.append(check_kubernetes(console))
    if aws is not None:
        results.append(check_aws(console, aws))
    if db_urls:
        results.append(check_databases(console, db_urls, timeout=timeout))

    if not results:
        console.warning("No checks requested")
        console.info("Pass URLs, --k8s, --aws or --db")
        return EXIT_FAILED

    console.blank()
    if all(results):
        console.success("All health checks passed")
        return EXIT_OK
    console.error("Some health checks failed")
    return EXIT_FAILED
