"""Connection string parsing and reachability probes for databases."""

from __future__ import annotations

import dataclasses
import socket
import urllib.parse

from opskit.formatting import mask_url_password

POSTGRES_SCHEMES = frozenset({"postgres", "postgresql"})
MONGO_SCHEMES = frozenset({"mongodb", "mongodb+srv"})

_POSTGRES_DEFAULT_PORT = 5432
_MONGO_DEFAULT_PORT = 27017
_DEFAULT_CONNECT_TIMEOUT_S = 5.0


@dataclasses.dataclass(frozen=True, slots=True)
class ConnectionInfo:
    """Components of a database connection URL.

    ``port`` is ``None`` for ``mongodb+srv`` URLs, whose hosts are resolved
    through DNS SRV records instead.
    """

    scheme: str
    host: str
    port: int | None
    user: str | None
    password: str | None
    database: str | None

    @property
    def is_srv(self) -> bool:
        """Whether the URL uses DNS seed-list discovery."""
        return self.scheme == "mongodb+srv"


def _parse(url: str, schemes: frozenset[str], default_port: int) -> ConnectionInfo:
    parts = urllib.parse.urlsplit(url)
    if parts.scheme not in schemes:
        expected = ", ".join(sorted(schemes))
        msg = f"Unsupported scheme in {mask_url_password(url)!r}; expected {expected}"
        raise ValueError(msg)

    # Multi-host mongo URLs keep only the first host.
    netloc_hosts = parts.netloc.rsplit("@", 1)[-1]
    first_host = netloc_hosts.split(",", 1)[0]
    first = urllib.parse.urlsplit(f"//{first_host}")
    host = first.hostname
    if not host:
        msg = f"Missing host in {mask_url_password(url)!r}"
        raise ValueError(msg)

    port: int | None = None
    if parts.scheme != "mongodb+srv":
        port = first.port or default_port

    database = parts.path.lstrip("/") or None
    return ConnectionInfo(
        scheme=parts.scheme,
        host=host,
        port=port,
        user=urllib.parse.unquote(parts.username) if parts.username else None,
        password=urllib.parse.unquote(parts.password) if parts.password else None,
        database=database,
    )


def parse_postgres_url(url: str) -> ConnectionInfo:
    """Parse a ``postgres://`` or ``postgresql://`` URL.

    Raises
    ------
    ValueError
        If the scheme is not a PostgreSQL scheme or the host is missing.

    """
    return _parse(url, POSTGRES_SCHEMES, _POSTGRES_DEFAULT_PORT)


def parse_mongo_url(url: str) -> ConnectionInfo:
    """Parse a ``mongodb://`` or ``mongodb+srv://`` URL.

    Raises
    ------
    ValueError
        If the scheme is not a MongoDB scheme or the host is missing.

    """
    return _parse(url, MONGO_SCHEMES, _MONGO_DEFAULT_PORT)


def parse_database_url(url: str) -> ConnectionInfo:
    """Parse a PostgreSQL or MongoDB URL, choosing by scheme."""
    scheme = urllib.parse.urlsplit(url).scheme
    if scheme in MONGO_SCHEMES:
        return parse_mongo_url(url)
    return parse_postgres_url(url)


def check_dns(host: str) -> bool:
    """Return whether ``host`` resolves to at least one address."""
    try:
        return bool(socket.getaddrinfo(host, None))
    except (socket.gaierror, UnicodeError):
        return False


def check_port(
    host: str, port: int, timeout: float = _DEFAULT_CONNECT_TIMEOUT_S
) -> bool:
    """Return whether a TCP connection to ``host:port`` succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


__all__ = [
    "ConnectionInfo",
    "check_dns",
    "check_port",
    "parse_database_url",
    "parse_mongo_url",
    "parse_postgres_url",
]
