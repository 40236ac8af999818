"""Host resolution and per-address connection state."""

import logging
import socket
import ssl
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning

from .config import AMTConfig
from .errors import ResolutionError


logger = logging.getLogger(__name__)

WSMAN_PATH = "/wsman"


def resolve_host(hostname: str, force_ipv4: bool = True) -> str:
    """
    Resolve a host name to a single IP address.

    Args:
        hostname: Name or address literal to resolve
        force_ipv4: Only accept IPv4 records

    Returns:
        The first address returned by the system resolver

    Raises:
        ResolutionError: If no address could be found
    """
    family = socket.AF_INET if force_ipv4 else socket.AF_UNSPEC
    flags = socket.AI_ADDRCONFIG if force_ipv4 else 0
    try:
        infos = socket.getaddrinfo(hostname, None, family, socket.SOCK_STREAM, 0, flags)
    except (socket.gaierror, OSError) as e:
        raise ResolutionError(f"Failed to resolve host {hostname}: {e}") from e

    if not infos:
        raise ResolutionError(f"Failed to resolve host {hostname}: no address records")

    address = infos[0][4][0]
    logger.debug("Resolved host %s to %s", hostname, address)
    return address


class TLSAdapter(HTTPAdapter):
    """HTTPAdapter that hands a preconfigured SSLContext to urllib3."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs) -> None:
        # HTTPAdapter.__init__ builds the pool manager, so set this first
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)


def create_ssl_context(verify_ssl: bool) -> ssl.SSLContext:
    """Build a TLS 1.2 only context, optionally skipping certificate checks."""
    if verify_ssl:
        context = ssl.create_default_context()
    else:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.maximum_version = ssl.TLSVersion.TLSv1_2
    context.set_ciphers("ALL")
    return context


@dataclass(frozen=True)
class ConnectionContext:
    """Base URL and keep-alive session bound to one resolved address."""

    address: str
    port: int
    base_url: str
    session: requests.Session
    timeout: float

    def close(self) -> None:
        """Close the pooled connections of this context."""
        self.session.close()


def format_base_url(protocol: str, address: str, port: int) -> str:
    host = f"[{address}]" if ":" in address else address
    return f"{protocol}://{host}:{port}{WSMAN_PATH}"


def build_connection_context(
    address: str,
    config: AMTConfig,
    session: Optional[requests.Session] = None,
) -> ConnectionContext:
    """
    Create a fresh connection context for a resolved address.

    Args:
        address: Resolved IP address of the device
        config: Session configuration
        session: Session to configure (a new one is created by default)

    Returns:
        A new ConnectionContext; previously built contexts are left untouched
    """
    session = session if session is not None else requests.Session()
    session.headers.update({"Connection": "keep-alive"})

    if config.protocol == "https":
        session.mount("https://", TLSAdapter(create_ssl_context(config.verify_ssl)))
        session.verify = config.verify_ssl
        if not config.verify_ssl:
            requests.packages.urllib3.disable_warnings(InsecureRequestWarning)
    else:
        session.mount("http://", HTTPAdapter())

    return ConnectionContext(
        address=address,
        port=config.port,
        base_url=format_base_url(config.protocol, address, config.port),
        session=session,
        timeout=config.timeout_seconds,
    )
