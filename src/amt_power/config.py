"""Session configuration for an AMT device."""

from dataclasses import dataclass

DEFAULT_PORT = 16992
DEFAULT_PROTOCOL = "http"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_RETRIES = 3

PROTOCOLS = ("http", "https")


@dataclass(frozen=True)
class AMTConfig:
    """
    Connection settings for one AMT device.

    Args:
        host: AMT hostname or IP address
        username: Digest username
        password: Digest password
        port: WS-Management port (default: 16992)
        protocol: 'http' or 'https' (default: 'http')
        timeout: Per-request timeout in milliseconds (default: 5000)
        retries: Retry budget for transient network failures (default: 3)
        verify_ssl: Whether to verify TLS certificates (default: no)
        force_ipv4: Resolve the host to an IPv4 address only (default: yes)
    """

    host: str
    username: str
    password: str
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    timeout: int = DEFAULT_TIMEOUT_MS
    retries: int = DEFAULT_RETRIES
    verify_ssl: bool = False
    force_ipv4: bool = True

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("AMT host is required")
        if not self.username or not self.password:
            raise ValueError("AMT username and password are required")
        if self.protocol not in PROTOCOLS:
            raise ValueError(f"Unsupported protocol: {self.protocol!r} (use 'http' or 'https')")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")
        if self.retries < 0:
            raise ValueError("Retries cannot be negative")

    @property
    def timeout_seconds(self) -> float:
        """Timeout in seconds, as requests expects it."""
        return self.timeout / 1000
