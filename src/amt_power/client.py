"""AMT client for WS-Management communication."""

import logging
import time
from typing import Any, Callable, Optional

import requests

from .config import AMTConfig
from .connection import ConnectionContext, build_connection_context, resolve_host
from .digest import DigestAuthenticator
from .errors import AuthChallengeError, ConnectionExhaustedError, ProtocolError

# Network failures worth a re-resolve and another attempt
TRANSIENT_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
    ConnectionResetError,
    ConnectionRefusedError,
    TimeoutError,
)

SOAP_CONTENT_TYPE = "application/soap+xml;charset=UTF-8"


class AMTClient:
    """Client for sending Digest-authenticated SOAP requests to Intel AMT."""

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        port: Optional[int] = None,
        protocol: Optional[str] = None,
        timeout: Optional[int] = None,
        retries: Optional[int] = None,
        verify_ssl: bool = False,
        force_ipv4: bool = True,
        config: Optional[AMTConfig] = None,
        resolver: Callable[[str, bool], str] = resolve_host,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Initialize AMT client.

        Args:
            host: AMT hostname or IP address
            username: Digest username
            password: Digest password
            port: WS-Management port (default: 16992)
            protocol: 'http' or 'https' (default: 'http')
            timeout: Request timeout in milliseconds (default: 5000)
            retries: Retry budget for transient failures (default: 3)
            verify_ssl: Whether to verify TLS certificates
            force_ipv4: Resolve the host to IPv4 only
            config: Prebuilt configuration, overrides the arguments above
            resolver: Host resolution function
            sleep: Backoff sleep function
            logger: Logger receiving request/retry events
        """
        if config is None:
            options = {
                "port": port,
                "protocol": protocol,
                "timeout": timeout,
                "retries": retries,
            }
            config = AMTConfig(
                host=host,
                username=username,
                password=password,
                verify_ssl=verify_ssl,
                force_ipv4=force_ipv4,
                **{key: value for key, value in options.items() if value is not None},
            )
        self.config = config
        self.resolver = resolver
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self.authenticator = DigestAuthenticator(
            config.username,
            config.password,
            max_retries=config.retries,
            sleep=sleep,
            logger=self.logger,
        )
        self.context: Optional[ConnectionContext] = None

    @property
    def base_url(self) -> Optional[str]:
        return self.context.base_url if self.context else None

    def resolve(self) -> ConnectionContext:
        """
        Resolve the configured host and install a fresh connection context.

        Raises:
            ResolutionError: If the host cannot be resolved
        """
        address = self.resolver(self.config.host, self.config.force_ipv4)
        self.logger.info("Resolved host %s to %s", self.config.host, address)
        self.context = build_connection_context(address, self.config)
        return self.context

    def _post(self, context: ConnectionContext, action: str, body: str) -> str:
        digest_header = self.authenticator.get_header(
            context.session, context.base_url, method="POST", timeout=context.timeout
        )
        if digest_header is None:
            # A challenge request that died on the network is retried by send()
            if isinstance(self.authenticator.last_error, TRANSIENT_ERRORS):
                raise self.authenticator.last_error
            raise AuthChallengeError(
                f"No Digest challenge from {context.base_url}: {self.authenticator.last_error}"
            )

        headers = {
            "Authorization": digest_header,
            "Content-Type": SOAP_CONTENT_TYPE,
            "SOAPAction": action,
            "User-Agent": "Intel AMT Client",
            "Accept": "*/*",
            "Connection": "keep-alive",
        }
        self.logger.debug("Making request to %s", context.base_url)
        self.logger.debug("Request body: %s", body)

        response = context.session.post(
            context.base_url, data=body.encode("utf-8"), headers=headers, timeout=context.timeout
        )
        self.logger.debug("Response status: %s", response.status_code)

        if not response.ok:
            self.logger.error("Error response body: %s", response.text)
            raise ProtocolError(response.status_code, response.text, response.reason or "")

        return response.text

    def send(self, action: str, body: str) -> str:
        """
        Send a SOAP request, retrying transient network failures.

        Waits 1s, 2s, 4s, ... between attempts and re-resolves the host before
        each retry.

        Args:
            action: WS-Management action URI for the SOAPAction header
            body: SOAP envelope

        Returns:
            Response body text

        Raises:
            ResolutionError: If the host cannot be resolved
            AuthChallengeError: If no Digest challenge could be obtained
            ProtocolError: On a non-2xx HTTP status
            ConnectionExhaustedError: When transient failures outlast the retry budget
        """
        context = self.context or self.resolve()
        attempt = 0
        while True:
            try:
                return self._post(context, action, body)
            except TRANSIENT_ERRORS as e:
                if attempt >= self.config.retries:
                    self.logger.error(
                        "Giving up on %s:%s after %d attempts: %s",
                        context.address, context.port, self.config.retries, e,
                    )
                    raise ConnectionExhaustedError(
                        self.config.retries, e, context.address, context.port
                    ) from e

                delay = 2 ** attempt
                self.logger.warning(
                    "Connection attempt %d failed (%s:%s): %s. Waiting %ss before retry...",
                    attempt + 1, context.address, context.port, e, delay,
                )
                self.sleep(delay)
                stale = context
                context = self.resolve()
                stale.close()
                attempt += 1

    def close(self) -> None:
        """Close the HTTP session."""
        if self.context:
            self.context.close()

    def __enter__(self) -> "AMTClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
