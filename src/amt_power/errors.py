"""Error types raised by the AMT client."""

from typing import Optional


class AMTError(Exception):
    """Base class for all AMT client failures."""


class ResolutionError(AMTError):
    """The AMT host name could not be resolved."""


class AuthChallengeError(AMTError):
    """The device did not return a usable Digest challenge."""


class ProtocolError(AMTError):
    """The device answered with a non-success HTTP status."""

    def __init__(self, status: int, body: str, reason: str = "") -> None:
        self.status = status
        self.body = body
        self.reason = reason
        super().__init__(f"AMT request failed: {status} {reason}".rstrip() + f"\nResponse: {body}")


class ConnectionExhaustedError(AMTError):
    """A transient network failure persisted past the retry budget."""

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException],
        address: str,
        port: int,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.address = address
        self.port = port
        super().__init__(
            f"Failed to connect to AMT device after {attempts} attempts. "
            f"Last error: {last_error} ({address}:{port})"
        )
