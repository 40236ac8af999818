"""HTTP Digest authentication (RFC 2617, MD5, qop=auth)."""

import hashlib
import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

import requests

from .errors import AuthChallengeError

NONCE_COUNT = "00000001"
QOP = "auth"

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]+)"')

PROBE_HEADERS = {
    "User-Agent": "Intel AMT Client",
    "Accept": "*/*",
}


@dataclass(frozen=True)
class DigestChallenge:
    """Parameters of a WWW-Authenticate Digest challenge."""

    realm: str
    nonce: str
    params: Dict[str, str] = field(default_factory=dict)


def parse_challenge(header: str) -> DigestChallenge:
    """
    Parse a WWW-Authenticate header value.

    Args:
        header: Raw header, e.g. 'Digest realm="x", nonce="y", qop="auth"'

    Returns:
        DigestChallenge with realm, nonce and every other quoted directive

    Raises:
        AuthChallengeError: If realm or nonce is missing
    """
    params = dict(_CHALLENGE_PARAM.findall(header or ""))
    realm = params.get("realm")
    nonce = params.get("nonce")
    if not realm or not nonce:
        raise AuthChallengeError("Missing required digest authentication parameters")
    return DigestChallenge(realm=realm, nonce=nonce, params=params)


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def generate_cnonce() -> str:
    return secrets.token_hex(16)


def compute_authorization_header(
    challenge: DigestChallenge,
    username: str,
    password: str,
    method: str,
    uri: str,
    cnonce: Optional[str] = None,
) -> str:
    """
    Compute the Digest Authorization header value for one request.

    Args:
        challenge: Parsed server challenge
        username: Account name
        password: Account password
        method: HTTP method of the protected request
        uri: URI the request is sent to
        cnonce: Client nonce (a random 16-byte hex value by default)

    Returns:
        The full header value, starting with 'Digest '
    """
    if cnonce is None:
        cnonce = generate_cnonce()

    ha1 = _md5(f"{username}:{challenge.realm}:{password}")
    ha2 = _md5(f"{method}:{uri}")
    response = _md5(f"{ha1}:{challenge.nonce}:{NONCE_COUNT}:{cnonce}:{QOP}:{ha2}")

    return (
        f'Digest username="{username}", realm="{challenge.realm}", '
        f'nonce="{challenge.nonce}", uri="{uri}", cnonce="{cnonce}", '
        f'nc={NONCE_COUNT}, qop={QOP}, response="{response}"'
    )


def fetch_challenge(
    session: requests.Session,
    url: str,
    method: str = "POST",
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> DigestChallenge:
    """
    Send an unauthenticated challenge request and parse the challenge it returns.

    Raises:
        AuthChallengeError: If no usable challenge came back
        requests.RequestException: On transport failures
    """
    response = session.request(
        method,
        url,
        headers={**PROBE_HEADERS, **(headers or {})},
        timeout=timeout,
    )
    www_authenticate = response.headers.get("WWW-Authenticate")
    if not www_authenticate:
        raise AuthChallengeError("No WWW-Authenticate header received")
    return parse_challenge(www_authenticate)


class DigestAuthenticator:
    """Obtains a fresh Digest challenge for every protected request."""

    def __init__(
        self,
        username: str,
        password: str,
        max_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        cnonce_factory: Callable[[], str] = generate_cnonce,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.username = username
        self.password = password
        self.max_retries = max_retries
        self.sleep = sleep
        self.cnonce_factory = cnonce_factory
        self.logger = logger or logging.getLogger(__name__)
        self.last_error: Optional[BaseException] = None

    def get_header(
        self,
        session: requests.Session,
        url: str,
        method: str = "POST",
        timeout: Optional[float] = None,
    ) -> Optional[str]:
        """
        Request a challenge from the device and build an Authorization header for ``url``.

        The challenge request is retried with exponential backoff (1s, 2s, 4s, ...) on
        any failure. Header computation itself is never retried.

        Returns:
            The header value, or None once the retry budget is spent
        """
        self.last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                challenge = fetch_challenge(session, url, method=method, timeout=timeout)
                return compute_authorization_header(
                    challenge,
                    self.username,
                    self.password,
                    method,
                    url,
                    cnonce=self.cnonce_factory(),
                )
            except (AuthChallengeError, requests.RequestException, OSError) as e:
                self.last_error = e
                self.logger.warning("Error in getting WWW-Authenticate header: %s", e)
                if attempt < self.max_retries:
                    delay = 2 ** attempt
                    self.logger.info(
                        "Retrying in %ss... (Attempt %d/%d)", delay, attempt + 1, self.max_retries
                    )
                    self.sleep(delay)

        return None
