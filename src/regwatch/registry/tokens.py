"""
Per-host bearer token cache

Tokens are fetched from the auth endpoint named in a registry's Bearer
challenge and shared by every request to that host. Concurrent refreshes
for one host collapse into a single token request.
"""

import logging
import threading
import time
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from pydantic import ValidationError
from requests.exceptions import RequestException

from .exceptions import TokenFetchError
from .models import TokenResponse

logger = logging.getLogger(__name__)


class _HostToken:
    """Token slot for one registry host"""

    def __init__(self):
        self.lock = threading.Lock()
        # (value, obtained_at); replaced as a whole, never mutated
        self.current: Tuple[str, int] = ("", 0)


class TokenCache:
    """Bearer tokens keyed by registry host"""

    def __init__(self, session: requests.Session, timeout: float = 30.0):
        self._session = session
        self._timeout = timeout
        self._lock = threading.Lock()
        self._tokens: Dict[str, _HostToken] = {}
        self._credentials: Dict[str, Tuple[str, str]] = {}

    @staticmethod
    def now() -> int:
        """Monotonic timestamp used for token freshness"""
        return time.monotonic_ns()

    def set_credentials(self, host: str, username: str, password: str):
        """Use HTTP Basic auth when requesting tokens for this host"""
        with self._lock:
            self._credentials[host.lower()] = (username, password)

    def get_cached(self, host: str) -> str:
        """Return the last token obtained for host, or "" if none"""
        with self._lock:
            slot = self._tokens.get(host.lower())
        if slot is None:
            return ""
        return slot.current[0]

    def _slot(self, host: str) -> _HostToken:
        with self._lock:
            slot = self._tokens.get(host)
            if slot is None:
                slot = _HostToken()
                self._tokens[host] = slot
            return slot

    def refresh(
        self,
        host: str,
        realm: str,
        service: str,
        scope: str,
        requested_at: Optional[int] = None,
        timeout: Optional[float] = None,
        rejected: str = "",
    ) -> str:
        """
        Obtain a fresh token for host

        If another caller stored a token after requested_at, that token is
        returned without contacting the auth endpoint, unless it is the
        token the registry just rejected.

        Args:
            host: Registry host the token is for
            realm: Token endpoint URL from the challenge
            service: Service parameter from the challenge
            scope: Scope parameter from the challenge
            requested_at: When the caller started needing a token (see now());
                defaults to the time of this call
            timeout: Request timeout in seconds
            rejected: Token the registry answered 401 to; never handed back

        Returns:
            Token string

        Raises:
            TokenFetchError: If the endpoint is unreachable, rejects the request
                or returns no token
        """
        if requested_at is None:
            requested_at = self.now()
        host = host.lower()
        slot = self._slot(host)

        with slot.lock:
            value, obtained_at = slot.current
            if value and value != rejected and obtained_at > requested_at:
                logger.debug(f"Reusing token for {host} refreshed by a concurrent request")
                return value

            token = self._fetch_token(host, realm, service, scope, timeout)
            slot.current = (token, self.now())
            logger.info(f"Obtained registry token for {host}")
            return token

    def _token_url(self, realm: str, service: str, scope: str) -> str:
        parts = urlsplit(realm)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in ("service", "scope")
        ]
        query += [("service", service), ("scope", scope)]
        return urlunsplit(parts._replace(query=urlencode(query)))

    def _fetch_token(
        self, host: str, realm: str, service: str, scope: str, timeout: Optional[float]
    ) -> str:
        if not realm:
            raise TokenFetchError(f"Challenge from {host} has no realm")

        url = self._token_url(realm, service, scope)
        logger.debug(f"Requesting token for {host} from {url}")
        try:
            response = self._session.get(
                url,
                auth=self._credentials.get(host),
                timeout=timeout or self._timeout,
            )
        except RequestException as e:
            logger.error(f"Token request for {host} failed: {e}")
            raise TokenFetchError(f"Token request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Token endpoint for {host} returned {response.status_code}")
            raise TokenFetchError(
                f"unexpected response code: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid token response for {host}: {e}")
            raise TokenFetchError(f"Invalid token response: {e}", status_code=200) from e

        if not body.value:
            raise TokenFetchError("response does not contain token", status_code=200)
        return body.value
