import requests
from requests.exceptions import RequestException
from typing import Dict, Optional
import logging

from .challenge import parse_challenge
from .exceptions import RegistryConnectionError, RegistryError, RegistryValidationError
from .models import (
    MANIFEST_LIST_MEDIA_TYPE,
    MANIFEST_MEDIA_TYPE,
    ImageReference,
    ManifestDocument,
    RegistryConfig,
    parse_manifest_document,
)
from .reference import parse_reference
from .tokens import TokenCache

logger = logging.getLogger(__name__)

# Manifest list preferred, single manifest as fallback
MANIFEST_ACCEPT = f"{MANIFEST_LIST_MEDIA_TYPE}, {MANIFEST_MEDIA_TYPE};q=0.9"


class Registry:
    """Docker registry v2 client for manifest retrieval with bearer token auth

    One instance may be shared by many threads; the token cache is the only
    state they share.
    """

    def __init__(self, config: Optional[RegistryConfig] = None):
        self.config = config or RegistryConfig()
        self._session = self._create_session()
        self.tokens = TokenCache(self._session, timeout=self.config.timeout)

    def _create_session(self) -> requests.Session:
        """Create configured requests session"""
        session = requests.session()
        session.headers.update({"User-Agent": self.config.user_agent})
        return session

    def login(self, host: str, username: str, password: str):
        """Register credentials sent to the token endpoint for host"""
        self.tokens.set_credentials(host, username, password)

    def _base_url(self, host: str) -> str:
        return f"{self.config.scheme_for(host)}://{host}"

    def is_alive(self, host: str) -> bool:
        """Check if registry is alive"""
        try:
            response = self._session.get(
                f"{self._base_url(host)}/v2/", timeout=self.config.timeout
            )
            return response.status_code in (200, 401)
        except RequestException as e:
            logger.debug(f"Registry health check failed: {e}")
            return False

    def _fetch_manifest(
        self, ref: ImageReference, token: str, timeout: Optional[float]
    ) -> ManifestDocument:
        """
        Issue one manifest GET, attaching token as a bearer credential if set

        Raises:
            RegistryError: If the registry answers with anything but 200
            RegistryConnectionError: If the request fails
            RegistryValidationError: If the body is not a manifest
        """
        headers: Dict[str, str] = {"Accept": MANIFEST_ACCEPT}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        url = f"{self._base_url(ref.host)}{ref.manifest_path}"
        logger.debug(f"Fetching manifest from: {url}")
        try:
            response = self._session.get(
                url, headers=headers, timeout=timeout or self.config.timeout
            )
        except RequestException as e:
            logger.error(f"Failed to get manifest {ref}: {e}")
            raise RegistryConnectionError(f"Manifest fetch failed: {e}") from e

        if response.status_code != 200:
            raise RegistryError(response.status_code, response.headers)

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Invalid manifest response for {ref}: {e}")
            raise RegistryValidationError(f"Invalid manifest JSON: {e}") from e
        return parse_manifest_document(payload)

    def get_manifest(self, image: str, timeout: Optional[float] = None) -> ManifestDocument:
        """
        Get the manifest (or manifest list) for an image

        An anonymous request rejected with a Bearer challenge is retried
        exactly once with a token from the challenge's realm.

        Args:
            image: Image reference (e.g., "debian:bullseye-slim")
            timeout: Per-request timeout in seconds (default: config timeout)

        Returns:
            ManifestList or ImageManifest

        Raises:
            RegistryError: Unexpected status code, including a second 401
            RegistryAuthError: Unusable challenge or token endpoint failure
            RegistryConnectionError: Transport failure or timeout
            RegistryValidationError: Malformed manifest body
        """
        ref = parse_reference(image)
        requested_at = self.tokens.now()
        sent_token = self.tokens.get_cached(ref.host)
        try:
            return self._fetch_manifest(ref, sent_token, timeout)
        except RegistryError as e:
            if e.status_code != 401:
                logger.error(f"Failed to get manifest {ref}: {e}")
                raise
            challenge_header = e.header("WWW-Authenticate")
            if not challenge_header:
                logger.error(f"Registry {ref.host} returned 401 without a challenge")
                raise

        challenge = parse_challenge(challenge_header)
        logger.debug(f"Authenticating to {ref.host} (service={challenge.service}, scope={challenge.scope})")
        token = self.tokens.refresh(
            ref.host,
            challenge.realm,
            challenge.service,
            challenge.scope,
            requested_at=requested_at,
            timeout=timeout,
            rejected=sent_token,
        )

        try:
            return self._fetch_manifest(ref, token, timeout)
        except RegistryError as e:
            logger.error(f"Failed to get manifest {ref} after authenticating: {e}")
            raise

    def close(self):
        """Close the underlying session"""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exec_type, exec_val, exec_tb):
        self.close()
