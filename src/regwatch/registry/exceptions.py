"""
Registry-related exceptions

Provides a hierarchy of exceptions for different registry failure modes,
enabling precise error handling in client code.
"""

from typing import Mapping, Optional


class RegistryClientError(Exception):
    """Base exception for registry operations"""

    pass


class RegistryError(RegistryClientError):
    """Registry answered with an unexpected status code"""

    def __init__(self, status_code: int, headers: Optional[Mapping[str, str]] = None):
        self.status_code = status_code
        self.headers = dict(headers or {})
        super().__init__(f"unexpected status code: {status_code}")

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup"""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class RegistryConnectionError(RegistryClientError):
    """Registry connection failed"""

    pass


class RegistryValidationError(RegistryClientError):
    """Response validation failed"""

    pass


class RegistryAuthError(RegistryClientError):
    """Authentication against the registry failed"""

    pass


class ChallengeParseError(RegistryAuthError):
    """WWW-Authenticate header could not be used"""

    pass


class MalformedChallengeError(ChallengeParseError):
    """WWW-Authenticate header has no scheme separator"""

    pass


class UnsupportedSchemeError(ChallengeParseError):
    """WWW-Authenticate scheme is not Bearer"""

    def __init__(self, scheme: str):
        self.scheme = scheme
        super().__init__(f"unknown authenticate type: {scheme}")


class TokenFetchError(RegistryAuthError):
    """Token endpoint did not return a usable token"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
