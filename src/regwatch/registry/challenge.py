"""WWW-Authenticate challenge parsing (Bearer subset only)."""

import re

from .exceptions import MalformedChallengeError, UnsupportedSchemeError
from .models import AuthChallenge

BEARER = "Bearer"

_PARAM_RE = re.compile(r'([A-Za-z0-9_]+)="([^"]*)"')


def parse_challenge(header: str) -> AuthChallenge:
    """
    Parse a WWW-Authenticate header value.

    Unknown or unquoted parameters are ignored so registry-specific
    extras do not break parsing.

    Raises:
        MalformedChallengeError: No space separates the scheme from its parameters
        UnsupportedSchemeError: The scheme is not Bearer
    """
    idx = header.find(" ")
    if idx < 0:
        raise MalformedChallengeError("authenticate type not found")

    scheme = header[:idx]
    if scheme != BEARER:
        raise UnsupportedSchemeError(scheme)

    params = {key: value for key, value in _PARAM_RE.findall(header[idx + 1:])}
    return AuthChallenge(scheme=scheme, params=params)
