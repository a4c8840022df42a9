from .challenge import parse_challenge
from .client import Registry
from .compare import ManifestDiff, diff_manifests, manifests_equal
from .exceptions import (
    ChallengeParseError,
    MalformedChallengeError,
    RegistryAuthError,
    RegistryClientError,
    RegistryConnectionError,
    RegistryError,
    RegistryValidationError,
    TokenFetchError,
    UnsupportedSchemeError,
)
from .models import (
    AuthChallenge,
    ImageManifest,
    ImageReference,
    ManifestDocument,
    ManifestList,
    RegistryConfig,
    parse_manifest_document,
)
from .reference import parse_reference
from .tokens import TokenCache

__all__ = [
    "AuthChallenge",
    "ChallengeParseError",
    "ImageManifest",
    "ImageReference",
    "MalformedChallengeError",
    "ManifestDiff",
    "ManifestDocument",
    "ManifestList",
    "Registry",
    "RegistryAuthError",
    "RegistryClientError",
    "RegistryConfig",
    "RegistryConnectionError",
    "RegistryError",
    "RegistryValidationError",
    "TokenCache",
    "TokenFetchError",
    "UnsupportedSchemeError",
    "diff_manifests",
    "manifests_equal",
    "parse_challenge",
    "parse_manifest_document",
    "parse_reference",
]
