from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Any, Dict, List, Optional, Union

from .exceptions import RegistryValidationError

DOCKER_HUB_HOST = "registry-1.docker.io"

MANIFEST_LIST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"
MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"


class ImageReference(BaseModel):
    """Image location split into registry host, repository and tag"""
    model_config = ConfigDict(frozen=True)

    host: str
    repository: str
    tag: str = "latest"

    @property
    def manifest_path(self) -> str:
        return f"/v2/{self.repository}/manifests/{self.tag}"

    def __str__(self) -> str:
        separator = "@" if self.tag.startswith("sha256:") else ":"
        return f"{self.host}/{self.repository}{separator}{self.tag}"


class AuthChallenge(BaseModel):
    """Parsed WWW-Authenticate challenge"""
    model_config = ConfigDict(frozen=True)

    scheme: str
    params: Dict[str, str] = Field(default_factory=dict)

    @property
    def realm(self) -> str:
        return self.params.get("realm", "")

    @property
    def service(self) -> str:
        return self.params.get("service", "")

    @property
    def scope(self) -> str:
        return self.params.get("scope", "")


class Platform(BaseModel):
    """Platform of one manifest list entry"""
    model_config = ConfigDict(frozen=True)

    architecture: str
    os: str
    variant: Optional[str] = None


class PlatformManifest(BaseModel):
    """Manifest list entry"""
    model_config = ConfigDict(frozen=True)

    digest: str
    mediaType: str = ""
    platform: Optional[Platform] = None
    size: int = 0


class Descriptor(BaseModel):
    """Content descriptor used for the config blob and layers"""
    model_config = ConfigDict(frozen=True)

    mediaType: str = ""
    size: int = 0
    digest: str


class ManifestList(BaseModel):
    """Docker manifest list (fat manifest)"""
    model_config = ConfigDict(frozen=True)

    schemaVersion: int
    mediaType: str = MANIFEST_LIST_MEDIA_TYPE
    manifests: List[PlatformManifest]


class ImageManifest(BaseModel):
    """Docker image manifest, schema 2"""
    model_config = ConfigDict(frozen=True)

    schemaVersion: int
    mediaType: str = MANIFEST_MEDIA_TYPE
    config: Descriptor
    layers: List[Descriptor] = Field(default_factory=list)


ManifestDocument = Union[ManifestList, ImageManifest]


def parse_manifest_document(payload: Any) -> ManifestDocument:
    """
    Decode a manifest response body into one of the two manifest kinds

    The kind is picked by the field group present in the payload:
    ``manifests`` for a manifest list, ``config`` for a single manifest.

    Raises:
        RegistryValidationError: If the payload matches neither kind
    """
    if not isinstance(payload, dict):
        raise RegistryValidationError(
            f"Invalid manifest format: expected object, got {type(payload).__name__}"
        )

    try:
        if "manifests" in payload:
            return ManifestList.model_validate(payload)
        if "config" in payload:
            return ImageManifest.model_validate(payload)
    except ValidationError as e:
        raise RegistryValidationError(f"Invalid manifest format: {e}") from e

    raise RegistryValidationError(
        "Invalid manifest format: neither 'manifests' nor 'config' present"
    )


class TokenResponse(BaseModel):
    """Token endpoint response; registries disagree on the field name"""

    token: Optional[str] = None
    Token: Optional[str] = None
    access_token: Optional[str] = None
    expires_in: Optional[int] = None
    issued_at: Optional[str] = None

    @property
    def value(self) -> str:
        return self.token or self.Token or self.access_token or ""


class RegistryConfig(BaseModel):
    """Registry client configuration"""
    timeout: float = Field(default=30.0, gt=0)
    user_agent: str = Field(default="regwatch-registry-client/0.1.0")
    insecure_hosts: List[str] = Field(default_factory=list)

    @field_validator('insecure_hosts')
    @classmethod
    def lowercase_hosts(cls, v):
        return [host.strip().lower() for host in v if host.strip()]

    def scheme_for(self, host: str) -> str:
        return "http" if host.lower() in self.insecure_hosts else "https"
