"""Image reference parsing with Docker Hub defaulting rules."""

from .models import DOCKER_HUB_HOST, ImageReference

DEFAULT_TAG = "latest"

# Names users write for Docker Hub that are not the API endpoint
DOCKER_HUB_ALIASES = ("docker.io", "index.docker.io")


def _is_registry_host(segment: str) -> bool:
    return "." in segment or ":" in segment


def parse_reference(image: str) -> ImageReference:
    """
    Split an image name into registry host, repository and tag.

    Never raises: malformed input yields a best-effort reference.

    Args:
        image: Image reference (e.g., "debian:bullseye-slim",
            "ghcr.io/github/super-linter:v3", "myregistry:5000/app")

    Returns:
        ImageReference with host, repository and tag (or digest)
    """
    image = image.strip()
    last_slash = image.rfind("/")

    at = image.find("@", last_slash + 1)
    if at >= 0:
        tag = image[at + 1:] or DEFAULT_TAG
        image = image[:at]
        # name:tag@digest pins the digest; the tag is informational only
        colon = image.rfind(":")
        if colon > last_slash:
            image = image[:colon]
    else:
        colon = image.rfind(":")
        if colon > last_slash:
            tag = image[colon + 1:] or DEFAULT_TAG
            image = image[:colon]
        else:
            tag = DEFAULT_TAG

    slash = image.find("/")
    if slash < 0:
        # Official image on Docker Hub
        return ImageReference(host=DOCKER_HUB_HOST, repository=f"library/{image}", tag=tag)

    first = image[:slash]
    if not _is_registry_host(first):
        # Third party image on Docker Hub
        return ImageReference(host=DOCKER_HUB_HOST, repository=image, tag=tag)

    host = first.lower()
    repository = image[slash + 1:]
    if host in DOCKER_HUB_ALIASES:
        host = DOCKER_HUB_HOST
    if host == DOCKER_HUB_HOST and "/" not in repository:
        repository = f"library/{repository}"
    return ImageReference(host=host, repository=repository, tag=tag)
