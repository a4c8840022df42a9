"""Change detection between two observations of the same image."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import ImageManifest, ManifestDocument, ManifestList, PlatformManifest


@dataclass
class ManifestDiff:
    """What differs between an old and a new manifest document."""

    kind_changed: bool = False
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    config_changed: bool = False
    layers_changed: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(
            self.kind_changed
            or self.added
            or self.removed
            or self.changed
            or self.config_changed
            or self.layers_changed
        )


def manifests_equal(
    old: Optional[ManifestDocument], new: Optional[ManifestDocument]
) -> bool:
    """Structural equality; None means the image was never observed."""
    return old == new


def platform_key(entry: PlatformManifest) -> str:
    """Label a manifest list entry by its platform, e.g. linux/arm64/v8."""
    if entry.platform is None:
        return entry.digest
    parts = [entry.platform.os, entry.platform.architecture]
    if entry.platform.variant:
        parts.append(entry.platform.variant)
    return "/".join(parts)


def _index(manifest_list: ManifestList) -> Dict[str, str]:
    return {platform_key(entry): entry.digest for entry in manifest_list.manifests}


def _layer_digests(manifest: ImageManifest) -> List[str]:
    return [layer.digest for layer in manifest.layers]


def diff_manifests(old: ManifestDocument, new: ManifestDocument) -> ManifestDiff:
    """
    Describe how new differs from old.

    Manifest lists are compared per platform; single manifests by config
    and layer digests. A switch between the two kinds only sets
    kind_changed.
    """
    if type(old) is not type(new):
        return ManifestDiff(kind_changed=True)

    if isinstance(old, ManifestList):
        before, after = _index(old), _index(new)
        return ManifestDiff(
            added=sorted(set(after) - set(before)),
            removed=sorted(set(before) - set(after)),
            changed=sorted(k for k in set(before) & set(after) if before[k] != after[k]),
        )

    return ManifestDiff(
        config_changed=old.config.digest != new.config.digest,
        layers_changed=_layer_digests(old) != _layer_digests(new),
    )
