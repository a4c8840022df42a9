"""Command line interface for regwatch.

Usage:
    regwatch manifest debian:bullseye-slim ghcr.io/github/super-linter:v3
    regwatch check images.yaml
    regwatch diff old.json new.json
    regwatch ping ghcr.io
"""

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from regwatch.logging_config import configure_module_logging, configure_regwatch_logging
from regwatch.registry.client import Registry
from regwatch.registry.compare import diff_manifests
from regwatch.registry.exceptions import RegistryClientError
from regwatch.registry.models import (
    ManifestDocument,
    ManifestList,
    RegistryConfig,
    parse_manifest_document,
)

logger = configure_module_logging("cli")

DEFAULT_WORKERS = 8


@dataclass
class FetchResult:
    """Outcome of fetching one image's manifest."""

    image: str
    manifest: Optional[ManifestDocument] = None
    error: Optional[RegistryClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def load_image_list(path: Path) -> Dict[str, Any]:
    """Load images (and optional per-host credentials) from a YAML file.

    Accepts either a bare list of image references or a mapping with an
    ``images`` list and an optional ``credentials`` mapping of
    host -> {username, password}.
    """
    data = yaml.safe_load(path.read_text()) or {}
    if isinstance(data, list):
        data = {"images": data}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a list or a mapping")

    images = data.get("images") or []
    if not isinstance(images, list):
        raise ValueError(f"{path}: images must be a list")

    credentials = data.get("credentials") or {}
    if not isinstance(credentials, dict):
        raise ValueError(f"{path}: credentials must be a mapping of host to login")
    for host, cred in credentials.items():
        if not isinstance(cred, dict) or not cred.get("username"):
            raise ValueError(f"{path}: credentials for {host} need a username and password")

    images = [str(image) for image in images]
    return {"images": images, "credentials": credentials}


def fetch_all(
    registry: Registry, images: Sequence[str], max_workers: int = DEFAULT_WORKERS
) -> List[FetchResult]:
    """Fetch manifests concurrently, keeping input order.

    A failing image does not stop the others.
    """

    def fetch(image: str) -> FetchResult:
        try:
            return FetchResult(image=image, manifest=registry.get_manifest(image))
        except RegistryClientError as e:
            return FetchResult(image=image, error=e)

    if not images:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(images))) as pool:
        return list(pool.map(fetch, images))


def _build_config(args: argparse.Namespace) -> RegistryConfig:
    return RegistryConfig(timeout=args.timeout, insecure_hosts=args.insecure or [])


def cmd_manifest(registry: Registry, images: Sequence[str], workers: int) -> int:
    """Print manifests for the given images as JSON."""
    results = fetch_all(registry, images, workers)
    output = {}
    failed = False
    for result in results:
        if result.ok:
            output[result.image] = result.manifest.model_dump(exclude_none=True)
        else:
            failed = True
            output[result.image] = {"error": str(result.error)}
    print(json.dumps(output, indent=2))
    return 1 if failed else 0


def cmd_check(registry: Registry, image_file: Path, workers: int) -> int:
    """Fetch every image in a YAML list and print one status line each."""
    try:
        image_list = load_image_list(image_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Cannot read image list {image_file}: {e}")
        print(f"✗ {e}")
        return 2

    for host, cred in image_list["credentials"].items():
        registry.login(host, cred.get("username", ""), cred.get("password", ""))

    failures = 0
    for result in fetch_all(registry, image_list["images"], workers):
        if result.ok:
            manifest = result.manifest
            if isinstance(manifest, ManifestList):
                count = len(manifest.manifests)
            else:
                count = len(manifest.layers)
            print(f"✓ {result.image}: {manifest.mediaType} ({count} entries)")
        else:
            failures += 1
            print(f"✗ {result.image}: {result.error}")

    total = len(image_list["images"])
    print(f"\n{total - failures}/{total} images resolved")
    return 1 if failures else 0


def cmd_diff(old_file: Path, new_file: Path) -> int:
    """Compare two saved manifest documents."""
    try:
        old = parse_manifest_document(json.loads(old_file.read_text()))
        new = parse_manifest_document(json.loads(new_file.read_text()))
    except (OSError, ValueError, RegistryClientError) as e:
        logger.error(f"Cannot compare {old_file} and {new_file}: {e}")
        print(f"✗ {e}")
        return 2

    diff = diff_manifests(old, new)
    if not diff.has_changes:
        print("No changes")
        return 0

    if diff.kind_changed:
        print(f"Manifest kind changed: {old.mediaType} -> {new.mediaType}")
    for platform in diff.added:
        print(f"+ {platform}")
    for platform in diff.removed:
        print(f"- {platform}")
    for platform in diff.changed:
        print(f"~ {platform}")
    if diff.config_changed:
        print(f"~ config {old.config.digest} -> {new.config.digest}")
    if diff.layers_changed:
        print("~ layers")
    return 1


def cmd_ping(registry: Registry, host: str) -> int:
    """Check that a registry answers on /v2/."""
    alive = registry.is_alive(host)
    status = "✓ HEALTHY" if alive else "✗ UNREACHABLE"
    print(f"{host}: {status}")
    return 0 if alive else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regwatch",
        description="Docker registry v2 manifest client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  regwatch manifest debian:bullseye-slim
  regwatch check images.yaml
  regwatch diff old.json new.json
  regwatch --insecure localhost:5000 ping localhost:5000
        """,
    )
    parser.add_argument(
        "--timeout", type=float, default=30.0, help="Request timeout in seconds (default: 30)"
    )
    parser.add_argument(
        "--insecure",
        action="append",
        metavar="HOST",
        help="Use plain HTTP for this registry host (repeatable)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Concurrent fetches (default: {DEFAULT_WORKERS})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    manifest = subparsers.add_parser("manifest", help="Print manifests as JSON")
    manifest.add_argument("images", nargs="+", help="Image references")

    check = subparsers.add_parser("check", help="Resolve every image in a YAML list")
    check.add_argument("image_file", type=Path, help="YAML file with an images list")

    diff = subparsers.add_parser("diff", help="Compare two saved manifest documents")
    diff.add_argument("old", type=Path, help="Previous manifest JSON")
    diff.add_argument("new", type=Path, help="Current manifest JSON")

    ping = subparsers.add_parser("ping", help="Check registry reachability")
    ping.add_argument("host", help="Registry host (e.g., ghcr.io)")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_regwatch_logging(log_level=args.log_level, include_console=False)

    if args.command == "diff":
        return cmd_diff(args.old, args.new)

    with Registry(_build_config(args)) as registry:
        if args.command == "manifest":
            return cmd_manifest(registry, args.images, args.workers)
        elif args.command == "check":
            return cmd_check(registry, args.image_file, args.workers)
        elif args.command == "ping":
            return cmd_ping(registry, args.host)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
