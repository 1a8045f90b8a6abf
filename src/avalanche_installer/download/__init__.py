"""
Download Subsystem

Core Components:
- interfaces: Release, archive and artifact data structures
- products: Supported products, archive naming and extraction layouts
- release: Release tag resolution with pinned-default fallback
- archive: Archive spec construction for a platform
- async_client: GitHub release API and download client
- files: Scratch paths, unpacking and permission handling
- fetcher: Download-unpack-place orchestration
"""

from .archive import build_archive_spec
from .async_client import AsyncGitHubClient
from .fetcher import ArtifactFetcher, create_fetcher, fetch, get_plugins_dir
from .interfaces import (
    ArchiveSpec,
    DecoderKind,
    InstalledArtifact,
    ReleaseAsset,
    ReleaseInfo,
    StagedArtifact,
)
from .products import AVALANCHEGO, PRODUCTS, SUBNET_EVM, Product, get_product
from .release import resolve_tag

__all__ = [
    "AVALANCHEGO",
    "PRODUCTS",
    "SUBNET_EVM",
    "ArchiveSpec",
    "ArtifactFetcher",
    "AsyncGitHubClient",
    "DecoderKind",
    "InstalledArtifact",
    "Product",
    "ReleaseAsset",
    "ReleaseInfo",
    "StagedArtifact",
    "build_archive_spec",
    "create_fetcher",
    "fetch",
    "get_plugins_dir",
    "get_product",
    "resolve_tag",
]
