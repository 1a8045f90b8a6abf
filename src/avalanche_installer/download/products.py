"""
Release products known to the installer.

Each product pins its GitHub coordinates and default tag, names its archives per
operating system, and declares where its binary lands inside an unpacked archive.
The layout depends on the archive decoder (avalanchego zips are rooted at
``build/`` while its tarballs are rooted at ``avalanchego-<tag>/``), so the
mapping is keyed by (product, decoder) rather than guessed from file suffixes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from avalanche_installer.constants import (
    AVALANCHEGO_BINARY_NAME,
    AVALANCHEGO_DEFAULT_TAG,
    AVALANCHEGO_ORG,
    AVALANCHEGO_RELEASE_MAX_ATTEMPTS,
    AVALANCHEGO_RELEASE_RETRY_DELAY,
    AVALANCHEGO_REPO,
    PLUGINS_DIR_NAME,
    SUBNET_EVM_BINARY_NAME,
    SUBNET_EVM_DEFAULT_TAG,
    SUBNET_EVM_ORG,
    SUBNET_EVM_RELEASE_MAX_ATTEMPTS,
    SUBNET_EVM_RELEASE_RETRY_DELAY,
    SUBNET_EVM_REPO,
    ZIP_BUILD_DIR_NAME,
)
from avalanche_installer.exceptions import UnknownPlatformError
from avalanche_installer.platforms import OperatingSystem

from .interfaces import DecoderKind

ArchiveRule = Callable[[OperatingSystem, str, str], Tuple[str, DecoderKind]]


@dataclass(frozen=True)
class ExtractionLayout:
    """Where a product's files live inside an unpacked archive."""

    root_template: str
    """Directory under the extraction dir holding the files; may use {tag}"""

    binary_name: str
    has_plugins: bool = False

    def root(self, extract_dir: Path, tag: str) -> Path:
        relative = self.root_template.format(tag=tag)
        return extract_dir / relative if relative else extract_dir

    def binary_path(self, extract_dir: Path, tag: str) -> Path:
        return self.root(extract_dir, tag) / self.binary_name

    def plugins_dir(self, extract_dir: Path, tag: str) -> Optional[Path]:
        if not self.has_plugins:
            return None
        return self.root(extract_dir, tag) / PLUGINS_DIR_NAME


@dataclass(frozen=True)
class Product:
    """A release product with its fixed coordinates and naming rules."""

    name: str
    org: str
    repo: str
    binary_name: str
    default_tag: str
    release_max_attempts: int
    release_retry_delay: float
    archive_rule: ArchiveRule
    layouts: Dict[DecoderKind, ExtractionLayout]

    def archive_for(
        self, os_name: OperatingSystem, arch: str, tag: str
    ) -> Tuple[str, DecoderKind]:
        """
        Name the release archive for a platform.

        Raises:
            UnknownPlatformError: If the architecture is unresolved or the product does not publish for the OS.
        """
        if not arch:
            raise UnknownPlatformError(
                f"unknown architecture for {self.name} on {os_name}",
                arch=arch,
                os_name=str(os_name),
            )
        return self.archive_rule(os_name, arch, tag)

    def layout_for(self, decoder: DecoderKind) -> ExtractionLayout:
        try:
            return self.layouts[decoder]
        except KeyError:
            raise UnknownPlatformError(
                f"{self.name} does not ship {decoder.value} archives"
            ) from None


def _avalanchego_archive(
    os_name: OperatingSystem, arch: str, tag: str
) -> Tuple[str, DecoderKind]:
    # ref. https://github.com/ava-labs/avalanchego/releases
    if os_name is OperatingSystem.MACOS:
        return f"avalanchego-macos-{tag}.zip", DecoderKind.ZIP
    if os_name is OperatingSystem.LINUX:
        return f"avalanchego-linux-{arch}-{tag}.tar.gz", DecoderKind.TAR_GZ
    if os_name is OperatingSystem.WINDOWS:
        return f"avalanchego-win-{tag}-experimental.zip", DecoderKind.ZIP
    raise UnknownPlatformError(f"unknown platform '{os_name}'", arch=arch)


def _subnet_evm_archive(
    os_name: OperatingSystem, arch: str, tag: str
) -> Tuple[str, DecoderKind]:
    # ref. https://github.com/ava-labs/subnet-evm/releases
    version = tag[1:] if tag.startswith("v") else tag
    if os_name is OperatingSystem.MACOS:
        return f"subnet-evm_{version}_darwin_{arch}.tar.gz", DecoderKind.TAR_GZ
    if os_name is OperatingSystem.LINUX:
        return f"subnet-evm_{version}_linux_{arch}.tar.gz", DecoderKind.TAR_GZ
    raise UnknownPlatformError(
        f"subnet-evm does not support '{os_name}'", arch=arch, os_name=str(os_name)
    )


AVALANCHEGO = Product(
    name="avalanchego",
    org=AVALANCHEGO_ORG,
    repo=AVALANCHEGO_REPO,
    binary_name=AVALANCHEGO_BINARY_NAME,
    default_tag=AVALANCHEGO_DEFAULT_TAG,
    release_max_attempts=AVALANCHEGO_RELEASE_MAX_ATTEMPTS,
    release_retry_delay=AVALANCHEGO_RELEASE_RETRY_DELAY,
    archive_rule=_avalanchego_archive,
    layouts={
        DecoderKind.ZIP: ExtractionLayout(
            ZIP_BUILD_DIR_NAME, AVALANCHEGO_BINARY_NAME, has_plugins=True
        ),
        DecoderKind.TAR_GZ: ExtractionLayout(
            f"{AVALANCHEGO_BINARY_NAME}-{{tag}}",
            AVALANCHEGO_BINARY_NAME,
            has_plugins=True,
        ),
    },
)

SUBNET_EVM = Product(
    name="subnet-evm",
    org=SUBNET_EVM_ORG,
    repo=SUBNET_EVM_REPO,
    binary_name=SUBNET_EVM_BINARY_NAME,
    default_tag=SUBNET_EVM_DEFAULT_TAG,
    release_max_attempts=SUBNET_EVM_RELEASE_MAX_ATTEMPTS,
    release_retry_delay=SUBNET_EVM_RELEASE_RETRY_DELAY,
    archive_rule=_subnet_evm_archive,
    # goreleaser tarballs carry the binary at the archive root
    layouts={DecoderKind.TAR_GZ: ExtractionLayout("", SUBNET_EVM_BINARY_NAME)},
)

PRODUCTS: Dict[str, Product] = {p.name: p for p in (AVALANCHEGO, SUBNET_EVM)}


def get_product(name: str) -> Product:
    """
    Look up a product by name.

    Raises:
        ValueError: If the name is not one of the supported products.
    """
    try:
        return PRODUCTS[name]
    except KeyError:
        valid = ", ".join(sorted(PRODUCTS))
        raise ValueError(f"unknown product {name!r} (expected one of {valid})") from None
