"""
Archive naming for a (product, tag, platform) triple.
"""

from typing import Optional, Union

from avalanche_installer.constants import GITHUB_DOWNLOAD_BASE, RELEASE_DOWNLOAD_PATH
from avalanche_installer.log_utils import logger
from avalanche_installer.platforms import (
    Arch,
    HostInfo,
    OperatingSystem,
    resolve_arch,
    resolve_os,
)

from .interfaces import ArchiveSpec
from .products import Product, get_product


def build_download_url(
    product: Product, tag: str, filename: str, download_base: str = GITHUB_DOWNLOAD_BASE
) -> str:
    path = RELEASE_DOWNLOAD_PATH.format(
        org=product.org, repo=product.repo, tag=tag, filename=filename
    )
    return f"{download_base.rstrip('/')}/{path}"


def build_archive_spec(
    product: Union[Product, str],
    tag: str,
    arch: Union[Arch, str, None] = None,
    os_name: Union[OperatingSystem, str, None] = None,
    *,
    host: Optional[HostInfo] = None,
    download_base: str = GITHUB_DOWNLOAD_BASE,
) -> ArchiveSpec:
    """
    Compute the archive filename, decoder and download URL for a release.

    Leave `arch` and `os_name` as None to detect them from `host` (the running
    machine by default). No network call is made.

    Parameters:
        product: Product or product name.
        tag (str): Release tag, e.g. "v1.9.16".
        arch: "amd64"/"arm64" or an Arch member.
        os_name: "macos"/"linux"/"win" or an OperatingSystem member.
        host (Optional[HostInfo]): Host used for detection.
        download_base (str): Release download host.

    Returns:
        ArchiveSpec: The derived archive coordinates.

    Raises:
        UnknownPlatformError: If the platform has no archive-naming rule for the product.
    """
    if isinstance(product, str):
        product = get_product(product)

    logger.info(f"detecting arch and platform for the release version tag {tag}")
    resolved_os = resolve_os(os_name, host)
    resolved_arch = resolve_arch(arch, host)
    filename, decoder = product.archive_for(resolved_os, resolved_arch, tag)

    return ArchiveSpec(
        product=product.name,
        tag=tag,
        filename=filename,
        decoder=decoder,
        download_url=build_download_url(product, tag, filename, download_base),
    )
