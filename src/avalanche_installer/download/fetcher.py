"""
Artifact fetcher: resolve a tag, download the release archive, unpack it and
locate the binary (and plugins directory) inside the unpacked tree.
"""

import asyncio
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Union

from avalanche_installer import config as config_utils
from avalanche_installer.exceptions import FileSystemError, LayoutMismatchError
from avalanche_installer.log_utils import logger
from avalanche_installer.platforms import Arch, HostInfo, OperatingSystem

from .archive import build_archive_spec
from .async_client import AsyncGitHubClient
from .files import (
    make_executable,
    random_tmp_path,
    remove_file_best_effort,
    unpack_archive,
)
from .interfaces import ArchiveSpec, InstalledArtifact, Pathish, StagedArtifact
from .products import Product, get_product
from .release import resolve_tag


def get_plugins_dir(binary_path: Pathish) -> Path:
    """
    Return the ``plugins`` directory that sits next to a node binary.

      build
        ├── avalanchego
        └── plugins
            └── evm
    """
    return Path(binary_path).parent / "plugins"


class ArtifactFetcher:
    """
    Downloads official release binaries from GitHub.

    Every fetch uses fresh random scratch paths, so concurrent fetches never collide.
    The returned paths point into the scratch extraction directory; use
    `install` to copy them into a permanent location.
    """

    def __init__(
        self,
        client: AsyncGitHubClient,
        config: Optional[Dict[str, Any]] = None,
        host: Optional[HostInfo] = None,
    ) -> None:
        self.client = client
        self.config = config or {}
        self.host = host

    def _release_retry_settings(self, product: Product) -> tuple[int, float]:
        return (
            config_utils.get_int_setting(
                self.config, "RELEASE_MAX_ATTEMPTS", product.release_max_attempts
            ),
            config_utils.get_float_setting(
                self.config, "RELEASE_RETRY_DELAY", product.release_retry_delay
            ),
        )

    async def resolve(
        self,
        product: Union[Product, str],
        arch: Union[Arch, str, None] = None,
        os_name: Union[OperatingSystem, str, None] = None,
        tag_override: Optional[str] = None,
    ) -> ArchiveSpec:
        """Resolve the release tag and derive the archive to download."""
        if isinstance(product, str):
            product = get_product(product)

        max_attempts, base_delay = self._release_retry_settings(product)
        tag = await resolve_tag(
            product.org,
            product.repo,
            product.default_tag,
            tag_override,
            client=self.client,
            max_attempts=max_attempts,
            base_delay=base_delay,
        )
        return build_archive_spec(
            product,
            tag,
            arch,
            os_name,
            host=self.host,
            download_base=config_utils.get_download_base(self.config),
        )

    async def fetch(
        self,
        product: Union[Product, str],
        arch: Union[Arch, str, None] = None,
        os_name: Union[OperatingSystem, str, None] = None,
        tag_override: Optional[str] = None,
    ) -> InstalledArtifact:
        """
        Download and unpack a product release.

        Leave `tag_override` None to install the latest stable release, and `arch`/`os_name`
        None to detect them from the host.

        Returns:
            InstalledArtifact: The executable binary path and, for avalanchego, its plugins directory.

        Raises:
            UnknownPlatformError: If the platform has no archive for the product.
            DownloadError: If the archive download fails.
            UnpackError: If the archive cannot be decoded.
            LayoutMismatchError: If the binary is not where the product layout expects it.
        """
        if isinstance(product, str):
            product = get_product(product)

        spec = await self.resolve(product, arch, os_name, tag_override)
        staged = StagedArtifact(
            archive_path=random_tmp_path(suffix=spec.decoder.suffix),
            extract_dir=random_tmp_path(),
        )

        logger.info(f"downloading {product.name} '{spec.filename}'")
        try:
            await self.client.download_file(spec.download_url, staged.archive_path)
            await asyncio.to_thread(
                unpack_archive, staged.archive_path, staged.extract_dir, spec.decoder
            )
        finally:
            remove_file_best_effort(staged.archive_path)

        layout = product.layout_for(spec.decoder)
        binary_path = layout.binary_path(staged.extract_dir, spec.tag)
        if not binary_path.is_file():
            raise LayoutMismatchError(
                f"{product.name} binary not found in unpacked {spec.filename}",
                path=str(binary_path),
            )
        make_executable(binary_path)

        artifact = InstalledArtifact(
            binary_path=binary_path,
            plugins_dir=layout.plugins_dir(staged.extract_dir, spec.tag),
            tag=spec.tag,
        )
        logger.info(f"{product.name} path: {artifact.binary_path}")
        if artifact.plugins_dir is not None:
            logger.info(f"plugins path: {artifact.plugins_dir}")
        return artifact

    async def fetch_latest(
        self,
        product: Union[Product, str],
        arch: Union[Arch, str, None] = None,
        os_name: Union[OperatingSystem, str, None] = None,
    ) -> InstalledArtifact:
        """Download the latest stable release of a product."""
        return await self.fetch(product, arch, os_name, None)

    async def install(
        self,
        product: Union[Product, str],
        target_dir: Pathish,
        arch: Union[Arch, str, None] = None,
        os_name: Union[OperatingSystem, str, None] = None,
        tag_override: Optional[str] = None,
    ) -> InstalledArtifact:
        """
        Fetch a release and copy its binary (and plugins, when present) into `target_dir`.

        Returns:
            InstalledArtifact: Paths inside `target_dir`.
        """
        if isinstance(product, str):
            product = get_product(product)

        fetched = await self.fetch(product, arch, os_name, tag_override)
        target = Path(target_dir)
        target_binary = target / product.binary_name

        try:
            target.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(fetched.binary_path, target_binary)
        except OSError as e:
            raise FileSystemError(
                f"failed to install {product.name} into {target}",
                path=str(target_binary),
                details=str(e),
            ) from e
        make_executable(target_binary)

        target_plugins: Optional[Path] = None
        if fetched.plugins_dir is not None:
            target_plugins = get_plugins_dir(target_binary)
            try:
                target_plugins.mkdir(parents=True, exist_ok=True)
                if fetched.plugins_dir.is_dir():
                    shutil.copytree(
                        fetched.plugins_dir, target_plugins, dirs_exist_ok=True
                    )
            except OSError as e:
                raise FileSystemError(
                    f"failed to install plugins into {target_plugins}",
                    path=str(target_plugins),
                    details=str(e),
                ) from e
            for plugin in target_plugins.iterdir():
                if plugin.is_file():
                    make_executable(plugin)

        logger.info(f"installed {product.name} {fetched.tag} to {target_binary}")
        return InstalledArtifact(
            binary_path=target_binary, plugins_dir=target_plugins, tag=fetched.tag
        )


def create_fetcher(
    config: Optional[Dict[str, Any]] = None, host: Optional[HostInfo] = None
) -> ArtifactFetcher:
    """Build an ArtifactFetcher with a GitHub client configured from `config`."""
    config = config or {}
    client = AsyncGitHubClient(
        github_token=config_utils.get_effective_github_token(config),
        timeout=config_utils.get_request_timeout(config),
        api_base=config_utils.get_api_base(config),
    )
    return ArtifactFetcher(client, config=config, host=host)


async def fetch(
    product: Union[Product, str],
    arch: Union[Arch, str, None] = None,
    os_name: Union[OperatingSystem, str, None] = None,
    tag_override: Optional[str] = None,
    *,
    config: Optional[Dict[str, Any]] = None,
    host: Optional[HostInfo] = None,
) -> InstalledArtifact:
    """
    Download and unpack a product release with a short-lived GitHub client.

    See ArtifactFetcher.fetch for parameters and errors.
    """
    fetcher = create_fetcher(config, host)
    async with fetcher.client:
        return await fetcher.fetch(product, arch, os_name, tag_override)
