"""
Core data structures for the download subsystem.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from avalanche_installer.constants import TAR_GZ_EXTENSION, ZIP_EXTENSION
from avalanche_installer.log_utils import logger

Pathish = Union[str, Path]


@dataclass(frozen=True)
class ReleaseAsset:
    """Represents a downloadable asset attached to a release."""

    name: str
    """The filename of the asset"""

    browser_download_url: str
    """Direct URL to download the asset"""


@dataclass
class ReleaseInfo:
    """Metadata returned for the latest release of a repository."""

    tag_name: Optional[str] = None
    """Release tag; sometimes missing when the release API is inconsistent"""

    prerelease: bool = False
    """Whether this is a prerelease version"""

    assets: Optional[List[ReleaseAsset]] = None
    """Assets attached to the release, when the API returned them"""

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "ReleaseInfo":
        """
        Build a ReleaseInfo from a decoded release API payload.

        Missing or null fields are tolerated; malformed entries are dropped with a warning
        instead of failing the whole payload.

        Parameters:
            payload (Dict[str, Any]): The decoded JSON object.

        Returns:
            ReleaseInfo: The parsed release metadata.
        """
        tag_name = payload.get("tag_name")
        if isinstance(tag_name, str):
            tag_name = tag_name.strip() or None
        elif tag_name is not None:
            logger.warning(
                "Ignoring release tag_name of unexpected type %s",
                type(tag_name).__name__,
            )
            tag_name = None

        assets: Optional[List[ReleaseAsset]] = None
        raw_assets = payload.get("assets")
        if isinstance(raw_assets, list):
            assets = []
            for asset in raw_assets:
                if not isinstance(asset, dict):
                    continue
                name = asset.get("name")
                url = asset.get("browser_download_url")
                if isinstance(name, str) and isinstance(url, str):
                    assets.append(ReleaseAsset(name=name, browser_download_url=url))

        return cls(
            tag_name=tag_name,
            prerelease=bool(payload.get("prerelease") or False),
            assets=assets,
        )


class DecoderKind(Enum):
    """Archive decoders supported by the unpack step."""

    ZIP = "zip"
    TAR_GZ = "tar_gz"

    @property
    def suffix(self) -> str:
        return ZIP_EXTENSION if self is DecoderKind.ZIP else TAR_GZ_EXTENSION


@dataclass(frozen=True)
class ArchiveSpec:
    """Archive coordinates derived from (product, tag, platform)."""

    product: str
    tag: str
    filename: str
    decoder: DecoderKind
    download_url: str


@dataclass
class StagedArtifact:
    """Scratch locations used while a single fetch is in progress."""

    archive_path: Path
    """Where the downloaded archive is written; removed after unpacking"""

    extract_dir: Path
    """Where the archive is unpacked; left in place for the caller"""


@dataclass
class InstalledArtifact:
    """Final locations returned by a fetch."""

    binary_path: Path
    plugins_dir: Optional[Path] = None
    tag: Optional[str] = None
