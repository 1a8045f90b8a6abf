"""
Object-store capability and data structures shared by the sync operations.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from avalanche_installer.download.interfaces import Pathish


@dataclass(frozen=True)
class StoreObject:
    """One entry of a bucket listing."""

    key: str
    size: int = 0


@dataclass(frozen=True)
class SyncTarget:
    """A single object-store transfer."""

    bucket: str
    key: str
    local_path: Path
    overwrite: bool = False

    def needs_download(self) -> bool:
        return self.overwrite or not self.local_path.exists()


@dataclass
class SyncReport:
    """Outcome of a sync call."""

    downloaded: List[Path] = field(default_factory=list)
    """Local paths written during the call"""

    skipped: List[Path] = field(default_factory=list)
    """Local paths left untouched because they already existed"""


class ObjectStore(Protocol):
    """
    Bucket/object operations used by the sync layer.

    Implementations raise ObjectStoreError, flagging transient failures with
    ``is_retryable=True``.
    """

    async def get_object(self, bucket: str, key: str, local_path: Pathish) -> None: ...

    async def put_object(self, local_path: Pathish, bucket: str, key: str) -> None: ...

    async def list_objects(
        self, bucket: str, prefix: Optional[str] = None
    ) -> List[StoreObject]: ...

    async def delete_objects(
        self, bucket: str, keys: Optional[Sequence[str]] = None
    ) -> None: ...

    async def create_bucket(self, bucket: str) -> None: ...

    async def delete_bucket(self, bucket: str) -> None: ...
