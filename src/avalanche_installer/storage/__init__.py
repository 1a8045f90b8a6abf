"""
Object-store distribution of node binaries and plugins.
"""

from .interfaces import ObjectStore, StoreObject, SyncReport, SyncTarget
from .s3 import S3ObjectStore
from .sync import (
    extract_filename,
    sync_binary_and_plugins,
    upload_binary_and_plugins,
)

__all__ = [
    "ObjectStore",
    "S3ObjectStore",
    "StoreObject",
    "SyncReport",
    "SyncTarget",
    "extract_filename",
    "sync_binary_and_plugins",
    "upload_binary_and_plugins",
]
