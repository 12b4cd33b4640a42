"""
Storage module for blobverify.

Components:
- models: blob refs and blobs
- base: Storage / BlobStreamer / StorageLoader interfaces
- handlers: storage constructor registry
- filesystem, memory, blobpacked: bundled storage types

Importing this package registers the bundled storage types.
"""

from .models import Blob, BlobAndToken, BlobRef, SizedRef
from .base import BlobStreamer, Storage, StorageLoader
from .handlers import (
    create_storage,
    register_storage_constructor,
    registered_types,
    unregister_storage_constructor,
)
from .filesystem import FilesystemStorage
from .memory import MemoryStorage
from .blobpacked import BlobpackedStorage

__all__ = [
    # Models
    "Blob",
    "BlobAndToken",
    "BlobRef",
    "SizedRef",
    # Interfaces
    "BlobStreamer",
    "Storage",
    "StorageLoader",
    # Constructor registry
    "create_storage",
    "register_storage_constructor",
    "registered_types",
    "unregister_storage_constructor",
    # Storage types
    "FilesystemStorage",
    "MemoryStorage",
    "BlobpackedStorage",
]
