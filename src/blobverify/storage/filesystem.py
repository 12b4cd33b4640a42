"""
FilesystemStorage — fsspec-based loose blob storage.

Directory structure:
    <path>/
    └── sha224/
        └── d1/
            └── 4a/
                └── sha224-d14a028c...42f.dat

Blobs stream in ref order; the continuation token is the ref string of the
last blob delivered.

Ready-Made Solutions:
- fsspec: File system abstraction (local today, any fsspec protocol later)
- pydantic: strict handlerArgs validation
"""

import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterator, List

import fsspec
from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidBlobRefError, StorageConfigError
from .base import BlobStreamer, Storage, StorageLoader
from .handlers import register_storage_constructor
from .models import HASH_DIGEST_LENGTHS, Blob, BlobAndToken, BlobRef, SizedRef

logger = logging.getLogger(__name__)

BLOB_SUFFIX = ".dat"


class FilesystemArgs(BaseModel):
    """handlerArgs for storage-filesystem."""

    model_config = ConfigDict(extra="forbid", strict=True)

    path: str = Field(..., min_length=1, description="Root directory of the blob files")


class FilesystemStorage(Storage, BlobStreamer):
    """
    Loose blobs, one file per blob.

    The root directory must already exist; this storage is only ever read by
    the verifier, and ``receive_blob`` exists to populate stores.
    """

    def __init__(self, path: str):
        """
        Initialize FilesystemStorage.

        Args:
            path: Root directory of the blob files

        Raises:
            StorageConfigError: If the root directory does not exist.
        """
        self.root = Path(path).expanduser().resolve()

        # MVP: local filesystem
        self.fs = fsspec.filesystem("file")

        if not self.fs.isdir(str(self.root)):
            raise StorageConfigError(f"storage-filesystem: directory {str(self.root)!r} does not exist")

        logger.info(f"FilesystemStorage initialized: root={self.root}")

    # =========================================================================
    # Layout
    # =========================================================================

    def blob_path(self, ref: BlobRef) -> Path:
        """Path of the file holding ``ref``."""
        return self.root / ref.hash_name / ref.digest[0:2] / ref.digest[2:4] / f"{ref}{BLOB_SUFFIX}"

    def _sorted_entries(self, path: str, kind: str) -> List[Dict[str, Any]]:
        entries = [e for e in self.fs.ls(path, detail=True) if e["type"] == kind]
        return sorted(entries, key=lambda e: e["name"])

    # =========================================================================
    # Core Operations
    # =========================================================================

    def receive_blob(self, ref: BlobRef, content: bytes) -> SizedRef:
        """
        Store ``content`` under ``ref`` without checking that they match.

        The file is written next to its final location and renamed into place.

        Args:
            ref: Ref to store the content under
            content: Blob bytes

        Returns:
            SizedRef of the stored blob
        """
        path = self.blob_path(ref)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.parent / f".tmp-{uuid.uuid4().hex}"

        with self.fs.open(str(temp_path), "wb") as f:
            f.write(content)
        os.rename(temp_path, path)

        logger.debug(f"Received blob: {ref} ({len(content)} bytes)")
        return SizedRef(ref=ref, size=len(content))

    def stat_blobs(self, refs: list) -> Dict[BlobRef, SizedRef]:
        found = {}
        for ref in refs:
            path = str(self.blob_path(ref))
            if self.fs.exists(path):
                found[ref] = SizedRef(ref=ref, size=self.fs.size(path))
        return found

    def _make_blob(self, ref: BlobRef, path: str, size: int) -> Blob:
        return Blob(SizedRef(ref=ref, size=size), lambda: self.fs.open(path, "rb"))

    def stream_blobs(self, cancel: threading.Event, token: str = "") -> Iterator[BlobAndToken]:
        root = str(self.root)
        for hash_dir in self._sorted_entries(root, "directory"):
            hash_name = os.path.basename(hash_dir["name"])
            if hash_name not in HASH_DIGEST_LENGTHS:
                logger.debug(f"Skipping unknown directory: {hash_dir['name']}")
                continue
            for level1 in self._sorted_entries(hash_dir["name"], "directory"):
                for level2 in self._sorted_entries(level1["name"], "directory"):
                    for entry in self._sorted_entries(level2["name"], "file"):
                        if cancel.is_set():
                            logger.info("Blob streaming cancelled")
                            return
                        name = os.path.basename(entry["name"])
                        if not name.endswith(BLOB_SUFFIX):
                            continue
                        try:
                            ref = BlobRef.parse(name[: -len(BLOB_SUFFIX)])
                        except InvalidBlobRefError:
                            logger.debug(f"Skipping non-blob file: {entry['name']}")
                            continue
                        if token and str(ref) <= token:
                            continue
                        yield BlobAndToken(self._make_blob(ref, entry["name"], entry["size"]), str(ref))


def new_from_config(loader: StorageLoader, handler_args: Dict[str, Any]) -> FilesystemStorage:
    args = FilesystemArgs.model_validate(handler_args)
    return FilesystemStorage(args.path)


register_storage_constructor("filesystem", new_from_config)
