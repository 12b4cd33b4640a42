"""
MemoryStorage — blobs held in a dict.

Useful for tests and as a scratch store. Streams in ref order; the token is
the ref string of the last blob delivered.
"""

import io
import logging
import threading
from typing import Any, Dict, Iterator

from pydantic import BaseModel, ConfigDict

from .base import BlobStreamer, Storage, StorageLoader
from .handlers import register_storage_constructor
from .models import DEFAULT_HASH, Blob, BlobAndToken, BlobRef, SizedRef

logger = logging.getLogger(__name__)


class MemoryArgs(BaseModel):
    """storage-memory takes no arguments."""

    model_config = ConfigDict(extra="forbid")


class MemoryStorage(Storage, BlobStreamer):
    """In-memory blob storage."""

    def __init__(self):
        self._blobs: Dict[BlobRef, bytes] = {}
        self._lock = threading.Lock()

    def add_blob(self, content: bytes, hash_name: str = DEFAULT_HASH) -> BlobRef:
        """Store ``content`` under its computed ref and return the ref."""
        ref = BlobRef.for_bytes(content, hash_name)
        self.receive_blob(ref, content)
        return ref

    def receive_blob(self, ref: BlobRef, content: bytes) -> SizedRef:
        """Store ``content`` under ``ref`` without checking that they match."""
        with self._lock:
            self._blobs[ref] = bytes(content)
        return SizedRef(ref=ref, size=len(content))

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)

    def stat_blobs(self, refs: list) -> Dict[BlobRef, SizedRef]:
        with self._lock:
            return {
                ref: SizedRef(ref=ref, size=len(self._blobs[ref]))
                for ref in refs
                if ref in self._blobs
            }

    def stream_blobs(self, cancel: threading.Event, token: str = "") -> Iterator[BlobAndToken]:
        with self._lock:
            snapshot = sorted(self._blobs.items(), key=lambda item: str(item[0]))
        for ref, content in snapshot:
            if cancel.is_set():
                return
            if token and str(ref) <= token:
                continue
            blob = Blob(SizedRef(ref=ref, size=len(content)), lambda content=content: io.BytesIO(content))
            yield BlobAndToken(blob, str(ref))


def new_from_config(loader: StorageLoader, handler_args: Dict[str, Any]) -> MemoryStorage:
    MemoryArgs.model_validate(handler_args)
    return MemoryStorage()


register_storage_constructor("memory", new_from_config)
