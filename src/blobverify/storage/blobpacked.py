"""
BlobpackedStorage — packing layer over a small-blob and a large-blob storage.

Both child storages are looked up through the loader by prefix, which is how
a single "/bs/" entry in the configuration pulls in the rest of the storage
tree. The pack index named by ``metaIndex`` is described but not opened:
verification only needs to read blobs, and both children are streamed
directly.

Stream order: every blob of smallBlobs, then every blob of largeBlobs.
Tokens are "s:<child token>" and "l:<child token>".
"""

import logging
import threading
from typing import Any, Dict, Iterator, List

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from ..errors import UnsupportedBackendError
from .base import BlobStreamer, Storage, StorageLoader
from .handlers import register_storage_constructor
from .models import BlobAndToken, BlobRef, SizedRef

logger = logging.getLogger(__name__)

SMALL_TOKEN_PREFIX = "s:"
LARGE_TOKEN_PREFIX = "l:"


class MetaIndexArgs(BaseModel):
    """Sorted key/value index description, e.g. {"type": "leveldb", "file": "..."}."""

    model_config = ConfigDict(extra="allow")

    type: StrictStr = Field(..., min_length=1)


class BlobpackedArgs(BaseModel):
    """handlerArgs for storage-blobpacked."""

    model_config = ConfigDict(extra="forbid")

    small_blobs: StrictStr = Field(..., alias="smallBlobs", min_length=1)
    large_blobs: StrictStr = Field(..., alias="largeBlobs", min_length=1)
    meta_index: MetaIndexArgs = Field(..., alias="metaIndex")


class BlobpackedStorage(Storage, BlobStreamer):
    """Layered storage: loose small blobs plus packed large blobs."""

    def __init__(self, small: Storage, large: Storage, meta_index: MetaIndexArgs):
        self.small = small
        self.large = large
        self.meta_index = meta_index
        logger.info(f"BlobpackedStorage initialized: metaIndex type={meta_index.type}")

    def stat_blobs(self, refs: list) -> Dict[BlobRef, SizedRef]:
        found = self.small.stat_blobs(refs)
        missing = [ref for ref in refs if ref not in found]
        if missing:
            found.update(self.large.stat_blobs(missing))
        return found

    def non_streaming_children(self) -> List[str]:
        """Names of the child storages that cannot stream, e.g. ["largeBlobs (ReplicaStorage)"]."""
        return [
            f"{name} ({type(child).__name__})"
            for child, name in ((self.small, "smallBlobs"), (self.large, "largeBlobs"))
            if not (isinstance(child, BlobStreamer) and child.can_stream())
        ]

    def can_stream(self) -> bool:
        return not self.non_streaming_children()

    def stream_blobs(self, cancel: threading.Event, token: str = "") -> Iterator[BlobAndToken]:
        missing = self.non_streaming_children()
        if missing:
            raise UnsupportedBackendError("blobpacked", detail=", ".join(missing))

        if token.startswith(LARGE_TOKEN_PREFIX):
            small_token = None
            large_token = token[len(LARGE_TOKEN_PREFIX):]
        elif token.startswith(SMALL_TOKEN_PREFIX):
            small_token = token[len(SMALL_TOKEN_PREFIX):]
            large_token = ""
        elif token == "":
            small_token = ""
            large_token = ""
        else:
            raise ValueError(f"invalid blobpacked continuation token {token!r}")

        if small_token is not None:
            for blob, child_token in self.small.stream_blobs(cancel, small_token):
                yield BlobAndToken(blob, SMALL_TOKEN_PREFIX + child_token)
        if cancel.is_set():
            return
        for blob, child_token in self.large.stream_blobs(cancel, large_token):
            yield BlobAndToken(blob, LARGE_TOKEN_PREFIX + child_token)


def new_from_config(loader: StorageLoader, handler_args: Dict[str, Any]) -> BlobpackedStorage:
    args = BlobpackedArgs.model_validate(handler_args)
    small = loader.get_storage(args.small_blobs)
    large = loader.get_storage(args.large_blobs)
    return BlobpackedStorage(small, large, args.meta_index)


register_storage_constructor("blobpacked", new_from_config)
