"""
Storage interfaces.

Concrete storages subclass Storage. A storage that can enumerate its whole
contents quickly also subclasses BlobStreamer; the verification pipeline only
accepts those.

StorageLoader is what a storage constructor receives to look up the storages
it layers on top of (see registry.loader.Loader).
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Tuple

from .models import BlobAndToken, BlobRef, SizedRef


class Storage(ABC):
    """A blob storage backend."""

    @abstractmethod
    def stat_blobs(self, refs: list) -> Dict[BlobRef, SizedRef]:
        """
        Return the sizes of those ``refs`` that exist in the storage.

        Args:
            refs: Blob refs to look up.

        Returns:
            Mapping from ref to SizedRef for every ref present.
        """
        pass


class BlobStreamer(ABC):
    """Capability: stream every blob in the storage."""

    @abstractmethod
    def stream_blobs(self, cancel: threading.Event, token: str = "") -> Iterator[BlobAndToken]:
        """
        Yield all blobs in storage-defined order.

        Args:
            cancel: Set by the caller to stop streaming early. Implementations
                check it between blobs and return once it is set.
            token: Continuation token. Empty string starts from the beginning;
                otherwise resume after the blob that produced this token.

        Raises:
            Any error encountered while enumerating. The caller treats it as
            fatal for the run.
        """
        pass

    def can_stream(self) -> bool:
        """Whether stream_blobs can run. Layered storages check their children."""
        return True


class StorageLoader(ABC):
    """Dependency provider handed to storage constructors."""

    @abstractmethod
    def get_storage(self, prefix: str) -> Storage:
        """Return the storage configured for ``prefix``, constructing it if needed."""
        pass

    @abstractmethod
    def set_storage(self, prefix: str, storage: Storage) -> None:
        """Register an already constructed storage under ``prefix``."""
        pass

    @abstractmethod
    def my_prefix(self) -> str:
        pass

    @abstractmethod
    def base_url(self) -> str:
        pass

    @abstractmethod
    def find_handler_by_type(self, handler_type: str) -> Tuple[str, object]:
        pass

    @abstractmethod
    def all_handlers(self) -> Tuple[Dict[str, str], Dict[str, object]]:
        pass
