"""
Loader — per-run storage resolver.

Given a LowLevelConfig, the Loader constructs the storage for a prefix on
first request and caches it. Storage constructors receive the Loader itself
and may call get_storage for the prefixes they layer on (blobpacked does this
for smallBlobs and largeBlobs), so resolution is recursive.

This is a narrow stand-in for a full server handler registry: it knows about
storages only. Handler listing and reverse lookup are not supported and raise.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..config.models import LowLevelConfig
from ..errors import ResolveError
from ..storage.base import Storage, StorageLoader
from ..storage.handlers import create_storage

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "/lies/"
PLACEHOLDER_BASE_URL = "http://localhost:1234"


class Loader(StorageLoader):
    """
    Resolves storage prefixes to storage instances.

    Thread-safe implementation using a reentrant lock: nested construction
    calls back into get_storage on the same thread while the lock is held.
    """

    def __init__(self, config: LowLevelConfig):
        """
        Initialize Loader.

        Args:
            config: Translated configuration. Read-only for the Loader's lifetime.
        """
        self.config = config

        # prefix -> constructed storage
        self._storages: Dict[str, Storage] = {}
        self._lock = threading.RLock()

        # Prefixes whose construction is in progress, outermost first
        self._constructing: List[str] = []

    # =========================================================================
    # Storage resolution
    # =========================================================================

    def get_storage(self, prefix: str) -> Storage:
        """
        Return the storage for ``prefix``, constructing it on first use.

        Args:
            prefix: Configured prefix, e.g. "/bs/".

        Returns:
            The cached or newly constructed storage.

        Raises:
            ResolveError: No configuration for the prefix, a dependency cycle,
                or the storage constructor failed.
        """
        with self._lock:
            storage = self._storages.get(prefix)
            if storage is not None:
                return storage

            stor_conf = self.config.prefixes.get(prefix)
            if stor_conf is None:
                raise ResolveError(f"no storage configuration found for this prefix: {prefix!r}")

            if prefix in self._constructing:
                cycle = self._constructing[self._constructing.index(prefix):] + [prefix]
                raise ResolveError(f"storage dependency cycle: {' -> '.join(cycle)}")

            self._constructing.append(prefix)
            try:
                storage = create_storage(stor_conf.handler_type, self, stor_conf.handler_args)
            except ResolveError:
                raise
            except Exception as e:
                raise ResolveError(
                    f"failed to create {stor_conf.handler_type!r} storage for {prefix!r}: {e}"
                ) from e
            finally:
                self._constructing.pop()

            # The constructor may have registered itself already
            existing = self._storages.setdefault(prefix, storage)
            logger.info(f"Storage created: {prefix} (type={stor_conf.handler_type})")
            return existing

    resolve = get_storage

    def set_storage(self, prefix: str, storage: Storage) -> None:
        """Record ``storage`` as the instance for ``prefix``."""
        with self._lock:
            self._storages[prefix] = storage
        logger.debug(f"Storage registered: {prefix}")

    register = set_storage

    def cached_prefixes(self) -> List[str]:
        with self._lock:
            return sorted(self._storages)

    # =========================================================================
    # Identity placeholders
    # =========================================================================

    def my_prefix(self) -> str:
        return PLACEHOLDER_PREFIX

    def base_url(self) -> str:
        return PLACEHOLDER_BASE_URL

    def get_handler_type(self, prefix: str) -> str:
        logger.warning(f"Loader.get_handler_type({prefix!r}) called but not implemented")
        return ""

    def get_handler(self, prefix: str) -> Optional[object]:
        logger.warning(f"Loader.get_handler({prefix!r}) called but not implemented")
        raise ResolveError("doesn't exist")

    # =========================================================================
    # Unsupported
    # =========================================================================

    def find_handler_by_type(self, handler_type: str) -> Tuple[str, object]:
        raise NotImplementedError("Loader does not support finding handlers by type")

    def all_handlers(self) -> Tuple[Dict[str, str], Dict[str, object]]:
        raise NotImplementedError("Loader does not support listing handlers")
