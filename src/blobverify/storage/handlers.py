"""
Storage constructor registry.

Storage types register a constructor under their handler type name (the part
of ``"storage-<name>"`` after the dash). ``create_storage`` looks the name up
and builds the storage, handing it the loader so it can resolve the storages
it depends on.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

from pydantic import ValidationError

from ..errors import StorageConfigError
from .base import Storage, StorageLoader

logger = logging.getLogger(__name__)

StorageConstructor = Callable[[StorageLoader, Dict[str, Any]], Storage]

_constructors: Dict[str, StorageConstructor] = {}
_lock = threading.Lock()


def register_storage_constructor(handler_type: str, ctor: StorageConstructor) -> None:
    """
    Register ``ctor`` as the constructor for ``handler_type``.

    Raises:
        ValueError: If the type is already registered.
    """
    with _lock:
        if handler_type in _constructors:
            raise ValueError(f"storage type {handler_type!r} already registered")
        _constructors[handler_type] = ctor
    logger.debug(f"Registered storage type: {handler_type}")


def unregister_storage_constructor(handler_type: str) -> bool:
    """Remove a registered constructor. Returns False if it was not registered."""
    with _lock:
        return _constructors.pop(handler_type, None) is not None


def registered_types() -> List[str]:
    with _lock:
        return sorted(_constructors)


def create_storage(handler_type: str, loader: StorageLoader, handler_args: Dict[str, Any]) -> Storage:
    """
    Construct a storage of ``handler_type``.

    Args:
        handler_type: Storage type name, e.g. "filesystem".
        loader: Provider for the storages this one depends on.
        handler_args: The handlerArgs object from the configuration.

    Returns:
        The constructed storage.

    Raises:
        StorageConfigError: Unknown type, or handlerArgs rejected by the type.
        ResolveError: A dependency of the storage could not be resolved.
    """
    with _lock:
        ctor = _constructors.get(handler_type)
    if ctor is None:
        raise StorageConfigError(
            f"unknown storage type {handler_type!r} (known: {', '.join(registered_types())})"
        )
    try:
        return ctor(loader, handler_args)
    except ValidationError as e:
        raise StorageConfigError(f"invalid handlerArgs for storage type {handler_type!r}: {e}") from e
