"""
Configuration models.

LowLevelConfig is the only configuration the rest of blobverify sees. It is
built by translator.parse_low_level_config from an arbitrary document and
contains nothing the storage layer does not understand.

Example (JSON server config and its LowLevelConfig):

    {
        "/bs-loose/": {"handler": "storage-filesystem",
                       "handlerArgs": {"path": "/srv/blobs"}},
        ...
    }

    LowLevelConfig(prefixes={
        "/bs-loose/": StorageConfig(handler_type="filesystem",
                                    handler_args={"path": "/srv/blobs"}),
    })
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, StrictStr

STORAGE_HANDLER_PREFIX = "storage-"
COMMENT_PREFIX = "_"


# =============================================================================
# Translated configuration
# =============================================================================

class StorageConfig(BaseModel):
    """One storage prefix: handler type without "storage-", and its arguments."""

    model_config = ConfigDict(frozen=True)

    handler_type: str = Field(..., min_length=1, description="Storage type, e.g. filesystem")
    handler_args: Dict[str, Any] = Field(default_factory=dict, description="handlerArgs object")


class LowLevelConfig(BaseModel):
    """Prefix -> storage configuration."""

    prefixes: Dict[str, StorageConfig] = Field(default_factory=dict)


# =============================================================================
# Raw document shapes
# =============================================================================

class StorageHandlerEntry(BaseModel):
    """A prefixes entry whose handler is a storage handler. Nothing else allowed."""

    model_config = ConfigDict(extra="forbid", strict=True)

    handler: StrictStr
    handler_args: Dict[str, Any] = Field(..., alias="handlerArgs")


class HandlerEntry(BaseModel):
    """Any prefixes entry. Only the handler name is checked."""

    model_config = ConfigDict(extra="ignore", strict=True)

    handler: StrictStr
