"""
Error taxonomy for blobverify.

Fatal errors (config, resolve, unsupported backend, streaming) abort the run
and map to exit status 1. BlobValidationError is the per-blob outcome the
pipeline records and recovers from.
"""

from typing import Any, Optional


class BlobVerifyError(Exception):
    """Base class for all blobverify errors."""


# =============================================================================
# Configuration
# =============================================================================

class ConfigError(BlobVerifyError):
    """Malformed, incomplete or unrecognized configuration document."""


class StorageConfigError(ConfigError):
    """A storage handler rejected its handlerArgs, or the handler type is unknown."""


# =============================================================================
# Resolution
# =============================================================================

class ResolveError(BlobVerifyError):
    """A prefix has no configuration, or its backend could not be constructed."""


class UnsupportedBackendError(BlobVerifyError):
    """The storage does not support bulk blob streaming."""

    def __init__(self, handler_type: str, detail: Optional[str] = None):
        message = f"storage type {handler_type!r} does not support blob streaming"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.handler_type = handler_type
        self.detail = detail


# =============================================================================
# Pipeline
# =============================================================================

class PipelineError(BlobVerifyError):
    """Failure of the verification pipeline itself."""


class StreamingError(PipelineError):
    """
    The producer failed while streaming blobs.

    The tally accumulated before the failure is kept in ``result`` so it can
    still be reported.
    """

    def __init__(self, message: str, result: Optional[Any] = None):
        super().__init__(message)
        self.result = result


# =============================================================================
# Blobs
# =============================================================================

class InvalidBlobRefError(ValueError):
    """A string could not be parsed as a blob ref."""


class BlobValidationError(BlobVerifyError):
    """A blob's contents do not match its claimed ref and size."""

    def __init__(self, ref: Any, reason: str):
        super().__init__(f"{ref}: {reason}")
        self.ref = ref
        self.reason = reason
