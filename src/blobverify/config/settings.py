"""
Runtime settings for blobverify.

All tunables come from the environment (a .env file in the working directory
is loaded by the CLI first).
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import ConfigError


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class VerifySettings:
    """Verification pipeline tunables."""

    # Blobs buffered between the streaming thread and the verifier
    queue_size: int = 16

    # Bytes read per chunk when re-hashing a blob
    read_chunk_size: int = 1024 * 1024

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "VerifySettings":
        """Load settings from environment variables."""
        if environ is None:
            environ = os.environ
        return cls(
            queue_size=_positive_int(environ, "BLOBVERIFY_QUEUE_SIZE", 16),
            read_chunk_size=_positive_int(environ, "BLOBVERIFY_READ_CHUNK_SIZE", 1024 * 1024),
        )
