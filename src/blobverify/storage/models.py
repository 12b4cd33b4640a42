"""
Blob Models — content-addressed identifiers and blobs.

This module provides:
- BlobRef (Pydantic) — hash name + hex digest, e.g. "sha224-d14a...42f"
- SizedRef (Pydantic) — a ref plus the claimed size in bytes
- Blob — a sized ref plus a way to re-open its bytes
- BlobAndToken — one item of a blob stream

Ready-Made Solutions:
- Pydantic v2 for validation
- hashlib for digests
"""

import hashlib
from typing import BinaryIO, Callable, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import BlobValidationError, InvalidBlobRefError

# hash name -> hex digest length
HASH_DIGEST_LENGTHS = {
    "sha1": 40,
    "sha224": 56,
    "sha256": 64,
}

DEFAULT_HASH = "sha224"
DEFAULT_READ_CHUNK_SIZE = 1024 * 1024


class BlobRef(BaseModel):
    """
    Identifier of a blob: the hash of its contents.

    String form is ``<hash_name>-<hex digest>``.
    """

    model_config = ConfigDict(frozen=True)

    hash_name: str = Field(..., description="Hash function name (sha1, sha224, sha256)")
    digest: str = Field(..., pattern=r"^[0-9a-f]+$", description="Lowercase hex digest")

    @model_validator(mode="after")
    def check_digest_length(self) -> "BlobRef":
        expected = HASH_DIGEST_LENGTHS.get(self.hash_name)
        if expected is None:
            raise ValueError(f"unsupported hash {self.hash_name!r}")
        if len(self.digest) != expected:
            raise ValueError(
                f"{self.hash_name} digest must have {expected} hex digits, got {len(self.digest)}"
            )
        return self

    @classmethod
    def parse(cls, s: str) -> "BlobRef":
        """
        Parse a ref string such as ``sha1-0beec7b5ea3f0fdbc95d0dd47f3c5bc275da8a33``.

        Raises:
            InvalidBlobRefError: If the string is not a well-formed ref.
        """
        hash_name, sep, digest = s.partition("-")
        if not sep:
            raise InvalidBlobRefError(f"invalid blob ref {s!r}: missing '-'")
        try:
            return cls(hash_name=hash_name, digest=digest)
        except ValueError as e:
            raise InvalidBlobRefError(f"invalid blob ref {s!r}: {e}") from e

    @classmethod
    def for_bytes(cls, data: bytes, hash_name: str = DEFAULT_HASH) -> "BlobRef":
        """Compute the ref of ``data``."""
        return cls(hash_name=hash_name, digest=hashlib.new(hash_name, data).hexdigest())

    def new_hash(self):
        """Return a fresh hashlib object for this ref's hash function."""
        return hashlib.new(self.hash_name)

    def __str__(self) -> str:
        return f"{self.hash_name}-{self.digest}"

    def __lt__(self, other: "BlobRef") -> bool:
        return str(self) < str(other)


class SizedRef(BaseModel):
    """A blob ref with the size the store claims for it."""

    model_config = ConfigDict(frozen=True)

    ref: BlobRef
    size: int = Field(..., ge=0, description="Size in bytes")

    def __str__(self) -> str:
        return f"{self.ref}; size={self.size}"


class Blob:
    """
    A blob in a store: its claimed identity and a way to read it again.

    ``opener`` returns a fresh binary file object each time it is called. The
    blob never keeps its contents in memory.
    """

    def __init__(self, sized_ref: SizedRef, opener: Callable[[], BinaryIO]):
        self.sized_ref = sized_ref
        self._opener = opener

    @property
    def ref(self) -> BlobRef:
        return self.sized_ref.ref

    @property
    def size(self) -> int:
        return self.sized_ref.size

    def open(self) -> BinaryIO:
        return self._opener()

    def validate_contents(self, read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> None:
        """
        Re-read the blob and check its digest and size against its ref.

        Args:
            read_chunk_size: Bytes read per chunk

        Raises:
            BlobValidationError: On digest mismatch, size mismatch, or if the
                contents could not be read.
        """
        hasher = self.ref.new_hash()
        size = 0
        try:
            with self.open() as f:
                while True:
                    chunk = f.read(read_chunk_size)
                    if not chunk:
                        break
                    hasher.update(chunk)
                    size += len(chunk)
        except OSError as e:
            raise BlobValidationError(self.ref, f"read failed: {e}") from e

        if hasher.hexdigest() != self.ref.digest:
            raise BlobValidationError(self.ref, f"digest mismatch (got {hasher.hexdigest()})")
        if size != self.size:
            raise BlobValidationError(self.ref, f"size mismatch: read {size} bytes, expected {self.size}")

    def __repr__(self) -> str:
        return f"Blob({self.sized_ref})"


class BlobAndToken(NamedTuple):
    """One streamed blob and the continuation token that resumes after it."""

    blob: Blob
    token: str
