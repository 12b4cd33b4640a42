"""
Registry module for blobverify.

Provides the per-run Loader that resolves storage prefixes to storages.
"""

from .loader import Loader

__all__ = ["Loader"]
