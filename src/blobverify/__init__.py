"""
blobverify — verify the integrity of every blob in a content-addressed blob store.

Modules:
- config: server config loading and translation
- storage: blob models, storage interfaces and bundled storage types
- registry: per-run storage Loader
- verify: streaming verification pipeline and reporting
- cli: command line entry point
"""

__version__ = "1.0.0"
