"""Storage module for Supabase Storage operations.

Provides:
- BlobStoreBase and its Supabase / in-memory implementations
- Path building utilities for consistent per-user object paths
"""

from eburon.storage.client import (
    BlobStoreBase,
    FakeBlobStore,
    StorageError,
    SupabaseBlobStore,
)
from eburon.storage.paths import build_media_path, format_timestamp, parse_media_path

__all__ = [
    "BlobStoreBase",
    "SupabaseBlobStore",
    "FakeBlobStore",
    "StorageError",
    "build_media_path",
    "format_timestamp",
    "parse_media_path",
]
