"""Row store module for EBURON.

Provides the PostgREST-backed row store, its in-memory fake, and error
classification used to detect unprovisioned tables.
"""

from eburon.db.client import (
    FakeRowStore,
    RowStoreBase,
    RowStoreError,
    StoreErrorKind,
    SupabaseRowStore,
    classify_row_error,
)

__all__ = [
    "RowStoreBase",
    "SupabaseRowStore",
    "FakeRowStore",
    "RowStoreError",
    "StoreErrorKind",
    "classify_row_error",
]
