"""Row store client abstraction over Supabase PostgREST.

Provides the three row operations the core needs, always filtered by
equality on owner columns:
- select (with projection and created_at ordering)
- insert (one batch per call)
- delete

Error classification:
    Failures are normalized into RowStoreError with a structured kind.
    UNPROVISIONED means the table itself is missing, which callers surface
    as "setup incomplete" instead of a generic failure. The kind is decided
    from the PostgREST/Postgres error code; message text is consulted only
    when the response carries no code.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import httpx

# Postgres undefined_table, PostgREST "table not found in schema cache"
UNPROVISIONED_CODES = frozenset({"42P01", "PGRST205"})
UNPROVISIONED_MESSAGE_MARKERS = ("does not exist", "could not find the table")


class StoreErrorKind(str, Enum):
    """Structured classification of row store failures."""

    UNPROVISIONED = "unprovisioned"
    GENERIC = "generic"


class RowStoreError(Exception):
    """Row store operation error.

    Attributes:
        message: Provider message (surfaced to callers as-is)
        kind: Structured classification
        code: Provider error code, if any
    """

    def __init__(
        self,
        message: str,
        kind: StoreErrorKind = StoreErrorKind.GENERIC,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code


def classify_row_error(code: str | None, message: str) -> StoreErrorKind:
    """Classify a provider error into a StoreErrorKind.

    Args:
        code: PostgREST or Postgres error code (e.g., "42P01").
        message: Provider error message.

    Returns:
        UNPROVISIONED if the table is missing, GENERIC otherwise.
    """
    if code:
        return StoreErrorKind.UNPROVISIONED if code in UNPROVISIONED_CODES else StoreErrorKind.GENERIC

    lowered = message.lower()
    if any(marker in lowered for marker in UNPROVISIONED_MESSAGE_MARKERS):
        return StoreErrorKind.UNPROVISIONED
    return StoreErrorKind.GENERIC


class RowStoreBase(ABC):
    """Abstract base class for row store implementations."""

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        columns: tuple[str, ...],
        filters: dict[str, str],
        order_by: str = "created_at",
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        """Select rows matching all equality filters.

        Raises:
            RowStoreError: If the read fails.
        """
        ...

    @abstractmethod
    async def insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert rows in a single request.

        Raises:
            RowStoreError: If the write fails (no rows are written).
        """
        ...

    @abstractmethod
    async def delete(self, table: str, *, filters: dict[str, str]) -> None:
        """Delete rows matching all equality filters.

        Raises:
            RowStoreError: If the delete fails.
        """
        ...


def _raise_for_response(response: httpx.Response) -> None:
    """Convert a PostgREST error response into RowStoreError."""
    if response.status_code < 400:
        return

    code: str | None = None
    message = f"HTTP {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        code = data.get("code") or None
        message = data.get("message") or message

    raise RowStoreError(message, kind=classify_row_error(code, message), code=code)


def _eq_params(filters: dict[str, str]) -> dict[str, str]:
    return {column: f"eq.{value}" for column, value in filters.items()}


class SupabaseRowStore(RowStoreBase):
    """Production row store backed by Supabase PostgREST.

    Uses a shared httpx.AsyncClient. Row-level security on the tables
    restricts every request to the signed-in user's rows.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        supabase_url: str,
        api_key: str,
        access_token: str | None = None,
        timeout_s: float = 30.0,
    ):
        self._client = client
        self._rest_url = f"{supabase_url.rstrip('/')}/rest/v1"
        self._timeout = timeout_s
        self._headers = {
            "Authorization": f"Bearer {access_token or api_key}",
            "apikey": api_key,
        }

    async def select(
        self,
        table: str,
        *,
        columns: tuple[str, ...],
        filters: dict[str, str],
        order_by: str = "created_at",
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        params = {
            "select": ",".join(columns),
            **_eq_params(filters),
            "order": f"{order_by}.{'asc' if ascending else 'desc'}",
        }
        response = await self._send("GET", table, params=params)
        try:
            data = response.json()
        except ValueError as e:
            raise RowStoreError("Unexpected response from row store") from e
        if not isinstance(data, list):
            raise RowStoreError("Unexpected response shape from row store")
        return data

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        await self._send(
            "POST",
            table,
            json=rows,
            extra_headers={"Prefer": "return=minimal"},
        )

    async def delete(self, table: str, *, filters: dict[str, str]) -> None:
        if not filters:
            # PostgREST refuses unfiltered deletes; fail loudly before the round trip
            raise RowStoreError("Refusing to delete without filters")
        await self._send("DELETE", table, params=_eq_params(filters))

    async def _send(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        headers = {**self._headers, **(extra_headers or {})}
        try:
            response = await self._client.request(
                method,
                f"{self._rest_url}/{table}",
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise RowStoreError(f"Row store request failed: {type(e).__name__}") from e

        _raise_for_response(response)
        return response


class FakeRowStore(RowStoreBase):
    """Fake row store for testing without real Supabase.

    Keeps tables in memory. Each inserted row gets an integer id and a
    strictly increasing created_at unless one is supplied. Failures are
    injected per operation through the *_error attributes.
    """

    def __init__(self, start: datetime | None = None):
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._next_id = 1
        self._clock = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.select_error: RowStoreError | None = None
        self.insert_error: RowStoreError | None = None
        self.delete_error: RowStoreError | None = None
        self.insert_calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.delete_calls: list[tuple[str, dict[str, str]]] = []

    async def select(
        self,
        table: str,
        *,
        columns: tuple[str, ...],
        filters: dict[str, str],
        order_by: str = "created_at",
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        if self.select_error is not None:
            raise self.select_error
        matched = [row for row in self._tables.get(table, []) if _matches(row, filters)]
        matched.sort(key=lambda row: row[order_by], reverse=not ascending)
        return [{column: row.get(column) for column in columns} for row in matched]

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        self.insert_calls.append((table, [dict(row) for row in rows]))
        if self.insert_error is not None:
            raise self.insert_error
        stored = self._tables.setdefault(table, [])
        for row in rows:
            record = dict(row)
            record.setdefault("id", self._next_id)
            record.setdefault("created_at", self._tick().isoformat())
            self._next_id += 1
            stored.append(record)

    async def delete(self, table: str, *, filters: dict[str, str]) -> None:
        self.delete_calls.append((table, dict(filters)))
        if self.delete_error is not None:
            raise self.delete_error
        self._tables[table] = [
            row for row in self._tables.get(table, []) if not _matches(row, filters)
        ]

    def _tick(self) -> datetime:
        self._clock += timedelta(milliseconds=1)
        return self._clock

    # Test helper methods

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Return a copy of every row in a table (test helper)."""
        return [dict(row) for row in self._tables.get(table, [])]


def _matches(row: dict[str, Any], filters: dict[str, str]) -> bool:
    return all(str(row.get(column)) == str(value) for column, value in filters.items())
