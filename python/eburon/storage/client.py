"""Supabase Storage client abstraction.

Provides a clean interface for the three blob operations the media layer needs:
- Upload (write a new object, never overwrite)
- Remove (delete one or more objects)
- Signed download URLs (time-limited read capability)

All methods receive the full storage_path directly - no prefix manipulation.
Requests are authorized with the signed-in user's access token so bucket
policies scope every object to its owner.
"""

from abc import ABC, abstractmethod
from uuid import uuid4

import httpx


class StorageError(Exception):
    """Storage operation error.

    Attributes:
        message: Provider message (surfaced to callers as-is)
        status_code: HTTP status code, if the failure came from a response
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BlobStoreBase(ABC):
    """Abstract base class for blob store implementations."""

    @abstractmethod
    async def upload(self, path: str, content: bytes, *, content_type: str = "image/png") -> None:
        """Upload a new object.

        Args:
            path: Full storage path (e.g., "{user_id}/{timestamp}.png").
            content: Object bytes.
            content_type: MIME type recorded with the object.

        Raises:
            StorageError: If the upload fails or the object already exists.
        """
        ...

    @abstractmethod
    async def remove(self, paths: list[str]) -> None:
        """Remove objects.

        Args:
            paths: Full storage paths.

        Raises:
            StorageError: If the removal request fails.
        """
        ...

    @abstractmethod
    async def create_signed_url(self, path: str, *, expires_in: int) -> str:
        """Create a signed download URL.

        Args:
            path: Full storage path.
            expires_in: URL validity in seconds.

        Returns:
            Absolute signed URL.

        Raises:
            StorageError: If signing fails.
        """
        ...


def _error_message(response: httpx.Response) -> str:
    """Extract the provider message from a Storage error response."""
    try:
        data = response.json()
    except ValueError:
        return f"{response.status_code} {response.text}".strip()
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or response.status_code)
    return str(response.status_code)


class SupabaseBlobStore(BlobStoreBase):
    """Production Supabase Storage client.

    Uses a shared httpx.AsyncClient against the Supabase Storage API.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        supabase_url: str,
        api_key: str,
        access_token: str | None = None,
        bucket: str = "user_images",
        timeout_s: float = 30.0,
    ):
        """Initialize the storage client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            supabase_url: Supabase project URL (e.g., https://xxx.supabase.co).
            api_key: Supabase anon key.
            access_token: Signed-in user's JWT; falls back to the anon key.
            bucket: Storage bucket name.
            timeout_s: Per-request timeout.
        """
        self._client = client
        self._base_url = supabase_url.rstrip("/")
        self._storage_url = f"{self._base_url}/storage/v1"
        self._bucket = bucket
        self._timeout = timeout_s
        self._headers = {
            "Authorization": f"Bearer {access_token or api_key}",
            "apikey": api_key,
        }

    async def upload(self, path: str, content: bytes, *, content_type: str = "image/png") -> None:
        """Upload via POST /object/{bucket}/{path}."""
        url = f"{self._storage_url}/object/{self._bucket}/{path}"
        try:
            response = await self._client.post(
                url,
                headers={**self._headers, "Content-Type": content_type, "x-upsert": "false"},
                content=content,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage upload request failed: {type(e).__name__}") from e

        if response.status_code not in (200, 201):
            raise StorageError(_error_message(response), status_code=response.status_code)

    async def remove(self, paths: list[str]) -> None:
        """Remove via DELETE /object/{bucket} with a prefixes body."""
        url = f"{self._storage_url}/object/{self._bucket}"
        try:
            response = await self._client.request(
                "DELETE",
                url,
                headers=self._headers,
                json={"prefixes": paths},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage remove request failed: {type(e).__name__}") from e

        if response.status_code not in (200, 204):
            raise StorageError(_error_message(response), status_code=response.status_code)

    async def create_signed_url(self, path: str, *, expires_in: int) -> str:
        """Sign via POST /object/sign/{bucket}/{path}."""
        url = f"{self._storage_url}/object/sign/{self._bucket}/{path}"
        try:
            response = await self._client.post(
                url,
                headers=self._headers,
                json={"expiresIn": expires_in},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage sign request failed: {type(e).__name__}") from e

        if response.status_code != 200:
            raise StorageError(_error_message(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise StorageError("Failed to sign download: unexpected response") from e
        if not isinstance(data, dict):
            raise StorageError("Failed to sign download: unexpected response shape")

        signed_path = data.get("signedURL") or data.get("signedUrl") or ""
        if not signed_path:
            raise StorageError("Failed to sign download: missing signed URL")

        return self._absolute_url(signed_path)

    def _absolute_url(self, signed_path: str) -> str:
        """Resolve the relative path Supabase returns into an absolute URL."""
        if signed_path.startswith("http://") or signed_path.startswith("https://"):
            return signed_path

        if signed_path.startswith("/storage/"):
            return f"{self._base_url}{signed_path}"

        if signed_path.startswith("storage/"):
            return f"{self._base_url}/{signed_path}"

        # "/object/sign/..." or a bare path under the storage root
        return f"{self._storage_url}/{signed_path.lstrip('/')}"


class FakeBlobStore(BlobStoreBase):
    """Fake blob store for testing without real Supabase.

    Stores objects in memory. Failures are injected per operation through
    the *_error attributes or per path through sign_failures.
    """

    def __init__(self):
        self._objects: dict[str, tuple[bytes, str]] = {}  # path -> (content, content_type)
        self.upload_error: StorageError | None = None
        self.remove_error: StorageError | None = None
        self.sign_failures: set[str] = set()
        self.remove_calls: list[list[str]] = []
        self.sign_calls: list[str] = []

    async def upload(self, path: str, content: bytes, *, content_type: str = "image/png") -> None:
        if self.upload_error is not None:
            raise self.upload_error
        if path in self._objects:
            raise StorageError("The resource already exists", status_code=409)
        self._objects[path] = (content, content_type)

    async def remove(self, paths: list[str]) -> None:
        self.remove_calls.append(list(paths))
        if self.remove_error is not None:
            raise self.remove_error
        for path in paths:
            self._objects.pop(path, None)

    async def create_signed_url(self, path: str, *, expires_in: int) -> str:
        self.sign_calls.append(path)
        if path in self.sign_failures:
            raise StorageError(f"Object not found: {path}", status_code=404)
        if path not in self._objects:
            raise StorageError(f"Object not found: {path}", status_code=404)
        return f"https://fake-storage.test/sign/{path}?token=fake-{uuid4()}&expires_in={expires_in}"

    # Test helper methods

    def put_object(self, path: str, content: bytes, content_type: str = "image/png") -> None:
        """Store an object directly (test helper)."""
        self._objects[path] = (content, content_type)

    def get_object(self, path: str) -> bytes | None:
        """Get object content directly (test helper)."""
        if path not in self._objects:
            return None
        return self._objects[path][0]

    def paths(self) -> list[str]:
        """List stored paths (test helper)."""
        return sorted(self._objects)

    def clear(self) -> None:
        """Clear all stored objects (test helper)."""
        self._objects.clear()
