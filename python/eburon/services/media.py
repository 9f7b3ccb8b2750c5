"""Gallery media: two-phase save/delete across blob store and metadata rows.

There is no transaction spanning Supabase Storage and the images table, so
both mutations are sagas with a fixed step order:

Save:   upload blob → insert row
        (insert failure → one best-effort blob removal as compensation)
Delete: remove blob → delete row
        (row failure → surfaced; the dangling row is left for reconciliation)

Both orders err toward "never reference a missing blob" over "never leave an
orphan blob". Every failure is terminal for the call (no retry) and raised to
the caller with a tagged result describing which phase failed.
"""

import asyncio
import base64
import binascii
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from eburon.db.client import RowStoreBase, RowStoreError, StoreErrorKind
from eburon.errors import (
    DeleteError,
    InvalidInputError,
    MetadataError,
    PersistenceReadError,
    ReadErrorKind,
    UploadError,
)
from eburon.logging import clear_flow_context, get_logger, set_flow_id, set_operation
from eburon.schemas.media import StoredMedia
from eburon.storage.client import BlobStoreBase, StorageError
from eburon.storage.paths import build_media_path, parse_media_path

logger = get_logger(__name__)

MEDIA_COLUMNS = ("id", "prompt", "storage_path", "created_at")


class SaveOutcome(str, Enum):
    OK = "ok"
    UPLOAD_FAILED = "upload_failed"
    METADATA_FAILED = "metadata_failed"


class DeleteOutcome(str, Enum):
    OK = "ok"
    BLOB_DELETE_FAILED = "blob_delete_failed"
    ROW_DELETE_FAILED = "row_delete_failed"


@dataclass(frozen=True)
class SaveResult:
    """Tagged outcome of save_media().

    Attributes:
        outcome: Which phase (if any) failed
        storage_path: Path the blob was (or would have been) written to
        compensated: For METADATA_FAILED, whether the orphan blob was removed
    """

    outcome: SaveOutcome
    storage_path: str
    compensated: bool = False


@dataclass(frozen=True)
class DeleteResult:
    """Tagged outcome of delete_media()."""

    outcome: DeleteOutcome
    storage_path: str


def decode_image(image: bytes | str) -> bytes:
    """Accept raw bytes, base64 text, or a base64 data URL.

    Raises:
        InvalidInputError: If the text is not valid base64 or decodes to nothing.
    """
    if isinstance(image, (bytes, bytearray)):
        data = bytes(image)
    else:
        encoded = image.strip()
        if encoded.startswith("data:"):
            encoded = encoded.partition(",")[2]
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInputError("Image data is not valid base64") from e

    if not data:
        raise InvalidInputError("Image data is empty")
    return data


class MediaConsistencyManager:
    """Keeps the images bucket and the images table in step for one project."""

    def __init__(
        self,
        rows: RowStoreBase,
        blobs: BlobStoreBase,
        *,
        table: str = "user_images",
        signed_url_expiry_s: int = 3600,
        clock: Callable[[], datetime] | None = None,
    ):
        self._rows = rows
        self._blobs = blobs
        self._table = table
        self._signed_url_expiry_s = signed_url_expiry_s
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def save_media(self, user_id: str, prompt: str, image: bytes | str) -> SaveResult:
        """Upload an image and record its metadata row.

        Raises:
            InvalidInputError: If the image data cannot be decoded or user_id
                cannot name a storage folder.
            UploadError: If the blob write fails (no row exists).
            MetadataError: If the row insert fails after upload; the result
                records whether the orphan blob was cleaned up.
        """
        content = decode_image(image)
        try:
            path = build_media_path(user_id, self._clock())
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        set_flow_id(str(uuid4()))
        set_operation("media.save")

        try:
            try:
                await self._blobs.upload(path, content, content_type="image/png")
            except StorageError as e:
                logger.error("media.save.upload_failed", storage_path=path, error_message=e.message)
                raise UploadError(
                    f"Failed to upload image to storage: {e.message}",
                    SaveResult(SaveOutcome.UPLOAD_FAILED, path),
                ) from e

            try:
                await self._rows.insert(
                    self._table,
                    [{"user_id": user_id, "prompt": prompt, "storage_path": path}],
                )
            except RowStoreError as e:
                logger.error("media.save.insert_failed", storage_path=path, error_message=e.message)
                compensated = await self._compensate_upload(path)
                raise MetadataError(
                    f"Failed to save image metadata: {e.message}",
                    SaveResult(SaveOutcome.METADATA_FAILED, path, compensated=compensated),
                ) from e

            logger.info("media.save.completed", storage_path=path, size_bytes=len(content))
            return SaveResult(SaveOutcome.OK, path)
        finally:
            clear_flow_context()

    async def list_media(self, user_id: str) -> list[StoredMedia]:
        """List the user's images, newest first, with signed URLs.

        Signing is best-effort per item: a failed signature yields url="".

        Raises:
            PersistenceReadError: If the metadata rows cannot be read.
        """
        try:
            records = await self._rows.select(
                self._table,
                columns=MEDIA_COLUMNS,
                filters={"user_id": user_id},
                order_by="created_at",
                ascending=False,
            )
        except RowStoreError as e:
            logger.error("media.list.read_failed", error_kind=e.kind.value, error_message=e.message)
            raise PersistenceReadError(
                f"Failed to fetch image records: {e.message}",
                kind=(
                    ReadErrorKind.STORE_UNPROVISIONED
                    if e.kind == StoreErrorKind.UNPROVISIONED
                    else ReadErrorKind.GENERIC
                ),
            ) from e

        if not records:
            return []

        # gather() preserves argument order, so results line up with rows by index
        signed = await asyncio.gather(
            *(
                self._blobs.create_signed_url(
                    record["storage_path"], expires_in=self._signed_url_expiry_s
                )
                for record in records
            ),
            return_exceptions=True,
        )

        items = []
        for record, url in zip(records, signed, strict=True):
            if isinstance(url, BaseException):
                if not isinstance(url, StorageError):
                    raise url
                logger.warning(
                    "media.list.sign_failed",
                    storage_path=record["storage_path"],
                    error_message=url.message,
                )
                url = ""
            items.append(StoredMedia.model_validate({**record, "url": url}))
        return items

    async def delete_media(self, user_id: str, storage_path: str) -> DeleteResult:
        """Remove an image blob, then its metadata row.

        Raises:
            InvalidInputError: If storage_path is not one of user_id's blobs.
            DeleteError: If either step fails. A row failure after the blob
                is gone is not retried; the row is left dangling.
        """
        owner, _ = parse_media_path(storage_path)
        if owner is None or owner != user_id:
            raise InvalidInputError(f"Storage path does not belong to this user: {storage_path}")

        set_flow_id(str(uuid4()))
        set_operation("media.delete")

        try:
            try:
                await self._blobs.remove([storage_path])
            except StorageError as e:
                logger.error(
                    "media.delete.blob_failed", storage_path=storage_path, error_message=e.message
                )
                raise DeleteError(
                    f"Failed to delete image from storage: {e.message}",
                    DeleteResult(DeleteOutcome.BLOB_DELETE_FAILED, storage_path),
                ) from e

            try:
                await self._rows.delete(
                    self._table,
                    filters={"user_id": user_id, "storage_path": storage_path},
                )
            except RowStoreError as e:
                logger.error(
                    "media.delete.row_failed",
                    storage_path=storage_path,
                    error_message=e.message,
                )
                raise DeleteError(
                    f"Failed to delete image record: {e.message}",
                    DeleteResult(DeleteOutcome.ROW_DELETE_FAILED, storage_path),
                ) from e

            logger.info("media.delete.completed", storage_path=storage_path)
            return DeleteResult(DeleteOutcome.OK, storage_path)
        finally:
            clear_flow_context()

    async def _compensate_upload(self, path: str) -> bool:
        """Remove a blob whose metadata row could not be written.

        Best-effort: a failure is logged and the orphan is left in place.
        """
        try:
            await self._blobs.remove([path])
        except StorageError as e:
            logger.error(
                "media.save.compensation_failed", storage_path=path, error_message=e.message
            )
            return False
        logger.info("media.save.compensated", storage_path=path)
        return True
