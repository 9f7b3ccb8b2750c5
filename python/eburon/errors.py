"""Core error definitions.

All errors raised by the session and media layers are defined here with a
stable error code. Gateway errors live in eburon.services.llm.errors because
they are normalized from provider HTTP failures.
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from eburon.services.media import DeleteResult, SaveResult


class ErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Caller errors
    E_INVALID_INPUT = "E_INVALID_INPUT"
    E_TURN_IN_FLIGHT = "E_TURN_IN_FLIGHT"
    E_SESSION_NOT_READY = "E_SESSION_NOT_READY"

    # Auth errors
    E_AUTH_FAILED = "E_AUTH_FAILED"

    # Durable store errors
    E_STORE_UNPROVISIONED = "E_STORE_UNPROVISIONED"
    E_PERSISTENCE_READ = "E_PERSISTENCE_READ"
    E_PERSISTENCE_WRITE = "E_PERSISTENCE_WRITE"

    # Media errors
    E_UPLOAD_FAILED = "E_UPLOAD_FAILED"
    E_METADATA_FAILED = "E_METADATA_FAILED"
    E_DELETE_FAILED = "E_DELETE_FAILED"


class ReadErrorKind(str, Enum):
    """Sub-kinds of durable read failures."""

    STORE_UNPROVISIONED = "store_unprovisioned"
    GENERIC = "generic"


class EburonError(Exception):
    """Base exception for core errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class InvalidInputError(EburonError):
    """Caller supplied empty or malformed input."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(ErrorCode.E_INVALID_INPUT, message)


class TurnInFlightError(EburonError):
    """A chat exchange is already outstanding for this session."""

    def __init__(self, message: str = "A message is already being sent"):
        super().__init__(ErrorCode.E_TURN_IN_FLIGHT, message)


class SessionNotReadyError(EburonError):
    """The session has not been initialized yet."""

    def __init__(self, message: str = "Chat session is not initialized"):
        super().__init__(ErrorCode.E_SESSION_NOT_READY, message)


class AuthError(EburonError):
    """Sign-in, sign-up or sign-out failed."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.E_AUTH_FAILED, message)


class PersistenceReadError(EburonError):
    """Durable rows could not be read.

    Attributes:
        kind: STORE_UNPROVISIONED when the table is missing, GENERIC otherwise
    """

    def __init__(self, message: str, kind: ReadErrorKind = ReadErrorKind.GENERIC):
        code = (
            ErrorCode.E_STORE_UNPROVISIONED
            if kind == ReadErrorKind.STORE_UNPROVISIONED
            else ErrorCode.E_PERSISTENCE_READ
        )
        super().__init__(code, message)
        self.kind = kind


class PersistenceWriteError(EburonError):
    """Durable rows could not be written or deleted."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.E_PERSISTENCE_WRITE, message)


class MediaError(EburonError):
    """Base for media save/delete failures.

    Attributes:
        result: Tagged result describing which phase failed
    """

    def __init__(self, code: ErrorCode, message: str, result: "SaveResult | DeleteResult"):
        super().__init__(code, message)
        self.result = result


class UploadError(MediaError):
    """Blob upload failed before any metadata row existed."""

    def __init__(self, message: str, result: "SaveResult"):
        super().__init__(ErrorCode.E_UPLOAD_FAILED, message, result)


class MetadataError(MediaError):
    """Metadata insert failed after a successful upload."""

    def __init__(self, message: str, result: "SaveResult"):
        super().__init__(ErrorCode.E_METADATA_FAILED, message, result)


class DeleteError(MediaError):
    """Blob removal or metadata delete failed."""

    def __init__(self, message: str, result: "DeleteResult"):
        super().__init__(ErrorCode.E_DELETE_FAILED, message, result)
