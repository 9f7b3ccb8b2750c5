"""Storage path building utilities.

Single point of logic for building blob paths in the images bucket.

Path Invariant:
    {user_id}/{created_at}.png

Rules:
    - No leading slash
    - First segment is always the owning user ID (bucket policies rely on it)
    - created_at is UTC, millisecond precision, "Z" suffix
"""

from datetime import datetime, timezone


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with milliseconds and a Z suffix.

    Naive datetimes are treated as UTC.

    Example:
        >>> format_timestamp(datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
        '2025-01-02T03:04:05.678Z'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_media_path(user_id: str, created_at: datetime) -> str:
    """Build the blob path for a saved image.

    Args:
        user_id: The owning user ID.
        created_at: Save time, used as the file name.

    Returns:
        "{user_id}/{timestamp}.png"

    Raises:
        ValueError: If user_id is empty or contains a slash.
    """
    if not user_id or "/" in user_id:
        raise ValueError(f"Invalid user id for storage path: {user_id!r}")
    return f"{user_id}/{format_timestamp(created_at)}.png"


def parse_media_path(path: str) -> tuple[str | None, str | None]:
    """Split a blob path into (user_id, timestamp).

    Returns (None, None) if the path doesn't match the expected pattern.
    """
    parts = path.lstrip("/").split("/")
    if len(parts) != 2 or not parts[1].endswith(".png"):
        return None, None
    return parts[0], parts[1][: -len(".png")]
