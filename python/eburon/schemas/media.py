"""Stored media Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StoredMedia(BaseModel):
    """A saved image as shown in the gallery.

    `url` is a signed, time-limited capability computed on read and never
    persisted. It is "" when signing failed for this item.
    """

    id: int | str
    prompt: str
    storage_path: str
    created_at: datetime
    url: str = ""

    model_config = ConfigDict(extra="ignore")
