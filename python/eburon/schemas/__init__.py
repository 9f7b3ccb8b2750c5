"""Pydantic schemas for transcript and gallery models.

All schemas are re-exported here for convenient imports.
"""

from eburon.schemas.chat import ChatHistoryRow, ConversationTurn, TurnStatus
from eburon.schemas.media import StoredMedia

__all__ = [
    # Chat schemas
    "ConversationTurn",
    "ChatHistoryRow",
    "TurnStatus",
    # Media schemas
    "StoredMedia",
]
