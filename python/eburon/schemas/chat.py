"""Chat transcript Pydantic schemas.

ConversationTurn is what callers render, top to bottom, in insertion order.
ChatHistoryRow mirrors one durable row of the chat history table.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

# Valid senders - must match DB constraint
SENDERS = Literal["user", "bot"]


class TurnStatus(str, Enum):
    """Lifecycle of a turn in the in-memory transcript.

    User turns start PENDING when appended optimistically and become
    CONFIRMED or FAILED once the model call settles. Bot turns are
    always CONFIRMED.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ConversationTurn(BaseModel):
    """One rendered turn of the conversation."""

    sender: SENDERS
    text: str
    status: TurnStatus = TurnStatus.CONFIRMED

    model_config = ConfigDict(frozen=True)


class ChatHistoryRow(BaseModel):
    """Durable chat history row as read back for seeding a session.

    Any sender other than "user" is treated as the bot.
    """

    sender: str
    text: str

    model_config = ConfigDict(extra="ignore")
