"""Business logic services.

Stateful services (chat session, media gallery) reconcile the Gemini gateway
with Supabase rows and blobs. Stateless tools call the gateway directly.
"""

from eburon.services.knowledge import load_knowledge_text
from eburon.services.media import (
    DeleteOutcome,
    DeleteResult,
    MediaConsistencyManager,
    SaveOutcome,
    SaveResult,
)
from eburon.services.session import DegradedReason, SessionState, SessionStateManager
from eburon.services.tools import GroundedAnswer, ToolService

__all__ = [
    "SessionStateManager",
    "SessionState",
    "DegradedReason",
    "MediaConsistencyManager",
    "SaveResult",
    "SaveOutcome",
    "DeleteResult",
    "DeleteOutcome",
    "ToolService",
    "GroundedAnswer",
    "load_knowledge_text",
]
