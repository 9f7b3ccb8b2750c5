"""Chat session state: transcript ownership and history sync.

One SessionStateManager owns one user's conversation for the lifetime of a
mounted chat. It keeps three things in step:

- the in-memory transcript (authoritative for rendering),
- the ConversationContext (model-side history),
- the durable chat history rows (best-effort mirror).

Lifecycle:
    UNINITIALIZED → LOADING → READY | DEGRADED
    READY | DEGRADED → SENDING → (back to the resting state)
    reset_history() → READY

Send flow:
    Phase 0 - Validate: non-blank input, session initialized, nothing in flight
    Phase 1 - Append user turn as PENDING (optimistic)
    Phase 2 - Call the model (no lock other than the in-flight flag)
    Phase 3 - Settle: CONFIRMED + bot turn + persist both rows,
              or FAILED + fixed fallback turn (nothing persisted)

Invariants:
- Transcript order matches call order; at most one exchange is outstanding
- A durable write failure during a send never reaches the caller
- reset_history() never clears local state unless the durable delete succeeded
"""

from enum import Enum
from uuid import uuid4

from pydantic import ValidationError

from eburon.db.client import RowStoreBase, RowStoreError, StoreErrorKind
from eburon.errors import (
    InvalidInputError,
    PersistenceWriteError,
    SessionNotReadyError,
    TurnInFlightError,
)
from eburon.logging import clear_flow_context, get_logger, set_flow_id, set_session_context
from eburon.schemas.chat import ChatHistoryRow, ConversationTurn, TurnStatus
from eburon.services.llm.chat import ConversationContext
from eburon.services.llm.errors import GatewayError
from eburon.services.llm.gateway import GeminiGateway
from eburon.services.llm.types import Turn
from eburon.services.redact import hash_text, safe_kv

logger = get_logger(__name__)

GREETING = "Hello! This is EBURON. How can I help you today?"
HISTORY_CLEARED = "History cleared. How can I help you?"
FALLBACK_REPLY = "Sorry, I couldn't get a response. Please try again."
SETUP_INCOMPLETE = (
    "DATABASE SETUP INCOMPLETE:\n\n"
    "The '{table}' table is missing from your Supabase database. "
    "Please execute the SQL script in migrations/schema.sql in your Supabase "
    "project's SQL Editor to create the necessary tables."
)
HISTORY_UNAVAILABLE = "Hello! I couldn't load previous messages due to an error: {message}"


class SessionState(str, Enum):
    """Chat session lifecycle states."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"
    SENDING = "sending"


class DegradedReason(str, Enum):
    """Why durable history could not seed the session."""

    SETUP_INCOMPLETE = "setup_incomplete"
    HISTORY_UNAVAILABLE = "history_unavailable"


class SessionStateManager:
    """Owns one conversation transcript and its model context."""

    def __init__(
        self,
        gateway: GeminiGateway,
        rows: RowStoreBase,
        *,
        model_name: str,
        history_table: str = "chat_history",
    ):
        self._gateway = gateway
        self._rows = rows
        self._model_name = model_name
        self._history_table = history_table

        self._session_id = str(uuid4())
        self._user_id: str | None = None
        self._context: ConversationContext | None = None
        self._transcript: list[ConversationTurn] = []
        self._state = SessionState.UNINITIALIZED
        self._degraded_reason: DegradedReason | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def degraded_reason(self) -> DegradedReason | None:
        return self._degraded_reason

    @property
    def transcript(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._transcript)

    @property
    def context(self) -> ConversationContext | None:
        return self._context

    @property
    def is_sending(self) -> bool:
        return self._state == SessionState.SENDING

    async def init_session(
        self, user_id: str, knowledge_text: str | None = None
    ) -> ConversationContext:
        """Load durable history and open a seeded ConversationContext.

        Never raises for durable read failures; the transcript carries a
        notice instead and the session is marked DEGRADED.
        """
        self._state = SessionState.LOADING
        self._user_id = user_id
        self._degraded_reason = None
        set_session_context(user_id, self._session_id)

        history: list[Turn] = []
        try:
            records = await self._rows.select(
                self._history_table,
                columns=("sender", "text"),
                filters={"user_id": user_id},
                order_by="created_at",
                ascending=True,
            )
            rows = [ChatHistoryRow.model_validate(record) for record in records]
        except RowStoreError as e:
            if e.kind == StoreErrorKind.UNPROVISIONED:
                self._degraded_reason = DegradedReason.SETUP_INCOMPLETE
                notice = SETUP_INCOMPLETE.format(table=self._history_table)
            else:
                self._degraded_reason = DegradedReason.HISTORY_UNAVAILABLE
                notice = HISTORY_UNAVAILABLE.format(message=e.message)
            logger.error(
                "chat.history.load_failed",
                error_kind=e.kind.value,
                error_code=e.code,
                error_message=e.message,
            )
            transcript = [ConversationTurn(sender="bot", text=notice)]
        except ValidationError as e:
            self._degraded_reason = DegradedReason.HISTORY_UNAVAILABLE
            logger.error("chat.history.malformed", error_count=e.error_count())
            transcript = [
                ConversationTurn(
                    sender="bot",
                    text=HISTORY_UNAVAILABLE.format(message="malformed history rows"),
                )
            ]
        else:
            history = [
                Turn(role="user" if row.sender == "user" else "model", text=row.text)
                for row in rows
            ]
            transcript = [
                ConversationTurn(sender="user" if row.sender == "user" else "bot", text=row.text)
                for row in rows
            ] or [ConversationTurn(sender="bot", text=GREETING)]
            logger.info("chat.history.loaded", row_count=len(rows))

        self._context = self._open_context(knowledge_text, history)
        self._transcript = transcript
        self._state = (
            SessionState.DEGRADED if self._degraded_reason is not None else SessionState.READY
        )
        return self._context

    async def send_turn(self, text: str) -> ConversationTurn:
        """Exchange one user message with the model.

        Returns:
            The bot turn appended to the transcript (the fallback turn if
            the model call failed).

        Raises:
            InvalidInputError: If text is empty or whitespace.
            SessionNotReadyError: If init_session() has not completed or a
                re-init is still loading history.
            TurnInFlightError: If another exchange is outstanding.
        """
        if not text or not text.strip():
            raise InvalidInputError("Message must not be empty")
        if self._state == SessionState.SENDING:
            raise TurnInFlightError()
        if (
            self._state == SessionState.LOADING
            or self._context is None
            or self._user_id is None
        ):
            raise SessionNotReadyError()

        # Claimed before the first await so a concurrent caller sees SENDING
        resting_state = self._state
        self._state = SessionState.SENDING
        context = self._context
        user_id = self._user_id
        set_flow_id(str(uuid4()))

        index = len(self._transcript)
        self._transcript.append(
            ConversationTurn(sender="user", text=text, status=TurnStatus.PENDING)
        )

        try:
            try:
                reply = await context.send_message(text)
            except GatewayError as e:
                logger.warning(
                    "chat.turn.failed",
                    error_class=e.error_class.value,
                    error_message=e.message,
                )
                self._settle(index, context, TurnStatus.FAILED)
                bot_turn = ConversationTurn(sender="bot", text=FALLBACK_REPLY)
                self._append(context, bot_turn)
                return bot_turn

            self._settle(index, context, TurnStatus.CONFIRMED)
            bot_turn = ConversationTurn(sender="bot", text=reply)
            self._append(context, bot_turn)
            logger.info(
                "chat.turn.completed",
                **safe_kv(
                    message_chars=len(text),
                    message_sha256=hash_text(text),
                    reply_chars=len(reply),
                ),
            )

            await self._persist_exchange(user_id, text, reply)
            return bot_turn
        finally:
            if self._context is context:
                self._state = resting_state
            clear_flow_context()

    async def reset_history(
        self, user_id: str, knowledge_text: str | None = None
    ) -> ConversationContext:
        """Delete durable history and start over with an empty context.

        Raises:
            TurnInFlightError: If an exchange is outstanding.
            PersistenceWriteError: If the durable delete fails; local
                transcript and context are left untouched.
        """
        if self._state == SessionState.SENDING:
            raise TurnInFlightError("Cannot clear history while a message is being sent")

        try:
            await self._rows.delete(self._history_table, filters={"user_id": user_id})
        except RowStoreError as e:
            logger.error(
                "chat.history.clear_failed",
                error_kind=e.kind.value,
                error_code=e.code,
                error_message=e.message,
            )
            raise PersistenceWriteError(f"Could not clear history: {e.message}") from e

        self._user_id = user_id
        set_session_context(user_id, self._session_id)
        self._transcript = [ConversationTurn(sender="bot", text=HISTORY_CLEARED)]
        self._context = self._open_context(knowledge_text, [])
        self._degraded_reason = None
        self._state = SessionState.READY
        logger.info("chat.history.cleared")
        return self._context

    def _open_context(self, knowledge_text: str | None, history: list[Turn]) -> ConversationContext:
        return ConversationContext(
            self._gateway,
            model_name=self._model_name,
            system_instruction=knowledge_text or None,
            history=history,
        )

    def _settle(self, index: int, context: ConversationContext, status: TurnStatus) -> None:
        """Move the pending user turn to its final status.

        No-op if the session was re-initialized while the call was out.
        """
        if self._context is not context:
            return
        pending = self._transcript[index]
        self._transcript[index] = pending.model_copy(update={"status": status})

    def _append(self, context: ConversationContext, turn: ConversationTurn) -> None:
        if self._context is context:
            self._transcript.append(turn)

    async def _persist_exchange(self, user_id: str, text: str, reply: str) -> None:
        """Mirror one exchange as two rows in a single batch (best-effort)."""
        try:
            await self._rows.insert(
                self._history_table,
                [
                    {"user_id": user_id, "sender": "user", "text": text},
                    {"user_id": user_id, "sender": "bot", "text": reply},
                ],
            )
        except RowStoreError as e:
            logger.warning(
                "chat.history.persist_failed",
                error_kind=e.kind.value,
                error_code=e.code,
                error_message=e.message,
            )
