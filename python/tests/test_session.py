"""Tests for the chat session state manager.

Covers:
- init_session three-way branch (unprovisioned, generic error, empty) and seeding
- send_turn ordering, optimistic status transitions and serialization
- best-effort persistence of exchanges
- reset_history ordering guarantees
"""

import asyncio

import httpx
import pytest
import respx

from eburon.db.client import RowStoreError, StoreErrorKind, SupabaseRowStore
from eburon.errors import (
    InvalidInputError,
    PersistenceWriteError,
    SessionNotReadyError,
    TurnInFlightError,
)
from eburon.schemas.chat import ConversationTurn, TurnStatus
from eburon.services.llm.types import GatewayOperation, Turn
from eburon.services.session import (
    FALLBACK_REPLY,
    GREETING,
    HISTORY_CLEARED,
    DegradedReason,
    SessionState,
    SessionStateManager,
)
from tests.helpers import (
    OTHER_USER_ID,
    TEST_USER_ID,
    HeldRowStore,
    ScriptedGateway,
    gateway_error,
)


async def seed_history(rows, user_id: str, *pairs: tuple[str, str]) -> None:
    await rows.insert(
        "chat_history",
        [{"user_id": user_id, "sender": sender, "text": text} for sender, text in pairs],
    )


# =============================================================================
# init_session
# =============================================================================


class TestInitSession:
    """Tests for loading durable history into a new session."""

    @pytest.mark.asyncio
    async def test_empty_history_yields_single_greeting(self, session_manager):
        await session_manager.init_session(TEST_USER_ID)

        assert session_manager.transcript == (ConversationTurn(sender="bot", text=GREETING),)
        assert session_manager.state == SessionState.READY
        assert session_manager.degraded_reason is None

    @pytest.mark.asyncio
    async def test_history_seeds_transcript_and_context_in_order(self, session_manager, rows):
        await seed_history(
            rows,
            TEST_USER_ID,
            ("user", "hi"),
            ("bot", "hello"),
            ("user", "how are you"),
            ("bot", "fine"),
        )
        await seed_history(rows, OTHER_USER_ID, ("user", "not mine"))

        context = await session_manager.init_session(TEST_USER_ID)

        assert [(t.sender, t.text) for t in session_manager.transcript] == [
            ("user", "hi"),
            ("bot", "hello"),
            ("user", "how are you"),
            ("bot", "fine"),
        ]
        assert context.history == (
            Turn(role="user", text="hi"),
            Turn(role="model", text="hello"),
            Turn(role="user", text="how are you"),
            Turn(role="model", text="fine"),
        )

    @pytest.mark.asyncio
    async def test_non_user_sender_maps_to_model_role(self, session_manager, rows):
        await seed_history(rows, TEST_USER_ID, ("assistant", "legacy row"))

        context = await session_manager.init_session(TEST_USER_ID)

        assert context.history == (Turn(role="model", text="legacy row"),)
        assert session_manager.transcript[0].sender == "bot"

    @pytest.mark.asyncio
    async def test_knowledge_text_becomes_system_instruction(self, session_manager):
        context = await session_manager.init_session(TEST_USER_ID, "EBURON knows things.")

        assert context.system_instruction == "EBURON knows things."

    @pytest.mark.asyncio
    async def test_blank_knowledge_text_means_no_system_instruction(self, session_manager):
        context = await session_manager.init_session(TEST_USER_ID, "")

        assert context.system_instruction is None

    @pytest.mark.asyncio
    async def test_unprovisioned_store_yields_setup_incomplete_notice(
        self, session_manager, rows
    ):
        rows.select_error = RowStoreError(
            'relation "public.chat_history" does not exist',
            kind=StoreErrorKind.UNPROVISIONED,
            code="42P01",
        )

        context = await session_manager.init_session(TEST_USER_ID)

        assert len(session_manager.transcript) == 1
        notice = session_manager.transcript[0]
        assert notice.sender == "bot"
        assert notice.text.startswith("DATABASE SETUP INCOMPLETE")
        assert "chat_history" in notice.text
        assert "couldn't load previous messages" not in notice.text
        assert session_manager.state == SessionState.DEGRADED
        assert session_manager.degraded_reason == DegradedReason.SETUP_INCOMPLETE
        assert context.history == ()

    @pytest.mark.asyncio
    async def test_generic_read_error_yields_descriptive_notice(self, session_manager, rows):
        rows.select_error = RowStoreError("JWT expired", code="PGRST301")

        await session_manager.init_session(TEST_USER_ID)

        assert session_manager.transcript == (
            ConversationTurn(
                sender="bot",
                text="Hello! I couldn't load previous messages due to an error: JWT expired",
            ),
        )
        assert session_manager.degraded_reason == DegradedReason.HISTORY_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_malformed_rows_degrade_session(self, session_manager, rows):
        await rows.insert("chat_history", [{"user_id": TEST_USER_ID, "sender": "user"}])

        context = await session_manager.init_session(TEST_USER_ID)

        assert session_manager.degraded_reason == DegradedReason.HISTORY_UNAVAILABLE
        assert "malformed history rows" in session_manager.transcript[0].text
        assert context.history == ()

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_history_response_degrades_session(self, gateway):
        respx.get("https://project.supabase.test/rest/v1/chat_history").respond(
            200, text="<html>proxy</html>"
        )

        async with httpx.AsyncClient() as client:
            rows = SupabaseRowStore(
                client, supabase_url="https://project.supabase.test", api_key="anon-test-key"
            )
            manager = SessionStateManager(gateway, rows, model_name="gemini-2.5-flash")
            await manager.init_session(TEST_USER_ID)

        assert manager.state == SessionState.DEGRADED
        assert manager.degraded_reason == DegradedReason.HISTORY_UNAVAILABLE
        assert manager.transcript == (
            ConversationTurn(
                sender="bot",
                text=(
                    "Hello! I couldn't load previous messages due to an error: "
                    "Unexpected response from row store"
                ),
            ),
        )

    @pytest.mark.asyncio
    async def test_degraded_session_can_still_send(self, session_manager, rows, gateway):
        rows.select_error = RowStoreError("boom")
        await session_manager.init_session(TEST_USER_ID)
        gateway.replies.append("still here")

        bot_turn = await session_manager.send_turn("anyone?")

        assert bot_turn.text == "still here"
        assert session_manager.state == SessionState.DEGRADED

    @pytest.mark.asyncio
    async def test_reinit_replaces_transcript_and_context(self, session_manager, rows):
        first = await session_manager.init_session(TEST_USER_ID)
        await seed_history(rows, OTHER_USER_ID, ("user", "other"), ("bot", "reply"))

        second = await session_manager.init_session(OTHER_USER_ID)

        assert second is not first
        assert session_manager.context is second
        assert [t.text for t in session_manager.transcript] == ["other", "reply"]


# =============================================================================
# send_turn
# =============================================================================


class TestSendTurn:
    """Tests for one exchange with the model."""

    @pytest.mark.asyncio
    async def test_requires_initialized_session(self, session_manager):
        with pytest.raises(SessionNotReadyError):
            await session_manager.send_turn("hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_rejects_blank_input_without_mutation(self, session_manager, gateway, text):
        await session_manager.init_session(TEST_USER_ID)
        before = session_manager.transcript

        with pytest.raises(InvalidInputError):
            await session_manager.send_turn(text)

        assert session_manager.transcript == before
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_success_appends_confirmed_user_then_bot(self, session_manager, gateway):
        await session_manager.init_session(TEST_USER_ID)
        gateway.replies.append("Hi there!")

        bot_turn = await session_manager.send_turn("Hello")

        assert bot_turn == ConversationTurn(sender="bot", text="Hi there!")
        assert session_manager.transcript[-2:] == (
            ConversationTurn(sender="user", text="Hello", status=TurnStatus.CONFIRMED),
            ConversationTurn(sender="bot", text="Hi there!"),
        )
        assert session_manager.state == SessionState.READY

    @pytest.mark.asyncio
    async def test_serial_sends_alternate_and_count_two_n_plus_k(self, session_manager, gateway):
        await session_manager.init_session(TEST_USER_ID)
        k = len(session_manager.transcript)
        n = 4
        gateway.replies.extend(f"reply {i}" for i in range(n))

        for i in range(n):
            await session_manager.send_turn(f"message {i}")

        transcript = session_manager.transcript
        assert len(transcript) == 2 * n + k
        exchanged = transcript[k:]
        assert [t.sender for t in exchanged] == ["user", "bot"] * n
        assert [t.text for t in exchanged[::2]] == [f"message {i}" for i in range(n)]
        assert [t.text for t in exchanged[1::2]] == [f"reply {i}" for i in range(n)]

    @pytest.mark.asyncio
    async def test_user_turn_is_pending_while_call_outstanding(self, session_manager, gateway):
        await session_manager.init_session(TEST_USER_ID)
        gateway.hold = asyncio.Event()

        task = asyncio.create_task(session_manager.send_turn("Hello"))
        await gateway.entered.wait()

        assert session_manager.state == SessionState.SENDING
        assert session_manager.transcript[-1] == ConversationTurn(
            sender="user", text="Hello", status=TurnStatus.PENDING
        )

        gateway.hold.set()
        await task
        assert session_manager.transcript[-2].status == TurnStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_second_send_while_in_flight_is_rejected_without_mutation(
        self, session_manager, gateway
    ):
        await session_manager.init_session(TEST_USER_ID)
        gateway.hold = asyncio.Event()
        gateway.replies.append("first reply")

        task = asyncio.create_task(session_manager.send_turn("first"))
        await gateway.entered.wait()
        during = session_manager.transcript

        with pytest.raises(TurnInFlightError):
            await session_manager.send_turn("second")

        assert session_manager.transcript == during
        assert len(gateway.requests) == 1

        gateway.hold.set()
        await task
        assert [t.text for t in session_manager.transcript[-2:]] == ["first", "first reply"]

    @pytest.mark.asyncio
    async def test_send_during_reinit_is_rejected(self, gateway):
        rows = HeldRowStore()
        manager = SessionStateManager(gateway, rows, model_name="gemini-2.5-flash")
        await manager.init_session(TEST_USER_ID)
        rows.select_entered.clear()
        rows.hold = asyncio.Event()

        reinit = asyncio.create_task(manager.init_session(TEST_USER_ID))
        await rows.select_entered.wait()
        assert manager.state == SessionState.LOADING

        with pytest.raises(SessionNotReadyError):
            await manager.send_turn("lost in the gap")

        assert gateway.requests == []
        rows.hold.set()
        await reinit
        assert manager.state == SessionState.READY
        assert [t.text for t in manager.transcript] == [GREETING]

    @pytest.mark.asyncio
    async def test_history_passed_to_gateway_includes_prior_exchanges(
        self, session_manager, gateway, rows
    ):
        await seed_history(rows, TEST_USER_ID, ("user", "old q"), ("bot", "old a"))
        await session_manager.init_session(TEST_USER_ID, "kb")
        gateway.replies.extend(["a1", "a2"])

        await session_manager.send_turn("q1")
        await session_manager.send_turn("q2")

        req, operation = gateway.requests[-1]
        assert operation == GatewayOperation.CHAT_SEND
        assert req.model_name == "gemini-2.5-flash"
        assert req.system_instruction == "kb"
        assert req.contents == [
            Turn(role="user", text="old q"),
            Turn(role="model", text="old a"),
            Turn(role="user", text="q1"),
            Turn(role="model", text="a1"),
            Turn(role="user", text="q2"),
        ]

    @pytest.mark.asyncio
    async def test_success_persists_both_turns_in_one_batch(self, session_manager, gateway, rows):
        await session_manager.init_session(TEST_USER_ID)
        gateway.replies.append("pong")

        await session_manager.send_turn("ping")

        assert rows.insert_calls == [
            (
                "chat_history",
                [
                    {"user_id": TEST_USER_ID, "sender": "user", "text": "ping"},
                    {"user_id": TEST_USER_ID, "sender": "bot", "text": "pong"},
                ],
            )
        ]

    @pytest.mark.asyncio
    async def test_persistence_failure_is_not_surfaced(self, session_manager, gateway, rows):
        await session_manager.init_session(TEST_USER_ID)
        rows.insert_error = RowStoreError("insert denied by policy", code="42501")
        gateway.replies.append("pong")

        bot_turn = await session_manager.send_turn("ping")

        assert bot_turn.text == "pong"
        assert [t.text for t in session_manager.transcript[-2:]] == ["ping", "pong"]
        assert session_manager.state == SessionState.READY

    @pytest.mark.asyncio
    async def test_gateway_failure_appends_fallback_and_skips_persistence(
        self, session_manager, gateway, rows
    ):
        await session_manager.init_session(TEST_USER_ID)
        gateway.replies.append(gateway_error())

        bot_turn = await session_manager.send_turn("hello?")

        assert bot_turn == ConversationTurn(sender="bot", text=FALLBACK_REPLY)
        assert session_manager.transcript[-2:] == (
            ConversationTurn(sender="user", text="hello?", status=TurnStatus.FAILED),
            ConversationTurn(sender="bot", text=FALLBACK_REPLY),
        )
        assert rows.insert_calls == []
        assert session_manager.state == SessionState.READY

    @pytest.mark.asyncio
    async def test_failed_exchange_not_added_to_model_history(self, session_manager, gateway):
        context = await session_manager.init_session(TEST_USER_ID)
        gateway.replies.extend([gateway_error(), "second works"])

        await session_manager.send_turn("lost")
        await session_manager.send_turn("retry")

        assert context.history == (
            Turn(role="user", text="retry"),
            Turn(role="model", text="second works"),
        )

    @pytest.mark.asyncio
    async def test_exchange_round_trips_through_durable_history(self, gateway, rows):
        manager = SessionStateManager(gateway, rows, model_name="gemini-2.5-flash")
        await manager.init_session(TEST_USER_ID)
        gateway.replies.append("remembered")
        await manager.send_turn("remember me")

        fresh = SessionStateManager(ScriptedGateway(), rows, model_name="gemini-2.5-flash")
        context = await fresh.init_session(TEST_USER_ID)

        assert [(t.sender, t.text) for t in fresh.transcript] == [
            ("user", "remember me"),
            ("bot", "remembered"),
        ]
        assert len(context.history) == 2


# =============================================================================
# reset_history
# =============================================================================


class TestResetHistory:
    """Tests for clearing durable and in-memory history."""

    @pytest.mark.asyncio
    async def test_success_leaves_single_cleared_turn_and_fresh_context(
        self, session_manager, gateway, rows
    ):
        await seed_history(rows, TEST_USER_ID, ("user", "q"), ("bot", "a"))
        old_context = await session_manager.init_session(TEST_USER_ID)

        new_context = await session_manager.reset_history(TEST_USER_ID, "kb")

        assert session_manager.transcript == (
            ConversationTurn(sender="bot", text=HISTORY_CLEARED),
        )
        assert new_context is not old_context
        assert new_context.history == ()
        assert new_context.system_instruction == "kb"
        assert session_manager.context is new_context
        assert rows.rows("chat_history") == []
        assert session_manager.state == SessionState.READY

    @pytest.mark.asyncio
    async def test_only_deletes_rows_for_that_user(self, session_manager, rows):
        await seed_history(rows, TEST_USER_ID, ("user", "mine"))
        await seed_history(rows, OTHER_USER_ID, ("user", "theirs"))
        await session_manager.init_session(TEST_USER_ID)

        await session_manager.reset_history(TEST_USER_ID)

        assert rows.delete_calls == [("chat_history", {"user_id": TEST_USER_ID})]
        assert [row["text"] for row in rows.rows("chat_history")] == ["theirs"]

    @pytest.mark.asyncio
    async def test_delete_failure_reports_and_keeps_transcript(self, session_manager, rows):
        await seed_history(rows, TEST_USER_ID, ("user", "q"), ("bot", "a"))
        context = await session_manager.init_session(TEST_USER_ID)
        before = session_manager.transcript
        rows.delete_error = RowStoreError("permission denied for table chat_history")

        with pytest.raises(PersistenceWriteError, match="permission denied"):
            await session_manager.reset_history(TEST_USER_ID)

        assert session_manager.transcript == before
        assert session_manager.context is context
        assert len(rows.rows("chat_history")) == 2

    @pytest.mark.asyncio
    async def test_reset_clears_degraded_state(self, session_manager, rows):
        rows.select_error = RowStoreError("boom")
        await session_manager.init_session(TEST_USER_ID)

        await session_manager.reset_history(TEST_USER_ID)

        assert session_manager.state == SessionState.READY
        assert session_manager.degraded_reason is None

    @pytest.mark.asyncio
    async def test_reset_rejected_while_turn_in_flight(self, session_manager, gateway, rows):
        await session_manager.init_session(TEST_USER_ID)
        gateway.hold = asyncio.Event()

        task = asyncio.create_task(session_manager.send_turn("hello"))
        await gateway.entered.wait()

        with pytest.raises(TurnInFlightError):
            await session_manager.reset_history(TEST_USER_ID)
        assert rows.delete_calls == []

        gateway.hold.set()
        await task
