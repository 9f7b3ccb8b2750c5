"""Stateful chat handle over the stateless generateContent endpoint.

A ConversationContext owns the role-tagged history for one conversation and
replays it on every call. History only grows after a successful exchange, so
a failed call leaves the context exactly as it was.

Not safe for concurrent use: callers must serialize send_message().
"""

from eburon.services.llm.gateway import GeminiGateway
from eburon.services.llm.types import GatewayOperation, GenerateRequest, Turn


class ConversationContext:
    """Handle bound to one model conversation."""

    def __init__(
        self,
        gateway: GeminiGateway,
        *,
        model_name: str,
        system_instruction: str | None = None,
        history: list[Turn] | None = None,
    ):
        self._gateway = gateway
        self._model_name = model_name
        self._system_instruction = system_instruction or None
        self._history: list[Turn] = list(history or [])

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def system_instruction(self) -> str | None:
        return self._system_instruction

    @property
    def history(self) -> tuple[Turn, ...]:
        return tuple(self._history)

    async def send_message(self, text: str) -> str:
        """Send one user message and return the model's reply text.

        Raises:
            GatewayError: If the model call fails; history is unchanged.
        """
        user_turn = Turn(role="user", text=text)
        response = await self._gateway.generate(
            GenerateRequest(
                model_name=self._model_name,
                contents=[*self._history, user_turn],
                system_instruction=self._system_instruction,
            ),
            operation=GatewayOperation.CHAT_SEND,
        )
        self._history.extend([user_turn, Turn(role="model", text=response.text)])
        return response.text
