"""Test helper utilities.

Provides a scripted stand-in for GeminiGateway so session and tool tests can
control model replies, failures and timing without HTTP.
"""

import asyncio

from eburon.config import Settings
from eburon.db.client import FakeRowStore
from eburon.services.llm.errors import GatewayError, GatewayErrorClass
from eburon.services.llm.types import (
    GatewayOperation,
    GeneratedImage,
    GenerateRequest,
    GenerateResponse,
    ImageGenerationRequest,
)

TEST_USER_ID = "9b1f3d2e-5c4a-4e8b-9a7d-1f2e3d4c5b6a"
OTHER_USER_ID = "1c2d3e4f-5a6b-4c7d-8e9f-0a1b2c3d4e5f"

TEST_SETTINGS = {
    "EBURON_ENV": "test",
    "SUPABASE_URL": "https://project.supabase.test",
    "SUPABASE_ANON_KEY": "anon-test-key",
    "GEMINI_API_KEY": "gemini-test-key",
    "GEMINI_BASE_URL": "https://gemini.test/v1beta",
}


def make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    values = dict(TEST_SETTINGS)
    values.update(overrides)
    return Settings(_env_file=None, **values)


def gateway_error(error_class: GatewayErrorClass = GatewayErrorClass.PROVIDER_DOWN) -> GatewayError:
    return GatewayError(error_class, "Provider returned HTTP 500")


class ScriptedGateway:
    """Replays queued replies for generate() and generate_images().

    Queue entries may be a str (reply text), a GenerateResponse, or an
    exception to raise. Set `hold` to an asyncio.Event to park calls until
    the test releases them.
    """

    def __init__(self, *replies):
        self.replies: list = list(replies)
        self.images: list = []
        self.requests: list[tuple[GenerateRequest, GatewayOperation]] = []
        self.image_requests: list[ImageGenerationRequest] = []
        self.hold: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def generate(
        self,
        req: GenerateRequest,
        *,
        operation: GatewayOperation = GatewayOperation.OTHER,
    ) -> GenerateResponse:
        self.requests.append((req, operation))
        self.entered.set()
        if self.hold is not None:
            await self.hold.wait()
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, GenerateResponse):
            return reply
        return GenerateResponse(text=reply)

    async def generate_images(self, req: ImageGenerationRequest) -> list[GeneratedImage]:
        self.image_requests.append(req)
        reply = self.images.pop(0) if self.images else []
        if isinstance(reply, BaseException):
            raise reply
        return reply


class HeldRowStore(FakeRowStore):
    """FakeRowStore whose select() parks on `hold` once it is set."""

    def __init__(self):
        super().__init__()
        self.hold: asyncio.Event | None = None
        self.select_entered = asyncio.Event()

    async def select(self, table, **kwargs):
        self.select_entered.set()
        if self.hold is not None:
            await self.hold.wait()
        return await super().select(table, **kwargs)
