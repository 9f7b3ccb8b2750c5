"""Gateway layer for the Gemini generative API.

Provides:
- GeminiAdapter: raw HTTP calls and JSON conversion
- GeminiGateway: error normalization and observability
- ConversationContext: stateful chat handle that replays history

Usage:
    from eburon.services.llm import GeminiGateway, GenerateRequest, Turn

    gateway = GeminiGateway(httpx_client, api_key="...")
    response = await gateway.generate(
        GenerateRequest(model_name="gemini-2.5-flash", contents=[Turn(role="user", text="Hi")])
    )

Rules:
- Adapters are async using httpx.AsyncClient
- No retries anywhere in this layer
- No logging of request/response bodies
"""

from eburon.services.llm.chat import ConversationContext
from eburon.services.llm.errors import GatewayError, GatewayErrorClass, classify_provider_error
from eburon.services.llm.gateway import GeminiGateway
from eburon.services.llm.types import (
    GatewayOperation,
    GeneratedImage,
    GenerateRequest,
    GenerateResponse,
    GroundingChunk,
    ImageGenerationRequest,
    InlineData,
    LatLng,
    Turn,
    Usage,
)

__all__ = [
    # Core types
    "Turn",
    "InlineData",
    "LatLng",
    "Usage",
    "GroundingChunk",
    "GenerateRequest",
    "GenerateResponse",
    "ImageGenerationRequest",
    "GeneratedImage",
    "GatewayOperation",
    # Gateway
    "GeminiGateway",
    "ConversationContext",
    # Errors
    "GatewayError",
    "GatewayErrorClass",
    "classify_provider_error",
]
