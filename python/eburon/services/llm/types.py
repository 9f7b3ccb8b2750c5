"""Shared type definitions for the generative gateway layer.

- Turn: Role-tagged conversation turn (Gemini roles: "user" | "model")
- InlineData: Binary part (image or audio) sent to or returned by the model
- GenerateRequest / GenerateResponse: generateContent call shapes
- ImageGenerationRequest / GeneratedImage: Imagen predict call shapes
- GroundingChunk: Citation returned by search/maps grounding
- GatewayOperation: Which feature issued the call (observability only)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

GroundingTool = Literal["google_search", "google_maps"]


class GatewayOperation(str, Enum):
    """Which feature a gateway call belongs to.

    Used for log/metric fields only; never changes request behavior.
    """

    CHAT_SEND = "chat_send"
    COMPLEX_TASK = "complex_task"
    IMAGE_GENERATE = "image_generate"
    IMAGE_EDIT = "image_edit"
    IMAGE_ANALYZE = "image_analyze"
    GROUNDED_SEARCH = "grounded_search"
    SPEECH = "speech"
    TRANSCRIBE = "transcribe"
    OTHER = "other"


@dataclass(frozen=True)
class InlineData:
    """Binary payload part.

    Attributes:
        mime_type: e.g. "image/png", "audio/L16;codec=pcm;rate=24000"
        data: Raw bytes (base64 handling happens in the adapter)
    """

    mime_type: str
    data: bytes


@dataclass(frozen=True)
class Turn:
    """Role-tagged conversation turn.

    Attributes:
        role: "user" or "model"
        text: Text content of the turn (may be empty for media-only turns)
        attachments: Inline parts sent before the text part
    """

    role: Literal["user", "model"]
    text: str
    attachments: tuple[InlineData, ...] = ()


@dataclass(frozen=True)
class LatLng:
    """Caller location for maps grounding."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class Usage:
    """Token usage from provider response."""

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class GroundingChunk:
    """Citation attached to a grounded answer.

    Attributes:
        source: "web" or "maps"
        uri: Link to the cited resource
        title: Display title (may be empty)
    """

    source: str
    uri: str
    title: str


@dataclass(frozen=True)
class GenerateRequest:
    """Request to generateContent.

    Attributes:
        model_name: Model identifier (e.g., "gemini-2.5-flash")
        contents: Ordered turns; the last one is the new message
        system_instruction: Optional system instruction text
        response_modalities: e.g. ("IMAGE",) or ("AUDIO",); None for text
        thinking_budget: Thinking token budget for reasoning models
        grounding_tool: Enables search or maps grounding
        location: Required context for maps grounding
        voice_name: Prebuilt voice for speech output
    """

    model_name: str
    contents: list[Turn]
    system_instruction: str | None = None
    response_modalities: tuple[str, ...] | None = None
    thinking_budget: int | None = None
    grounding_tool: GroundingTool | None = None
    location: LatLng | None = None
    voice_name: str | None = None


@dataclass(frozen=True)
class GenerateResponse:
    """Parsed generateContent response.

    Attributes:
        text: Concatenated text parts of the first candidate
        inline_data: Binary parts of the first candidate, in order
        grounding_chunks: Citations from grounding metadata
        usage: Token usage (None if the provider omitted it)
    """

    text: str
    inline_data: list[InlineData] = field(default_factory=list)
    grounding_chunks: list[GroundingChunk] = field(default_factory=list)
    usage: Usage | None = None


@dataclass(frozen=True)
class ImageGenerationRequest:
    """Request to the Imagen predict endpoint."""

    model_name: str
    prompt: str
    aspect_ratio: str = "1:1"
    mime_type: str = "image/jpeg"
    number_of_images: int = 1


@dataclass(frozen=True)
class GeneratedImage:
    """One generated or edited image."""

    data: bytes
    mime_type: str
