"""Stateless AI tools.

Each tool is one gateway call with input validation in front and response
shaping behind. None of them touch durable storage; saving a generated
image goes through MediaConsistencyManager.save_media().
"""

from dataclasses import dataclass

from eburon.config import Settings
from eburon.errors import InvalidInputError
from eburon.logging import get_logger
from eburon.services.llm.audio import parse_sample_rate, pcm_to_wav
from eburon.services.llm.errors import GatewayError, GatewayErrorClass
from eburon.services.llm.gateway import GeminiGateway
from eburon.services.llm.types import (
    GatewayOperation,
    GeneratedImage,
    GenerateRequest,
    GroundingChunk,
    GroundingTool,
    ImageGenerationRequest,
    InlineData,
    LatLng,
    Turn,
)

logger = get_logger(__name__)

ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")
COMPLEX_TASK_FALLBACK = "An error occurred while processing the complex task."
TRANSCRIBE_INSTRUCTION = "Transcribe this audio verbatim. Return only the transcript text."


@dataclass(frozen=True)
class GroundedAnswer:
    """Answer text plus the citations it was grounded on."""

    text: str
    chunks: list[GroundingChunk]


def _require_text(value: str, what: str) -> None:
    if not value or not value.strip():
        raise InvalidInputError(f"Please enter {what}.")


class ToolService:
    """Stateless tools backed by the Gemini gateway."""

    def __init__(self, gateway: GeminiGateway, settings: Settings):
        self._gateway = gateway
        self._settings = settings

    async def solve_complex_task(self, prompt: str) -> str:
        """Run a long-form reasoning task on the pro model.

        Model failures are absorbed into a fixed fallback reply.
        """
        _require_text(prompt, "a task")
        try:
            response = await self._gateway.generate(
                GenerateRequest(
                    model_name=self._settings.complex_task_model,
                    contents=[Turn(role="user", text=prompt)],
                    thinking_budget=self._settings.thinking_budget,
                ),
                operation=GatewayOperation.COMPLEX_TASK,
            )
        except GatewayError as e:
            logger.warning("tools.complex_task.failed", error_class=e.error_class.value)
            return COMPLEX_TASK_FALLBACK
        return response.text

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> GeneratedImage:
        """Generate one JPEG image from a prompt."""
        _require_text(prompt, "a prompt")
        if aspect_ratio not in ASPECT_RATIOS:
            raise InvalidInputError(
                f"Unsupported aspect ratio {aspect_ratio!r}; expected one of {', '.join(ASPECT_RATIOS)}"
            )

        images = await self._gateway.generate_images(
            ImageGenerationRequest(
                model_name=self._settings.image_model,
                prompt=prompt,
                aspect_ratio=aspect_ratio,
            )
        )
        if not images:
            raise GatewayError(GatewayErrorClass.EMPTY_RESPONSE, "No image was generated")
        return images[0]

    async def edit_image(self, prompt: str, image: bytes, mime_type: str) -> GeneratedImage:
        """Apply a text instruction to an image and return the edited image."""
        _require_text(prompt, "an edit instruction")
        if not image:
            raise InvalidInputError("Please upload an image.")

        response = await self._gateway.generate(
            GenerateRequest(
                model_name=self._settings.image_edit_model,
                contents=[
                    Turn(
                        role="user",
                        text=prompt,
                        attachments=(InlineData(mime_type=mime_type, data=image),),
                    )
                ],
                response_modalities=("IMAGE",),
            ),
            operation=GatewayOperation.IMAGE_EDIT,
        )
        for part in response.inline_data:
            if part.mime_type.startswith("image/"):
                return GeneratedImage(data=part.data, mime_type=part.mime_type)
        raise GatewayError(GatewayErrorClass.EMPTY_RESPONSE, "No image found in response")

    async def analyze_image(self, prompt: str, image: bytes, mime_type: str) -> str:
        """Answer a question about an image."""
        _require_text(prompt, "a question")
        if not image:
            raise InvalidInputError("Please upload an image.")

        response = await self._gateway.generate(
            GenerateRequest(
                model_name=self._settings.chat_model,
                contents=[
                    Turn(
                        role="user",
                        text=prompt,
                        attachments=(InlineData(mime_type=mime_type, data=image),),
                    )
                ],
            ),
            operation=GatewayOperation.IMAGE_ANALYZE,
        )
        return response.text

    async def grounded_search(
        self,
        query: str,
        tool: GroundingTool = "google_search",
        location: LatLng | None = None,
    ) -> GroundedAnswer:
        """Answer a query grounded on Google Search or Google Maps."""
        _require_text(query, "a query")
        if tool == "google_maps" and location is None:
            raise InvalidInputError("Location is required for Maps search.")

        response = await self._gateway.generate(
            GenerateRequest(
                model_name=self._settings.chat_model,
                contents=[Turn(role="user", text=query)],
                grounding_tool=tool,
                location=location,
            ),
            operation=GatewayOperation.GROUNDED_SEARCH,
        )
        return GroundedAnswer(text=response.text, chunks=response.grounding_chunks)

    async def generate_speech(self, text: str) -> bytes:
        """Synthesize speech and return it as a WAV file."""
        _require_text(text, "some text to speak")

        response = await self._gateway.generate(
            GenerateRequest(
                model_name=self._settings.tts_model,
                contents=[Turn(role="user", text=text)],
                response_modalities=("AUDIO",),
                voice_name=self._settings.tts_voice,
            ),
            operation=GatewayOperation.SPEECH,
        )
        if not response.inline_data:
            raise GatewayError(GatewayErrorClass.EMPTY_RESPONSE, "No audio data received.")

        audio = response.inline_data[0]
        return pcm_to_wav(audio.data, sample_rate=parse_sample_rate(audio.mime_type))

    async def transcribe_audio(self, audio: bytes, mime_type: str) -> str:
        """Transcribe recorded speech to text."""
        if not audio:
            raise InvalidInputError("No audio was recorded.")

        response = await self._gateway.generate(
            GenerateRequest(
                model_name=self._settings.chat_model,
                contents=[
                    Turn(
                        role="user",
                        text=TRANSCRIBE_INSTRUCTION,
                        attachments=(InlineData(mime_type=mime_type, data=audio),),
                    )
                ],
            ),
            operation=GatewayOperation.TRANSCRIBE,
        )
        return response.text.strip()
