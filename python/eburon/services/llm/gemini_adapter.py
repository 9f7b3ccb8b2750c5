"""Gemini REST adapter.

Endpoints:
- POST {base}/models/{model}:generateContent  (text, multimodal, image edit, TTS, grounding)
- POST {base}/models/{model}:predict          (Imagen image generation)

Auth:
- Header: x-goog-api-key: <key>
- NEVER put key in query param

Turn conversion:
- system_instruction → systemInstruction.parts[0].text
- Turn.attachments → parts: [{"inlineData": {"mimeType", "data": base64}}] before the text part
- Turn.text → parts: [{"text": "..."}]

Response (generateContent):
{
  "candidates": [{
    "content": {"parts": [{"text": "..."}, {"inlineData": {"mimeType": "...", "data": "..."}}]},
    "groundingMetadata": {"groundingChunks": [{"web": {"uri": "...", "title": "..."}}]}
  }],
  "usageMetadata": {"promptTokenCount": 1, "candidatesTokenCount": 2, "totalTokenCount": 3}
}

Response (predict):
{"predictions": [{"bytesBase64Encoded": "...", "mimeType": "image/jpeg"}]}

Rules:
- No retries
- No logging of request/response bodies
- Raw httpx errors bubble up to the gateway for classification
"""

import base64

import httpx

from eburon.services.llm.errors import GatewayError, GatewayErrorClass
from eburon.services.llm.types import (
    GeneratedImage,
    GenerateRequest,
    GenerateResponse,
    GroundingChunk,
    ImageGenerationRequest,
    InlineData,
    Turn,
    Usage,
)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_TOOL_KEYS = {
    "google_search": "googleSearch",
    "google_maps": "googleMaps",
}


class GeminiAdapter:
    """Google Gemini API adapter.

    Converts request dataclasses into Gemini JSON bodies and parses responses.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str = GEMINI_BASE_URL):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            base_url: API root, without the trailing "/models".
        """
        self._client = client
        self._models_url = f"{base_url.rstrip('/')}/models"

    async def generate_content(
        self,
        req: GenerateRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> GenerateResponse:
        """Non-streaming content generation.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
            GatewayError: If the response has no candidates.
        """
        url = f"{self._models_url}/{req.model_name}:generateContent"
        response = await self._client.post(
            url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()
        return self._parse_response(response.json())

    async def generate_images(
        self,
        req: ImageGenerationRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> list[GeneratedImage]:
        """Imagen generation via the predict endpoint."""
        url = f"{self._models_url}/{req.model_name}:predict"
        body = {
            "instances": [{"prompt": req.prompt}],
            "parameters": {
                "sampleCount": req.number_of_images,
                "aspectRatio": req.aspect_ratio,
                "outputOptions": {"mimeType": req.mime_type},
            },
        }
        response = await self._client.post(
            url,
            headers=self._build_headers(api_key),
            json=body,
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        images = []
        for prediction in response.json().get("predictions", []):
            encoded = prediction.get("bytesBase64Encoded")
            if encoded:
                images.append(
                    GeneratedImage(
                        data=base64.b64decode(encoded),
                        mime_type=prediction.get("mimeType", req.mime_type),
                    )
                )
        return images

    def _build_headers(self, api_key: str) -> dict[str, str]:
        """Build request headers.

        Note: API key goes in header, NEVER in query param.
        """
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: GenerateRequest) -> dict:
        body: dict = {"contents": [self._turn_to_content(turn) for turn in req.contents]}

        if req.system_instruction:
            body["systemInstruction"] = {"parts": [{"text": req.system_instruction}]}

        generation_config: dict = {}
        if req.response_modalities:
            generation_config["responseModalities"] = list(req.response_modalities)
        if req.thinking_budget is not None:
            generation_config["thinkingConfig"] = {"thinkingBudget": req.thinking_budget}
        if req.voice_name:
            generation_config["speechConfig"] = {
                "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": req.voice_name}}
            }
        if generation_config:
            body["generationConfig"] = generation_config

        if req.grounding_tool:
            body["tools"] = [{_TOOL_KEYS[req.grounding_tool]: {}}]
            if req.grounding_tool == "google_maps" and req.location is not None:
                body["toolConfig"] = {
                    "retrievalConfig": {
                        "latLng": {
                            "latitude": req.location.latitude,
                            "longitude": req.location.longitude,
                        }
                    }
                }

        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        parts: list[dict] = [
            {
                "inlineData": {
                    "mimeType": attachment.mime_type,
                    "data": base64.b64encode(attachment.data).decode("ascii"),
                }
            }
            for attachment in turn.attachments
        ]
        if turn.text or not parts:
            parts.append({"text": turn.text})
        return {"role": turn.role, "parts": parts}

    def _parse_response(self, data: dict) -> GenerateResponse:
        candidates = data.get("candidates", [])
        if not candidates:
            raise GatewayError(
                GatewayErrorClass.EMPTY_RESPONSE,
                "Gemini response missing candidates",
            )

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts if "text" in part)
        inline_data = [
            InlineData(
                mime_type=part["inlineData"].get("mimeType", "application/octet-stream"),
                data=base64.b64decode(part["inlineData"].get("data", "")),
            )
            for part in parts
            if "inlineData" in part
        ]

        grounding_chunks = []
        metadata = candidate.get("groundingMetadata") or {}
        for chunk in metadata.get("groundingChunks", []):
            for source in ("web", "maps"):
                if source in chunk:
                    grounding_chunks.append(
                        GroundingChunk(
                            source=source,
                            uri=chunk[source].get("uri", ""),
                            title=chunk[source].get("title", ""),
                        )
                    )

        usage = None
        usage_metadata = data.get("usageMetadata")
        if usage_metadata:
            usage = Usage(
                prompt_tokens=usage_metadata.get("promptTokenCount"),
                completion_tokens=usage_metadata.get("candidatesTokenCount"),
                total_tokens=usage_metadata.get("totalTokenCount"),
            )

        return GenerateResponse(
            text=text,
            inline_data=inline_data,
            grounding_chunks=grounding_chunks,
            usage=usage,
        )
