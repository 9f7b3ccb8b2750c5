"""Gemini gateway: error normalization and observability around the adapter.

- Wraps every adapter call with error normalization
- Centralizes error classification (one place, not per call site)
- Emits gateway.request.started / gateway.request.finished / gateway.request.failed
- All events use safe_kv() to prevent prompt/key leakage

Error handling:
- Provider 401/403 → E_LLM_INVALID_KEY
- Provider 429 → E_LLM_RATE_LIMIT
- Timeout → E_LLM_TIMEOUT
- Context too large → E_LLM_CONTEXT_TOO_LARGE
- Other → E_LLM_PROVIDER_DOWN
"""

import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from eburon.logging import get_logger
from eburon.services.llm.errors import GatewayError, GatewayErrorClass, classify_provider_error
from eburon.services.llm.gemini_adapter import GEMINI_BASE_URL, GeminiAdapter
from eburon.services.llm.types import (
    GatewayOperation,
    GeneratedImage,
    GenerateRequest,
    GenerateResponse,
    ImageGenerationRequest,
)
from eburon.services.redact import safe_kv

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 60

T = TypeVar("T")


class GeminiGateway:
    """Single entry point for every call to the Gemini API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        base_url: str = GEMINI_BASE_URL,
        timeout_s: int = DEFAULT_TIMEOUT_S,
    ):
        self._adapter = GeminiAdapter(client, base_url=base_url)
        self._api_key = api_key
        self._timeout_s = timeout_s

    async def generate(
        self,
        req: GenerateRequest,
        *,
        operation: GatewayOperation = GatewayOperation.OTHER,
    ) -> GenerateResponse:
        """generateContent with error normalization.

        Raises:
            GatewayError: With normalized error class on failure.
        """
        message_chars = sum(len(turn.text) for turn in req.contents)
        return await self._call(
            operation,
            req.model_name,
            lambda: self._adapter.generate_content(
                req, api_key=self._api_key, timeout_s=self._timeout_s
            ),
            message_chars=message_chars,
            history_turns=max(0, len(req.contents) - 1),
        )

    async def generate_images(self, req: ImageGenerationRequest) -> list[GeneratedImage]:
        """Imagen predict with error normalization.

        Raises:
            GatewayError: With normalized error class on failure.
        """
        return await self._call(
            GatewayOperation.IMAGE_GENERATE,
            req.model_name,
            lambda: self._adapter.generate_images(
                req, api_key=self._api_key, timeout_s=self._timeout_s
            ),
            message_chars=len(req.prompt),
        )

    async def _call(
        self,
        operation: GatewayOperation,
        model_name: str,
        invoke: Callable[[], Awaitable[T]],
        **size_fields: int,
    ) -> T:
        base = {"model_name": model_name, "gateway_operation": operation.value}
        logger.info("gateway.request.started", **safe_kv(**base, **size_fields))
        start = time.monotonic()

        def failed(error_class: GatewayErrorClass, status_code: int | None = None) -> None:
            logger.error(
                "gateway.request.failed",
                **safe_kv(
                    **base,
                    outcome="error",
                    error_class=error_class.value,
                    status_code=status_code,
                    latency_ms=int((time.monotonic() - start) * 1000),
                ),
            )

        try:
            result = await invoke()

        except httpx.TimeoutException as e:
            failed(GatewayErrorClass.TIMEOUT)
            raise GatewayError(GatewayErrorClass.TIMEOUT, "Request timed out") from e

        except httpx.HTTPStatusError as e:
            json_body = self._safe_parse_json(e.response)
            error_class = classify_provider_error(e.response.status_code, json_body, None)
            failed(error_class, e.response.status_code)
            raise GatewayError(
                error_class, f"Provider returned HTTP {e.response.status_code}"
            ) from e

        except httpx.NetworkError as e:
            failed(GatewayErrorClass.PROVIDER_DOWN)
            raise GatewayError(GatewayErrorClass.PROVIDER_DOWN, "Network error") from e

        except GatewayError as e:
            failed(e.error_class)
            raise

        except Exception as e:
            failed(GatewayErrorClass.PROVIDER_DOWN)
            raise GatewayError(
                GatewayErrorClass.PROVIDER_DOWN, f"Unexpected error: {type(e).__name__}"
            ) from e

        logger.info(
            "gateway.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
            ),
        )
        return result

    @staticmethod
    def _safe_parse_json(response: httpx.Response) -> dict | None:
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
