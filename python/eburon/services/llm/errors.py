"""Gateway error classification and normalization.

- Classifies Gemini errors into normalized error classes
- Called by the gateway after catching adapter exceptions

Error classes:
- E_LLM_INVALID_KEY: Authentication failure (401/403, API_KEY_INVALID)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429, RESOURCE_EXHAUSTED)
- E_LLM_CONTEXT_TOO_LARGE: Input exceeds the model's limit
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error)
- E_MODEL_NOT_AVAILABLE: Model not found or disabled
- E_LLM_EMPTY_RESPONSE: Response lacked the requested modality
"""

from enum import Enum


class GatewayErrorClass(str, Enum):
    """Normalized gateway error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"
    EMPTY_RESPONSE = "E_LLM_EMPTY_RESPONSE"


class GatewayError(Exception):
    """Exception for model call failures.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
    """

    def __init__(self, error_class: GatewayErrorClass, message: str):
        self.error_class = error_class
        self.message = message
        super().__init__(message)


def classify_provider_error(
    status_code: int | None,
    json_body: dict | None,
    exception: Exception | None,
) -> GatewayErrorClass:
    """Classify a Gemini error into a normalized error class.

    Args:
        status_code: HTTP status code (if available)
        json_body: Parsed JSON error response (if available)
        exception: The exception that was raised (if any)

    Returns:
        The appropriate GatewayErrorClass for this error.
    """
    # Handle timeout exceptions first (no status code)
    if exception is not None:
        exception_type = type(exception).__name__
        if "Timeout" in exception_type or "timeout" in str(exception).lower():
            return GatewayErrorClass.TIMEOUT
        if "Network" in exception_type or "Connection" in exception_type:
            return GatewayErrorClass.PROVIDER_DOWN

    if status_code is None:
        return GatewayErrorClass.PROVIDER_DOWN

    body_str = str(json_body).lower() if json_body else ""

    if "api_key_invalid" in body_str:
        return GatewayErrorClass.INVALID_KEY

    if status_code in (401, 403):
        return GatewayErrorClass.INVALID_KEY

    if status_code == 429 or "resource_exhausted" in body_str:
        return GatewayErrorClass.RATE_LIMIT

    if "exceeds the maximum" in body_str:
        return GatewayErrorClass.CONTEXT_TOO_LARGE

    if status_code == 404 or "model not found" in body_str:
        return GatewayErrorClass.MODEL_NOT_AVAILABLE

    return GatewayErrorClass.PROVIDER_DOWN
