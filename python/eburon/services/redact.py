"""Redaction, hashing, and log guard utilities.

- hash_text: stable SHA-256 hex digest for log correlation
- safe_kv: log guard that blocks forbidden keys at call site

Never-log policy:
- API keys and access tokens
- Prompts and message text
- Knowledge-base text
- Transcripts and synthesized speech input
- Passwords

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Counts, latency, storage paths
"""

import hashlib
import os

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "text",
        "query",
        "api_key",
        "access_token",
        "token",
        "password",
        "message_text",
        "knowledge_text",
        "transcript",
        "raw_body",
    }
)


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string.

    Stable: same input always produces same output.
    Used for log correlation without exposing content.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present.

    Raises ValueError in local/test environments if a forbidden key is used.
    In staging/prod, logs a warning instead.

    Usage:
        logger.info("chat.turn.sent", **safe_kv(
            model_name="gemini-2.5-flash",
            message_chars=42,        # OK: _chars suffix
            # text="hello world",    # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for EBURON_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.
    """
    violations = [key for key in kwargs if key in FORBIDDEN_KEYS]

    if violations:
        msg = f"Forbidden log keys: {violations}"
        env = _env or os.environ.get("EBURON_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        else:
            import structlog

            _logger = structlog.get_logger("eburon.services.redact")
            _logger.warning("safe_kv_violation", forbidden_keys=violations)

    return kwargs
