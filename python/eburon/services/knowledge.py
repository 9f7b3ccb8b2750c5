"""Knowledge-base loading for the chatbot's system instruction."""

from pathlib import Path

from eburon.logging import get_logger

logger = get_logger(__name__)


def load_knowledge_text(path: str | Path | None) -> str:
    """Read the knowledge-base file, or return "" if it is unavailable.

    The chatbot works without a knowledge base, so a missing or unreadable
    file is logged and otherwise ignored.
    """
    if not path:
        return ""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("knowledge.load_failed", path=str(path), error_type=type(e).__name__)
        return ""
