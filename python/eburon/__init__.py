"""EBURON - AI tools with consistent chat history and a personal image gallery."""

__version__ = "0.1.0"
