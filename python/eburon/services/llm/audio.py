"""Audio helpers for speech output.

Gemini TTS returns raw little-endian 16-bit PCM (mono, 24 kHz) with a MIME
type like "audio/L16;codec=pcm;rate=24000". Callers get a WAV container so
the bytes are directly playable.
"""

import io
import wave

DEFAULT_SAMPLE_RATE = 24000


def parse_sample_rate(mime_type: str, default: int = DEFAULT_SAMPLE_RATE) -> int:
    """Read the rate= parameter from a PCM MIME type."""
    for param in mime_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key == "rate" and value.isdigit():
            return int(value)
    return default


def pcm_to_wav(
    pcm: bytes,
    *,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM frames in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()
