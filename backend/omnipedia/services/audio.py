"""Media encoding helpers.

Gemini TTS returns headerless 16-bit PCM; it is wrapped in a WAV container
before being exposed. Images travel between stages as data URLs.
"""

import base64
import re
import struct

from omnipedia.errors import MissingPayloadError

WAV_HEADER_SIZE = 44

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,")


def wav_header(data_length: int, sample_rate: int = 24000, channels: int = 1, sample_width: int = 2) -> bytes:
    """Build the 44-byte RIFF/WAVE header for ``data_length`` bytes of PCM."""
    byte_rate = sample_rate * channels * sample_width
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        16,  # fmt chunk size for PCM
        1,  # PCM
        channels,
        sample_rate,
        byte_rate,
        channels * sample_width,
        sample_width * 8,
        b"data",
        data_length,
    )


def pcm_to_wav(pcm: bytes, sample_rate: int = 24000, channels: int = 1, sample_width: int = 2) -> bytes:
    """Wrap raw little-endian PCM samples in a WAV container."""
    return wav_header(len(pcm), sample_rate, channels, sample_width) + pcm


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    """Encode bytes as a base64 data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def strip_data_url(url: str) -> tuple[str, bytes]:
    """Split a data URL into its MIME type and decoded bytes.

    Bare base64 strings (no header) are accepted and assumed to be PNG.

    Raises:
        MissingPayloadError: If the payload is empty.
    """
    match = _DATA_URL_RE.match(url)
    mime_type = match.group("mime") if match else "image/png"
    payload = url[match.end():] if match else url
    if not payload:
        raise MissingPayloadError("Image payload is empty")
    return mime_type, base64.b64decode(payload)
