"""
src/audio/sniffer.py
=====================
Container Sniffer — VoicePrep

Responsibility:
    - Decide whether a raw buffer is a simple uncompressed WAV container
    - Decode its samples eagerly into float32 in the range [-1.0, 1.0]

Supported WAV payloads:
    - 16-bit signed integer PCM (scaled by 1 / 32768.0)
    - 32-bit IEEE float PCM (passed through unchanged)

Anything else (other containers, compressed codecs, 8/24/32-bit integer
PCM, truncated headers) is "not recognized" and left to the external
decoder. Not recognizing a buffer is an expected outcome, not an error.

Note: decode divides by 32768.0 while the encoder multiplies by 32767.0.
The asymmetry is kept for compatibility with previously produced files.
"""

import io
import logging

import numpy as np
import soundfile as sf

from src.audio.errors import UnsupportedSampleFormatError
from src.audio.types import DecodedAudio

logger = logging.getLogger("voiceprep.audio.sniffer")

DECODE_SCALE: float = 32768.0

_WAV_FORMATS = {"WAV", "WAVEX"}
_SUBTYPE_DTYPES = {
    "PCM_16": "int16",
    "FLOAT": "float32",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def sniff(audio_bytes: bytes) -> DecodedAudio | None:
    """
    Try to decode ``audio_bytes`` as a canonical PCM WAV container.

    Returns:
        DecodedAudio on success, None when the buffer is not a supported
        WAV container.
    """
    if not audio_bytes:
        return None

    try:
        return read_wav(audio_bytes, source="input buffer")
    except UnsupportedSampleFormatError as exc:
        logger.info("Buffer not recognized as simple PCM WAV: %s", exc.message)
        return None


def read_wav(audio_bytes: bytes, source: str = "buffer") -> DecodedAudio:
    """
    Decode a WAV container, raising instead of returning None.

    Args:
        audio_bytes: Complete WAV file contents.
        source:      Description of where the bytes came from (for messages).

    Raises:
        UnsupportedSampleFormatError: If the bytes are not a WAV container
            with a supported sample format.
    """
    try:
        with sf.SoundFile(io.BytesIO(audio_bytes)) as wav:
            container = wav.format
            subtype = wav.subtype
            sample_rate = wav.samplerate
            channels = wav.channels

            if container not in _WAV_FORMATS:
                raise UnsupportedSampleFormatError(
                    f"{source} is a {container} container, not WAV.",
                    source=source,
                    container=container,
                )

            dtype = _SUBTYPE_DTYPES.get(subtype)
            if dtype is None:
                raise UnsupportedSampleFormatError(
                    f"{source} uses unsupported WAV sample format {subtype}. "
                    f"Supported: {', '.join(sorted(_SUBTYPE_DTYPES))}.",
                    source=source,
                    subtype=subtype,
                )

            frames = wav.read(dtype=dtype, always_2d=True)
    except sf.SoundFileError as exc:
        raise UnsupportedSampleFormatError(
            f"{source} could not be parsed as WAV: {exc}",
            source=source,
        ) from exc

    if sample_rate <= 0:
        raise UnsupportedSampleFormatError(
            f"{source} declares an invalid sample rate ({sample_rate} Hz).",
            source=source,
            sample_rate=sample_rate,
        )

    # (frames, channels) row-major == interleaved
    interleaved = frames.reshape(-1)
    if dtype == "int16":
        samples = interleaved.astype(np.float32) / np.float32(DECODE_SCALE)
    else:
        samples = interleaved.astype(np.float32, copy=False)

    logger.info(
        "Decoded WAV from %s: %d Hz | %d ch | %s | %d samples",
        source, sample_rate, channels, subtype, len(samples),
    )
    return DecodedAudio(
        samples=samples,
        sample_rate=int(sample_rate),
        channel_count=int(channels),
    )
