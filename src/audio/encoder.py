"""
src/audio/encoder.py
=====================
PCM-16 WAV Encoder — VoicePrep

Writes normalized audio in the recognizer's input format: mono, 16 kHz,
signed 16-bit little-endian PCM in a standard WAV container.

Samples are scaled by 32767.0 (decode divides by 32768.0), rounded to the
nearest integer and clamped to the int16 range.
"""

import io
import logging
import os
import wave

import numpy as np

from src.audio.errors import AudioIOError
from src.audio.types import TARGET_CHANNELS, TARGET_SAMPLE_RATE

logger = logging.getLogger("voiceprep.audio.encoder")

ENCODE_SCALE: float = 32767.0
SAMPLE_WIDTH_BYTES = 2


def to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Scale, round and clamp float samples to little-endian int16."""
    scaled = np.rint(np.asarray(samples, dtype=np.float64) * ENCODE_SCALE)
    return np.clip(scaled, -32768, 32767).astype("<i2")


def encode_pcm16(samples: np.ndarray, path: str | os.PathLike) -> None:
    """
    Write ``samples`` to ``path`` as a mono 16 kHz PCM-16 WAV file.

    Raises:
        AudioIOError: If the file cannot be created, written or finalized.
    """
    pcm = to_pcm16(samples)
    try:
        with wave.open(os.fspath(path), "wb") as wf:
            _write(wf, pcm)
    except (OSError, wave.Error) as exc:
        raise AudioIOError(
            f"Failed to write WAV file {path}: {exc}",
            path=os.fspath(path),
            operation="write",
        ) from exc

    logger.info("Wrote %d samples to %s", len(pcm), path)


def to_wav_bytes(samples: np.ndarray) -> bytes:
    """Return ``samples`` as in-memory mono 16 kHz PCM-16 WAV bytes."""
    pcm = to_pcm16(samples)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        _write(wf, pcm)
    return buf.getvalue()


def _write(wf: wave.Wave_write, pcm: np.ndarray) -> None:
    wf.setnchannels(TARGET_CHANNELS)
    wf.setsampwidth(SAMPLE_WIDTH_BYTES)
    wf.setframerate(TARGET_SAMPLE_RATE)
    wf.writeframes(pcm.tobytes())
