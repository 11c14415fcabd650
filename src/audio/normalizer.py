"""
src/audio/normalizer.py
========================
Audio Normalizer — VoicePrep Pipeline Orchestrator

Responsibility:
    - Turn an arbitrary recorded audio buffer into recognizer-ready audio:
      mono, 16 kHz, signed 16-bit PCM WAV
    - Reject empty, too short, silent or over-long input before any
      expensive work runs
    - Hand the caller a uniquely named output file (or WAV bytes)

Steps:
    1. Reject empty input
    2. Decode: native WAV sniffing, falling back to ffmpeg
    3. Downmix to mono
    4. Validate length and energy (at the native rate)
    5. Resample to 16 kHz when the rate differs
    6. Encode PCM-16 WAV

Every failure is terminal for the run; the only retry is the
sniff → ffmpeg fallback in step 2.

Output files belong to the caller once returned. Release them with
release_audio_file() (or use normalized_audio_file()) on every path.
"""

import logging
import os
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from src.audio.decoders import Decoder, decode_with_fallback, default_decoders
from src.audio.encoder import encode_pcm16, to_wav_bytes
from src.audio.errors import AudioIOError, EmptyInputError
from src.audio.mixer import downmix_to_mono
from src.audio.quality import validate
from src.audio.resampler import resample
from src.audio.types import TARGET_CHANNELS, TARGET_SAMPLE_RATE, DecodedAudio
from src.config import Settings, load_settings

logger = logging.getLogger("voiceprep.audio.normalizer")

OUTPUT_PREFIX = "voiceprep_"
OUTPUT_SUFFIX = ".wav"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize(
    audio_bytes: bytes,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> DecodedAudio:
    """
    Full validation + normalization pipeline for one audio buffer.

    Args:
        audio_bytes: Raw recorded audio (any container ffmpeg understands).
        decoders:    Decoder chain; defaults to native WAV then ffmpeg.
        settings:    Run configuration; defaults to the environment.

    Returns:
        DecodedAudio with channel_count == 1 and sample_rate == 16000.

    Raises:
        EmptyInputError:         ``audio_bytes`` is empty.
        AudioValidationError:    Too short, silent, mostly silent, too long.
        AudioNormalizationError: Any other decode / DSP failure.
    """
    # 1. Empty-input check
    if not audio_bytes:
        raise EmptyInputError("Audio data is empty.")

    settings = settings or load_settings()
    if decoders is None:
        decoders = default_decoders(settings)

    logger.info("Processing audio blob: %d bytes", len(audio_bytes))

    # 2. Decode
    decoded = decode_with_fallback(audio_bytes, decoders)
    logger.info(
        "Decoded audio: %d Hz, %d channel(s), %d samples",
        decoded.sample_rate, decoded.channel_count, len(decoded.samples),
    )

    # 3. Convert to mono
    mono = downmix_to_mono(decoded.samples, decoded.channel_count)

    # 4. Length / silence gates at the native rate
    validate(
        mono,
        decoded.sample_rate,
        max_duration_seconds=settings.max_duration_seconds,
    )

    # 5. Resample to target rate
    if decoded.sample_rate != TARGET_SAMPLE_RATE:
        mono = resample(mono, decoded.sample_rate, TARGET_SAMPLE_RATE)

    return DecodedAudio(
        samples=mono,
        sample_rate=TARGET_SAMPLE_RATE,
        channel_count=TARGET_CHANNELS,
    )


def normalize_to_file(
    audio_bytes: bytes,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> Path:
    """
    Normalize ``audio_bytes`` and write the result to a new temp WAV file.

    Returns:
        Path of the output file. The caller owns it and must release it.

    Raises:
        Same as normalize(), plus AudioIOError when the file cannot be
        written (a partially written file is removed).
    """
    settings = settings or load_settings()
    normalized = normalize(audio_bytes, decoders=decoders, settings=settings)

    output_path = Path(settings.temp_dir) / f"{OUTPUT_PREFIX}{uuid.uuid4().hex}{OUTPUT_SUFFIX}"
    try:
        encode_pcm16(normalized.samples, output_path)
    except AudioIOError:
        release_audio_file(output_path)
        raise

    logger.info(
        "Normalized audio written to %s (%.2fs).",
        output_path, normalized.duration_seconds,
    )
    return output_path


def normalize_to_wav_bytes(
    audio_bytes: bytes,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> bytes:
    """Normalize ``audio_bytes`` and return the WAV file contents."""
    normalized = normalize(audio_bytes, decoders=decoders, settings=settings)
    return to_wav_bytes(normalized.samples)


def read_audio_file(path: str | os.PathLike) -> bytes:
    """
    Read stored audio from ``path``.

    Raises:
        AudioIOError: If the file cannot be read.
    """
    logger.info("Reading audio file: %s", path)
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise AudioIOError(
            f"Failed to read audio file {path}: {exc}",
            path=os.fspath(path),
            operation="read",
        ) from exc


def normalize_file(
    path: str | os.PathLike,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> Path:
    """Normalize audio stored at ``path``; see normalize_to_file()."""
    return normalize_to_file(read_audio_file(path), decoders=decoders, settings=settings)


# ---------------------------------------------------------------------------
# Output ownership
# ---------------------------------------------------------------------------


def release_audio_file(path: str | os.PathLike) -> None:
    """
    Delete a file produced by normalize_to_file().

    Best-effort: failures are logged as warnings and never raised.
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to clean up temp file %s: %s", path, exc)


@contextmanager
def normalized_audio_file(
    audio_bytes: bytes,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> Iterator[Path]:
    """Yield a normalized temp WAV path and release it on exit."""
    path = normalize_to_file(audio_bytes, decoders=decoders, settings=settings)
    try:
        yield path
    finally:
        release_audio_file(path)
