"""
src/pipeline.py
================
Transcription Pipeline — VoicePrep Integration Layer

Responsibility:
    1. Normalize recorded audio into a temp WAV file
    2. Hand the file to the recognizer
    3. Release the temp file on every exit path, recognizer errors included
    4. Return the recognized text

This layer MUST NOT:
    - Decode, resample or validate audio itself (src.audio does that)
    - Swallow failures: normalization and recognition errors propagate
      unchanged; only temp-file cleanup failures are downgraded to warnings
"""

import logging
import os
from typing import Sequence

from src.audio.decoders import Decoder
from src.audio.normalizer import normalized_audio_file, read_audio_file
from src.config import Settings, load_settings
from src.stt.recognizer import Recognizer
from src.stt.whisper_client import WhisperApiRecognizer

logger = logging.getLogger("voiceprep.pipeline")


def transcribe_audio_blob(
    audio_bytes: bytes,
    recognizer: Recognizer | None = None,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Normalize ``audio_bytes`` and transcribe it.

    Args:
        audio_bytes: Raw recorded audio.
        recognizer:  Recognizer to use; defaults to WhisperApiRecognizer
                     built from ``settings``.
        decoders:    Optional decoder chain override.
        settings:    Run configuration; defaults to the environment.

    Returns:
        The recognized text.

    Raises:
        AudioNormalizationError: Normalization failed (nothing was sent to
                                 the recognizer).
        RecognitionError:        The recognizer failed.
    """
    settings = settings or load_settings()
    if recognizer is None:
        recognizer = WhisperApiRecognizer.from_settings(settings)

    # ==================================================================
    # STEP 1 — Audio Normalization
    # ==================================================================
    logger.info("=" * 60)
    logger.info("STEP 1: Audio Normalization")
    logger.info("=" * 60)

    with normalized_audio_file(audio_bytes, decoders=decoders, settings=settings) as path:
        # ==============================================================
        # STEP 2 — Speech Recognition
        # ==============================================================
        logger.info("=" * 60)
        logger.info("STEP 2: Speech Recognition")
        logger.info("=" * 60)
        text = recognizer.transcribe(path)

    logger.info("Final transcription: '%s'", text)
    return text


def transcribe_audio_file(
    path: str | os.PathLike,
    recognizer: Recognizer | None = None,
    *,
    decoders: Sequence[Decoder] | None = None,
    settings: Settings | None = None,
) -> str:
    """Transcribe audio stored at ``path``; see transcribe_audio_blob()."""
    return transcribe_audio_blob(
        read_audio_file(path),
        recognizer,
        decoders=decoders,
        settings=settings,
    )
