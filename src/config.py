"""
src/config.py
==============
Runtime Configuration — VoicePrep

Responsibility:
    - Read pipeline and recognizer settings from the environment
      (a .env file is honoured via python-dotenv)
    - Fall back to safe defaults when a variable is unset or malformed

Settings are plain values: every pipeline run loads (or is handed) its own
Settings instance. Nothing here is cached at module level.
"""

import logging
import os
import tempfile
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("voiceprep.config")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_FFMPEG_BINARY = "ffmpeg"
DEFAULT_FFMPEG_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_DURATION_SECONDS = 1800.0  # 30 minutes
DEFAULT_WHISPER_MODEL = "whisper-1"
DEFAULT_WHISPER_LANGUAGE = "en"


@dataclass(frozen=True)
class Settings:
    """Configuration for one pipeline run."""

    ffmpeg_binary: str = DEFAULT_FFMPEG_BINARY
    ffmpeg_timeout_seconds: float | None = DEFAULT_FFMPEG_TIMEOUT_SECONDS
    temp_dir: str = tempfile.gettempdir()
    max_duration_seconds: float | None = DEFAULT_MAX_DURATION_SECONDS
    openai_api_key: str | None = None
    whisper_model: str = DEFAULT_WHISPER_MODEL
    whisper_language: str | None = DEFAULT_WHISPER_LANGUAGE


def load_settings() -> Settings:
    """
    Build Settings from environment variables.

    Numeric variables set to 0 disable the corresponding limit.
    """
    return Settings(
        ffmpeg_binary=os.environ.get("VOICEPREP_FFMPEG_BINARY", "").strip()
        or DEFAULT_FFMPEG_BINARY,
        ffmpeg_timeout_seconds=_read_limit(
            "VOICEPREP_FFMPEG_TIMEOUT_SECONDS", DEFAULT_FFMPEG_TIMEOUT_SECONDS
        ),
        temp_dir=os.environ.get("VOICEPREP_TEMP_DIR", "").strip()
        or tempfile.gettempdir(),
        max_duration_seconds=_read_limit(
            "VOICEPREP_MAX_DURATION_SECONDS", DEFAULT_MAX_DURATION_SECONDS
        ),
        openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
        whisper_model=os.environ.get("WHISPER_MODEL", "").strip()
        or DEFAULT_WHISPER_MODEL,
        whisper_language=os.environ.get("WHISPER_LANGUAGE", DEFAULT_WHISPER_LANGUAGE).strip()
        or None,
    )


def _read_limit(name: str, default: float) -> float | None:
    """Parse a positive float limit; 0 means unlimited (None)."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r — using default %.1f.", name, raw, default)
        return default
    if value < 0:
        logger.warning("Negative %s=%r — using default %.1f.", name, raw, default)
        return default
    if value == 0:
        return None
    return value
