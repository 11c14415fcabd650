# src/audio/__init__.py
# ======================
# Audio Normalization Layer — VoicePrep
#
# Responsibility:
#   - Detect WAV input, fall back to ffmpeg for everything else
#   - Downmix, validate and resample to the recognizer format
#   - Encode mono 16 kHz PCM-16 WAV
#
# Public API:
#   - normalize()             — bytes → normalized DecodedAudio
#   - normalize_to_file()     — bytes → caller-owned temp WAV path
#   - normalize_file()        — stored file → caller-owned temp WAV path
#   - normalized_audio_file() — context manager that releases the path

from src.audio.errors import (  # noqa: F401
    AudioNormalizationError,
    AudioValidationError,
    ErrorKind,
)
from src.audio.normalizer import (  # noqa: F401
    normalize,
    normalize_file,
    normalize_to_file,
    normalize_to_wav_bytes,
    normalized_audio_file,
    read_audio_file,
    release_audio_file,
)
from src.audio.types import DecodedAudio, TARGET_SAMPLE_RATE  # noqa: F401
