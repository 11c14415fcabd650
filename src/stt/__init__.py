# src/stt/__init__.py
# ====================
# Speech-to-Text Layer — VoicePrep
#
# The recognizer is a collaborator: it receives the path of a normalized
# WAV file (mono, 16 kHz, PCM-16) and returns text or a typed failure.
#
# Public API:
#   Recognizer            — abstract recognizer interface
#   WhisperApiRecognizer  — OpenAI Whisper implementation

from src.stt.recognizer import (  # noqa: F401
    EmptyTranscriptionError,
    ModelNotFoundError,
    RecognitionError,
    RecognitionFailedError,
    Recognizer,
    RecognizerNotConfiguredError,
)
from src.stt.whisper_client import WhisperApiRecognizer  # noqa: F401

__all__ = [
    "Recognizer",
    "RecognitionError",
    "RecognizerNotConfiguredError",
    "ModelNotFoundError",
    "RecognitionFailedError",
    "EmptyTranscriptionError",
    "WhisperApiRecognizer",
]
