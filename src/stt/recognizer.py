"""
src/stt/recognizer.py
======================
Recognizer Interface — VoicePrep

A recognizer consumes a normalized WAV file (mono, 16 kHz, PCM-16) and
returns the recognized text. Failures are typed so callers can tell a
misconfigured recognizer from a failed or empty recognition.
"""

import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class RecognitionErrorKind(str, Enum):
    RECOGNIZER_NOT_CONFIGURED = "recognizer_not_configured"
    MODEL_NOT_FOUND = "model_not_found"
    RECOGNITION_FAILED = "recognition_failed"
    EMPTY_TRANSCRIPTION = "empty_transcription"


class RecognitionError(Exception):
    """Base class for recognizer failures."""

    kind: RecognitionErrorKind = RecognitionErrorKind.RECOGNITION_FAILED

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind.value,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


class RecognizerNotConfiguredError(RecognitionError):
    kind = RecognitionErrorKind.RECOGNIZER_NOT_CONFIGURED


class ModelNotFoundError(RecognitionError):
    kind = RecognitionErrorKind.MODEL_NOT_FOUND


class RecognitionFailedError(RecognitionError):
    kind = RecognitionErrorKind.RECOGNITION_FAILED


class EmptyTranscriptionError(RecognitionError):
    kind = RecognitionErrorKind.EMPTY_TRANSCRIPTION


class Recognizer(ABC):
    """Speech recognizer collaborator."""

    @abstractmethod
    def transcribe(self, audio_path: str | os.PathLike) -> str:
        """
        Transcribe the normalized WAV file at ``audio_path``.

        Returns:
            Non-empty recognized text.

        Raises:
            RecognitionError: On any failure, including an empty result.
        """
