"""
src/stt/whisper_client.py
==========================
OpenAI Whisper Recognizer — VoicePrep

Responsibility:
    - Transcribe a normalized WAV file with the OpenAI Whisper API
    - Retry transient API failures with back-off
    - Join segment texts into one trimmed transcription

This module does NOT:
    - Normalize audio (it expects the output of src.audio)
    - Delete the audio file (the caller owns it)
"""

import logging
import os
from pathlib import Path

import openai
from openai import OpenAI

from src.config import Settings, load_settings
from src.openai_retry import call_with_retry
from src.stt.recognizer import (
    EmptyTranscriptionError,
    ModelNotFoundError,
    RecognitionFailedError,
    Recognizer,
    RecognizerNotConfiguredError,
)

logger = logging.getLogger("voiceprep.stt.whisper_client")


class WhisperApiRecognizer(Recognizer):
    """Recognizer backed by the hosted Whisper transcription endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "whisper-1",
        language: str | None = "en",
        client: OpenAI | None = None,
    ):
        if client is None:
            if not api_key:
                raise RecognizerNotConfiguredError(
                    "OPENAI_API_KEY environment variable is not set.",
                    setting="OPENAI_API_KEY",
                )
            client = OpenAI(api_key=api_key)
        self.client = client
        self.model = model
        self.language = language

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "WhisperApiRecognizer":
        settings = settings or load_settings()
        return cls(
            api_key=settings.openai_api_key,
            model=settings.whisper_model,
            language=settings.whisper_language,
        )

    def transcribe(self, audio_path: str | os.PathLike) -> str:
        """
        Transcribe ``audio_path``.

        Raises:
            ModelNotFoundError:           The configured model does not exist.
            RecognizerNotConfiguredError: The API rejected the credentials.
            RecognitionFailedError:       The file or the API call failed.
            EmptyTranscriptionError:      Whisper returned no text.
        """
        audio_path = Path(audio_path)
        logger.info("Using Whisper model: %s", self.model)

        try:
            response = call_with_retry(self._request, audio_path)
        except openai.NotFoundError as exc:
            raise ModelNotFoundError(
                f"Whisper model '{self.model}' not found: {exc}",
                model=self.model,
            ) from exc
        except openai.AuthenticationError as exc:
            raise RecognizerNotConfiguredError(
                f"Whisper API rejected the credentials: {exc}",
                setting="OPENAI_API_KEY",
            ) from exc
        except openai.OpenAIError as exc:
            raise RecognitionFailedError(
                f"Whisper transcription failed: {exc}",
                path=str(audio_path),
            ) from exc
        except OSError as exc:
            raise RecognitionFailedError(
                f"Failed to open audio file {audio_path}: {exc}",
                path=str(audio_path),
            ) from exc

        segments = getattr(response, "segments", None) or []
        parts: list[str] = []
        for i, seg in enumerate(segments):
            # Handle both dict and object attribute access patterns
            if isinstance(seg, dict):
                text = seg.get("text", "")
            else:
                text = getattr(seg, "text", "")
            logger.debug("Segment %d: '%s'", i, text)
            parts.append(text or "")

        transcription = "".join(parts).strip()
        if not transcription:
            transcription = (getattr(response, "text", "") or "").strip()

        logger.info("Whisper found %d segments.", len(segments))

        if not transcription:
            raise EmptyTranscriptionError(
                "Transcription is empty - audio may be too short or silent.",
                path=str(audio_path),
            )
        return transcription

    def _request(self, audio_path: Path):
        # Fresh handle per attempt; a retried upload must start at byte 0.
        with audio_path.open("rb") as audio_file:
            kwargs = {
                "model": self.model,
                "file": audio_file,
                "response_format": "verbose_json",
            }
            if self.language:
                kwargs["language"] = self.language
            return self.client.audio.transcriptions.create(**kwargs)
