"""
src/api/upload.py
==================
API Upload Endpoints — VoicePrep

Responsibility:
    - POST /api/v1/normalize-audio — upload audio, receive mono 16 kHz
      PCM-16 WAV
    - POST /api/v1/transcribe      — upload audio, receive {"text": ...}
    - Run each pipeline invocation in a worker thread so concurrent
      requests never share buffers or temp files
    - Map typed pipeline / recognizer failures to HTTP responses

Error body:
    {"error": <kind>, "message": <text>, "details": {...}}
"""

import asyncio
import logging

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from src.audio.errors import AudioNormalizationError, ErrorKind
from src.audio.normalizer import normalize_to_wav_bytes
from src.config import Settings, load_settings
from src.pipeline import transcribe_audio_blob
from src.stt.recognizer import RecognitionError, RecognitionErrorKind, Recognizer
from src.stt.whisper_client import WhisperApiRecognizer

logger = logging.getLogger("voiceprep.api")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="VoicePrep",
    description="Normalize recorded audio for speech recognition and transcribe it.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping (also applied to errors raised by dependencies)
# ---------------------------------------------------------------------------

_AUDIO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.EMPTY_INPUT: 400,
    ErrorKind.UNRECOGNIZED_CONTAINER: 422,
    ErrorKind.EXTERNAL_TOOL_FAILED: 422,
    ErrorKind.EXTERNAL_TOOL_TIMEOUT: 422,
    ErrorKind.UNSUPPORTED_SAMPLE_FORMAT: 422,
    ErrorKind.UNSUPPORTED_CHANNEL_LAYOUT: 422,
    ErrorKind.TOO_SHORT: 422,
    ErrorKind.SILENT: 422,
    ErrorKind.MOSTLY_SILENT: 422,
    ErrorKind.TOO_LONG: 422,
    ErrorKind.EXTERNAL_TOOL_MISSING: 503,
    ErrorKind.RESAMPLER_INIT_FAILED: 500,
    ErrorKind.RESAMPLER_PROCESS_FAILED: 500,
    ErrorKind.IO_ERROR: 500,
}

_RECOGNITION_STATUS: dict[RecognitionErrorKind, int] = {
    RecognitionErrorKind.RECOGNIZER_NOT_CONFIGURED: 503,
    RecognitionErrorKind.MODEL_NOT_FOUND: 503,
    RecognitionErrorKind.RECOGNITION_FAILED: 502,
    RecognitionErrorKind.EMPTY_TRANSCRIPTION: 422,
}


def _error_response(exc: AudioNormalizationError | RecognitionError) -> JSONResponse:
    if isinstance(exc, AudioNormalizationError):
        status = _AUDIO_STATUS.get(exc.kind, 500)
    else:
        status = _RECOGNITION_STATUS.get(exc.kind, 500)

    if status >= 500:
        logger.error("Request failed (%s): %s", exc.kind.value, exc.message)
    else:
        logger.info("Request rejected (%s): %s", exc.kind.value, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_settings() -> Settings:
    return load_settings()


def get_recognizer(settings: Settings = Depends(get_settings)) -> Recognizer:
    return WhisperApiRecognizer.from_settings(settings)


async def _read_upload(audio_file: UploadFile) -> bytes:
    logger.info("Audio file received: %s", audio_file.filename)
    audio_bytes = await audio_file.read()
    logger.info("File size: %.2f KB", len(audio_bytes) / 1024)
    return audio_bytes


@app.exception_handler(AudioNormalizationError)
async def _audio_error_handler(request: Request, exc: AudioNormalizationError):
    return _error_response(exc)


@app.exception_handler(RecognitionError)
async def _recognition_error_handler(request: Request, exc: RecognitionError):
    return _error_response(exc)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/api/v1/normalize-audio")
async def normalize_audio(
    audio_file: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
):
    """Return the uploaded audio as mono 16 kHz PCM-16 WAV."""
    audio_bytes = await _read_upload(audio_file)

    wav_bytes = await asyncio.to_thread(
        normalize_to_wav_bytes, audio_bytes, settings=settings,
    )

    logger.info("Normalization complete — returning %d bytes of WAV.", len(wav_bytes))
    return Response(content=wav_bytes, media_type="audio/wav")


@app.post("/api/v1/transcribe")
async def transcribe(
    audio_file: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
    recognizer: Recognizer = Depends(get_recognizer),
):
    """Normalize the uploaded audio and return its transcription."""
    audio_bytes = await _read_upload(audio_file)

    text = await asyncio.to_thread(
        transcribe_audio_blob, audio_bytes, recognizer, settings=settings,
    )

    logger.info("Transcription complete — %d characters.", len(text))
    return JSONResponse(status_code=200, content={"text": text})
