"""
tests/test_pipeline.py
=======================
Integration Tests — Transcription Pipeline, Whisper Recognizer, API

Test categories:
    1. transcribe_audio_blob with a fake recognizer (temp-file lifecycle)
    2. WhisperApiRecognizer with a mocked OpenAI client
    3. call_with_retry back-off behaviour
    4. Settings loaded from the environment
    5. HTTP endpoints via FastAPI's TestClient

All tests are offline — no OpenAI API calls and no ffmpeg.
"""

import io
import os
import sys
import tempfile
import unittest
import wave
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import numpy as np
import openai
from fastapi.testclient import TestClient

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.api.upload import app, get_recognizer, get_settings
from src.audio.errors import EmptyInputError, SilentError
from src.config import DEFAULT_FFMPEG_TIMEOUT_SECONDS, Settings, load_settings
from src.openai_retry import MAX_RETRIES, call_with_retry
from src.pipeline import transcribe_audio_blob, transcribe_audio_file
from src.stt.recognizer import (
    EmptyTranscriptionError,
    ModelNotFoundError,
    RecognitionFailedError,
    Recognizer,
    RecognizerNotConfiguredError,
)
from src.stt.whisper_client import WhisperApiRecognizer


# ===================================================================
# Fixtures
# ===================================================================


def _speech_like_wav(seconds=0.5, sample_rate=44100) -> bytes:
    t = np.arange(int(sample_rate * seconds)) / sample_rate
    frames = np.stack([0.4 * np.sin(2 * np.pi * 300 * t)] * 2, axis=1).reshape(-1)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(2)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(np.rint(frames * 32767).astype("<i2").tobytes())
    return buf.getvalue()


def _silent_wav(samples=16000) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(16000)
        wf.writeframes(b"\x00\x00" * samples)
    return buf.getvalue()


class _FakeRecognizer(Recognizer):
    """Records what it was handed and returns canned text (or raises)."""

    def __init__(self, text="hello world", error=None):
        self.text = text
        self.error = error
        self.paths = []
        self.seen = []

    def transcribe(self, audio_path):
        path = Path(audio_path)
        self.paths.append(path)
        with wave.open(str(path), "rb") as wf:
            self.seen.append((wf.getnchannels(), wf.getsampwidth(), wf.getframerate()))
        if self.error is not None:
            raise self.error
        return self.text


def _status_error(cls, status):
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    response = httpx.Response(status, request=request)
    return cls(f"HTTP {status}", response=response, body=None)


class _TempDirCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.settings = Settings(temp_dir=str(self.tmp))

    def tearDown(self):
        self._tmp.cleanup()

    def leftovers(self):
        return sorted(p.name for p in self.tmp.iterdir())


# ===================================================================
# 1. Pipeline
# ===================================================================


class TestTranscribeAudioBlob(_TempDirCase):

    def test_recognizer_receives_normalized_file(self):
        recognizer = _FakeRecognizer("  the quick brown fox")
        text = transcribe_audio_blob(_speech_like_wav(), recognizer, settings=self.settings)

        self.assertEqual(text, "  the quick brown fox")
        self.assertEqual(recognizer.seen, [(1, 2, 16000)])
        self.assertEqual(recognizer.paths[0].parent, self.tmp)
        self.assertEqual(self.leftovers(), [])

    def test_temp_file_released_when_recognizer_fails(self):
        recognizer = _FakeRecognizer(error=RecognitionFailedError("upstream down"))
        with self.assertRaises(RecognitionFailedError):
            transcribe_audio_blob(_speech_like_wav(), recognizer, settings=self.settings)
        self.assertEqual(len(recognizer.paths), 1)
        self.assertEqual(self.leftovers(), [])

    def test_normalization_failure_never_reaches_recognizer(self):
        recognizer = _FakeRecognizer()
        with self.assertRaises(SilentError):
            transcribe_audio_blob(_silent_wav(), recognizer, settings=self.settings)
        self.assertEqual(recognizer.paths, [])

        with self.assertRaises(EmptyInputError):
            transcribe_audio_blob(b"", recognizer, settings=self.settings)
        self.assertEqual(recognizer.paths, [])

    def test_cleanup_failure_is_logged_not_raised(self):
        recognizer = _FakeRecognizer("ok")
        with patch("src.audio.normalizer.os.remove", side_effect=PermissionError("in use")):
            with self.assertLogs("voiceprep.audio.normalizer", level="WARNING") as logs:
                text = transcribe_audio_blob(_speech_like_wav(), recognizer, settings=self.settings)
        self.assertEqual(text, "ok")
        self.assertTrue(any("Failed to clean up" in line for line in logs.output))

    def test_transcribe_audio_file(self):
        source = self.tmp / "call.wav"
        source.write_bytes(_speech_like_wav())
        text = transcribe_audio_file(source, _FakeRecognizer("from disk"), settings=self.settings)
        self.assertEqual(text, "from disk")
        self.assertEqual(self.leftovers(), ["call.wav"])

    def test_missing_key_fails_before_normalizing(self):
        with patch("src.pipeline.normalized_audio_file") as normalized:
            with self.assertRaises(RecognizerNotConfiguredError):
                transcribe_audio_blob(_speech_like_wav(), settings=self.settings)
        normalized.assert_not_called()


# ===================================================================
# 2. Whisper recognizer
# ===================================================================


class TestWhisperApiRecognizer(_TempDirCase):

    def setUp(self):
        super().setUp()
        self.audio_path = self.tmp / "normalized.wav"
        self.audio_path.write_bytes(_silent_wav(1600))
        self.client = MagicMock()
        self.recognizer = WhisperApiRecognizer(client=self.client, model="whisper-1", language="en")

    def test_segments_are_joined_and_trimmed(self):
        self.client.audio.transcriptions.create.return_value = SimpleNamespace(
            segments=[{"text": " Hello"}, SimpleNamespace(text=" there."), {"text": ""}],
            text="ignored",
        )
        self.assertEqual(self.recognizer.transcribe(self.audio_path), "Hello there.")

        kwargs = self.client.audio.transcriptions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "whisper-1")
        self.assertEqual(kwargs["language"], "en")
        self.assertEqual(kwargs["response_format"], "verbose_json")

    def test_falls_back_to_full_text(self):
        self.client.audio.transcriptions.create.return_value = SimpleNamespace(
            segments=None, text="  plain text  ",
        )
        self.assertEqual(self.recognizer.transcribe(self.audio_path), "plain text")

    def test_empty_result_raises(self):
        self.client.audio.transcriptions.create.return_value = SimpleNamespace(
            segments=[{"text": "   "}], text="",
        )
        with self.assertRaises(EmptyTranscriptionError):
            self.recognizer.transcribe(self.audio_path)

    def test_language_omitted_when_unset(self):
        recognizer = WhisperApiRecognizer(client=self.client, language=None)
        self.client.audio.transcriptions.create.return_value = SimpleNamespace(
            segments=[], text="auto",
        )
        recognizer.transcribe(self.audio_path)
        self.assertNotIn("language", self.client.audio.transcriptions.create.call_args.kwargs)

    def test_missing_api_key(self):
        with self.assertRaises(RecognizerNotConfiguredError):
            WhisperApiRecognizer(api_key=None)
        with self.assertRaises(RecognizerNotConfiguredError):
            WhisperApiRecognizer.from_settings(Settings(openai_api_key=None))

    def test_unknown_model(self):
        self.client.audio.transcriptions.create.side_effect = _status_error(openai.NotFoundError, 404)
        with self.assertRaises(ModelNotFoundError) as ctx:
            self.recognizer.transcribe(self.audio_path)
        self.assertEqual(ctx.exception.details["model"], "whisper-1")
        self.assertEqual(self.client.audio.transcriptions.create.call_count, 1)

    def test_rejected_credentials(self):
        self.client.audio.transcriptions.create.side_effect = _status_error(
            openai.AuthenticationError, 401,
        )
        with self.assertRaises(RecognizerNotConfiguredError):
            self.recognizer.transcribe(self.audio_path)

    def test_missing_audio_file(self):
        with self.assertRaises(RecognitionFailedError):
            self.recognizer.transcribe(self.tmp / "gone.wav")
        self.client.audio.transcriptions.create.assert_not_called()

    @patch("src.openai_retry.time.sleep")
    def test_server_errors_are_retried(self, _sleep):
        self.client.audio.transcriptions.create.side_effect = [
            _status_error(openai.InternalServerError, 503),
            SimpleNamespace(segments=[{"text": "second try"}], text=""),
        ]
        self.assertEqual(self.recognizer.transcribe(self.audio_path), "second try")
        self.assertEqual(self.client.audio.transcriptions.create.call_count, 2)


# ===================================================================
# 3. Retry helper
# ===================================================================


class RateLimitError(Exception):
    pass


class TestCallWithRetry(unittest.TestCase):

    def test_success_without_retry(self):
        delays = []
        self.assertEqual(call_with_retry(lambda x: x * 2, 21, sleep=delays.append), 42)
        self.assertEqual(delays, [])

    def test_transient_errors_back_off(self):
        delays = []
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise RateLimitError("slow down")
            return "done"

        self.assertEqual(call_with_retry(flaky, sleep=delays.append), "done")
        self.assertEqual(delays, [1.0, 2.0])

    def test_gives_up_after_max_retries(self):
        delays = []

        def always_limited():
            raise RateLimitError("slow down")

        with self.assertRaises(RateLimitError):
            call_with_retry(always_limited, sleep=delays.append)
        self.assertEqual(len(delays), MAX_RETRIES)

    def test_non_transient_error_is_not_retried(self):
        delays = []

        def broken():
            raise ValueError("bad request")

        with self.assertRaises(ValueError):
            call_with_retry(broken, sleep=delays.append)
        self.assertEqual(delays, [])


# ===================================================================
# 4. Settings
# ===================================================================


class TestLoadSettings(unittest.TestCase):

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.ffmpeg_binary, "ffmpeg")
        self.assertEqual(settings.ffmpeg_timeout_seconds, DEFAULT_FFMPEG_TIMEOUT_SECONDS)
        self.assertEqual(settings.max_duration_seconds, 1800.0)
        self.assertIsNone(settings.openai_api_key)
        self.assertEqual(settings.whisper_language, "en")

    def test_overrides(self):
        env = {
            "VOICEPREP_FFMPEG_BINARY": "/opt/ffmpeg/bin/ffmpeg",
            "VOICEPREP_FFMPEG_TIMEOUT_SECONDS": "15",
            "VOICEPREP_TEMP_DIR": "/var/tmp/voiceprep",
            "VOICEPREP_MAX_DURATION_SECONDS": "0",
            "OPENAI_API_KEY": "sk-test",
            "WHISPER_MODEL": "whisper-large",
            "WHISPER_LANGUAGE": "",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.ffmpeg_binary, "/opt/ffmpeg/bin/ffmpeg")
        self.assertEqual(settings.ffmpeg_timeout_seconds, 15.0)
        self.assertEqual(settings.temp_dir, "/var/tmp/voiceprep")
        self.assertIsNone(settings.max_duration_seconds)
        self.assertEqual(settings.openai_api_key, "sk-test")
        self.assertEqual(settings.whisper_model, "whisper-large")
        self.assertIsNone(settings.whisper_language)

    def test_malformed_limit_falls_back(self):
        with patch.dict(os.environ, {"VOICEPREP_FFMPEG_TIMEOUT_SECONDS": "soon"}, clear=True):
            with self.assertLogs("voiceprep.config", level="WARNING"):
                settings = load_settings()
        self.assertEqual(settings.ffmpeg_timeout_seconds, DEFAULT_FFMPEG_TIMEOUT_SECONDS)


# ===================================================================
# 5. HTTP API
# ===================================================================


class TestApi(_TempDirCase):

    def setUp(self):
        super().setUp()
        self.recognizer = _FakeRecognizer("transcribed text")
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_recognizer] = lambda: self.recognizer
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        super().tearDown()

    def _upload(self, url, data, name="clip.wav"):
        return self.client.post(url, files={"audio_file": (name, data, "audio/wav")})

    def test_normalize_returns_wav(self):
        response = self._upload("/api/v1/normalize-audio", _speech_like_wav())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "audio/wav")
        with wave.open(io.BytesIO(response.content), "rb") as wf:
            self.assertEqual(wf.getnchannels(), 1)
            self.assertEqual(wf.getframerate(), 16000)
        self.assertEqual(self.leftovers(), [])

    def test_empty_upload_is_bad_request(self):
        response = self._upload("/api/v1/normalize-audio", b"")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "empty_input")

    def test_silent_upload_is_unprocessable(self):
        response = self._upload("/api/v1/normalize-audio", _silent_wav())
        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertEqual(body["error"], "silent")
        self.assertEqual(body["details"]["sample_count"], 16000)

    def test_transcribe_returns_text(self):
        response = self._upload("/api/v1/transcribe", _speech_like_wav())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"text": "transcribed text"})
        self.assertEqual(self.recognizer.seen, [(1, 2, 16000)])
        self.assertEqual(self.leftovers(), [])

    def test_recognizer_failure_is_bad_gateway(self):
        self.recognizer.error = RecognitionFailedError("upstream down", path="x.wav")
        response = self._upload("/api/v1/transcribe", _speech_like_wav())
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["error"], "recognition_failed")
        self.assertEqual(self.leftovers(), [])

    def test_unconfigured_recognizer_is_unavailable(self):
        del app.dependency_overrides[get_recognizer]
        response = self._upload("/api/v1/transcribe", _speech_like_wav())
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error"], "recognizer_not_configured")


if __name__ == "__main__":
    unittest.main()
