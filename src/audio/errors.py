"""
src/audio/errors.py
====================
Typed Pipeline Errors — VoicePrep

Responsibility:
    - Define the closed set of failures the normalization pipeline can raise
    - Carry a machine-readable kind, a human-readable message and the
      diagnostic context (paths, stderr, counts, thresholds) of each failure

Every error raised by src.audio is an AudioNormalizationError subclass.
Signal-quality gate failures share the AudioValidationError base.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable failure categories."""

    EMPTY_INPUT = "empty_input"
    UNRECOGNIZED_CONTAINER = "unrecognized_container"
    EXTERNAL_TOOL_MISSING = "external_tool_missing"
    EXTERNAL_TOOL_FAILED = "external_tool_failed"
    EXTERNAL_TOOL_TIMEOUT = "external_tool_timeout"
    UNSUPPORTED_SAMPLE_FORMAT = "unsupported_sample_format"
    UNSUPPORTED_CHANNEL_LAYOUT = "unsupported_channel_layout"
    TOO_SHORT = "too_short"
    SILENT = "silent"
    MOSTLY_SILENT = "mostly_silent"
    TOO_LONG = "too_long"
    RESAMPLER_INIT_FAILED = "resampler_init_failed"
    RESAMPLER_PROCESS_FAILED = "resampler_process_failed"
    IO_ERROR = "io_error"


# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class AudioNormalizationError(Exception):
    """Base class for every failure of the normalization pipeline."""

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used by the HTTP layer."""
        return {
            "error": self.kind.value,
            "message": self.message,
            "details": {k: _jsonable(v) for k, v in self.details.items()},
        }


class AudioValidationError(AudioNormalizationError):
    """Raised when decoded audio fails a signal-quality gate."""


# ---------------------------------------------------------------------------
# Input / decoding
# ---------------------------------------------------------------------------


class EmptyInputError(AudioNormalizationError):
    kind = ErrorKind.EMPTY_INPUT


class UnrecognizedContainerError(AudioNormalizationError):
    """No decoder in the fallback chain accepted the buffer."""

    kind = ErrorKind.UNRECOGNIZED_CONTAINER


class ExternalToolMissingError(AudioNormalizationError):
    """The external media converter is not installed or not executable."""

    kind = ErrorKind.EXTERNAL_TOOL_MISSING


class ExternalToolFailedError(AudioNormalizationError):
    """The external media converter exited with a non-zero status."""

    kind = ErrorKind.EXTERNAL_TOOL_FAILED

    @property
    def stderr(self) -> str:
        return self.details.get("stderr", "")


class ExternalToolTimeoutError(ExternalToolFailedError):
    kind = ErrorKind.EXTERNAL_TOOL_TIMEOUT


class UnsupportedSampleFormatError(AudioNormalizationError):
    kind = ErrorKind.UNSUPPORTED_SAMPLE_FORMAT


class UnsupportedChannelLayoutError(AudioNormalizationError):
    kind = ErrorKind.UNSUPPORTED_CHANNEL_LAYOUT


# ---------------------------------------------------------------------------
# Signal-quality gates
# ---------------------------------------------------------------------------


class TooShortError(AudioValidationError):
    kind = ErrorKind.TOO_SHORT


class SilentError(AudioValidationError):
    kind = ErrorKind.SILENT


class MostlySilentError(AudioValidationError):
    kind = ErrorKind.MOSTLY_SILENT


class TooLongError(AudioValidationError):
    kind = ErrorKind.TOO_LONG


# ---------------------------------------------------------------------------
# Resampling / IO
# ---------------------------------------------------------------------------


class ResamplerInitError(AudioNormalizationError):
    kind = ErrorKind.RESAMPLER_INIT_FAILED


class ResamplerProcessError(AudioNormalizationError):
    kind = ErrorKind.RESAMPLER_PROCESS_FAILED


class AudioIOError(AudioNormalizationError):
    """Reading, writing or finalizing an audio file failed."""

    kind = ErrorKind.IO_ERROR


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)
