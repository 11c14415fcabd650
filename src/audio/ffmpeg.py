"""
src/audio/ffmpeg.py
====================
External Decoder Bridge — VoicePrep

Responsibility:
    - Convert audio the sniffer does not recognize (WebM/Opus, OGG, MP3,
      M4A, exotic WAV variants, ...) by shelling out to ffmpeg
    - Ask for 48 kHz mono signed 16-bit PCM WAV output
    - Re-parse the converted file with the same WAV decoder as the sniffer

Failure modes are kept distinct:
    - ffmpeg not installed / not executable  → ExternalToolMissingError
    - ffmpeg exits non-zero                  → ExternalToolFailedError
    - ffmpeg exceeds the configured timeout  → ExternalToolTimeoutError

This module does NOT:
    - Downmix, resample or validate (the converter output is re-decoded
      and handed back unchanged)
    - Leave files behind: the converter output is removed on every path
"""

import logging
import os
import subprocess
import uuid
from pathlib import Path

from pydub.utils import which

from src.audio.errors import (
    AudioIOError,
    ExternalToolFailedError,
    ExternalToolMissingError,
    ExternalToolTimeoutError,
)
from src.audio.sniffer import read_wav
from src.audio.types import DecodedAudio

logger = logging.getLogger("voiceprep.audio.ffmpeg")

# ---------------------------------------------------------------------------
# Conversion parameters
# ---------------------------------------------------------------------------

CONVERTED_SAMPLE_RATE = 48000
CONVERTED_CHANNELS = 1
CONVERTED_CODEC = "pcm_s16le"
CONVERTED_FORMAT = "wav"

_BINARY_ENV_VAR = "VOICEPREP_FFMPEG_BINARY"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_binary(binary: str = "ffmpeg") -> str:
    """
    Locate the converter executable.

    Args:
        binary: Executable name (looked up on PATH) or explicit path.

    Returns:
        Absolute path of the executable.

    Raises:
        ExternalToolMissingError: If it cannot be found.
    """
    resolved = which(binary)
    if resolved is None:
        raise ExternalToolMissingError(
            f"'{binary}' was not found. Install ffmpeg or point "
            f"{_BINARY_ENV_VAR} at the executable.",
            binary=binary,
        )
    return resolved


def build_command(executable: str, input_path: Path, output_path: Path) -> list[str]:
    """Return the converter argument vector."""
    return [
        executable,
        "-i", str(input_path),
        "-ar", str(CONVERTED_SAMPLE_RATE),
        "-ac", str(CONVERTED_CHANNELS),
        "-acodec", CONVERTED_CODEC,
        "-f", CONVERTED_FORMAT,
        "-y",
        "-loglevel", "error",
        str(output_path),
    ]


def decode_via_external_tool(
    input_path: str | os.PathLike,
    *,
    binary: str = "ffmpeg",
    timeout: float | None = None,
    temp_dir: str | os.PathLike | None = None,
) -> DecodedAudio:
    """
    Convert ``input_path`` with ffmpeg and decode the result.

    Args:
        input_path: File holding the raw, unrecognized audio.
        binary:     Converter executable name or path.
        timeout:    Seconds before the converter is killed (None = no limit).
        temp_dir:   Directory for the converter output (defaults to the
                    input file's directory).

    Returns:
        DecodedAudio at 48 kHz mono.

    Raises:
        ExternalToolMissingError:     Converter not available.
        ExternalToolFailedError:      Converter exited non-zero.
        ExternalToolTimeoutError:     Converter exceeded ``timeout``.
        UnsupportedSampleFormatError: Converter output is not PCM WAV.
        AudioIOError:                 Converter output could not be read.
    """
    input_path = Path(input_path)
    out_dir = Path(temp_dir) if temp_dir is not None else input_path.parent
    output_path = out_dir / f"voiceprep_ffmpeg_{uuid.uuid4().hex}.wav"

    executable = resolve_binary(binary)
    command = build_command(executable, input_path, output_path)

    logger.info("Decoding %s with %s", input_path.name, executable)
    logger.debug("Converter command: %s", " ".join(command))

    try:
        try:
            completed = subprocess.run(
                command,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ExternalToolMissingError(
                f"Failed to run '{executable}': {exc}. Make sure ffmpeg is "
                f"installed and executable.",
                binary=executable,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            stderr = _decode_stderr(exc.stderr)
            raise ExternalToolTimeoutError(
                f"ffmpeg did not finish within {timeout:.1f}s.",
                binary=executable,
                timeout_seconds=timeout,
                stderr=stderr,
            ) from exc

        stderr = _decode_stderr(completed.stderr)
        if completed.returncode != 0:
            raise ExternalToolFailedError(
                f"ffmpeg failed (exit {completed.returncode}): {stderr or 'no output'}",
                binary=executable,
                returncode=completed.returncode,
                stderr=stderr,
            )

        try:
            converted = output_path.read_bytes()
        except OSError as exc:
            raise AudioIOError(
                f"Failed to read converted WAV {output_path}: {exc}",
                path=str(output_path),
                operation="read",
            ) from exc

        decoded = read_wav(converted, source="ffmpeg output")
        logger.info(
            "ffmpeg conversion complete: %.2fs at %d Hz.",
            decoded.duration_seconds, decoded.sample_rate,
        )
        return decoded
    finally:
        _remove_quietly(output_path)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _decode_stderr(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw.strip()
    return raw.decode("utf-8", errors="replace").strip()


def _remove_quietly(path: Path) -> None:
    """Best-effort removal of a run-scoped temp file."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to clean up temp file %s: %s", path, exc)
