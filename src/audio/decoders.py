"""
src/audio/decoders.py
======================
Decoder Capability + Fallback Strategy — VoicePrep

Two decoders turn raw bytes into DecodedAudio:

    NativeDecoder    in-process WAV sniffing (fast, no side effects)
    ExternalDecoder  ffmpeg subprocess (any format ffmpeg understands)

decode_with_fallback() tries them in order. A decoder returns None when it
does not recognize the buffer, which moves on to the next one; a raised
error is terminal for the run.
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from src.audio.errors import AudioIOError, UnrecognizedContainerError
from src.audio.ffmpeg import decode_via_external_tool
from src.audio.sniffer import sniff
from src.audio.types import DecodedAudio
from src.config import Settings

logger = logging.getLogger("voiceprep.audio.decoders")


class Decoder(ABC):
    """Turns a raw audio buffer into DecodedAudio."""

    name: str = "decoder"

    @abstractmethod
    def decode(self, audio_bytes: bytes) -> DecodedAudio | None:
        """Return DecodedAudio, or None when the buffer is not recognized."""


class NativeDecoder(Decoder):
    name = "native"

    def decode(self, audio_bytes: bytes) -> DecodedAudio | None:
        return sniff(audio_bytes)


class ExternalDecoder(Decoder):
    """
    Decode through ffmpeg.

    The raw buffer is written to a run-scoped temp file for the converter
    and removed afterwards, whatever the outcome.
    """

    name = "external"

    def __init__(
        self,
        binary: str = "ffmpeg",
        timeout: float | None = None,
        temp_dir: str | os.PathLike | None = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self.temp_dir = Path(temp_dir) if temp_dir is not None else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExternalDecoder":
        return cls(
            binary=settings.ffmpeg_binary,
            timeout=settings.ffmpeg_timeout_seconds,
            temp_dir=settings.temp_dir,
        )

    def decode(self, audio_bytes: bytes) -> DecodedAudio:
        temp_dir = self.temp_dir or Path(Settings().temp_dir)
        raw_path = temp_dir / f"voiceprep_raw_{uuid.uuid4().hex}.bin"

        try:
            raw_path.write_bytes(audio_bytes)
        except OSError as exc:
            _unlink_quietly(raw_path)
            raise AudioIOError(
                f"Failed to write raw audio data to {raw_path}: {exc}",
                path=str(raw_path),
                operation="write",
            ) from exc

        logger.debug("Raw audio (%d bytes) staged at %s", len(audio_bytes), raw_path)
        try:
            return decode_via_external_tool(
                raw_path,
                binary=self.binary,
                timeout=self.timeout,
                temp_dir=temp_dir,
            )
        finally:
            _unlink_quietly(raw_path)


def default_decoders(settings: Settings) -> list[Decoder]:
    """Native sniffing first, ffmpeg as the fallback."""
    return [NativeDecoder(), ExternalDecoder.from_settings(settings)]


def decode_with_fallback(
    audio_bytes: bytes,
    decoders: Sequence[Decoder],
) -> DecodedAudio:
    """
    Run ``decoders`` in order until one recognizes the buffer.

    Raises:
        UnrecognizedContainerError: If every decoder declined.
        AudioNormalizationError:    Whatever a decoder raised.
    """
    tried: list[str] = []
    for decoder in decoders:
        decoded = decoder.decode(audio_bytes)
        if decoded is not None:
            logger.info("Audio decoded by %s decoder.", decoder.name)
            return decoded
        logger.info("%s decoder did not recognize the buffer.", decoder.name)
        tried.append(decoder.name)

    raise UnrecognizedContainerError(
        f"No decoder recognized the audio (tried: {', '.join(tried) or 'none'}).",
        decoders=tried,
    )


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to clean up temp file %s: %s", path, exc)
