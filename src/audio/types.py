"""
src/audio/types.py
===================
Audio Data Types — VoicePrep

DecodedAudio is the value passed between pipeline stages. Stages that change
the sample rate or channel count return a new instance; none mutate one.
"""

from dataclasses import dataclass

import numpy as np

TARGET_SAMPLE_RATE = 16000  # Hz, recognizer contract
TARGET_CHANNELS = 1  # mono


@dataclass(frozen=True)
class DecodedAudio:
    """Floating-point PCM plus the metadata needed to interpret it."""

    samples: np.ndarray  # float32, interleaved when channel_count == 2
    sample_rate: int
    channel_count: int

    @property
    def frame_count(self) -> int:
        if self.channel_count <= 0:
            return 0
        return len(self.samples) // self.channel_count

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate

    @property
    def is_normalized(self) -> bool:
        """True when the audio matches the recognizer contract (mono, 16 kHz)."""
        return (
            self.channel_count == TARGET_CHANNELS
            and self.sample_rate == TARGET_SAMPLE_RATE
        )
