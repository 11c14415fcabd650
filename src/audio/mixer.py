"""
src/audio/mixer.py
===================
Channel Mixer — VoicePrep

Mono passes through untouched; interleaved stereo is averaged per frame.
More than two channels is not supported.
"""

import logging

import numpy as np

from src.audio.errors import UnsupportedChannelLayoutError

logger = logging.getLogger("voiceprep.audio.mixer")


def downmix_to_mono(samples: np.ndarray, channel_count: int) -> np.ndarray:
    """
    Downmix interleaved samples to mono.

    Args:
        samples:       1-D float32 array, interleaved when stereo.
        channel_count: 1 or 2.

    Returns:
        Mono samples. For stereo the length is exactly ``len(samples) // 2``;
        a trailing unpaired sample is dropped.

    Raises:
        UnsupportedChannelLayoutError: If ``channel_count`` is not 1 or 2.
    """
    if channel_count == 1:
        return samples

    if channel_count != 2:
        raise UnsupportedChannelLayoutError(
            f"Unsupported channel count: {channel_count} (only mono and stereo are supported).",
            channel_count=channel_count,
        )

    pair_count = len(samples) // 2
    if len(samples) % 2:
        logger.debug("Dropping trailing unpaired sample from stereo input.")

    pairs = samples[: pair_count * 2].reshape(pair_count, 2)
    mono = (pairs[:, 0] + pairs[:, 1]) / np.float32(2.0)
    logger.info("Converted stereo to mono: %d → %d samples.", len(samples), len(mono))
    return mono.astype(np.float32, copy=False)
