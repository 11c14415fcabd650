"""
src/audio/quality.py
=====================
Signal Quality Gate — VoicePrep

Responsibility:
    - Reject audio that is too short to transcribe
    - Reject audio that is silent or almost entirely silent
    - Reject audio longer than the configured duration cap
    - Run before resampling, so rejected input never pays for the filter

All statistics are computed up front; the first failing check in the order
TooShort → Silent → MostlySilent → TooLong is raised.

The length gate compares the raw sample count at the native rate against a
fixed 1600 samples (0.1 s at 16 kHz), whatever the native rate is.
"""

import logging
from dataclasses import dataclass

import numpy as np

from src.audio.errors import (
    MostlySilentError,
    SilentError,
    TooLongError,
    TooShortError,
)

logger = logging.getLogger("voiceprep.audio.quality")


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

MIN_SAMPLE_COUNT: int = 1600  # 0.1 s at 16 kHz
NON_ZERO_AMPLITUDE: float = 0.001  # |s| above this counts as signal
MIN_NON_ZERO_RATIO: int = 100  # mostly silent if non-zero < len // 100


@dataclass(frozen=True)
class SignalStats:
    """Length and energy summary of a mono buffer."""

    sample_count: int
    non_zero_count: int
    sample_rate: int

    @property
    def non_zero_fraction(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return self.non_zero_count / self.sample_count

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.sample_count / self.sample_rate


def analyze_signal(samples: np.ndarray, sample_rate: int) -> SignalStats:
    """Count samples and samples above the silence amplitude."""
    non_zero = int(np.count_nonzero(np.abs(samples) > NON_ZERO_AMPLITUDE))
    stats = SignalStats(
        sample_count=len(samples),
        non_zero_count=non_zero,
        sample_rate=sample_rate,
    )
    logger.info(
        "Non-zero samples: %d out of %d (%.2f%%)",
        stats.non_zero_count, stats.sample_count, stats.non_zero_fraction * 100,
    )
    return stats


def validate(
    samples: np.ndarray,
    sample_rate: int,
    *,
    max_duration_seconds: float | None = None,
) -> SignalStats:
    """
    Apply every signal gate to mono ``samples``.

    Args:
        samples:              Mono float samples at ``sample_rate``.
        sample_rate:          Native sample rate (Hz).
        max_duration_seconds: Optional duration cap; None disables it.

    Returns:
        SignalStats for the accepted buffer.

    Raises:
        TooShortError:     Fewer than MIN_SAMPLE_COUNT samples.
        SilentError:       No sample above NON_ZERO_AMPLITUDE.
        MostlySilentError: Under 1% of samples above NON_ZERO_AMPLITUDE.
        TooLongError:      Longer than ``max_duration_seconds``.
    """
    stats = analyze_signal(samples, sample_rate)

    too_short = stats.sample_count < MIN_SAMPLE_COUNT
    silent = stats.non_zero_count == 0
    mostly_silent = stats.non_zero_count < stats.sample_count // MIN_NON_ZERO_RATIO
    too_long = (
        max_duration_seconds is not None
        and stats.duration_seconds > max_duration_seconds
    )

    details = {
        "sample_count": stats.sample_count,
        "non_zero_count": stats.non_zero_count,
        "sample_rate": sample_rate,
    }

    if too_short:
        raise TooShortError(
            f"Audio is too short ({stats.sample_count} samples, minimum "
            f"{MIN_SAMPLE_COUNT}; less than 0.1 seconds).",
            min_sample_count=MIN_SAMPLE_COUNT,
            **details,
        )
    if silent:
        raise SilentError(
            f"Audio appears to be silent (all {stats.sample_count} samples are "
            f"at or below {NON_ZERO_AMPLITUDE}).",
            amplitude_threshold=NON_ZERO_AMPLITUDE,
            **details,
        )
    if mostly_silent:
        raise MostlySilentError(
            f"Audio appears to be mostly silent ({stats.non_zero_count} of "
            f"{stats.sample_count} samples carry signal, minimum "
            f"{stats.sample_count // MIN_NON_ZERO_RATIO}).",
            amplitude_threshold=NON_ZERO_AMPLITUDE,
            min_non_zero_count=stats.sample_count // MIN_NON_ZERO_RATIO,
            **details,
        )
    if too_long:
        raise TooLongError(
            f"Audio duration ({stats.duration_seconds:.1f}s) exceeds the "
            f"maximum allowed ({max_duration_seconds:.0f}s).",
            duration_seconds=round(stats.duration_seconds, 3),
            max_duration_seconds=max_duration_seconds,
            **details,
        )

    return stats
