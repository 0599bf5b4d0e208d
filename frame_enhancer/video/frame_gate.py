"""Decimation and blur-threshold gating of the enhancement path.

Only every ``decimation_factor``-th frame is looked at, and of those only
blurry frames (score *below* the threshold) are enhanced: the point of the
pipeline is to rescue blurry frames, not to polish sharp ones.
"""

from enum import Enum

DEFAULT_DECIMATION_FACTOR = 5
DEFAULT_BLUR_THRESHOLD = 1000.0


class SkipReason(str, Enum):
    NOT_SAMPLED = "not_sampled"
    SHARP_ENOUGH = "sharp_enough"
    INPUT_SHAPE = "input_shape_mismatch"
    OUTPUT_SHAPE = "unexpected_output_shape"


def is_sampled(frame_index: int, decimation_factor: int = DEFAULT_DECIMATION_FACTOR) -> bool:
    return frame_index % decimation_factor == 0


def skip_reason(
    frame_index: int,
    score: float,
    threshold: float = DEFAULT_BLUR_THRESHOLD,
    decimation_factor: int = DEFAULT_DECIMATION_FACTOR,
) -> SkipReason | None:
    """Return why a frame should bypass enhancement, or None if it should not."""
    if not is_sampled(frame_index, decimation_factor):
        return SkipReason.NOT_SAMPLED
    if not score < threshold:
        return SkipReason.SHARP_ENOUGH
    return None


def should_process(
    frame_index: int,
    score: float,
    threshold: float = DEFAULT_BLUR_THRESHOLD,
    decimation_factor: int = DEFAULT_DECIMATION_FACTOR,
) -> bool:
    """True when the frame is on-sample and blurrier than ``threshold``."""
    return skip_reason(frame_index, score, threshold, decimation_factor) is None
