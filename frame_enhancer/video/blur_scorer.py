"""Frame sharpness scoring via Laplacian variance."""

import logging

import cv2
import numpy as np

from frame_enhancer.frame import Frame, PixelFormat

logger = logging.getLogger(__name__)

_GRAY_CODES = {
    PixelFormat.RGBA: cv2.COLOR_RGBA2GRAY,
    PixelFormat.RGB: cv2.COLOR_RGB2GRAY,
    PixelFormat.BGR: cv2.COLOR_BGR2GRAY,
}


def to_luminance(frame: Frame) -> np.ndarray:
    """Return a single-channel luminance plane on the 0–255 scale.

    Colour frames give a uint8 plane; ``LUMA_F32`` frames give float64, the
    only float depth ``cv2.Laplacian`` accepts for a ``CV_64F`` destination.
    """
    if frame.fmt is PixelFormat.LUMA_F32:
        return frame.data.astype(np.float64) * 255.0
    return cv2.cvtColor(frame.data, _GRAY_CODES[frame.fmt])


def blur_score(frame: Frame | None) -> float:
    """Return the Laplacian variance of a frame.

    Higher values indicate a sharper frame.  Blurry or flat frames score near
    zero.  Scoring is advisory, so an empty input or an OpenCV failure scores
    0.0 instead of raising.
    """
    if frame is None or frame.data.size == 0:
        logger.debug("blur_score called on an empty frame")
        return 0.0

    try:
        gray = to_luminance(frame)
        score = float(cv2.Laplacian(gray, cv2.CV_64F).var())
    except cv2.error as exc:
        logger.warning("Could not score %r, treating as 0.0: %s", frame, exc)
        return 0.0
    logger.debug("Blur score %.2f for %r", score, frame)
    return score
