"""Luma-only super-resolution with chroma reconstruction.

Perceived sharpness is carried almost entirely by luma, so only the Y plane
goes through the network.  U and V are upscaled with ordinary bilinear
interpolation and merged back with the enhanced Y plane:

1. rotate landscape frames 90° clockwise (the network's training orientation)
2. convert to YUV and split into Y, U, V planes
3. resize Y to the model input size and scale to [0, 1]
4. wrap Y as an NCHW ``[1, 1, H, W]`` tensor
5. run the network; output must be exactly ``upscale_factor`` × the input
6. reject NaN output
7. min-max normalise the output to [0, 1] and quantise to uint8
8. resize U and V to the output size
9. merge Y'UV and convert back to the frame's pixel format

The result stays in the rotated orientation; undoing step 1 for display is the
caller's job (see ``restore_orientation``).  Enhancement either fully succeeds
or raises a ``PipelineError``; there is no partial result.
"""

import logging
from typing import NamedTuple

import cv2
import numpy as np

from frame_enhancer.frame import Frame, PixelFormat
from frame_enhancer.model import runtime
from frame_enhancer.model.runtime import ModelHandle

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Raised when a frame cannot be enhanced.  Always scoped to one frame."""


class UnexpectedOutputShape(PipelineError):
    def __init__(self, expected: tuple[int, ...], actual: tuple[int, ...]) -> None:
        super().__init__(f"Expected model output shape {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class NaNOutput(PipelineError):
    def __init__(self, count: int) -> None:
        super().__init__(f"Model output contains {count} non-finite values")
        self.count = count


class EmptyIntermediate(PipelineError):
    def __init__(self, stage: str) -> None:
        super().__init__(f"Empty intermediate buffer at stage '{stage}'")
        self.stage = stage


class Planes(NamedTuple):
    """Y, U, V planes of one frame.  ``u``/``v`` are None for luma-only frames."""

    y: np.ndarray
    u: np.ndarray | None
    v: np.ndarray | None


def _to_yuv(frame: Frame) -> np.ndarray:
    if frame.fmt is PixelFormat.BGR:
        return cv2.cvtColor(frame.data, cv2.COLOR_BGR2YUV)
    rgb = frame.data
    if frame.fmt is PixelFormat.RGBA:
        rgb = cv2.cvtColor(rgb, cv2.COLOR_RGBA2RGB)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2YUV)


def _from_yuv(yuv: np.ndarray, fmt: PixelFormat) -> np.ndarray:
    if fmt is PixelFormat.BGR:
        return cv2.cvtColor(yuv, cv2.COLOR_YUV2BGR)
    rgb = cv2.cvtColor(yuv, cv2.COLOR_YUV2RGB)
    if fmt is PixelFormat.RGBA:
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2RGBA)
    return rgb


def _require(stage: str, plane: np.ndarray | None) -> np.ndarray:
    if plane is None or plane.size == 0:
        raise EmptyIntermediate(stage)
    return plane


def normalize_orientation(frame: Frame) -> tuple[Frame, bool]:
    """Rotate landscape frames 90° clockwise so the long axis is vertical.

    Returns the (possibly rotated) frame and whether a rotation happened.
    Portrait and square frames pass through untouched.
    """
    if not frame.is_landscape:
        return frame, False
    return Frame(cv2.rotate(frame.data, cv2.ROTATE_90_CLOCKWISE), frame.fmt), True


def restore_orientation(frame: Frame, rotated: bool) -> Frame:
    """Undo ``normalize_orientation`` for display."""
    if not rotated:
        return frame
    return Frame(cv2.rotate(frame.data, cv2.ROTATE_90_COUNTERCLOCKWISE), frame.fmt)


def decompose(frame: Frame) -> Planes:
    """Split a frame into Y, U, V planes.

    Colour frames yield three uint8 planes.  ``LUMA_F32`` frames yield their
    float luma plane and no chroma.
    """
    if not frame.fmt.is_color:
        return Planes(y=frame.data, u=None, v=None)

    yuv = _require("color_conversion", _to_yuv(frame))
    y, u, v = cv2.split(yuv)
    return Planes(y=y, u=u, v=v)


def remerge(y: np.ndarray, u: np.ndarray, v: np.ndarray, fmt: PixelFormat) -> Frame:
    """Merge uint8 Y, U, V planes and convert back to an interleaved ``fmt`` frame."""
    yuv = _require("merge", cv2.merge([y, u, v]))
    return Frame(_require("color_restore", _from_yuv(yuv, fmt)), fmt)


def luma_tensor(y: np.ndarray, handle: ModelHandle) -> np.ndarray:
    """Resize a luma plane to the model input and wrap it as NCHW float32."""
    _, _, in_h, in_w = handle.input_shape
    resized = _require("luma_resize", cv2.resize(y, (in_w, in_h)))
    if resized.dtype == np.uint8:
        normalized = resized.astype(np.float32) / 255.0
    else:
        normalized = resized.astype(np.float32)
    return np.ascontiguousarray(normalized[np.newaxis, np.newaxis, :, :])


def quantize_output(output: np.ndarray, handle: ModelHandle) -> np.ndarray:
    """Validate a raw model output and turn it into a [0, 1] float32 plane.

    Raises:
        UnexpectedOutputShape: The output is not exactly ``handle.output_shape``.
        NaNOutput: The output contains NaN or infinite values.
    """
    actual = tuple(output.shape)
    if actual != handle.output_shape:
        raise UnexpectedOutputShape(handle.output_shape, actual)

    plane = _require("model_output", output[0, 0])
    bad = int(np.count_nonzero(~np.isfinite(plane)))
    if bad:
        raise NaNOutput(bad)

    logger.debug("Model output range: min=%.4f max=%.4f", plane.min(), plane.max())
    normalized = _require(
        "output_normalize",
        cv2.normalize(plane, None, 0.0, 1.0, cv2.NORM_MINMAX, cv2.CV_32F),
    )
    # float32 min-max can land a hair outside [0, 1]
    np.clip(normalized, 0.0, 1.0, out=normalized)
    return normalized


def enhance(frame: Frame, handle: ModelHandle) -> Frame:
    """Super-resolve one frame.

    Returns a new frame of ``upscale_factor`` × the model input size, in the
    same pixel format as ``frame`` and in the rotated orientation.

    Raises:
        UnexpectedOutputShape, NaNOutput, EmptyIntermediate: enhancement of
            this frame failed; no partial frame is produced.
        ShapeMismatch: the runtime rejected the input tensor.
    """
    upright, rotated = normalize_orientation(frame)
    logger.debug("Enhancing %r (rotated=%s)", upright, rotated)

    planes = decompose(upright)
    tensor = luma_tensor(_require("luma", planes.y), handle)
    luma = quantize_output(runtime.infer(handle, tensor), handle)

    if planes.u is None or planes.v is None:
        return Frame(luma, PixelFormat.LUMA_F32)

    out_h, out_w = luma.shape
    luma_u8 = np.clip(np.rint(luma * 255.0), 0, 255).astype(np.uint8)
    u = _require("chroma_resize", cv2.resize(planes.u, (out_w, out_h), interpolation=cv2.INTER_LINEAR))
    v = _require("chroma_resize", cv2.resize(planes.v, (out_w, out_h), interpolation=cv2.INTER_LINEAR))

    result = remerge(luma_u8, u, v, upright.fmt)
    logger.debug("Enhanced frame ready: %r", result)
    return result
