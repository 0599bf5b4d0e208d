"""Super-resolution network runtime backed by OpenCV DNN.

The network is a fixed-topology, single-channel 2x upscaler (FSRCNN-small)
serialised as ONNX.  It is loaded once at startup and shared read-only by
every inference call afterwards.

Contract
--------
- input:  float32 NCHW ``[1, 1, 240, 320]``, values in [0, 1]
- output: float32 NCHW ``[1, 1, 480, 640]``, unconstrained range

Frames are processed by a single worker, so the shared ``cv2.dnn.Net`` is
never driven from two threads at once.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import cv2
import numpy as np

logger = logging.getLogger(__name__)

INPUT_SHAPE: tuple[int, int, int, int] = (1, 1, 240, 320)
UPSCALE_FACTOR = 2

# OpenCV's ONNX importer reports unknown operators with one of these phrases.
# Plain parse failures come back as "(-210:Unsupported format ...)" and must
# not match.
_UNSUPPORTED_OP_PATTERN = re.compile(
    r"can't create layer|unsupported (?:layer|operator|op\b)|is not supported"
    r"|feature is not implemented",
    re.IGNORECASE,
)


class LoadError(Exception):
    """Raised when the model artifact cannot be turned into a runnable net."""


class MalformedModel(LoadError):
    """The serialised graph is missing, empty, or cannot be parsed."""


class UnsupportedOperator(LoadError):
    """The graph uses an operator the OpenCV DNN runtime cannot create."""


class InferenceError(Exception):
    """Raised when a single inference call cannot be performed."""


class ShapeMismatch(InferenceError):
    """The input tensor does not match the model's fixed input shape."""

    def __init__(self, expected: tuple[int, ...], actual: tuple[int, ...]) -> None:
        super().__init__(f"Expected input tensor shape {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True)
class ModelHandle:
    """A loaded network plus its fixed I/O contract.  Immutable after load."""

    net: Any  # cv2.dnn.Net
    input_shape: tuple[int, int, int, int] = INPUT_SHAPE
    upscale_factor: int = UPSCALE_FACTOR

    @property
    def output_shape(self) -> tuple[int, int, int, int]:
        n, c, h, w = self.input_shape
        return (n, c, h * self.upscale_factor, w * self.upscale_factor)


def input_shape_for(width: int, height: int) -> tuple[int, int, int, int]:
    """Return the NCHW tensor shape for a single-channel ``width x height`` plane."""
    return (1, 1, height, width)


def load(
    model_bytes: bytes,
    input_shape: tuple[int, int, int, int] = INPUT_SHAPE,
    upscale_factor: int = UPSCALE_FACTOR,
) -> ModelHandle:
    """Parse an ONNX graph held in memory.

    Raises:
        MalformedModel: Empty bytes, or OpenCV cannot parse the graph.
        UnsupportedOperator: The graph needs a layer OpenCV cannot create.
    """
    if not model_bytes:
        raise MalformedModel("Model artifact is empty")

    buffer = np.frombuffer(model_bytes, dtype=np.uint8)
    try:
        net = cv2.dnn.readNetFromONNX(buffer)
    except cv2.error as exc:
        message = str(exc)
        if _UNSUPPORTED_OP_PATTERN.search(message):
            raise UnsupportedOperator(f"Model uses an unsupported operator: {message}") from exc
        raise MalformedModel(f"Could not parse model graph: {message}") from exc

    if net is None or net.empty():
        raise MalformedModel("OpenCV returned an empty network")

    logger.info(
        "Super-resolution model loaded (%d bytes, input=%s, x%d)",
        len(model_bytes),
        input_shape,
        upscale_factor,
    )
    return ModelHandle(net=net, input_shape=input_shape, upscale_factor=upscale_factor)


def load_file(
    path: str | Path,
    input_shape: tuple[int, int, int, int] = INPUT_SHAPE,
    upscale_factor: int = UPSCALE_FACTOR,
) -> ModelHandle:
    """Read the model artifact from disk and load it.

    Raises:
        MalformedModel: The file does not exist or cannot be read.
    """
    model_path = Path(path)
    try:
        model_bytes = model_path.read_bytes()
    except OSError as exc:
        raise MalformedModel(f"Cannot read model file {model_path}: {exc}") from exc
    return load(model_bytes, input_shape=input_shape, upscale_factor=upscale_factor)


def infer(handle: ModelHandle, tensor: np.ndarray) -> np.ndarray:
    """Run one forward pass.

    The input tensor is left untouched; the returned tensor is a new owned
    float32 array.

    Raises:
        ShapeMismatch: ``tensor`` does not have the model's input shape.
        InferenceError: The runtime failed while executing the graph.
    """
    actual = tuple(getattr(tensor, "shape", ()))
    if actual != handle.input_shape:
        raise ShapeMismatch(handle.input_shape, actual)

    handle.net.setInput(np.array(tensor, dtype=np.float32, copy=True))
    try:
        output = handle.net.forward()
    except cv2.error as exc:
        raise InferenceError(f"Forward pass failed: {exc}") from exc

    return np.array(output, dtype=np.float32, copy=True)
