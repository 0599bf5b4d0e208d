"""Frame data model shared by every pipeline stage.

A ``Frame`` owns a single numpy pixel buffer together with its dimensions and
a pixel-format tag.  Construction validates that the buffer matches the tag
exactly, so downstream stages never need to re-check shapes or dtypes.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np


class FrameError(ValueError):
    """Raised when a pixel buffer does not match its declared format."""


class PixelFormat(str, Enum):
    RGBA = "rgba"  # mobile camera bitmaps
    RGB = "rgb"
    BGR = "bgr"  # OpenCV capture convention
    LUMA_F32 = "luma_f32"  # single-channel float, values in [0, 1]

    @property
    def channels(self) -> int:
        return _CHANNELS[self]

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.float32) if self is PixelFormat.LUMA_F32 else np.dtype(np.uint8)

    @property
    def is_color(self) -> bool:
        return self is not PixelFormat.LUMA_F32


_CHANNELS = {
    PixelFormat.RGBA: 4,
    PixelFormat.RGB: 3,
    PixelFormat.BGR: 3,
    PixelFormat.LUMA_F32: 1,
}


@dataclass(frozen=True, eq=False)
class Frame:
    """A validated 2D pixel buffer.

    Attributes:
        data: ``(H, W, C)`` uint8 array for colour formats, ``(H, W)``
            float32 array for ``LUMA_F32``.
        fmt: Pixel-format tag describing ``data``.
    """

    data: np.ndarray
    fmt: PixelFormat

    def __post_init__(self) -> None:
        if not isinstance(self.data, np.ndarray):
            raise FrameError(f"Frame data must be an ndarray, got {type(self.data).__name__}")
        if self.data.dtype != self.fmt.dtype:
            raise FrameError(
                f"{self.fmt.value} frame requires dtype {self.fmt.dtype}, got {self.data.dtype}"
            )

        expected_ndim = 3 if self.fmt.is_color else 2
        if self.data.ndim != expected_ndim:
            raise FrameError(
                f"{self.fmt.value} frame requires {expected_ndim} dims, got shape {self.data.shape}"
            )
        if self.fmt.is_color and self.data.shape[2] != self.fmt.channels:
            raise FrameError(
                f"{self.fmt.value} frame requires {self.fmt.channels} channels, "
                f"got {self.data.shape[2]}"
            )
        if self.data.shape[0] <= 0 or self.data.shape[1] <= 0:
            raise FrameError(f"Frame dimensions must be positive, got {self.data.shape}")

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height

    @classmethod
    def from_bytes(cls, raw: bytes, width: int, height: int, fmt: PixelFormat) -> "Frame":
        """Build a frame from a raw, tightly packed pixel buffer.

        Raises:
            FrameError: If the dimensions are not positive or ``raw`` is not
                exactly ``width * height * channels * itemsize`` bytes long.
        """
        if width <= 0 or height <= 0:
            raise FrameError(f"Frame dimensions must be positive, got {width}x{height}")

        expected = width * height * fmt.channels * fmt.dtype.itemsize
        if len(raw) != expected:
            raise FrameError(
                f"{fmt.value} {width}x{height} frame needs {expected} bytes, got {len(raw)}"
            )

        shape = (height, width, fmt.channels) if fmt.is_color else (height, width)
        data = np.frombuffer(raw, dtype=fmt.dtype).reshape(shape).copy()
        return cls(data=data, fmt=fmt)

    @classmethod
    def from_array(cls, data: np.ndarray, fmt: PixelFormat = PixelFormat.BGR) -> "Frame":
        """Wrap an existing array, taking an owned contiguous copy."""
        return cls(data=np.ascontiguousarray(data).copy(), fmt=fmt)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel buffer."""
        return f"Frame({self.width}x{self.height}, fmt={self.fmt.value})"


@dataclass(frozen=True)
class RawFrame:
    """Undecoded pixel bytes as delivered by a camera collaborator."""

    data: bytes
    width: int
    height: int
    fmt: PixelFormat = PixelFormat.RGBA

    def to_frame(self) -> Frame:
        return Frame.from_bytes(self.data, self.width, self.height, self.fmt)

    def __repr__(self) -> str:
        return f"RawFrame({self.width}x{self.height}, fmt={self.fmt.value}, {len(self.data)} bytes)"
