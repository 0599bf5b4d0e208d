"""
Shared pytest fixtures for the frame enhancer test suite.

No real ONNX model is needed: ``FakeSuperResolutionNet`` mimics the
``cv2.dnn.Net`` surface used by the runtime (``setInput`` / ``forward`` /
``empty``) and upscales its input plane deterministically.
"""

import cv2
import numpy as np
import pytest

from frame_enhancer.config import Settings
from frame_enhancer.frame import Frame, PixelFormat
from frame_enhancer.model.runtime import ModelHandle


class FakeSuperResolutionNet:
    """Deterministic 2x (by default) stand-in for the FSRCNN network."""

    def __init__(self, scale: int = 2, fill: float | None = None) -> None:
        self.scale = scale
        self.fill = fill  # force every output value, e.g. float("nan")
        self.calls = 0
        self._blob: np.ndarray | None = None

    def setInput(self, blob: np.ndarray) -> None:  # noqa: N802 - cv2 naming
        self._blob = blob

    def forward(self) -> np.ndarray:
        self.calls += 1
        plane = self._blob[0, 0]
        h, w = plane.shape
        up = cv2.resize(plane, (w * self.scale, h * self.scale), interpolation=cv2.INTER_CUBIC)
        if self.fill is not None:
            up = np.full_like(up, self.fill)
        return up[np.newaxis, np.newaxis, :, :].astype(np.float32)

    def empty(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Settings isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def override_settings(monkeypatch):
    """Keep host environment variables from leaking into Settings()."""
    for name in (
        "MODEL_PATH",
        "DECIMATION_FACTOR",
        "BLUR_THRESHOLD",
        "LOG_LEVEL",
        "UPSCALE_FACTOR",
    ):
        monkeypatch.delenv(name, raising=False)
    # Clear lru_cache so each test gets fresh Settings from monkeypatched env
    from frame_enhancer.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_net() -> FakeSuperResolutionNet:
    return FakeSuperResolutionNet()


@pytest.fixture()
def model_handle(fake_net) -> ModelHandle:
    return ModelHandle(net=fake_net)


# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------


def solid_frame(
    width: int = 480,
    height: int = 640,
    value: int = 128,
    fmt: PixelFormat = PixelFormat.BGR,
) -> Frame:
    """Uniform frame: zero Laplacian variance."""
    if fmt is PixelFormat.LUMA_F32:
        # dyadic level keeps the 0-255 rescaled plane exactly representable
        return Frame(np.full((height, width), value / 256.0, dtype=np.float32), fmt)
    return Frame(np.full((height, width, fmt.channels), value, dtype=np.uint8), fmt)


def checkerboard_frame(width: int = 640, height: int = 480) -> Frame:
    """High-contrast BGR checkerboard: very high Laplacian variance."""
    data = np.zeros((height, width, 3), dtype=np.uint8)
    rows = np.arange(height)
    cols = np.arange(width)
    mask = (rows[:, None] + cols[None, :]) % 2 == 0
    data[mask] = 255
    return Frame(data, PixelFormat.BGR)


def gradient_frame(width: int = 64, height: int = 48) -> Frame:
    """Smooth BGR gradient, each channel ramping differently."""
    x = np.linspace(0, 255, width, dtype=np.float32)[None, :]
    y = np.linspace(0, 255, height, dtype=np.float32)[:, None]
    b = np.broadcast_to(x, (height, width))
    g = np.broadcast_to(y, (height, width))
    r = (b + g) / 2
    data = np.stack([b, g, r], axis=-1).round().astype(np.uint8)
    return Frame(data, PixelFormat.BGR)
