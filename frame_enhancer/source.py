"""OpenCV ``VideoCapture`` frame source.

Bridges the blocking capture API into the asyncio pipeline.  A background
thread reads frames and forwards each one to the event loop with
``asyncio.run_coroutine_threadsafe``; it never waits for the frame to be
processed, so a slow consumer cannot stall capture.

Usage::

    source = CaptureSource("clip.mp4", on_frame=worker.submit)
    await source.start()
    await source.wait_finished()
    await source.close()
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any

import cv2
import numpy as np

from frame_enhancer.config import Settings

logger = logging.getLogger(__name__)

# Callback type: (frame_bgr,)
FrameCallback = Callable[[np.ndarray], Awaitable[None]]


def _parse_source(source: str | int) -> str | int:
    """Numeric strings select a capture device, anything else is a path/URL."""
    if isinstance(source, str) and source.isdigit():
        return int(source)
    return source


class SourceError(RuntimeError):
    """Raised when the capture source cannot be opened."""


class CaptureSource:
    """Reads BGR frames from a file, URL or device index on a daemon thread."""

    def __init__(
        self,
        source: str | int,
        on_frame: FrameCallback,
        settings: Settings | None = None,
        max_frames: int | None = None,
    ) -> None:
        self._source = _parse_source(source)
        self._on_frame = on_frame
        self._settings = settings
        self._max_frames = max_frames

        self._capture: Any = None  # cv2.VideoCapture
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._finished: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._frames_read = 0

    @property
    def frames_read(self) -> int:
        return self._frames_read

    async def start(self) -> None:
        """Open the capture and start the reader thread.

        Raises:
            SourceError: If OpenCV cannot open the source.
        """
        self._loop = asyncio.get_running_loop()
        self._finished = asyncio.Event()

        self._capture = cv2.VideoCapture(self._source)
        if not self._capture.isOpened():
            raise SourceError(f"Cannot open video source {self._source!r}")

        if self._settings is not None and isinstance(self._source, int):
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._settings.source_width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._settings.source_height)

        self._thread = threading.Thread(
            target=self._read_loop,
            name=f"capture-{self._source}",
            daemon=True,
        )
        self._thread.start()
        logger.info("CaptureSource started: %r", self._source)

    async def wait_finished(self) -> None:
        """Wait until the source is exhausted or ``max_frames`` were read."""
        if self._finished is not None:
            await self._finished.wait()

    async def close(self) -> None:
        """Stop the reader thread and release the capture."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        logger.info("CaptureSource closed after %d frames", self._frames_read)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_loop(self) -> None:
        """Background thread: pull frames until EOF, stop, or the frame cap."""
        loop = self._loop
        try:
            while not self._stop_event.is_set():
                if self._max_frames is not None and self._frames_read >= self._max_frames:
                    break
                ok, frame = self._capture.read()
                if not ok or frame is None:
                    logger.info("CaptureSource: end of stream")
                    break
                self._frames_read += 1
                asyncio.run_coroutine_threadsafe(self._on_frame(frame), loop)
        except Exception as exc:
            logger.warning("CaptureSource read error: %s", exc)
        finally:
            loop.call_soon_threadsafe(self._finished.set)
