"""Frame orchestrator: coordinates gate → blur score → super-resolution.

``FrameOrchestrator.process`` handles exactly one frame and always returns a
``PipelineResult``; no per-frame error escapes it.

``FrameWorker`` runs the orchestrator off the caller's thread:

1. Producers hand frames to ``submit`` (or ``submit_threadsafe`` from a
   capture thread).
2. Frames land in a one-slot buffer.  A newer frame replaces an older one
   that has not been picked up yet, so latency stays bounded and stale
   frames are dropped rather than queued.
3. A single background task takes the latest frame, numbers it, runs
   ``process`` on a dedicated executor thread and publishes the result to
   the injected ``ResultSink``.
"""

import asyncio
import concurrent.futures
import logging
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from frame_enhancer.config import Settings
from frame_enhancer.frame import Frame, FrameError, PixelFormat, RawFrame
from frame_enhancer.model.runtime import InferenceError, ModelHandle, ShapeMismatch
from frame_enhancer.pipeline import channels
from frame_enhancer.pipeline.channels import PipelineError, UnexpectedOutputShape
from frame_enhancer.results import (
    Enhanced,
    Failed,
    InMemoryResultSink,
    PipelineResult,
    ResultSink,
    Skipped,
)
from frame_enhancer.video import frame_gate
from frame_enhancer.video.blur_scorer import blur_score
from frame_enhancer.video.frame_gate import SkipReason

logger = logging.getLogger(__name__)

RawInput = Frame | RawFrame | np.ndarray


class FrameOrchestrator:
    """Runs one frame through the enhancement pipeline.

    Holds no per-frame state: the model handle is immutable and the frame
    index is supplied by the caller.

    Usage::

        orchestrator = FrameOrchestrator(handle, settings)
        result = orchestrator.process(raw_frame, frame_index)
    """

    def __init__(
        self,
        handle: ModelHandle,
        settings: Settings,
        array_format: PixelFormat = PixelFormat.BGR,
    ) -> None:
        self._handle = handle
        self._settings = settings
        self._array_format = array_format

    def process(self, raw: RawInput, frame_index: int) -> PipelineResult:
        start = time.monotonic()

        try:
            frame = self._to_frame(raw)
        except FrameError as exc:
            logger.error("Frame %d rejected: %s", frame_index, exc)
            return Failed(
                frame_index=frame_index,
                frame=None,
                error=str(exc),
                kind=type(exc).__name__,
                processing_ms=_elapsed_ms(start),
            )

        decimation = self._settings.decimation_factor
        if not frame_gate.is_sampled(frame_index, decimation):
            return Skipped(
                frame_index=frame_index,
                frame=frame,
                reason=SkipReason.NOT_SAMPLED,
                processing_ms=_elapsed_ms(start),
            )

        try:
            score = blur_score(frame)
        except Exception as exc:
            logger.exception("Unexpected error scoring frame %d: %s", frame_index, exc)
            return self._failed(frame_index, frame, exc, None, start)
        logger.debug("Frame %d blur score %.2f", frame_index, score)

        if not frame_gate.should_process(
            frame_index, score, self._settings.blur_threshold, decimation
        ):
            logger.debug(
                "Blur score too high (%.2f >= %.2f), skipping frame %d",
                score,
                self._settings.blur_threshold,
                frame_index,
            )
            return Skipped(
                frame_index=frame_index,
                frame=frame,
                reason=SkipReason.SHARP_ENOUGH,
                blur_score=score,
                processing_ms=_elapsed_ms(start),
            )

        try:
            enhanced = channels.enhance(frame, self._handle)
        except (ShapeMismatch, UnexpectedOutputShape) as exc:
            reason = (
                SkipReason.INPUT_SHAPE
                if isinstance(exc, ShapeMismatch)
                else SkipReason.OUTPUT_SHAPE
            )
            logger.warning("Frame %d not enhanced: %s", frame_index, exc)
            return Skipped(
                frame_index=frame_index,
                frame=frame,
                reason=reason,
                blur_score=score,
                processing_ms=_elapsed_ms(start),
                detail=str(exc),
            )
        except (PipelineError, InferenceError) as exc:
            logger.error("Enhancement failed for frame %d: %s", frame_index, exc)
            return self._failed(frame_index, frame, exc, score, start)
        except Exception as exc:
            logger.exception(
                "Unexpected error enhancing frame %d: %s", frame_index, exc
            )
            return self._failed(frame_index, frame, exc, score, start)

        result = Enhanced(
            frame_index=frame_index,
            frame=enhanced,
            blur_score=score,
            rotated=frame.is_landscape,
            processing_ms=_elapsed_ms(start),
        )
        logger.debug(
            "Super-resolution applied to frame %d: %r in %d ms",
            frame_index,
            enhanced,
            result.processing_ms,
        )
        return result

    def _to_frame(self, raw: RawInput) -> Frame:
        if isinstance(raw, Frame):
            return raw
        if isinstance(raw, RawFrame):
            return raw.to_frame()
        if isinstance(raw, np.ndarray):
            return Frame.from_array(raw, self._array_format)
        raise FrameError(f"Unsupported frame input type {type(raw).__name__}")

    @staticmethod
    def _failed(
        frame_index: int,
        frame: Frame,
        exc: Exception,
        score: float | None,
        start: float,
    ) -> Failed:
        return Failed(
            frame_index=frame_index,
            frame=frame,
            error=str(exc),
            kind=type(exc).__name__,
            blur_score=score,
            processing_ms=_elapsed_ms(start),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# ---------------------------------------------------------------------------
# Background worker with keep-latest backpressure
# ---------------------------------------------------------------------------


class FrameWorker:
    """Processes frames sequentially on one dedicated thread.

    Usage::

        worker = FrameWorker(orchestrator, sink)
        await worker.start()
        await worker.submit(frame)          # from the event loop
        worker.submit_threadsafe(frame)     # from a capture thread
        await worker.close()
    """

    def __init__(
        self,
        orchestrator: FrameOrchestrator,
        sink: ResultSink | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._sink: ResultSink = sink or InMemoryResultSink()
        self._latest: asyncio.Queue[RawInput] = asyncio.Queue(maxsize=1)
        self._executor: ThreadPoolExecutor | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._frame_count = 0
        self._busy = False

    @property
    def sink(self) -> ResultSink:
        return self._sink

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            logger.warning("FrameWorker already running, ignoring start()")
            return
        self._loop = asyncio.get_running_loop()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="frame-worker"
        )
        self._task = asyncio.create_task(self._run(), name="frame-worker")
        logger.info("FrameWorker started")

    async def submit(self, raw: RawInput) -> None:
        """Offer a frame, replacing any frame still waiting to be processed."""
        dropped = False
        if self._latest.full():
            try:
                self._latest.get_nowait()
                dropped = True
            except asyncio.QueueEmpty:
                pass
        self._latest.put_nowait(raw)

        if dropped:
            logger.debug("Worker busy: dropped stale frame in favour of a newer one")
            await self._sink.record_drop()

    def submit_threadsafe(self, raw: RawInput) -> concurrent.futures.Future:
        """Offer a frame from a non-event-loop thread."""
        if self._loop is None:
            raise RuntimeError("FrameWorker.start() must be awaited before submitting")
        return asyncio.run_coroutine_threadsafe(self.submit(raw), self._loop)

    async def drain(self, poll_interval: float = 0.01) -> None:
        """Wait until no frame is pending or being processed."""
        while self.running and (self._busy or not self._latest.empty()):
            await asyncio.sleep(poll_interval)

    async def close(self) -> None:
        """Stop the worker.  A forward pass already in flight runs to completion."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

        logger.info("FrameWorker closed after %d frames", self._frame_count)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                raw = await self._latest.get()
                self._busy = True
                try:
                    self._frame_count += 1
                    result = await loop.run_in_executor(
                        self._executor,
                        self._orchestrator.process,
                        raw,
                        self._frame_count,
                    )
                    await self._sink.publish(result)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.exception(
                        "Could not deliver result for frame %d: %s", self._frame_count, exc
                    )
                finally:
                    self._busy = False
        except asyncio.CancelledError:
            logger.debug("FrameWorker task cancelled")
            raise
