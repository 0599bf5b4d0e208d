"""Command-line runner: video source → frame worker → logged telemetry.

    python -m frame_enhancer.main clip.mp4 --model models/fsrcnn.onnx
    python -m frame_enhancer.main 0            # capture device 0
"""

import argparse
import asyncio
import logging
import sys

from frame_enhancer.config import Settings, get_settings
from frame_enhancer.model.runtime import LoadError, input_shape_for, load_file
from frame_enhancer.orchestrator import FrameOrchestrator, FrameWorker
from frame_enhancer.results import InMemoryResultSink, PipelineResult, PipelineStats, status_text
from frame_enhancer.source import CaptureSource, SourceError
from frame_enhancer.video.frame_gate import SkipReason

logger = logging.getLogger(__name__)


class LoggingResultSink(InMemoryResultSink):
    """Display stand-in: logs the labels a preview would show for each result."""

    async def publish(self, result: PipelineResult) -> None:
        await super().publish(result)
        if getattr(result, "reason", None) is SkipReason.NOT_SAMPLED:
            return
        score_label, sr_label = status_text(result)
        logger.info(
            "frame=%d %s | %s (%d ms)",
            result.frame_index,
            score_label,
            sr_label,
            result.processing_ms,
        )


async def run(
    source: str,
    settings: Settings,
    max_frames: int | None = None,
) -> PipelineStats:
    """Load the model, stream ``source`` through the worker and return stats.

    Raises:
        LoadError: The model artifact is missing or unusable.
        SourceError: The video source cannot be opened.
    """
    handle = load_file(
        settings.model_path,
        input_shape=input_shape_for(settings.model_input_width, settings.model_input_height),
        upscale_factor=settings.upscale_factor,
    )
    sink = LoggingResultSink()
    worker = FrameWorker(FrameOrchestrator(handle, settings), sink)
    capture = CaptureSource(source, worker.submit, settings=settings, max_frames=max_frames)

    await worker.start()
    try:
        await capture.start()
        await capture.wait_finished()
        await worker.drain()
    finally:
        await capture.close()
        await worker.close()

    return await sink.get_stats()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frame-enhancer",
        description="Score video frames for blur and super-resolve the blurry ones.",
    )
    parser.add_argument("source", help="video file, stream URL, or capture device index")
    parser.add_argument("--model", help="path to the ONNX super-resolution model")
    parser.add_argument("--max-frames", type=int, default=None, help="stop after N frames")
    parser.add_argument("--log-level", help="override LOG_LEVEL")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    overrides = {}
    if args.model:
        overrides["model_path"] = args.model
    if args.log_level:
        overrides["log_level"] = args.log_level
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO)
    )

    try:
        stats = asyncio.run(run(args.source, settings, args.max_frames))
    except LoadError as exc:
        logger.error("Cannot load super-resolution model: %s", exc)
        return 1
    except SourceError as exc:
        logger.error("%s", exc)
        return 2

    logger.info(
        "Done: %d frames (%d enhanced, %d skipped, %d failed, %d dropped)",
        stats.total,
        stats.enhanced,
        stats.skipped,
        stats.failed,
        stats.dropped,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
