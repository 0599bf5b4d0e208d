from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, UTC
import asyncio

from frame_enhancer.frame import Frame
from frame_enhancer.video.frame_gate import SkipReason


@dataclass
class Enhanced:
    """A frame that went through super-resolution successfully."""

    frame_index: int
    frame: Frame  # 2x model input size, in the pipeline's processing orientation
    blur_score: float
    rotated: bool  # True if the display must counter-rotate ``frame``
    processing_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return True


@dataclass
class Skipped:
    """A frame passed through unmodified."""

    frame_index: int
    frame: Frame  # the original frame
    reason: SkipReason
    blur_score: float | None = None  # None when the frame was not sampled
    processing_ms: int = 0
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return False


@dataclass
class Failed:
    """Enhancement was attempted and failed; carries the original frame."""

    frame_index: int
    frame: Frame | None  # None only if the raw input could not be decoded
    error: str
    kind: str  # exception class name, e.g. "NaNOutput"
    blur_score: float | None = None
    processing_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return False


PipelineResult = Enhanced | Skipped | Failed


def status_text(result: PipelineResult | None) -> tuple[str, str]:
    """Return the (blur score, enhancement) labels shown next to the preview."""
    if result is None or result.blur_score is None:
        score_label = "Blur Score: N/A"
    else:
        score_label = f"Blur Score: {result.blur_score:.2f}"
    sr_label = "Super-Resolution" if result is not None and result.succeeded else "No SR Output"
    return score_label, sr_label


@dataclass
class PipelineStats:
    """Counters and the latest result, as exposed to the display."""

    enhanced: int = 0
    skipped: int = 0
    failed: int = 0
    dropped: int = 0
    latest: PipelineResult | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None

    @property
    def total(self) -> int:
        return self.enhanced + self.skipped + self.failed


class ResultSink(ABC):
    @abstractmethod
    async def publish(self, result: PipelineResult) -> None: ...

    @abstractmethod
    async def record_drop(self) -> None: ...

    @abstractmethod
    async def get_stats(self) -> PipelineStats: ...


class InMemoryResultSink(ResultSink):
    def __init__(self) -> None:
        self._stats = PipelineStats()
        self._lock = asyncio.Lock()

    async def publish(self, result: PipelineResult) -> None:
        async with self._lock:
            if isinstance(result, Enhanced):
                self._stats.enhanced += 1
            elif isinstance(result, Skipped):
                self._stats.skipped += 1
            else:
                self._stats.failed += 1
            self._stats.latest = result
            self._stats.updated_at = datetime.now(UTC)

    async def record_drop(self) -> None:
        async with self._lock:
            self._stats.dropped += 1

    async def get_stats(self) -> PipelineStats:
        return self._stats
