"""Unit tests for InMemoryResultSink and result models."""

import pytest

from conftest import solid_frame
from frame_enhancer.results import (
    Enhanced,
    Failed,
    InMemoryResultSink,
    Skipped,
    status_text,
)
from frame_enhancer.video.frame_gate import SkipReason


def make_enhanced(frame_index: int = 5, score: float = 12.5) -> Enhanced:
    return Enhanced(
        frame_index=frame_index,
        frame=solid_frame(width=640, height=480),
        blur_score=score,
        rotated=False,
        processing_ms=42,
    )


def make_skipped(reason: SkipReason = SkipReason.SHARP_ENOUGH) -> Skipped:
    return Skipped(
        frame_index=10,
        frame=solid_frame(),
        reason=reason,
        blur_score=None if reason is SkipReason.NOT_SAMPLED else 2500.0,
    )


def make_failed() -> Failed:
    return Failed(
        frame_index=15,
        frame=solid_frame(),
        error="Model output contains 3 non-finite values",
        kind="NaNOutput",
        blur_score=4.0,
    )


def test_succeeded_property():
    assert make_enhanced().succeeded is True
    assert make_skipped().succeeded is False
    assert make_failed().succeeded is False


def test_status_text_enhanced():
    assert status_text(make_enhanced(score=12.5)) == (
        "Blur Score: 12.50",
        "Super-Resolution",
    )


def test_status_text_skipped_sharp():
    assert status_text(make_skipped()) == ("Blur Score: 2500.00", "No SR Output")


def test_status_text_not_sampled_has_no_score():
    assert status_text(make_skipped(SkipReason.NOT_SAMPLED)) == (
        "Blur Score: N/A",
        "No SR Output",
    )


def test_status_text_before_any_result():
    assert status_text(None) == ("Blur Score: N/A", "No SR Output")


async def test_sink_starts_empty():
    sink = InMemoryResultSink()
    stats = await sink.get_stats()
    assert stats.total == 0
    assert stats.latest is None
    assert stats.updated_at is None


async def test_sink_counts_each_variant():
    sink = InMemoryResultSink()
    await sink.publish(make_enhanced())
    await sink.publish(make_skipped())
    await sink.publish(make_skipped(SkipReason.NOT_SAMPLED))
    await sink.publish(make_failed())

    stats = await sink.get_stats()
    assert (stats.enhanced, stats.skipped, stats.failed) == (1, 2, 1)
    assert stats.total == 4
    assert stats.updated_at is not None


async def test_sink_keeps_latest_result():
    sink = InMemoryResultSink()
    first = make_enhanced(frame_index=5)
    second = make_failed()
    await sink.publish(first)
    await sink.publish(second)
    assert (await sink.get_stats()).latest is second


@pytest.mark.parametrize("drops", [1, 3])
async def test_sink_records_drops(drops):
    sink = InMemoryResultSink()
    for _ in range(drops):
        await sink.record_drop()
    stats = await sink.get_stats()
    assert stats.dropped == drops
    assert stats.total == 0
