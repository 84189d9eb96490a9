from __future__ import annotations

import time

import pytest

from querybench.utils.profiler import ProfileStats, profile_block


def test_profile_block_records_duration_and_memory() -> None:
    with profile_block("phase", sample_interval_ms=5) as stats:
        time.sleep(0.02)

    assert isinstance(stats, ProfileStats)
    assert stats.label == "phase"
    assert stats.duration_seconds >= 0.02
    assert stats.end_ts > stats.start_ts
    assert stats.peak_rss_bytes is not None and stats.peak_rss_bytes > 0
    assert stats.cpu_percent is not None


def test_profile_block_finalizes_on_error() -> None:
    with pytest.raises(RuntimeError):
        with profile_block("failing") as stats:
            raise RuntimeError("boom")

    assert stats.duration_seconds > 0
    assert stats.peak_rss_bytes is not None
