"""Bounded-memory latency distribution backed by an HDR histogram.

Memory use depends only on the trackable range and precision, never on
the number of samples, so long runs at high concurrency stay flat.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# Range: 1 microsecond to 1 hour (in microseconds)
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 3_600_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """HDR histogram that speaks milliseconds.

    Values are stored as integer microseconds, clamped into
    ``[lowest_us, highest_us]``. With three significant digits the
    reported percentiles are within 0.1% of the recorded values. A
    percentile is reported as the lowest value of its bucket, so a run whose
    samples all equal X reports exactly X.

    Attributes:
        lowest_us: Lowest trackable value in microseconds.
        highest_us: Highest trackable value in microseconds.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    def __len__(self) -> int:
        return int(self._histogram.total_count)

    def record_latency_ms(self, latency_ms: float) -> bool:
        """Record one latency value in milliseconds.

        Returns:
            True if the value was recorded.
        """
        value_us = int(latency_ms * 1000)
        value_us = max(self.lowest_us, min(value_us, self.highest_us))
        return bool(self._histogram.record_value(value_us))

    def get_percentile(self, percentile: float) -> float:
        """Latency in milliseconds at *percentile* (0-100); 0.0 when empty."""
        if not len(self):
            return 0.0
        value_us = self._histogram.get_value_at_percentile(percentile)
        return float(self._histogram.get_lowest_equivalent_value(value_us)) / 1000.0

    def get_min(self) -> float:
        if not len(self):
            return 0.0
        return float(self._histogram.get_min_value()) / 1000.0

    def get_max(self) -> float:
        if not len(self):
            return 0.0
        return float(self._histogram.get_max_value()) / 1000.0

    def get_mean(self) -> float:
        if not len(self):
            return 0.0
        return float(self._histogram.get_mean_value()) / 1000.0
