"""Pass/fail conditions over aggregated run metrics.

A threshold pairs a metric name with an expression such as ``p(95)<500``.
Supported metrics and aggregations:

==================== ===============================================
``http_req_duration`` ``p(N)``, ``avg``, ``min``, ``max``, ``med``
``http_req_failed``   ``rate`` (fraction of failed requests)
``checks``            ``rate`` (fraction of passing check evaluations)
``http_reqs``         ``count``, ``rate`` (requests per second)
==================== ===============================================

Duration values take an optional unit (``us``, ``ms``, ``s``); bare numbers
are milliseconds.

Percentiles come from an HDR histogram with three significant digits and
are reported as the lower bound of their bucket, so an observed ``p(N)`` may
sit up to 0.1% below the exact sample value. A recorded latency equal to
the limit is never reported above it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rampload._internal.errors import ConfigurationError
from rampload._internal.parsing import OPERATOR_PATTERN, OPERATORS, parse_duration

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from rampload.metrics.models import RunSummary

_EXPRESSION = re.compile(
    r"^\s*(?P<agg>p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\)|avg|min|max|med|rate|count)"
    rf"\s*(?P<op>{OPERATOR_PATTERN})\s*(?P<value>\S+)\s*$"
)

_METRIC_AGGREGATIONS: dict[str, frozenset[str]] = {
    "http_req_duration": frozenset({"p", "avg", "min", "max", "med"}),
    "http_req_failed": frozenset({"rate"}),
    "checks": frozenset({"rate"}),
    "http_reqs": frozenset({"count", "rate"}),
}


@dataclass(frozen=True)
class Threshold:
    """A parsed threshold.

    Attributes:
        metric_name: Metric the expression applies to.
        expression: Original expression text, kept for reporting.
        aggregation: ``"p"``, ``"avg"``, ``"min"``, ``"max"``, ``"med"``,
            ``"rate"`` or ``"count"``.
        operator: Comparison operator.
        value: Right-hand side; milliseconds for ``http_req_duration``.
        percentile: Percentile for ``p(N)`` aggregations, else None.
    """

    metric_name: str
    expression: str
    aggregation: str
    operator: str
    value: float
    percentile: float | None = None


@dataclass(frozen=True)
class ThresholdResult:
    """Outcome of evaluating one threshold at run end."""

    threshold: Threshold
    observed: float
    passed: bool


def parse_threshold(metric_name: str, expression: str) -> Threshold:
    """Parse one threshold expression.

    Raises:
        ConfigurationError: For unknown metrics, unsupported aggregations,
            or malformed expressions.
    """
    allowed = _METRIC_AGGREGATIONS.get(metric_name)
    if allowed is None:
        msg = (
            f"unknown threshold metric {metric_name!r}; "
            f"expected one of {', '.join(sorted(_METRIC_AGGREGATIONS))}"
        )
        raise ConfigurationError(msg)

    match = _EXPRESSION.match(expression)
    if match is None:
        msg = f"invalid threshold expression for {metric_name}: {expression!r}"
        raise ConfigurationError(msg)

    pct_text = match.group("pct")
    aggregation = "p" if pct_text is not None else match.group("agg")
    if aggregation not in allowed:
        msg = f"{metric_name} does not support {match.group('agg')!r} in {expression!r}"
        raise ConfigurationError(msg)

    percentile = None
    if pct_text is not None:
        percentile = float(pct_text)
        if not 0.0 <= percentile <= 100.0:
            msg = f"percentile must be within 0-100, got {percentile:g} in {expression!r}"
            raise ConfigurationError(msg)

    raw_value = match.group("value")
    if metric_name == "http_req_duration":
        value = parse_duration(raw_value, f"threshold {expression!r}", default_unit="ms") * 1000.0
    else:
        try:
            value = float(raw_value)
        except ValueError:
            msg = f"threshold value must be a number in {expression!r}"
            raise ConfigurationError(msg) from None

    return Threshold(
        metric_name=metric_name,
        expression=expression,
        aggregation=aggregation,
        operator=match.group("op"),
        value=value,
        percentile=percentile,
    )


def parse_thresholds(raw: Mapping[str, str | list[str]]) -> tuple[Threshold, ...]:
    """Parse the ``thresholds`` mapping of a run configuration.

    Each metric maps to a single expression or a list of expressions.
    """
    thresholds: list[Threshold] = []
    for metric_name, expressions in raw.items():
        items = [expressions] if isinstance(expressions, str) else expressions
        if not isinstance(items, list) or not all(isinstance(e, str) for e in items):
            msg = f"thresholds for {metric_name!r} must be a string or a list of strings"
            raise ConfigurationError(msg)
        thresholds.extend(parse_threshold(str(metric_name), e) for e in items)
    return tuple(thresholds)


def observe(
    threshold: Threshold,
    summary: RunSummary,
    latency_percentile: Callable[[float], float],
) -> float:
    """Return the aggregated value a threshold compares against.

    Args:
        threshold: Threshold to observe.
        summary: Final run summary.
        latency_percentile: Lookup for arbitrary latency percentiles (ms).
    """
    if threshold.metric_name == "http_req_duration":
        if threshold.percentile is not None:
            return latency_percentile(threshold.percentile)
        return {
            "avg": summary.latency_avg,
            "min": summary.latency_min,
            "max": summary.latency_max,
            "med": summary.latency_med,
        }[threshold.aggregation]
    if threshold.metric_name == "http_req_failed":
        return summary.failed_rate
    if threshold.metric_name == "checks":
        return summary.check_pass_rate
    if threshold.aggregation == "count":
        return float(summary.total_requests)
    return summary.requests_per_second


def evaluate_thresholds(
    thresholds: tuple[Threshold, ...] | list[Threshold],
    summary: RunSummary,
    latency_percentile: Callable[[float], float],
) -> list[ThresholdResult]:
    """Evaluate every threshold; a threshold fails iff its expression is false."""
    results = []
    for threshold in thresholds:
        observed = observe(threshold, summary, latency_percentile)
        passed = OPERATORS[threshold.operator](observed, threshold.value)
        results.append(ThresholdResult(threshold=threshold, observed=observed, passed=passed))
    return results
