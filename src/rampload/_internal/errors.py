"""Custom exception hierarchy for rampload."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rampload.metrics.thresholds import ThresholdResult


class RampLoadError(Exception):
    """Base exception for all rampload errors.

    All custom exceptions in rampload inherit from this class, making it
    easy to catch any rampload-specific error with a single except clause.
    """


class ConfigurationError(RampLoadError):
    """Raised when a run configuration is invalid or missing.

    Always fatal: raised before any virtual user is started.

    Examples:
        - The stage list is empty.
        - A stage has a negative duration or target.
        - A threshold expression cannot be parsed.
        - An environment variable override has an invalid value.
    """


class RequestError(RampLoadError):
    """Raised by the HTTP client when a request could not complete.

    Covers timeouts, refused connections, and DNS failures. The request
    executor records it as a failed sample and keeps looping.

    Attributes:
        latency_ms: Time spent before the failure, in milliseconds.
    """

    def __init__(self, message: str, latency_ms: float = 0.0) -> None:
        super().__init__(message)
        self.latency_ms = latency_ms


class ThresholdFailure(RampLoadError):
    """Raised when one or more thresholds evaluated false at run end.

    Attributes:
        failed: The threshold results that did not pass.
    """

    def __init__(self, failed: list[ThresholdResult]) -> None:
        names = ", ".join(f"{r.threshold.metric_name}: {r.threshold.expression}" for r in failed)
        super().__init__(f"{len(failed)} threshold(s) failed: {names}")
        self.failed = failed


class EngineError(RampLoadError):
    """Raised when the load engine encounters an unrecoverable error."""
