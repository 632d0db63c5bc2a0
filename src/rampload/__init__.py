"""rampload: stage-based HTTP load generation."""

from __future__ import annotations

from rampload._internal.config import RunConfig, load_config
from rampload._internal.errors import (
    ConfigurationError,
    RampLoadError,
    RequestError,
    ThresholdFailure,
)
from rampload.engine.session import LoadTestSession, RunState, run_load_test
from rampload.metrics.models import RequestSample, RunResult
from rampload.patterns.stages import Stage, StagePattern

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "LoadTestSession",
    "RampLoadError",
    "RequestError",
    "RequestSample",
    "RunConfig",
    "RunResult",
    "RunState",
    "Stage",
    "StagePattern",
    "ThresholdFailure",
    "load_config",
    "run_load_test",
]
