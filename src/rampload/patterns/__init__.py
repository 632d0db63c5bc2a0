"""Concurrency patterns for rampload."""

from __future__ import annotations

from rampload.patterns.base import LoadPattern
from rampload.patterns.stages import Stage, StagePattern

__all__ = [
    "LoadPattern",
    "Stage",
    "StagePattern",
]
