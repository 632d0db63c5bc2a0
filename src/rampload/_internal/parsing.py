"""Small parsers shared by config, check, and threshold handling."""

from __future__ import annotations

import math
import operator
import re
from typing import TYPE_CHECKING

from rampload._internal.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

# Comparison operators allowed in check and threshold expressions.
# Two-character operators must come first for the regex alternation.
OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<=": operator.le,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
}
OPERATOR_PATTERN = "|".join(re.escape(op) for op in OPERATORS)

_UNIT_SECONDS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 0.001,
    "us": 0.000_001,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|us|h|m|s)")


def parse_duration(value: object, name: str, *, default_unit: str = "s") -> float:
    """Parse a time span into seconds.

    Accepts plain numbers (interpreted in *default_unit*) and strings such
    as ``"500ms"``, ``"10s"``, ``"1m30s"`` or ``"1h"``.

    Args:
        value: Raw value from a config file, CLI flag, or expression.
        name: Field name used in error messages.
        default_unit: Unit applied to bare numbers.

    Returns:
        The duration in seconds.

    Raises:
        ConfigurationError: If *value* is not a valid, non-negative duration.
    """
    if isinstance(value, bool):
        msg = f"{name} must be a duration, got {value!r}"
        raise ConfigurationError(msg)

    if isinstance(value, int | float):
        seconds = float(value) * _UNIT_SECONDS[default_unit]
    elif isinstance(value, str):
        text = value.strip().replace(" ", "")
        try:
            seconds = float(text) * _UNIT_SECONDS[default_unit]
        except ValueError:
            seconds = _parse_unit_string(text, name)
    else:
        msg = f"{name} must be a duration, got {value!r}"
        raise ConfigurationError(msg)

    if not math.isfinite(seconds):
        msg = f"{name} must be a finite duration, got {value!r}"
        raise ConfigurationError(msg)
    if seconds < 0:
        msg = f"{name} must be non-negative, got {value!r}"
        raise ConfigurationError(msg)
    return seconds


def _parse_unit_string(text: str, name: str) -> float:
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        msg = f"{name} is not a valid duration: {text!r}"
        raise ConfigurationError(msg)
    return total
