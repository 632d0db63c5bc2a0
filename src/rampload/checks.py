"""Per-request boolean assertions evaluated by every virtual user."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rampload._internal.errors import ConfigurationError
from rampload._internal.parsing import OPERATOR_PATTERN, OPERATORS, parse_duration

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from rampload._internal.types import CheckOutcomes

_CHECK_EXPRESSION = re.compile(
    rf"^\s*(?P<subject>status|duration)\s*(?P<op>{OPERATOR_PATTERN})\s*(?P<value>\S+)\s*$"
)

DEFAULT_CHECKS: dict[str, str] = {"status is 200": "status == 200"}


@dataclass(frozen=True)
class Check:
    """A named assertion over one response.

    Attributes:
        name: Label shown in the report, e.g. ``"status is 200"``.
        subject: ``"status"`` (HTTP status code) or ``"duration"``
            (latency in milliseconds).
        operator: Comparison operator, one of ``< <= > >= == !=``.
        value: Right-hand side; milliseconds for ``duration``.
    """

    name: str
    subject: str
    operator: str
    value: float

    def evaluate(self, status_code: int, latency_ms: float) -> bool:
        observed = float(status_code) if self.subject == "status" else latency_ms
        return OPERATORS[self.operator](observed, self.value)


def parse_check(name: str, expression: str) -> Check:
    """Parse ``"<status|duration> <op> <value>"`` into a :class:`Check`.

    Duration values accept time units (``"500ms"``, ``"1s"``); bare numbers
    are milliseconds.

    Raises:
        ConfigurationError: If the expression does not match the grammar.
    """
    match = _CHECK_EXPRESSION.match(expression)
    if match is None:
        msg = (
            f"check {name!r} has an invalid expression {expression!r}; "
            "expected e.g. 'status == 200' or 'duration < 500ms'"
        )
        raise ConfigurationError(msg)

    subject = match.group("subject")
    raw_value = match.group("value")
    if subject == "status":
        try:
            value = float(int(raw_value))
        except ValueError:
            msg = f"check {name!r}: status must be an integer, got {raw_value!r}"
            raise ConfigurationError(msg) from None
    else:
        value = parse_duration(raw_value, f"check {name!r}", default_unit="ms") * 1000.0

    return Check(name=name, subject=subject, operator=match.group("op"), value=value)


def parse_checks(raw: Mapping[str, str]) -> tuple[Check, ...]:
    """Parse a ``{name: expression}`` mapping from the run configuration."""
    checks = []
    for name, expression in raw.items():
        if not isinstance(expression, str):
            msg = f"check {name!r} must be an expression string, got {expression!r}"
            raise ConfigurationError(msg)
        checks.append(parse_check(str(name), expression))
    return tuple(checks)


def evaluate_checks(checks: Iterable[Check], status_code: int, latency_ms: float) -> CheckOutcomes:
    """Evaluate every check against one response."""
    return {check.name: check.evaluate(status_code, latency_ms) for check in checks}


def fail_all(checks: Iterable[Check]) -> CheckOutcomes:
    """Outcomes for a request that never produced a response."""
    return dict.fromkeys((check.name for check in checks), False)
