"""Run configuration loading for rampload.

A run is described by a YAML file (JSON works too, being a YAML subset)
and optionally adjusted through environment variables and CLI flags. The
result is a frozen :class:`RunConfig` built once at startup and passed to
the session and reporter; nothing mutates it afterwards.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

import yaml

from rampload._internal.errors import ConfigurationError
from rampload._internal.parsing import parse_duration
from rampload.checks import DEFAULT_CHECKS, Check, parse_checks
from rampload.metrics.thresholds import Threshold, parse_thresholds
from rampload.patterns.stages import Stage, StagePattern

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rampload._internal.types import Headers

_KNOWN_KEYS = frozenset(
    {
        "target_url",
        "stages",
        "thresholds",
        "checks",
        "sleep_interval",
        "start_users",
        "tick_interval",
        "request_timeout",
        "headers",
        "fail_on_check_failure",
    }
)


@dataclass(frozen=True)
class RunConfig:
    """Immutable description of one load test run.

    Attributes:
        target_url: URL every virtual user sends GET requests to.
        stages: Ordered concurrency stages.
        thresholds: Conditions evaluated against the final metrics.
        checks: Assertions evaluated on every response.
        sleep_interval: Pause between iterations of a virtual user (seconds).
        start_users: Concurrency at ``t=0``, before the first stage ramps.
        tick_interval: Seconds between pool scaling decisions.
        request_timeout: Per-request timeout in seconds.
        headers: Headers sent with every request (read-only mapping).
        fail_on_check_failure: Exit non-zero when any check evaluation fails.
    """

    target_url: str
    stages: tuple[Stage, ...]
    thresholds: tuple[Threshold, ...] = ()
    checks: tuple[Check, ...] = field(default_factory=lambda: parse_checks(DEFAULT_CHECKS))
    sleep_interval: float = 1.0
    start_users: int = 0
    tick_interval: float = 1.0
    request_timeout: float = 60.0
    headers: Headers = field(default_factory=lambda: MappingProxyType({}))
    fail_on_check_failure: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if not self.target_url:
            msg = "target_url is required"
            raise ConfigurationError(msg)
        if not self.target_url.startswith(("http://", "https://")):
            msg = f"target_url must be an http(s) URL, got {self.target_url!r}"
            raise ConfigurationError(msg)
        if self.tick_interval <= 0:
            msg = f"tick_interval must be positive, got {self.tick_interval}"
            raise ConfigurationError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ConfigurationError(msg)
        # Validates the stage list (non-empty, non-negative values).
        self.pattern()

    def pattern(self) -> StagePattern:
        """Return the concurrency pattern for this run's stages."""
        return StagePattern(self.stages, start_users=self.start_users)

    def with_overrides(
        self,
        *,
        target_url: str | None = None,
        stages: Sequence[Stage] | None = None,
    ) -> RunConfig:
        """Return a copy with CLI overrides applied."""
        changes: dict[str, object] = {}
        if target_url is not None:
            changes["target_url"] = target_url
        if stages:
            changes["stages"] = tuple(stages)
        return dataclasses.replace(self, **changes) if changes else self


def parse_stage(raw: object, index: int) -> Stage:
    """Parse one ``{duration, target}`` mapping."""
    if not isinstance(raw, dict):
        msg = f"stages[{index}] must be a mapping with duration and target, got {raw!r}"
        raise ConfigurationError(msg)
    missing = {"duration", "target"} - raw.keys()
    if missing:
        msg = f"stages[{index}] is missing {', '.join(sorted(missing))}"
        raise ConfigurationError(msg)

    target = raw["target"]
    if isinstance(target, bool) or not isinstance(target, int):
        msg = f"stages[{index}].target must be an integer, got {target!r}"
        raise ConfigurationError(msg)
    if target < 0:
        msg = f"stages[{index}].target must be non-negative, got {target}"
        raise ConfigurationError(msg)

    duration = parse_duration(raw["duration"], f"stages[{index}].duration")
    return Stage(duration_seconds=duration, target=target)


def parse_stage_flag(text: str) -> Stage:
    """Parse a ``DURATION:TARGET`` CLI flag such as ``"10s:50"``."""
    duration_text, sep, target_text = text.rpartition(":")
    if not sep:
        msg = f"stage must look like DURATION:TARGET (e.g. 10s:50), got {text!r}"
        raise ConfigurationError(msg)
    try:
        target = int(target_text)
    except ValueError:
        msg = f"stage target must be an integer, got {target_text!r}"
        raise ConfigurationError(msg) from None
    return parse_stage({"duration": duration_text, "target": target}, 0)


def build_config(raw: Mapping[str, object]) -> RunConfig:
    """Validate a decoded configuration mapping and build a ``RunConfig``.

    Raises:
        ConfigurationError: On unknown keys, missing required keys, or any
            invalid value.
    """
    unknown = set(raw) - _KNOWN_KEYS
    if unknown:
        msg = f"unknown configuration key(s): {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg)

    raw_stages = raw.get("stages")
    if not isinstance(raw_stages, list) or not raw_stages:
        msg = "stages must be a non-empty list of {duration, target} entries"
        raise ConfigurationError(msg)

    raw_thresholds = raw.get("thresholds") or {}
    raw_checks = raw.get("checks", DEFAULT_CHECKS) or {}
    raw_headers = raw.get("headers") or {}
    for key, value in (
        ("thresholds", raw_thresholds),
        ("checks", raw_checks),
        ("headers", raw_headers),
    ):
        if not isinstance(value, dict):
            msg = f"{key} must be a mapping, got {value!r}"
            raise ConfigurationError(msg)

    start_users = raw.get("start_users", 0)
    if isinstance(start_users, bool) or not isinstance(start_users, int):
        msg = f"start_users must be an integer, got {start_users!r}"
        raise ConfigurationError(msg)

    fail_on_check_failure = raw.get("fail_on_check_failure", True)
    if not isinstance(fail_on_check_failure, bool):
        msg = f"fail_on_check_failure must be true or false, got {fail_on_check_failure!r}"
        raise ConfigurationError(msg)

    return RunConfig(
        target_url=str(raw.get("target_url") or ""),
        stages=tuple(parse_stage(s, i) for i, s in enumerate(raw_stages)),
        thresholds=parse_thresholds(raw_thresholds),  # type: ignore[arg-type]
        checks=parse_checks(raw_checks),  # type: ignore[arg-type]
        sleep_interval=parse_duration(raw.get("sleep_interval", 1.0), "sleep_interval"),
        start_users=start_users,
        tick_interval=parse_duration(raw.get("tick_interval", 1.0), "tick_interval"),
        request_timeout=parse_duration(raw.get("request_timeout", 60.0), "request_timeout"),
        headers={str(k): str(v) for k, v in raw_headers.items()},  # type: ignore[union-attr]
        fail_on_check_failure=fail_on_check_failure,
    )


def load_config(
    path: str | Path,
    environ: Mapping[str, str] | None = None,
) -> RunConfig:
    """Load a run configuration file and apply environment overrides.

    Environment variables:
        RAMPLOAD_TARGET_URL: Replaces ``target_url``.
        RAMPLOAD_TIMEOUT: Replaces ``request_timeout`` (seconds or a
            duration string such as ``"5s"``).

    Args:
        path: YAML or JSON configuration file.
        environ: Environment to read overrides from. Defaults to
            ``os.environ``.

    Returns:
        Populated RunConfig instance.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or invalid.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path)

    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"cannot read configuration file {config_path}: {exc}"
        raise ConfigurationError(msg) from exc

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"invalid YAML in {config_path}: {exc}"
        raise ConfigurationError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"{config_path} must contain a mapping at the top level"
        raise ConfigurationError(msg)

    if env.get("RAMPLOAD_TARGET_URL"):
        raw["target_url"] = env["RAMPLOAD_TARGET_URL"]
    if env.get("RAMPLOAD_TIMEOUT"):
        raw["request_timeout"] = env["RAMPLOAD_TIMEOUT"]

    return build_config(raw)
