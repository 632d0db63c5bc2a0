"""Shared type aliases for rampload."""

from __future__ import annotations

from collections.abc import Mapping

# HTTP headers, read-only once a run is configured.
Headers = Mapping[str, str]

# Check name -> pass/fail outcome for a single request.
CheckOutcomes = dict[str, bool]
