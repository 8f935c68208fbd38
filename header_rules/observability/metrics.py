from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional, Tuple

from prometheus_client import REGISTRY, CollectorRegistry, Counter

_log = logging.getLogger(__name__)

_ENABLED = os.getenv("METRICS_ENABLED", "true").lower() in ("1", "true", "yes", "on")


def _best_effort(msg: str, fn: Callable[[], Any]) -> None:
    try:
        fn()
    except Exception as e:  # pragma: no cover
        # nosec B110 - metrics should never crash request paths; debug for ops.
        _log.debug("%s: %s", msg, e)


def _get_or_create_counter(
    name: str,
    doc: str,
    labelnames: Tuple[str, ...] = (),
    registry: Optional[CollectorRegistry] = None,
) -> Counter:
    reg = registry or REGISTRY
    try:
        return Counter(name, doc, labelnames=labelnames, registry=reg)
    except ValueError:
        # Already registered (module reloads in tests); reuse it.
        names_map = getattr(reg, "_names_to_collectors", None)
        if isinstance(names_map, dict):
            found = names_map.get(name) or names_map.get(f"{name}_total")
            if isinstance(found, Counter):
                return found
        # Final fallback: an unregistered counter (won't be exposed).
        return Counter(name, doc, labelnames=labelnames, registry=None)


header_rules_fired_total = _get_or_create_counter(
    "header_rules_fired_total",
    "Rule (or default list) firings by side",
    ("rule", "side"),
)
header_rules_diagnostics_total = _get_or_create_counter(
    "header_rules_diagnostics_total",
    "Non-fatal diagnostics emitted by the header rules engine",
    ("kind",),
)
header_rules_reloads_total = _get_or_create_counter(
    "header_rules_reloads_total",
    "Rules file reloads by outcome",
    ("outcome",),
)


def inc_fired(rule: str, side: str) -> None:
    if not _ENABLED:
        return
    _best_effort(
        "inc header_rules_fired_total",
        lambda: header_rules_fired_total.labels(rule=rule or "unknown", side=side or "unknown").inc(),
    )


def inc_diagnostic(kind: str) -> None:
    if not _ENABLED:
        return
    _best_effort(
        "inc header_rules_diagnostics_total",
        lambda: header_rules_diagnostics_total.labels(kind=kind or "other").inc(),
    )


def inc_reload(outcome: str) -> None:
    if not _ENABLED:
        return
    _best_effort(
        "inc header_rules_reloads_total",
        lambda: header_rules_reloads_total.labels(outcome=outcome).inc(),
    )
