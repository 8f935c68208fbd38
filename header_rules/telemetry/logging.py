# header_rules/telemetry/logging.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Tuple

from header_rules.engine.diagnostics import (
    BAD_DATE_OFFSET,
    CAPABILITY_UNSUPPORTED,
    RULE_FIRED,
    UNKNOWN_ACTION,
    Diagnostic,
)
from header_rules.observability.metrics import inc_diagnostic, inc_fired

# ------------------------------- JSON utilities -------------------------------


def _iso8601(dt: datetime) -> str:
    # Always UTC, explicit trailing 'Z'
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


_JSON_SAFE_PRIMITIVES = (str, int, float, bool, type(None))


def _json_sanitize(value: Any) -> Any:
    if isinstance(value, _JSON_SAFE_PRIMITIVES):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return _iso8601(value)
    if isinstance(value, Mapping):
        return {str(k): _json_sanitize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_sanitize(v) for v in value]
    return str(value)


# ------------------------------ JSON formatter --------------------------------


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ``ts``, ``level``, ``logger`` and ``message``,
    then any ``extra`` fields at the top level.

    Engine diagnostics arrive with ``event`` set to the diagnostic kind
    (``rule_fired``, ``unknown_action``, ``bad_date_offset``,
    ``capability_unsupported``) plus whichever of ``rule``, ``header`` and
    ``side`` apply, and detail keys such as ``offset``. Rules-store messages
    carry ``path`` and, after a reload, ``rules``.
    """

    # Standard LogRecord attributes to exclude from "extra"
    _std_keys: Tuple[str, ...] = (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    )

    def format(self, record: logging.LogRecord) -> str:
        extra: Dict[str, Any] = {}
        for k, v in record.__dict__.items():
            if k not in self._std_keys and not k.startswith("_"):
                extra[k] = v

        payload: Dict[str, Any] = {
            "ts": _iso8601(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if extra:
            payload.update(_json_sanitize(extra))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


# ------------------------------ Logger helpers --------------------------------


_configured = False


def configure_root_logging(level: int | str = "INFO", *, json_lines: bool = True) -> None:
    """
    Idempotent root logger setup for logs to stdout. Safe for tests.
    """
    global _configured
    if _configured:
        return

    root = logging.getLogger()

    resolved_level = (
        level if isinstance(level, int) else getattr(logging, str(level).upper(), logging.INFO)
    )
    root.setLevel(resolved_level)

    # Remove pre-existing handlers to avoid duplicate lines in tests
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    if json_lines:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)

    _configured = True


# --------------------------- Engine diagnostics sink ---------------------------


_LEVELS: Dict[str, int] = {
    RULE_FIRED: logging.DEBUG,
    UNKNOWN_ACTION: logging.WARNING,
    BAD_DATE_OFFSET: logging.WARNING,
    CAPABILITY_UNSUPPORTED: logging.WARNING,
}


class LoggingDiagnostics:
    """Engine diagnostic sink backed by ``logging`` and prometheus counters."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("header_rules.engine")

    def __call__(self, event: Diagnostic) -> None:
        if event.kind == RULE_FIRED:
            inc_fired(event.rule or "", event.side or "")
        else:
            inc_diagnostic(event.kind)
        level = _LEVELS.get(event.kind, logging.INFO)
        if self._log.isEnabledFor(level):
            fields = event.as_dict()
            fields.pop("message", None)
            self._log.log(level, event.message, extra={"event": fields.pop("kind"), **fields})
