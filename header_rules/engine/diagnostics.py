from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

RULE_FIRED = "rule_fired"
UNKNOWN_ACTION = "unknown_action"
BAD_DATE_OFFSET = "bad_date_offset"
CAPABILITY_UNSUPPORTED = "capability_unsupported"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal event raised while evaluating or applying rules."""

    kind: str
    message: str
    rule: Optional[str] = None
    header: Optional[str] = None
    side: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.rule is not None:
            out["rule"] = self.rule
        if self.header is not None:
            out["header"] = self.header
        if self.side is not None:
            out["side"] = self.side
        if self.detail:
            out.update(self.detail)
        return out


class DiagnosticSink(Protocol):
    def __call__(self, event: Diagnostic) -> None: ...


def null_sink(event: Diagnostic) -> None:
    return None


class CollectingSink:
    """Keeps every event in memory; handy for tests and the CLI."""

    def __init__(self) -> None:
        self.events: List[Diagnostic] = []

    def __call__(self, event: Diagnostic) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]


__all__ = [
    "BAD_DATE_OFFSET",
    "CAPABILITY_UNSUPPORTED",
    "CollectingSink",
    "Diagnostic",
    "DiagnosticSink",
    "RULE_FIRED",
    "UNKNOWN_ACTION",
    "null_sink",
]
