from __future__ import annotations

import time
from typing import Callable

from header_rules.engine.bag import HeaderBag
from header_rules.engine.diagnostics import DiagnosticSink, null_sink
from header_rules.engine.mutator import apply_fired
from header_rules.engine.ruleset import REQUEST, Config

Clock = Callable[[], float]


def rewrite_headers(
    config: Config,
    path: str,
    side: str,
    bag: HeaderBag,
    *,
    diagnostics: DiagnosticSink = null_sink,
    clock: Clock = time.time,
) -> int:
    """One evaluation pass for ``side``: select the firing rules and apply them to ``bag``."""
    now = clock()
    fired = config.select(path, side)
    return apply_fired(bag, fired, side=side, now=now, diagnostics=diagnostics)


class RequestProcessor:
    """Applies request-side changes before the downstream handler runs."""

    def __init__(
        self,
        config: Config,
        *,
        diagnostics: DiagnosticSink = null_sink,
        clock: Clock = time.time,
    ) -> None:
        self.config = config
        self._diagnostics = diagnostics
        self._clock = clock

    def process(self, path: str, headers: HeaderBag) -> HeaderBag:
        rewrite_headers(
            self.config,
            path,
            REQUEST,
            headers,
            diagnostics=self._diagnostics,
            clock=self._clock,
        )
        return headers
