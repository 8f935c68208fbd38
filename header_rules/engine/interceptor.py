from __future__ import annotations

import inspect
import time
from typing import Any, Optional, Protocol

from header_rules.engine.bag import HeaderBag
from header_rules.engine.diagnostics import (
    CAPABILITY_UNSUPPORTED,
    Diagnostic,
    DiagnosticSink,
    null_sink,
)
from header_rules.engine.processor import Clock, rewrite_headers
from header_rules.engine.ruleset import RESPONSE, Config


class CapabilityUnsupported(RuntimeError):
    """The wrapped sink cannot perform the requested operation."""


class ResponseSink(Protocol):
    """
    Where the response really goes.

    Optional capabilities are plain methods discovered at call time:
    ``flush()`` and ``hijack()`` (raw-connection takeover).
    """

    headers: HeaderBag

    async def start(self, status: int) -> None: ...

    async def write(self, data: bytes) -> None: ...


class ResponseInterceptor:
    """
    Decorates a :class:`ResponseSink` so response-side rules run before any
    response byte leaves.

    ``write_header`` is the header-finalization event: response rules are
    evaluated against the request path captured at request time, the stale
    content-length is dropped, then status and headers are committed. The body
    is buffered and written once by :meth:`finish`.
    """

    def __init__(
        self,
        sink: ResponseSink,
        config: Config,
        path: str,
        *,
        diagnostics: DiagnosticSink = null_sink,
        clock: Clock = time.time,
    ) -> None:
        self._sink = sink
        self._config = config
        self._path = path
        self._diagnostics = diagnostics
        self._clock = clock
        self._buffer = bytearray()
        self.status: Optional[int] = None
        self.wrote_header = False
        self.finished = False

    @property
    def headers(self) -> HeaderBag:
        return self._sink.headers

    async def write_header(self, status: int) -> None:
        if self.wrote_header:
            return
        rewrite_headers(
            self._config,
            self._path,
            RESPONSE,
            self._sink.headers,
            diagnostics=self._diagnostics,
            clock=self._clock,
        )
        # The real length is only known once the body is buffered.
        self._sink.headers.delete("content-length")
        self.status = status
        self.wrote_header = True
        await self._sink.start(status)

    async def write(self, data: bytes) -> int:
        if not self.wrote_header:
            await self.write_header(200)
        self._buffer.extend(data)
        return len(data)

    async def finish(self) -> None:
        """Write the buffered body to the real sink in one pass."""
        if self.finished or not self.wrote_header:
            return
        self.finished = True
        body = bytes(self._buffer)
        self._buffer.clear()
        await self._sink.write(body)

    async def flush(self) -> None:
        flusher = getattr(self._sink, "flush", None)
        if callable(flusher):
            result = flusher()
            if inspect.isawaitable(result):
                await result

    def hijack(self) -> Any:
        hijacker = getattr(self._sink, "hijack", None)
        if not callable(hijacker):
            msg = f"{type(self._sink).__name__} does not support connection takeover"
            self._diagnostics(
                Diagnostic(kind=CAPABILITY_UNSUPPORTED, message=msg, side=RESPONSE)
            )
            raise CapabilityUnsupported(msg)
        return hijacker()
