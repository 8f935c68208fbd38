# header_rules/middleware/header_rules.py
# Summary: ASGI binding of the header rules engine.
# - Request side: rewrites scope["headers"] before the downstream app runs.
# - Response side: http.response.start is the header-finalization event; the
#   body is buffered and sent once, after response rules were applied.
# - The ResponseInterceptor is exposed to downstream code through
#   scope["extensions"]["header_rules.response"] (flush / hijack).

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from fastapi import FastAPI
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from header_rules.engine.bag import HeaderBag
from header_rules.engine.diagnostics import DiagnosticSink
from header_rules.engine.interceptor import ResponseInterceptor
from header_rules.engine.processor import Clock, RequestProcessor
from header_rules.engine.ruleset import Config
from header_rules.services.rules_loader import RulesStore
from header_rules.telemetry.logging import LoggingDiagnostics

EXTENSION_KEY = "header_rules.response"

_START_KEYS = ("type", "status", "headers")

# Responses sent by these bypass body messages, so the body could not be buffered.
_BODY_BYPASS_EXTENSIONS = ("http.response.pathsend", "http.response.zerocopysend")


class ASGIResponseSink:
    """ResponseSink writing to an ASGI ``send`` callable."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.headers = HeaderBag()
        self._start_extra: Dict[str, Any] = {}

    def load(self, message: Message) -> None:
        """Seed headers (and extra keys such as ``trailers``) from the app's start message."""
        self.headers = HeaderBag.from_raw(message.get("headers") or ())
        self._start_extra = {k: v for k, v in message.items() if k not in _START_KEYS}

    async def start(self, status: int) -> None:
        message: Dict[str, Any] = {
            "type": "http.response.start",
            "status": status,
            "headers": self.headers.raw(),
        }
        message.update(self._start_extra)
        await self._send(message)

    async def write(self, data: bytes) -> None:
        await self._send({"type": "http.response.body", "body": data, "more_body": False})


class HeaderRulesMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        *,
        store: Optional[RulesStore] = None,
        config: Optional[Config] = None,
        diagnostics: Optional[DiagnosticSink] = None,
        clock: Clock = time.time,
    ) -> None:
        self.app = app
        if store is None:
            store = RulesStore.static(config) if config is not None else RulesStore.from_settings()
        self._store = store
        self._diagnostics: DiagnosticSink = diagnostics or LoggingDiagnostics()
        self._clock = clock

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # One snapshot for both sides of this cycle.
        config = self._store.current()
        path = scope.get("path") or ""

        headers = HeaderBag.from_raw(scope.get("headers") or ())
        RequestProcessor(config, diagnostics=self._diagnostics, clock=self._clock).process(
            path, headers
        )

        sink = ASGIResponseSink(send)
        interceptor = ResponseInterceptor(
            sink, config, path, diagnostics=self._diagnostics, clock=self._clock
        )

        scope = dict(scope)
        scope["headers"] = headers.raw()
        extensions = {
            k: v
            for k, v in (scope.get("extensions") or {}).items()
            if k not in _BODY_BYPASS_EXTENSIONS
        }
        extensions[EXTENSION_KEY] = interceptor
        scope["extensions"] = extensions

        async def send_wrapper(message: Message) -> None:
            mtype = message.get("type")
            if mtype == "http.response.start":
                sink.load(message)
                await interceptor.write_header(int(message.get("status", 200)))
                return
            if mtype == "http.response.body":
                await interceptor.write(message.get("body", b"") or b"")
                if not message.get("more_body", False):
                    await interceptor.finish()
                return
            if mtype in _BODY_BYPASS_EXTENSIONS:
                # The app completed the response itself; nothing left to flush.
                interceptor.finished = True
            await send(message)

        await self.app(scope, receive, send_wrapper)
        await interceptor.finish()


def get_interceptor(scope: Scope) -> Optional[ResponseInterceptor]:
    """The interceptor for the current cycle, if the middleware is installed."""
    extensions = scope.get("extensions") or {}
    found = extensions.get(EXTENSION_KEY)
    return found if isinstance(found, ResponseInterceptor) else None


def install_header_rules(app: FastAPI, store: Optional[RulesStore] = None, **kwargs: Any) -> None:
    app.add_middleware(HeaderRulesMiddleware, store=store, **kwargs)
