# header_rules/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from header_rules.config import APP_VERSION, Settings
from header_rules.middleware.header_rules import install_header_rules
from header_rules.routes import health, rules
from header_rules.services.rules_loader import RulesStore
from header_rules.telemetry.logging import configure_root_logging

log = logging.getLogger(__name__)


def create_app(
    store: Optional[RulesStore] = None, settings: Optional[Settings] = None
) -> FastAPI:
    s = settings or Settings()
    configure_root_logging(s.LOG_LEVEL, json_lines=s.LOG_JSON)

    app = FastAPI(
        title=s.APP_NAME,
        description="Rule-driven request/response header rewriting.",
        version=APP_VERSION,
    )
    app.include_router(health.router)
    app.include_router(rules.router)
    if s.METRICS_ENABLED:
        from header_rules.routes import metrics

        app.include_router(metrics.router)

    if s.HEADER_RULES_ENABLED:
        # Fails here, before serving, on an uncompilable rules file.
        rules_store = store or RulesStore.from_settings(s)
        app.state.rules_store = rules_store
        install_header_rules(app, store=rules_store)
        log.info(
            "header rules installed",
            extra={"path": rules_store.path, "rules": len(rules_store.current().rules)},
        )
    return app
