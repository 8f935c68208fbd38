# header_rules/routes/rules.py
# Summary: read-only view of the active rules and a forced reload.
# - Both endpoints require ADMIN_TOKEN (Bearer or X-Admin-Token) when it is set.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request

from header_rules.config import Settings
from header_rules.engine.ruleset import Config, HeaderChange, RuleConfigError
from header_rules.services.rules_loader import RulesStore

router = APIRouter(prefix="/rules", tags=["rules"])


def _token_ok(request: Request, required: str) -> bool:
    if request.headers.get("x-admin-token") == required:
        return True
    auth = request.headers.get("authorization", "")
    return auth.lower().startswith("bearer ") and auth[7:].strip() == required


def _guard(request: Request) -> RulesStore:
    required = (Settings().ADMIN_TOKEN or "").strip()
    if required and not _token_ok(request, required):
        raise HTTPException(status_code=401, detail="Unauthorized")
    store: Optional[RulesStore] = getattr(request.app.state, "rules_store", None)
    if store is None:
        raise HTTPException(status_code=404, detail="header rules not installed")
    return store


def _change_view(change: HeaderChange) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "header": change.header,
        "side": change.side,
        "action": change.action,
        "value": change.value,
    }
    if change.replace is not None:
        out["replace"] = change.replace
    if change.separator:
        out["sep"] = change.separator
    return out


def describe_config(config: Config) -> Dict[str, Any]:
    rules: List[Dict[str, Any]] = [
        {
            "name": rule.name,
            "regexp": rule.pattern,
            "headerChanges": [_change_view(c) for c in rule.changes],
        }
        for rule in config.rules
    ]
    return {
        "rules": rules,
        "defaultHeaders": [_change_view(c) for c in config.default_changes],
    }


@router.get("")
async def get_rules(request: Request) -> Dict[str, Any]:
    store = _guard(request)
    info = describe_config(store.current())
    info["path"] = store.path
    return info


@router.post("/reload")
async def reload_rules(request: Request) -> Dict[str, Any]:
    store = _guard(request)
    try:
        config = store.reload_now()
    except RuleConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"status": "reloaded", "rules": len(config.rules)}
