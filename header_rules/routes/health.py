from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter(tags=["ops"])


@router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    store = getattr(request.app.state, "rules_store", None)
    payload: Dict[str, Any] = {"status": "ok"}
    if store is not None:
        config = store.current()
        payload["rules"] = len(config.rules)
        payload["default_changes"] = len(config.default_changes)
    return payload
