# tests/conftest.py
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
from starlette.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# RFC 7231's example instant: Sun, 06 Nov 1994 08:49:37 GMT
T0 = 784111777.0


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("HEADER_RULES_PATH", "HEADER_RULES_AUTORELOAD", "HEADER_RULES_ENABLED", "ADMIN_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def clock():
    return lambda: T0


@pytest.fixture()
def app():
    from header_rules.main import create_app

    return create_app()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Minimal asyncio support without requiring pytest-asyncio."""

    test_func = pyfuncitem.obj
    if asyncio.iscoroutinefunction(test_func):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            call_kwargs = {
                name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
            }
            loop.run_until_complete(test_func(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None
