from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from starlette.testclient import TestClient

from header_rules.engine.ruleset import RuleConfigError
from header_rules.main import create_app

RULES = textwrap.dedent(
    """
    rules:
      - name: health
        regexp: '^/health$'
        headerChanges:
          - {header: X-Health, value: checked}
    defaultHeaders:
      - {header: Cache-Control, value: no-cache}
    """
)


def _rules_file(tmp_path: Path, text: str = RULES) -> Path:
    p = tmp_path / "rules.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_health_without_rules(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "rules": 0, "default_changes": 0}


def test_rules_file_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HEADER_RULES_PATH", str(_rules_file(tmp_path)))
    client = TestClient(create_app())

    r = client.get("/health")
    assert r.json()["rules"] == 1
    assert r.headers.get("x-health") == "checked"
    assert "cache-control" not in r.headers

    other = client.get("/rules")
    assert other.headers.get("cache-control") == "no-cache"
    assert other.json()["rules"][0]["name"] == "health"


def test_invalid_rules_fail_app_construction(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HEADER_RULES_PATH", str(_rules_file(tmp_path, "rules: [{name: x, regexp: '(('}]")))
    with pytest.raises(RuleConfigError):
        create_app()


def test_middleware_can_be_disabled(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HEADER_RULES_PATH", str(_rules_file(tmp_path)))
    monkeypatch.setenv("HEADER_RULES_ENABLED", "false")
    client = TestClient(create_app())
    assert "x-health" not in client.get("/health").headers
    assert client.get("/rules").status_code == 404


def test_reload_endpoint(tmp_path: Path, monkeypatch) -> None:
    path = _rules_file(tmp_path)
    monkeypatch.setenv("HEADER_RULES_PATH", str(path))
    monkeypatch.setenv("HEADER_RULES_AUTORELOAD", "false")
    client = TestClient(create_app())

    path.write_text("rules: []\n", encoding="utf-8")
    r = client.post("/rules/reload")
    assert r.status_code == 200
    assert r.json() == {"status": "reloaded", "rules": 0}

    path.write_text("rules: [{name: x, regexp: '(('}]\n", encoding="utf-8")
    bad = client.post("/rules/reload")
    assert bad.status_code == 422


def test_admin_token_guards_rules_endpoints(monkeypatch) -> None:
    monkeypatch.setenv("ADMIN_TOKEN", "s3cret")
    client = TestClient(create_app())
    assert client.get("/rules").status_code == 401
    assert client.get("/rules", headers={"Authorization": "Bearer s3cret"}).status_code == 200
    assert client.get("/rules", headers={"X-Admin-Token": "s3cret"}).status_code == 200


def test_metrics_exposed(client: TestClient) -> None:
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain; version=0.0.4")
    assert "header_rules_diagnostics_total" in r.text
