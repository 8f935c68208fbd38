# File: header_rules/services/rules_loader.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from header_rules.config import Settings
from header_rules.engine.ruleset import EMPTY_CONFIG, Config, RuleConfigError
from header_rules.observability.metrics import inc_reload
from header_rules.schemas import config_from_dict

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RulesSnapshot:
    config: Config
    path: str
    mtime: float


def load_config(path: str | Path) -> Config:
    """Read and compile a YAML (or JSON) rules file; any defect raises RuleConfigError."""
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuleConfigError(f"cannot read rules file {str(p)!r}: {exc}") from exc
    if not isinstance(data, dict):
        raise RuleConfigError(f"rules file {str(p)!r} must contain a mapping")
    try:
        return config_from_dict(data)
    except ValidationError as exc:
        raise RuleConfigError(f"invalid rules file {str(p)!r}: {exc}") from exc


def _load_snapshot(path: str) -> RulesSnapshot:
    config = load_config(path)
    try:
        mtime = Path(path).stat().st_mtime
    except OSError:
        mtime = 0.0
    return RulesSnapshot(config=config, path=path, mtime=mtime)


class RulesStore:
    """
    Holds the current Config. Reloads swap the whole snapshot in one
    assignment, so readers never see a half-built Config.
    """

    def __init__(self, path: Optional[str] = None, *, autoreload: bool = True) -> None:
        self._path = (path or "").strip()
        self._autoreload = autoreload
        self._snapshot: Optional[RulesSnapshot] = None
        if self._path:
            self._snapshot = _load_snapshot(self._path)
            inc_reload("ok")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RulesStore":
        s = settings or Settings()
        return cls(s.HEADER_RULES_PATH, autoreload=s.HEADER_RULES_AUTORELOAD)

    @classmethod
    def static(cls, config: Config) -> "RulesStore":
        store = cls()
        store._snapshot = RulesSnapshot(config=config, path="", mtime=0.0)
        return store

    @property
    def path(self) -> str:
        return self._path

    def current(self) -> Config:
        """Return the snapshot to use for one request; refresh first if the file changed."""
        snap = self._snapshot
        if not self._path:
            return snap.config if snap is not None else EMPTY_CONFIG

        if self._autoreload and snap is not None:
            try:
                mtime = Path(self._path).stat().st_mtime
            except FileNotFoundError:
                return snap.config
            if mtime != snap.mtime:
                try:
                    snap = _load_snapshot(self._path)
                except RuleConfigError as exc:
                    inc_reload("error")
                    log.error(
                        "rules reload failed, keeping previous rules: %s",
                        exc,
                        extra={"path": self._path},
                    )
                    return self._snapshot.config if self._snapshot else EMPTY_CONFIG
                self._snapshot = snap
                inc_reload("ok")
                log.info(
                    "rules reloaded",
                    extra={"path": self._path, "rules": len(snap.config.rules)},
                )

        return snap.config if snap is not None else EMPTY_CONFIG

    def reload_now(self) -> Config:
        """Force a reload regardless of autoreload; errors propagate."""
        if not self._path:
            return self.current()
        try:
            snap = _load_snapshot(self._path)
        except RuleConfigError:
            inc_reload("error")
            raise
        self._snapshot = snap
        inc_reload("ok")
        return snap.config
