from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Pattern, Tuple

from header_rules.engine.dates import expand_date_macros, has_date_macro

# Reserved pattern: fire only while nothing has fired yet in this pass.
NO_MATCH = "NO_MATCH"
DEFAULT_RULE_NAME = "__default__"

REQUEST = "request"
RESPONSE = "response"

# RFC 7230 field-name: one or more tchar.
_TOKEN = re.compile(r"[!#$%&'*+.^_`|~0-9A-Za-z-]+")
# Field values must survive latin-1 encoding and cannot break the header line.
_FORBIDDEN_IN_VALUE = re.compile(r"[\r\n\x00]")

# Arbitrary instant used to validate macro-bearing replace expressions.
_SAMPLE_INSTANT = 784111777.0


class Action(str, Enum):
    SET = "set"
    UNSET = "unset"
    EDIT = "edit"
    APPEND = "append"


class RuleConfigError(ValueError):
    """Raised while building a Config from invalid rules."""


def _compile(expr: str, what: str) -> Pattern[str]:
    try:
        return re.compile(expr)
    except re.error as exc:
        raise RuleConfigError(f"invalid regular expression {expr!r} in {what}: {exc}") from exc


def _check_field_text(header: str, what: str, text: str) -> None:
    if _FORBIDDEN_IN_VALUE.search(text):
        raise RuleConfigError(f"{what} for header {header!r} contains a line break or NUL")
    try:
        text.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise RuleConfigError(
            f"{what} for header {header!r} is not latin-1 encodable: {exc.reason}"
        ) from exc


@dataclass(frozen=True)
class HeaderChange:
    """One declarative mutation of a single header on one side."""

    header: str
    action: str = Action.SET.value
    value: str = ""
    replace: Optional[str] = None
    separator: str = ""
    req: bool = False
    replace_re: Optional[Pattern[str]] = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.header or not self.header.strip():
            raise RuleConfigError("header change without a header name")
        header = self.header.strip()
        if not _TOKEN.fullmatch(header):
            raise RuleConfigError(f"invalid header name {header!r}: not an HTTP token")
        object.__setattr__(self, "header", header)
        for what, text in (("value", self.value), ("separator", self.separator)):
            _check_field_text(header, what, text)
        action = str(self.action.value if isinstance(self.action, Action) else self.action)
        object.__setattr__(self, "action", action.strip().lower())
        if self.replace is None:
            return
        what = f"replace for header {self.header!r}"
        if has_date_macro(self.replace):
            # Expanded per application; only check that it compiles.
            _compile(expand_date_macros(self.replace, _SAMPLE_INSTANT), what)
            return
        object.__setattr__(self, "replace_re", _compile(self.replace, what))

    @property
    def side(self) -> str:
        return REQUEST if self.req else RESPONSE


@dataclass(frozen=True)
class Rule:
    name: str
    pattern: str
    changes: Tuple[HeaderChange, ...] = ()
    regex: Optional[Pattern[str]] = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "changes", tuple(self.changes))
        if self.pattern != NO_MATCH:
            object.__setattr__(
                self, "regex", _compile(self.pattern, f"rule {self.name!r}")
            )

    @property
    def is_sentinel(self) -> bool:
        return self.pattern == NO_MATCH

    def matches(self, path: str) -> bool:
        # Unanchored search, like a substring test.
        return self.regex is not None and self.regex.search(path) is not None


class Fired(NamedTuple):
    name: str
    changes: Tuple[HeaderChange, ...]
    default: bool = False


@dataclass(frozen=True)
class Config:
    """
    Ordered rules plus the default change list.

    Immutable once built: reloads replace the whole object, in-flight cycles
    keep the snapshot they started with.
    """

    rules: Tuple[Rule, ...] = ()
    default_changes: Tuple[HeaderChange, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "default_changes", tuple(self.default_changes))

    def evaluate(self, path: str) -> List[Fired]:
        """
        Walk the rules in order and return every change list that fires.

        Every matching rule fires; a sentinel rule fires only while nothing has
        fired before it. The default list fires when nothing fired at all.
        """
        any_matched = False
        fired: List[Fired] = []
        for rule in self.rules:
            if rule.is_sentinel:
                if any_matched:
                    continue
            elif not rule.matches(path):
                continue
            fired.append(Fired(rule.name, rule.changes))
            any_matched = True

        if not any_matched and self.default_changes:
            fired.append(Fired(DEFAULT_RULE_NAME, self.default_changes, default=True))
        return fired

    def select(self, path: str, side: str) -> List[Fired]:
        """Like :meth:`evaluate`, keeping only the changes for ``side``."""
        return [
            Fired(f.name, tuple(c for c in f.changes if c.side == side), f.default)
            for f in self.evaluate(path)
        ]


EMPTY_CONFIG = Config()
