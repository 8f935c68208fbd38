from __future__ import annotations

import re
from typing import Iterable, Optional, Pattern

from header_rules.engine.bag import HeaderBag
from header_rules.engine.dates import expand_date_macros
from header_rules.engine.diagnostics import (
    RULE_FIRED,
    UNKNOWN_ACTION,
    Diagnostic,
    DiagnosticSink,
    null_sink,
)
from header_rules.engine.ruleset import Action, Fired, HeaderChange

_ACTIONS = frozenset(a.value for a in Action)


def _replace_pattern(
    change: HeaderChange, now: float, diagnostics: DiagnosticSink, rule: Optional[str]
) -> Optional[Pattern[str]]:
    if change.replace_re is not None:
        return change.replace_re
    if change.replace is None:
        return None
    expanded = expand_date_macros(
        change.replace, now, diagnostics, rule=rule, header=change.header
    )
    return re.compile(expanded)


def apply_change(
    bag: HeaderBag,
    change: HeaderChange,
    *,
    now: float,
    diagnostics: DiagnosticSink = null_sink,
    rule: Optional[str] = None,
) -> bool:
    """
    Apply one change to ``bag`` in place. Returns False when the change was skipped.

    - set: single occurrence with the expanded value
    - unset: drop every occurrence
    - edit: regex substitution on the current content; set when absent or empty,
      append ``separator + value`` when the value is not found afterwards
    - append: concatenate with the separator, or add a repeated occurrence
    """
    name = change.header
    action = change.action

    if action == Action.UNSET.value:
        bag.delete(name)
        return True

    if action not in _ACTIONS:
        diagnostics(
            Diagnostic(
                kind=UNKNOWN_ACTION,
                message=(
                    f"unknown action {action!r} for header {name!r}; "
                    "valid actions are set|unset|edit|append"
                ),
                rule=rule,
                header=name,
                side=change.side,
                detail={"action": action},
            )
        )
        return False

    value = expand_date_macros(change.value, now, diagnostics, rule=rule, header=name)

    if action == Action.SET.value:
        bag.set(name, value)
    elif action == Action.EDIT.value:
        current = bag.joined(name)
        if not current:
            bag.set(name, value)
            return True
        pattern = _replace_pattern(change, now, diagnostics, rule)
        edited = pattern.sub(lambda _m: value, current) if pattern is not None else current
        # A value missing after substitution means the pattern did not match.
        if value not in edited:
            edited = edited + change.separator + value
        bag.set(name, edited)
    else:
        if change.separator and name in bag:
            bag.extend_last(name, change.separator + value)
        else:
            bag.add(name, value)
    return True


def apply_fired(
    bag: HeaderBag,
    fired: Iterable[Fired],
    *,
    side: str,
    now: float,
    diagnostics: DiagnosticSink = null_sink,
) -> int:
    """Apply every fired change list in order; returns how many changes applied."""
    applied = 0
    for item in fired:
        diagnostics(
            Diagnostic(
                kind=RULE_FIRED,
                message=f"rule {item.name!r} fired",
                rule=item.name,
                side=side,
                detail={"default": item.default, "changes": len(item.changes)},
            )
        )
        for change in item.changes:
            if apply_change(bag, change, now=now, diagnostics=diagnostics, rule=item.name):
                applied += 1
    return applied
