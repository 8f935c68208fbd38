from __future__ import annotations

import re
from email.utils import formatdate
from typing import Optional

from header_rules.engine.diagnostics import BAD_DATE_OFFSET, Diagnostic, DiagnosticSink, null_sink

# @DT_ADD#<seconds>@ -> HTTP-date of (now + seconds)
DATE_MACRO = re.compile(r"@DT_ADD#([^@]*)@")


def http_date(ts: float) -> str:
    """IMF-fixdate, e.g. ``Sun, 06 Nov 1994 08:49:37 GMT``."""
    return formatdate(ts, usegmt=True)


def has_date_macro(s: str) -> bool:
    return DATE_MACRO.search(s) is not None


def expand_date_macros(
    s: str,
    now: float,
    diagnostics: DiagnosticSink = null_sink,
    *,
    rule: Optional[str] = None,
    header: Optional[str] = None,
) -> str:
    """
    Replace every ``@DT_ADD#N@`` in ``s`` with the HTTP-date for ``now + N`` seconds.

    An offset that does not parse as an integer counts as zero and is reported
    as a ``bad_date_offset`` diagnostic. The result is always whitespace-trimmed.
    """
    if not has_date_macro(s):
        return s.strip()

    def _sub(match: re.Match[str]) -> str:
        raw = match.group(1)
        try:
            offset = int(raw.strip())
            return http_date(now + offset)
        except (ValueError, OverflowError, OSError):
            diagnostics(
                Diagnostic(
                    kind=BAD_DATE_OFFSET,
                    message=f"invalid date offset {raw!r}, using 0",
                    rule=rule,
                    header=header,
                    detail={"offset": raw},
                )
            )
            return http_date(now)

    return DATE_MACRO.sub(_sub, s).strip()
