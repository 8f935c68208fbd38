from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from header_rules.engine.ruleset import REQUEST, RESPONSE, Config, RuleConfigError
from header_rules.routes.rules import describe_config
from header_rules.services.rules_loader import load_config


def explain(config: Config, path: str) -> Dict[str, Any]:
    fired = config.evaluate(path)
    out: Dict[str, Any] = {"path": path, "fired": [f.name for f in fired]}
    for side in (REQUEST, RESPONSE):
        out[side] = [
            {"rule": f.name, "header": c.header, "action": c.action, "value": c.value}
            for f in config.select(path, side)
            for c in f.changes
        ]
    return out


def _cmd_check(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.rules)
    except RuleConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    report: Dict[str, Any] = {"ok": True, "rules": len(config.rules)}
    if args.verbose:
        report["config"] = describe_config(config)
    report["paths"] = [explain(config, p) for p in args.paths]
    print(json.dumps(report, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="header-rules")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="validate a rules file and explain sample paths")
    check.add_argument("rules", help="YAML or JSON rules file")
    check.add_argument("paths", nargs="*", help="request paths to evaluate")
    check.add_argument("-v", "--verbose", action="store_true", help="include the parsed rules")
    check.set_defaults(func=_cmd_check)

    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
