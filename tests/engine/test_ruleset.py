# tests/engine/test_ruleset.py
# Summary: rule selection, NO_MATCH gating, default list, construction-time compilation.

from __future__ import annotations

import pytest

from header_rules.engine.bag import HeaderBag
from header_rules.engine.processor import RequestProcessor, rewrite_headers
from header_rules.engine.ruleset import (
    DEFAULT_RULE_NAME,
    NO_MATCH,
    REQUEST,
    RESPONSE,
    Config,
    HeaderChange,
    Rule,
    RuleConfigError,
)


def _set(header: str, value: str, *, req: bool = False) -> HeaderChange:
    return HeaderChange(header=header, action="set", value=value, req=req)


def _names(config: Config, path: str) -> list[str]:
    return [f.name for f in config.evaluate(path)]


def test_only_first_sentinel_fires() -> None:
    config = Config(
        rules=(
            Rule("A", r"\.never$", (_set("X-A", "a"),)),
            Rule("B", NO_MATCH, (_set("X-B", "b"),)),
            Rule("C", NO_MATCH, (_set("X-C", "c"),)),
        )
    )
    assert _names(config, "/index.html") == ["B"]

    bag = HeaderBag()
    rewrite_headers(config, "/index.html", RESPONSE, bag)
    assert bag.as_dict() == {"x-b": ["b"]}


def test_sentinel_blocked_by_earlier_match() -> None:
    config = Config(
        rules=(
            Rule("A", r"\.png$", (_set("X-A", "a"),)),
            Rule("B", NO_MATCH, (_set("X-B", "b"),)),
        )
    )
    assert _names(config, "/a.png") == ["A"]
    assert _names(config, "/a.gif") == ["B"]


def test_sentinel_before_real_match_both_fire() -> None:
    config = Config(
        rules=(
            Rule("B", NO_MATCH, (_set("X-B", "b"),)),
            Rule("A", r"\.png$", (_set("X-A", "a"),)),
        )
    )
    assert _names(config, "/a.png") == ["B", "A"]


def test_every_matching_rule_fires_and_later_set_wins() -> None:
    config = Config(
        rules=(
            Rule("first", "cache", (_set("Cache-Test", "FIRST"),)),
            Rule("second", r"\.js$", (_set("Cache-Test", "SECOND"),)),
        )
    )
    assert _names(config, "/x.cache.js") == ["first", "second"]
    bag = HeaderBag()
    rewrite_headers(config, "/x.cache.js", RESPONSE, bag)
    assert bag.get_all("cache-test") == ["SECOND"]


def test_patterns_are_unanchored_search() -> None:
    config = Config(rules=(Rule("nc", "(nocache|no-cache)", ()),))
    assert _names(config, "/test-no-cache-10.html") == ["nc"]
    assert _names(config, "/plain.html") == []


def test_defaults_only_when_nothing_matched() -> None:
    config = Config(
        rules=(Rule("img", "(png|js)$", (_set("Expires", "@DT_ADD#86400@"),)),),
        default_changes=(_set("Cache-Control", "no-cache"),),
    )
    assert _names(config, "/a.png") == ["img"]
    fired = config.evaluate("/a.html")
    assert [f.name for f in fired] == [DEFAULT_RULE_NAME]
    assert fired[0].default is True


def test_firing_sentinel_suppresses_defaults() -> None:
    config = Config(
        rules=(Rule("fallback", NO_MATCH, ()),),
        default_changes=(_set("X-Default", "1"),),
    )
    assert _names(config, "/anything") == ["fallback"]


def test_empty_default_list_never_fires() -> None:
    assert Config().evaluate("/x") == []


def test_select_splits_sides_on_the_same_decision() -> None:
    rule = Rule(
        "both",
        "^/api",
        (_set("X-Req", "1", req=True), _set("X-Resp", "2")),
    )
    config = Config(rules=(rule,), default_changes=(_set("X-Default", "d"),))

    req = config.select("/api/v1", REQUEST)
    resp = config.select("/api/v1", RESPONSE)
    assert [c.header for f in req for c in f.changes] == ["X-Req"]
    assert [c.header for f in resp for c in f.changes] == ["X-Resp"]


def test_rule_without_response_changes_still_blocks_defaults() -> None:
    config = Config(
        rules=(Rule("req-only", "^/api", (_set("X-Req", "1", req=True),)),),
        default_changes=(_set("X-Default", "d"),),
    )
    bag = HeaderBag()
    rewrite_headers(config, "/api/x", RESPONSE, bag)
    assert len(bag) == 0


def test_request_processor_applies_request_side_only(clock) -> None:
    config = Config(
        rules=(Rule("r", "/", (_set("X-In", "@DT_ADD#60@", req=True), _set("X-Out", "o"))),)
    )
    headers = HeaderBag([("Host", "example")])
    RequestProcessor(config, clock=clock).process("/x", headers)
    assert headers.get("x-in") == "Sun, 06 Nov 1994 08:50:37 GMT"
    assert "X-Out" not in headers


def test_evaluation_does_not_mutate_config() -> None:
    change = _set("X", "v")
    config = Config(rules=(Rule("r", "x", (change,)),), default_changes=(change,))
    before = (config.rules, config.default_changes)
    rewrite_headers(config, "/x", RESPONSE, HeaderBag())
    rewrite_headers(config, "/y", RESPONSE, HeaderBag())
    assert (config.rules, config.default_changes) == before
    with pytest.raises(AttributeError):
        config.rules = ()  # type: ignore[misc]


def test_patterns_compiled_once_at_construction() -> None:
    rule = Rule("r", r"\.png$")
    assert rule.regex is not None and rule.regex.pattern == r"\.png$"
    assert Rule("s", NO_MATCH).regex is None
    change = HeaderChange(header="X", action="edit", replace="a+", value="b")
    assert change.replace_re is not None and change.replace_re.pattern == "a+"


def test_invalid_pattern_fails_construction() -> None:
    with pytest.raises(RuleConfigError, match="rule 'bad'"):
        Rule("bad", "(unclosed")


def test_invalid_replace_fails_construction() -> None:
    with pytest.raises(RuleConfigError, match="replace"):
        HeaderChange(header="X", action="edit", replace="[a-", value="b")


def test_invalid_replace_with_macro_fails_construction() -> None:
    with pytest.raises(RuleConfigError):
        HeaderChange(header="X", action="edit", replace="(@DT_ADD#0@", value="b")


def test_missing_header_name_fails_construction() -> None:
    with pytest.raises(RuleConfigError):
        HeaderChange(header="  ", action="set", value="b")


@pytest.mark.parametrize("name", ["X-Prix-€", "X Space", "X:Colon", "Caf\xe9"])
def test_header_name_must_be_a_token(name: str) -> None:
    with pytest.raises(RuleConfigError, match="not an HTTP token"):
        HeaderChange(header=name, action="set", value="1")


def test_header_name_is_trimmed() -> None:
    assert HeaderChange(header=" X-Tag ", value="a").header == "X-Tag"


def test_value_outside_latin1_fails_construction() -> None:
    with pytest.raises(RuleConfigError, match="latin-1"):
        HeaderChange(header="X-Price", action="set", value="10 €")


@pytest.mark.parametrize("value", ["a\r\nX-Injected: 1", "a\nb", "a\x00"])
def test_value_with_line_break_fails_construction(value: str) -> None:
    with pytest.raises(RuleConfigError, match="line break"):
        HeaderChange(header="X-Tag", action="append", value=value)


def test_separator_is_checked_like_values() -> None:
    with pytest.raises(RuleConfigError, match="separator"):
        HeaderChange(header="X-Tag", action="append", value="b", separator="•")


def test_latin1_value_is_accepted_and_encoded() -> None:
    bag = HeaderBag()
    change = HeaderChange(header="X-Name", value="caf\xe9")
    bag.set(change.header, change.value)
    assert bag.raw() == [(b"x-name", b"caf\xe9")]
