from header_rules.engine.bag import HeaderBag
from header_rules.engine.dates import expand_date_macros, http_date
from header_rules.engine.diagnostics import CollectingSink, Diagnostic, DiagnosticSink, null_sink
from header_rules.engine.interceptor import (
    CapabilityUnsupported,
    ResponseInterceptor,
    ResponseSink,
)
from header_rules.engine.mutator import apply_change, apply_fired
from header_rules.engine.processor import RequestProcessor, rewrite_headers
from header_rules.engine.ruleset import (
    EMPTY_CONFIG,
    NO_MATCH,
    REQUEST,
    RESPONSE,
    Action,
    Config,
    Fired,
    HeaderChange,
    Rule,
    RuleConfigError,
)

__all__ = [
    "Action",
    "CapabilityUnsupported",
    "CollectingSink",
    "Config",
    "Diagnostic",
    "DiagnosticSink",
    "EMPTY_CONFIG",
    "Fired",
    "HeaderBag",
    "HeaderChange",
    "NO_MATCH",
    "REQUEST",
    "RESPONSE",
    "RequestProcessor",
    "ResponseInterceptor",
    "ResponseSink",
    "Rule",
    "RuleConfigError",
    "apply_change",
    "apply_fired",
    "expand_date_macros",
    "http_date",
    "null_sink",
    "rewrite_headers",
]
