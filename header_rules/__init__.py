# header_rules/__init__.py
"""
Rule-driven HTTP header rewriting.

The engine lives in ``header_rules.engine`` and has no web or logging
dependencies; ``header_rules.middleware.header_rules`` binds it to ASGI.
Build an app with ``from header_rules.main import create_app``.
"""
