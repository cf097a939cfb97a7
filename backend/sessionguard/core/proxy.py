"""Trusted reverse-proxy hops for the client address recorded on tokens."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """
    Wrap the WSGI app in :class:`ProxyFix` when ``USE_PROXYFIX`` is set.

    ``request.remote_addr`` becomes ``created_by_ip``/``revoked_by_ip`` on
    refresh tokens, so only ``PROXYFIX_X_FOR`` hops of ``X-Forwarded-For``
    (default one) are trusted. Zero disables the rewrite.
    """
    hops = int(app.config.get("PROXYFIX_X_FOR", 1))
    if not app.config.get("USE_PROXYFIX", True) or hops <= 0:
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=1, x_host=1)
