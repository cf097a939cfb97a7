"""``flask sessions ...`` maintenance commands."""

from __future__ import annotations

from flask import Flask

from .sessions import sessions_cli

COMMAND_GROUPS = (sessions_cli,)


def init_app(app: Flask) -> None:
    """Attach the session maintenance groups to ``app.cli``."""
    for group in COMMAND_GROUPS:
        app.cli.add_command(group)
