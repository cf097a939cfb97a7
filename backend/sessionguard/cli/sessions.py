"""Flask CLI commands for refresh-token maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from sessionguard.core.sessions import get_reaper, get_session_service
from sessionguard.services._shared.errors import ServiceError
from sessionguard.services.sessions.dto import RevokeUserTokensIn

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    """Raise logging verbosity for session modules when requested."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger("sessionguard.services.sessions").setLevel(level)
    LOGGER.setLevel(level)


@click.group("sessions")
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def sessions_cli(verbose: bool) -> None:
    """Refresh-token maintenance commands."""
    _configure_logging(verbose)


@sessions_cli.command("reap")
@with_appcontext
def reap_command() -> None:
    """Run a single expiry sweep and print the number of deleted records."""
    try:
        deleted = get_reaper().sweep()
    except ServiceError as exc:
        raise click.ClickException(f"Sweep failed: {exc}") from exc
    click.echo(f"Reaped {deleted} expired refresh token(s).")


@sessions_cli.command("run-reaper")
@click.option(
    "--interval",
    type=click.FloatRange(min=0.1),
    default=None,
    help="Seconds between sweeps (defaults to REAPER_INTERVAL_SECONDS).",
)
@with_appcontext
def run_reaper_command(interval: float | None) -> None:
    """Run the expiry reaper in the foreground until interrupted."""
    reaper = get_reaper()
    if interval is not None:
        reaper.interval_seconds = interval
    click.echo(f"Expiry reaper running every {reaper.interval_seconds}s (Ctrl+C to stop)")
    try:
        reaper.run_forever()
    except KeyboardInterrupt:
        reaper.stop()
        click.echo("Expiry reaper stopped.")


@sessions_cli.command("revoke-user")
@click.argument("user_id")
@click.option("--reason", default=None, help="Justification recorded in the audit log.")
@with_appcontext
def revoke_user_command(user_id: str, reason: str | None) -> None:
    """Revoke every refresh token of USER_ID."""
    try:
        out = get_session_service().revoke_user_tokens(
            RevokeUserTokensIn(user_id=user_id, client_ip=None, reason=reason)
        )
    except ServiceError as exc:
        raise click.ClickException(f"Revocation failed: {exc}") from exc
    click.echo(out.message)
