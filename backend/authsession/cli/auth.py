"""Flask CLI commands for the schema, users and session revocation."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from authsession.core.extensions import db
from authsession.core.services import get_session_manager
from authsession.services._shared.errors import ServiceError
from authsession.services.identity import IdentityService, UserRegisterIn

LOGGER = logging.getLogger(__name__)


@click.group("auth")
def auth_cli() -> None:
    """Session service administration commands."""


@auth_cli.command("init-db")
@with_appcontext
def init_db() -> None:
    """Create every table that does not exist yet."""
    LOGGER.info("Creating database schema...")
    db.create_all()
    click.echo("Database schema ready.")


@auth_cli.command("create-user")
@click.argument("username")
@click.password_option("--password", help="Password for the new user.")
@with_appcontext
def create_user(username: str, password: str) -> None:
    """Register USERNAME with the same rules as the HTTP endpoint."""
    try:
        user = IdentityService().register_user(UserRegisterIn(username=username, password=password))
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created user {user.username} (id={user.id}).")


@auth_cli.command("revoke-user")
@click.argument("user_id", type=click.IntRange(min=1))
@with_appcontext
def revoke_user(user_id: int) -> None:
    """Invalidate every session of USER_ID."""
    try:
        removed = get_session_manager().invalidate_user_sessions(user_id)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Revoked {removed} session(s) for user {user_id}.")
