"""Tests for the ``flask auth`` command group."""

from __future__ import annotations

from authsession.core.extensions import db
from authsession.core.services import get_session_manager
from authsession.models import User


def test_init_db_creates_schema(app):
    db.drop_all()
    result = app.test_cli_runner().invoke(args=["auth", "init-db"])
    assert result.exit_code == 0, result.output
    assert "schema ready" in result.output
    assert db.session.query(User).count() == 0


def test_create_user(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["auth", "create-user", "dave", "--password", "hunter22"])

    assert result.exit_code == 0, result.output
    assert "Created user dave" in result.output
    user = db.session.query(User).filter_by(username="dave").one()
    assert user.verify_password("hunter22")


def test_create_user_reports_conflict(app):
    runner = app.test_cli_runner()
    runner.invoke(args=["auth", "create-user", "dave", "--password", "hunter22"])
    result = runner.invoke(args=["auth", "create-user", "dave", "--password", "hunter22"])

    assert result.exit_code != 0
    assert "username already taken" in result.output


def test_create_user_rejects_invalid_username(app):
    result = app.test_cli_runner().invoke(args=["auth", "create-user", "x", "--password", "hunter22"])
    assert result.exit_code != 0


def test_revoke_user(app):
    manager = get_session_manager()
    manager.create_session(5, "erin")
    manager.create_session(5, "erin")

    result = app.test_cli_runner().invoke(args=["auth", "revoke-user", "5"])

    assert result.exit_code == 0, result.output
    assert "Revoked 2 session(s) for user 5." in result.output
    assert manager.list_sessions(5) == []


def test_revoke_user_rejects_non_positive_id(app):
    result = app.test_cli_runner().invoke(args=["auth", "revoke-user", "0"])
    assert result.exit_code != 0
