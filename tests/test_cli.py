"""
tests/test_cli.py -- Tests for the operator command line (main.py).

create-admin reads its configuration through get_settings(), so each test
points DATABASE_URL at a temporary SQLite file and clears the settings cache.
"""

from __future__ import annotations

import pytest

import main
from auth.models import ACTION_CREATE
from auth.store import UserStore
from auth.tokens import verify_password
from core.config import get_settings
from conftest import TEST_SECRET


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


def test_create_admin(cli_db, capsys):
    rc = main.main(["create-admin", "--email", "root@cra.org", "--password", "RootPass123!", "--first-name", "Awa"])
    assert rc == 0
    assert "created" in capsys.readouterr().out

    store = UserStore(cli_db)
    try:
        user = store.get_by_email("root@cra.org")
        assert user.role == "ADMINISTRATEUR"
        assert user.first_name == "Awa"
        assert verify_password("RootPass123!", user.hashed_password)
        (record,) = store.list_audit(action=ACTION_CREATE)
        assert record.entity_id == user.id
        assert record.user_id == user.id
    finally:
        store.close()


def test_create_admin_duplicate(cli_db, capsys):
    args = ["create-admin", "--email", "root@cra.org", "--password", "RootPass123!"]
    assert main.main(args) == 0
    assert main.main(args) == 1
    assert "already exists" in capsys.readouterr().out


def test_create_admin_short_password(cli_db, capsys):
    assert main.main(["create-admin", "--email", "root@cra.org", "--password", "short"]) == 1
    assert "at least 8" in capsys.readouterr().out


def test_create_admin_prompts_for_password(cli_db, monkeypatch):
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt: "Prompted123!")
    assert main.main(["create-admin", "--email", "prompt@cra.org"]) == 0

    store = UserStore(cli_db)
    try:
        assert verify_password("Prompted123!", store.get_by_email("prompt@cra.org").hashed_password)
    finally:
        store.close()


def test_no_command_prints_help(capsys):
    assert main.main([]) == 0
    assert "create-admin" in capsys.readouterr().out
