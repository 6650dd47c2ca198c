"""Tests for Settings: environment parsing and per-backend validation."""

import pytest

from dashboard.config import Settings

_VARS = ("SITEBOARD_BACKEND", "SUPABASE_URL", "SUPABASE_KEY", "DATABASE_URL", "REQUEST_TIMEOUT", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings()
    assert settings.BACKEND == "memory"
    assert settings.REQUEST_TIMEOUT == 10.0
    assert settings.LOG_LEVEL == "INFO"
    settings.validate()


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SITEBOARD_BACKEND", " REST ")
    monkeypatch.setenv("SUPABASE_URL", "https://db.example.supabase.co/")
    monkeypatch.setenv("SUPABASE_KEY", "anon")
    monkeypatch.setenv("REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings()
    assert settings.BACKEND == "rest"
    assert settings.SUPABASE_URL == "https://db.example.supabase.co"
    assert settings.REQUEST_TIMEOUT == 2.5
    assert settings.LOG_LEVEL == "DEBUG"
    settings.validate()


def test_unknown_backend(monkeypatch):
    monkeypatch.setenv("SITEBOARD_BACKEND", "sqlite")
    with pytest.raises(RuntimeError, match="must be one of"):
        Settings().validate()


def test_rest_requires_url_and_key(monkeypatch):
    monkeypatch.setenv("SITEBOARD_BACKEND", "rest")
    with pytest.raises(RuntimeError, match="SUPABASE_URL, SUPABASE_KEY"):
        Settings().validate()


def test_postgres_requires_dsn(monkeypatch):
    monkeypatch.setenv("SITEBOARD_BACKEND", "postgres")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        Settings().validate()
