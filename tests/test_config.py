import pytest

from shopcore import config
from shopcore.config import load_env, refresh_non_sensitive, requires_restart, validate_currency


def test_settings_file_wins_over_environment(monkeypatch):
    monkeypatch.setattr(config, "_load_settings_file", lambda: {"CURRENCY": "eur", "LOG_LEVEL": ""})
    monkeypatch.setenv("CURRENCY", "USD")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("COUNT_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("PROBLEM_BASE_URL", "https://errors.example.com/p/")
    cfg = load_env()
    assert cfg.currency == "EUR"
    assert cfg.log_level == "DEBUG"
    assert cfg.count_timeout_seconds == 2.5
    assert cfg.problem_base_url == "https://errors.example.com/p"


def test_currency_must_be_three_letters():
    assert validate_currency(None) == "AMD"
    with pytest.raises(ValueError):
        validate_currency("DOLLARS")


def test_hot_reload_only_touches_whitelisted_keys(monkeypatch):
    monkeypatch.setattr(config, "_load_settings_file", lambda: {})
    current = load_env()
    updated = refresh_non_sensitive({"CURRENCY": "usd", "DATABASE_URL": "sqlite://", "DEFAULT_LOCALE": "hy"}, current)
    assert updated.currency == "USD"
    assert updated.default_locale == "hy"
    assert updated.database_url == current.database_url
    assert requires_restart(["CURRENCY", "SECRET_KEY"])
    assert not requires_restart(["DEFAULT_LOCALE"])
    assert not requires_restart([])
