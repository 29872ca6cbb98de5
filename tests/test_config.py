"""Tests for Settings — environment is patched per test."""

from pathlib import Path

import pytest

from mailprompt.config import Settings

_VARS = (
    "IMAP_HOST",
    "IMAP_PORT",
    "IMAP_EMAIL",
    "IMAP_PASSWORD",
    "ANTHROPIC_API_KEY",
    "MAILPROMPT_MODEL",
    "MAILPROMPT_TEMPERATURE",
    "MAILPROMPT_DB_PATH",
    "MAILPROMPT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    def test_defaults(self) -> None:
        settings = Settings.from_env()
        assert settings.imap_host == "imap.gmail.com"
        assert settings.imap_port == 993
        assert settings.model == "claude-sonnet-4-6"
        assert settings.temperature == 0.7
        assert settings.db_path == Path("data/mailprompt.db")
        assert settings.log_level == "WARNING"

    def test_reads_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMAP_HOST", "mail.example.com")
        monkeypatch.setenv("IMAP_PORT", "143")
        monkeypatch.setenv("MAILPROMPT_TEMPERATURE", "0.2")
        monkeypatch.setenv("MAILPROMPT_LOG_LEVEL", "debug")
        settings = Settings.from_env()
        assert settings.imap_host == "mail.example.com"
        assert settings.imap_port == 143
        assert settings.temperature == 0.2
        assert settings.log_level == "DEBUG"

    def test_invalid_numbers_fall_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMAP_PORT", "imaps")
        monkeypatch.setenv("MAILPROMPT_TEMPERATURE", "warm")
        settings = Settings.from_env()
        assert settings.imap_port == 993
        assert settings.temperature == 0.7

    def test_secrets_not_in_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMAP_PASSWORD", "hunter2")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        text = repr(Settings.from_env())
        assert "hunter2" not in text
        assert "sk-ant-test" not in text


class TestCredentials:
    def test_builds_credentials(self) -> None:
        creds = Settings(imap_email="me@example.com", imap_password="pw").credentials()
        assert (creds.host, creds.port, creds.account) == ("imap.gmail.com", 993, "me@example.com")
        assert creds.uses_tls

    def test_missing_details_rejected(self) -> None:
        with pytest.raises(ValueError, match="IMAP_EMAIL, IMAP_PASSWORD"):
            Settings().credentials()
