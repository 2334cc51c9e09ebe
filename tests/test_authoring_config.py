"""Tests for authoring settings loaded from the environment."""

import logging

from src.authoring.config import (
    DEFAULT_CONTENT_API_URL,
    DEFAULT_GENERATION_TIMEOUT,
    DEFAULT_LOG_FILE,
    AuthoringSettings,
)

ENV_VARS = [
    "CONTENT_API_URL",
    "CONTENT_API_TOKEN",
    "GENERATION_TIMEOUT_SECONDS",
    "CONTENT_API_MAX_RETRIES",
    "CONTENT_API_CONNECT_TIMEOUT",
    "CONTENT_API_READ_TIMEOUT",
    "AUTHORING_LOG_FILE",
]


def _clear(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    def test_defaults(self, monkeypatch):
        _clear(monkeypatch)
        settings = AuthoringSettings.from_env()
        assert settings.content_api_url == DEFAULT_CONTENT_API_URL
        assert settings.content_api_token is None
        assert settings.generation_timeout_seconds == DEFAULT_GENERATION_TIMEOUT
        assert settings.log_file == DEFAULT_LOG_FILE

    def test_reads_values(self, monkeypatch):
        _clear(monkeypatch)
        monkeypatch.setenv("CONTENT_API_URL", "https://api.example.com/")
        monkeypatch.setenv("CONTENT_API_TOKEN", "tok")
        monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", "90")
        monkeypatch.setenv("CONTENT_API_MAX_RETRIES", "1")
        monkeypatch.setenv("AUTHORING_LOG_FILE", "/var/log/authoring.log")

        settings = AuthoringSettings.from_env()

        assert settings.content_api_url == "https://api.example.com"
        assert settings.content_api_token == "tok"
        assert settings.generation_timeout_seconds == 90
        assert settings.max_retries == 1
        assert settings.log_file == "/var/log/authoring.log"

    def test_out_of_range_values_are_clamped(self, monkeypatch):
        _clear(monkeypatch)
        monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", "99999")
        monkeypatch.setenv("CONTENT_API_MAX_RETRIES", "-4")

        settings = AuthoringSettings.from_env()

        assert settings.generation_timeout_seconds == 1800
        assert settings.max_retries == 0

    def test_non_numeric_value_uses_default(self, monkeypatch, caplog):
        _clear(monkeypatch)
        monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", "five minutes")

        with caplog.at_level(logging.WARNING):
            settings = AuthoringSettings.from_env()

        assert settings.generation_timeout_seconds == DEFAULT_GENERATION_TIMEOUT
        assert "GENERATION_TIMEOUT_SECONDS" in caplog.text

    def test_empty_token_is_none(self, monkeypatch):
        _clear(monkeypatch)
        monkeypatch.setenv("CONTENT_API_TOKEN", "")
        assert AuthoringSettings.from_env().content_api_token is None
