"""Tests for settings and the retry decorator."""
import pytest

from pvelxc.core import retry as retry_module
from pvelxc.core.config import PveSettings, get_settings, set_settings
from pvelxc.core.retry import retry


class TestSettings:

    def test_defaults(self):
        settings = PveSettings.from_env()
        assert settings.host == "https://localhost:8006"
        assert settings.verify_ssl is True
        assert settings.mock is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PVE_HOST", "https://pve.lan:8006")
        monkeypatch.setenv("PVE_VERIFY_SSL", "no")
        monkeypatch.setenv("PVE_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("PVE_MOCK", "true")
        settings = PveSettings.from_env()
        assert settings.host == "https://pve.lan:8006"
        assert settings.verify_ssl is False
        assert settings.retry_attempts == 5
        assert settings.mock is True

    def test_global_settings_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("PVE_MOCK", "1")
        assert get_settings() is first
        set_settings(None)
        assert get_settings().mock is True


class TestRetry:

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(retry_module.time, "sleep", lambda seconds: None)

    def test_retries_listed_exceptions(self):
        attempts = []

        @retry(max_attempts=3, exceptions=(ConnectionError,))
        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")
            return "ok"

        assert flaky() == "ok"
        assert len(attempts) == 3

    def test_other_exceptions_propagate(self):
        attempts = []

        @retry(max_attempts=3, exceptions=(ConnectionError,))
        def broken():
            attempts.append(1)
            raise ValueError("bad")

        with pytest.raises(ValueError):
            broken()
        assert len(attempts) == 1
