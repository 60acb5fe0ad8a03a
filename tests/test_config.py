import pytest
from pydantic import ValidationError

from portal.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("MENTION_RECENT_WINDOW", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    settings = Settings()

    assert settings.mention_recent_window == 50
    assert settings.mention_all_window == 100
    assert settings.recent_mentions_limit == 3
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MENTION_ALL_WINDOW", "250")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("JWT_AUDIENCE", "")

    settings = Settings()

    assert settings.mention_all_window == 250
    assert settings.log_level == "DEBUG"
    assert settings.jwt_audience is None


@pytest.mark.parametrize("raw", ["fifty", "0", "-5"])
def test_malformed_window_is_rejected(monkeypatch, raw):
    monkeypatch.setenv("MENTION_RECENT_WINDOW", raw)

    with pytest.raises(ValidationError):
        Settings()
