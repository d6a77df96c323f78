"""Tests for core/config.py -- Settings validation and TokenConfig."""

import dataclasses

import pytest
from pydantic import ValidationError

from core.config import Settings, TokenConfig

GOOD_KEY = "k" * 32


def test_debug_generates_key():
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_production_requires_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_short_key_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(debug=True, secret_key="short")


def test_non_hmac_algorithm_rejected():
    with pytest.raises(ValidationError, match="JWT_ALGORITHM"):
        Settings(secret_key=GOOD_KEY, jwt_algorithm="RS256")


def test_ttl_must_be_positive():
    with pytest.raises(ValidationError, match="TOKEN_EXPIRE_SECONDS"):
        Settings(secret_key=GOOD_KEY, token_expire_seconds=0)


def test_token_config_snapshot():
    settings = Settings(secret_key=GOOD_KEY, jwt_algorithm="HS384", token_expire_seconds=60)
    config = settings.token_config()
    assert config == TokenConfig(secret_key=GOOD_KEY.encode(), algorithm="HS384", ttl_seconds=60)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.secret_key = b"other"


def test_env_override(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
    monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "90")
    monkeypatch.setenv("SELF_REGISTRATION_ENABLED", "false")
    settings = Settings()
    assert settings.token_expire_seconds == 90
    assert settings.self_registration_enabled is False
