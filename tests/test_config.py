"""Settings tests"""
import pytest

from app.core.config import Settings, check_settings, is_placeholder_value
from app.core.exceptions import ConfigurationError


def _settings(**overrides):
    values = {
        "CREDENTIALS_ENCRYPTION_KEY": "k3y-material-from-vault",
        "JWT_SECRET_KEY": "jwt-secret-from-vault",
        "RATE_LIMIT_BACKEND": "memory",
        "REDIS_URL": None,
    }
    values.update(overrides)
    return Settings(**values)


def test_valid_settings_have_no_warnings():
    assert check_settings(_settings()) == []


def test_missing_encryption_key_is_fatal():
    with pytest.raises(ConfigurationError, match="CREDENTIALS_ENCRYPTION_KEY"):
        check_settings(_settings(CREDENTIALS_ENCRYPTION_KEY=None))


@pytest.mark.parametrize("value", ["your-secret-key", "changeme", "replace_me", "xxxx", "placeholder", "example-key", "TODO"])
def test_placeholder_values(value):
    assert is_placeholder_value(value)


def test_placeholder_secret_produces_warning():
    warnings = check_settings(_settings(JWT_SECRET_KEY="change-me"))

    assert warnings == ["JWT_SECRET_KEY appears to be a placeholder value. Please set a proper value."]


def test_redis_backend_requires_url():
    with pytest.raises(ConfigurationError, match="REDIS_URL"):
        check_settings(_settings(RATE_LIMIT_BACKEND="redis"))

    check_settings(_settings(RATE_LIMIT_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))


def test_unknown_backend():
    with pytest.raises(ConfigurationError, match="Unknown RATE_LIMIT_BACKEND"):
        check_settings(_settings(RATE_LIMIT_BACKEND="memcached"))


def test_cors_origins_accept_comma_separated_values():
    settings = _settings(CORS_ORIGINS="https://a.example, https://b.example")

    assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]
