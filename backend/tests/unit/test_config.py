"""
Unit tests for the production configuration guard.
"""

from __future__ import annotations

import pytest
from flask import Flask

from backend.config import ProductionConfig, TestingConfig, validate_production_config


def _app(**overrides) -> Flask:
    app = Flask(__name__)
    app.config.from_object(ProductionConfig)
    app.config.update(
        SQLALCHEMY_DATABASE_URI="postgresql://db/auth",
        SECRET_KEY="s" * 40,
        JWT_SECRET_KEY="j" * 40,
        AUTH_ENC_KEY="e" * 32,
        CORS_ALLOWED_ORIGINS=("https://app.example.com",),
    )
    app.config.update(overrides)
    return app


def test_complete_production_config_passes():
    validate_production_config(_app())


@pytest.mark.parametrize("overrides, fragment", [
    ({"SQLALCHEMY_DATABASE_URI": ""}, "DATABASE_URL"),
    ({"SECRET_KEY": "change-me-in-production"}, "SECRET_KEY"),
    ({"JWT_SECRET_KEY": "change-me-in-production"}, "JWT_SECRET_KEY"),
    ({"AUTH_ENC_KEY": "change-me-in-production-32bytes!"}, "AUTH_ENC_KEY"),
    ({"AUTH_ENC_KEY": "twenty-byte-key-0000"}, "16, 24 or 32"),
    ({"CORS_ALLOWED_ORIGINS": ()}, "CORS_ALLOWED_ORIGINS"),
])
def test_misconfiguration_raises(overrides, fragment):
    with pytest.raises(ValueError, match=fragment):
        validate_production_config(_app(**overrides))


def test_testing_config_has_usable_keys():
    assert len(TestingConfig.AUTH_ENC_KEY.encode("utf-8")) == 32
    assert TestingConfig.BCRYPT_LOG_ROUNDS == 4
    assert TestingConfig.JWT_ACCESS_TOKEN_EXPIRES.total_seconds() == 900
    assert TestingConfig.REFRESH_COOKIE_SAMESITE == "None"
