"""
tests/unit/conftest.py — Application context for service-level unit tests.

Services read secrets and TTLs from current_app.config. A bare Flask app
loaded with TestingConfig is enough: no database, no blueprints.
"""

from __future__ import annotations

import pytest
from flask import Flask

from backend.config import TestingConfig


@pytest.fixture
def app_config():
    flask_app = Flask(__name__)
    flask_app.config.from_object(TestingConfig)
    with flask_app.app_context():
        yield flask_app.config
