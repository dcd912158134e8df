"""
Shared fixtures for REST entry point tests.
"""

import pytest
from fastapi.testclient import TestClient

from service_rest.app.main import create_app
from service_rest.tests.helpers import ADMIN_KEY, API_KEY, Sentinel, make_config, sentinel_routers


@pytest.fixture
def sentinel():
    return Sentinel()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def app(config, sentinel):
    return create_app(config, sentinel_routers(sentinel))


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": API_KEY}


@pytest.fixture
def admin_headers():
    return {"X-API-Key": ADMIN_KEY}
