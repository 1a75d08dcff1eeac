"""Fixtures for the REST surface: a TestClient bound to the test database."""

import pytest
from fastapi.testclient import TestClient

from library_circulation.api import create_app
from library_circulation.api.dependencies import get_db, get_library_config


@pytest.fixture
def client(test_db_session, test_config):
    app = create_app(test_config)

    def override_get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_library_config] = lambda: test_config

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

