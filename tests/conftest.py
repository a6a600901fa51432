import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from config import TestConfig
from utils.kv import MemoryKeyValueStore
from utils.students import StudentRoster
from utils.users import IdentityStore

FAST_HASH = "pbkdf2:sha256:1000"


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def identity(kv):
    store = IdentityStore(kv, password_method=FAST_HASH)
    if not store.is_initialized():
        assert store.register("admin@x.com", "adminpassword", role="admin").ok
    return store


@pytest.fixture
def roster(kv):
    return StudentRoster(kv)


@pytest.fixture
def app(kv):
    app = create_app(TestConfig, kv=kv)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(email="admin@x.com", password="adminpassword"):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
