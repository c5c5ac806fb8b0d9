import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import pytest
from fastapi.testclient import TestClient
from config import config
from data.memory import MemoryStorage
from api.depends import get_storage
from main import app

config.valid_tokens = ["fake-client-token"]

AUTH_HEADERS = {"Authorization": "Bearer fake-client-token"}


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def client(storage):
    # Fresh in-memory storage per test
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return dict(AUTH_HEADERS)
