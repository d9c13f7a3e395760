import os

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from ipmhub.main import create_app
from ipmhub.services.data_context import DataContext
from ipmhub.storage.memory_provider import MemoryStoreProvider


@pytest.fixture
def provider():
    return MemoryStoreProvider()


@pytest.fixture
def ctx(provider):
    context = DataContext(provider).start()
    yield context
    context.stop()


@pytest.fixture
def project_key(ctx):
    return ctx.save_project({
        "code": "PRJ-1",
        "name": "Warehouse",
        "client": "Acme Foods",
        "lat": 0.0,
        "lng": 0.0,
        "radius": 50,
        "gpsEnabled": True,
        "active": True,
    })


@pytest.fixture
def other_project_key(ctx):
    return ctx.save_project({"code": "PRJ-2", "name": "Office", "client": "Beta", "active": True})


@pytest.fixture
def staff_key(ctx, project_key):
    return ctx.save_user({
        "empId": "EMP001",
        "name": "Tech One",
        "username": "tech",
        "password": "tech123",
        "role": "staff",
        "projects": [project_key],
        "active": True,
    })


@pytest.fixture
def client_user_key(ctx, project_key):
    return ctx.save_user({
        "name": "Client One",
        "username": "client",
        "password": "client123",
        "role": "client",
        "projectKey": project_key,
        "active": True,
    })


@pytest.fixture
def api(ctx):
    app = create_app(ctx)
    with TestClient(app) as c:
        yield c


def login(api, username: str, password: str) -> dict:
    res = api.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def admin_headers(api):
    return login(api, "admin", "admin123")


@pytest.fixture
def staff_headers(api, staff_key):
    return login(api, "tech", "tech123")


@pytest.fixture
def client_headers(api, client_user_key):
    return login(api, "client", "client123")
