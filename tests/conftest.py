import os

os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("JWT_AUDIENCE", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("FCM_SERVICE_ACCOUNT_FILE", None)

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from portal.config import get_settings
from portal.database.connection import ensure_indexes, mongo_db_dependency
from portal.main import app
from portal.utils.realtime_bus import reset_bus
from portal.utils.security import create_access_token

get_settings.cache_clear()

ADMIN = "user_admin"
MEMBER = "user_member"
OTHER = "user_other"
OUTSIDER = "user_outsider"


def auth(user_id: str, **claims) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, extra_claims=claims or None)}"}


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["portal_test"]
    await ensure_indexes(database)
    yield database
    await reset_bus()


@pytest.fixture
async def client(db):
    app.dependency_overrides[mongo_db_dependency] = lambda: db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def workspace(client):
    """A workspace with an admin, two members and one category."""
    response = await client.post("/organizations", json={"name": "Acme", "slug": "acme"}, headers=auth(ADMIN))
    assert response.status_code == 201
    org_id = response.json()["_id"]
    for user_id in (MEMBER, OTHER):
        response = await client.post(f"/organizations/{org_id}/members", json={"user_id": user_id}, headers=auth(ADMIN))
        assert response.status_code == 201
    response = await client.post(f"/organizations/{org_id}/categories", json={"name": "General"}, headers=auth(ADMIN))
    assert response.status_code == 201
    return {"org_id": org_id, "category_id": response.json()["_id"]}


async def make_channel(client, org_id: str, category_id: str, name: str, **fields) -> dict:
    response = await client.post(
        f"/organizations/{org_id}/channels",
        json={"category_id": category_id, "name": name, **fields},
        headers=auth(ADMIN),
    )
    assert response.status_code == 201, response.text
    return response.json()


async def directory(client, org_id: str, user_id: str = ADMIN) -> list:
    response = await client.get(f"/organizations/{org_id}/directory", headers=auth(user_id))
    assert response.status_code == 200
    return response.json()["categories"]
