"""Pytest configuration and fixtures."""
import json
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_BACKEND"] = "sql"
os.environ["CURRENT_EVENT"] = "test-event"
os.environ["UNMATCHED_POLICY"] = "pending"
os.environ["TIMEZONE"] = ""
os.environ["ADMIN_TOKEN"] = ""
os.environ["WEBHOOK_SECRET"] = ""
os.environ["CRON_SECRET"] = ""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from standings.models.base import Base, engine, init_db
from standings.services.profile_api import ProfileAPIService
from standings.storage import JSONFileStorage, SQLStorage
from web.api.deps import get_profile_service, get_storage
from web.api.main import app


class ProfileDirectory:
    """In-memory stand-in for the external profile API, served through httpx.MockTransport."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.avatars: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.search_status: int | None = None  # force an error status on user search
        self.batch_status: int | None = None

    def add(self, user_id: int, name: str, display_name: str | None = None, avatar: str | None = None) -> None:
        self.users[name.lower()] = {"id": user_id, "name": name, "displayName": display_name or name}
        if avatar:
            self.avatars[str(user_id)] = avatar

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/users/search"):
            if self.search_status:
                return httpx.Response(self.search_status)
            keyword = request.url.params["keyword"].lower()
            data = [u for name, u in self.users.items() if keyword in name]
            return httpx.Response(200, json={"data": data})
        if path.endswith("/avatar-headshot"):
            uid = request.url.params["userIds"]
            url = self.avatars.get(uid)
            data = [{"targetId": int(uid), "state": "Completed", "imageUrl": url}] if url else []
            return httpx.Response(200, json={"data": data})
        if path.endswith("/batch"):
            if self.batch_status:
                return httpx.Response(self.batch_status)
            items = json.loads(request.content)
            data = [
                {
                    "requestId": item["requestId"],
                    "targetId": item["targetId"],
                    "state": "Completed" if str(item["targetId"]) in self.avatars else "Blocked",
                    "imageUrl": self.avatars.get(str(item["targetId"])),
                }
                for item in items
            ]
            return httpx.Response(200, json={"data": data})
        return httpx.Response(404)


async def _no_sleep(_seconds):
    return None


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh tables for every test (ASGI lifespan doesn't run with httpx)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()


@pytest.fixture
def directory():
    return ProfileDirectory()


@pytest.fixture
async def profiles(directory):
    client = httpx.AsyncClient(transport=httpx.MockTransport(directory.handler))
    service = ProfileAPIService(client=client, sleep=_no_sleep)
    yield service
    await client.aclose()


@pytest.fixture
def sql_storage():
    return SQLStorage()


@pytest.fixture
def file_storage(tmp_path):
    return JSONFileStorage(tmp_path / "data")


@pytest.fixture(params=["sql", "file"])
def storage(request, tmp_path):
    """Each storage-contract test runs against both backends."""
    if request.param == "sql":
        return SQLStorage()
    return JSONFileStorage(tmp_path / "data")


@pytest.fixture
async def client(sql_storage, profiles):
    """Async HTTP client for testing the API, wired to the test storage and fake profile API."""
    app.dependency_overrides[get_storage] = lambda: sql_storage
    app.dependency_overrides[get_profile_service] = lambda: profiles
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
