"""Tests for the admin API and admin tokens."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt

from feedserve.api import admin_router
from feedserve.api.dependencies import get_engine
from feedserve.api.errors import register_exception_handlers
from feedserve.auth.tokens import create_admin_token, verify_admin_token
from feedserve.db import crud
from feedserve.feeds.models import FeedFormat
from feedserve.feeds.pipeline import build_default_engine
from feedserve.validator.models import ValidationResult


@pytest.fixture(autouse=True)
def patch_settings(settings):
    with patch("feedserve.auth.tokens.get_settings", return_value=settings):
        yield


@pytest.fixture
def engine(seeded_db, fake_redis, settings):
    return build_default_engine(settings, fake_redis, seeded_db)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_admin_token('ops')}"}


@pytest_asyncio.fixture
async def client(engine):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(admin_router)
    app.dependency_overrides[get_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def test_token_round_trip():
    assert verify_admin_token(create_admin_token("ops")) == "ops"


def test_token_rejects_wrong_scope_and_key(settings):
    other_scope = jwt.encode(
        {"sub": "ops", "scope": "feeds:read"}, settings.app_secret_key, algorithm="HS256"
    )
    other_key = jwt.encode({"sub": "ops", "scope": "feeds:admin"}, "wrong", algorithm="HS256")

    assert verify_admin_token(other_scope) is None
    assert verify_admin_token(other_key) is None
    assert verify_admin_token("not-a-token") is None


def test_token_expired():
    assert verify_admin_token(create_admin_token("ops", ttl_seconds=-10)) is None


@pytest.mark.asyncio
async def test_requires_token(client):
    missing = await client.get("/api/admin/cache/stats")
    invalid = await client.get(
        "/api/admin/cache/stats", headers={"Authorization": "Bearer garbage"}
    )

    assert missing.status_code == 401
    assert missing.json()["detail"] == "Not authenticated"
    assert invalid.status_code == 401
    assert invalid.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_cache_invalidation(client, engine, seeded_db, auth_headers):
    async with seeded_db() as db:
        await crud.upsert_feed_definition(db, "recent", limit=3)
    await engine.serve("/feed/rss2/", {})
    await engine.serve("/feed/recent/", {})

    stats = await client.get("/api/admin/cache/stats", headers=auth_headers)
    one = await client.post("/api/admin/cache/invalidate/Recent", headers=auth_headers)
    rest = await client.post("/api/admin/cache/invalidate", headers=auth_headers)

    assert stats.status_code == 200
    assert stats.json()["selection_entries"] == 2
    assert one.json() == {"ok": True, "slug": "recent", "removed": 1}
    # The rss2 selection and its index remain
    assert rest.json()["removed"] == 2


@pytest.mark.asyncio
async def test_preview_disabled_definition(client, seeded_db, auth_headers):
    async with seeded_db() as db:
        await crud.upsert_feed_definition(db, "hidden", enabled=False, format="json", limit=2)

    response = await client.get("/api/admin/preview/hidden", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/feed+json")
    assert len(response.json()["items"]) == 2


@pytest.mark.asyncio
async def test_preview_unknown_definition(client, auth_headers):
    response = await client.get("/api/admin/preview/missing", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_validate_url(client, engine, auth_headers):
    result = ValidationResult(feed_type="rss2", source="https://other.org/feed", warnings=["w"])
    with patch.object(engine.validator, "validate", AsyncMock(return_value=result)) as validate:
        response = await client.post(
            "/api/admin/validate",
            json={"url": "https://other.org/feed", "format": "rss2"},
            headers=auth_headers,
        )

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["warnings"] == ["w"]
    validate.assert_awaited_once_with("https://other.org/feed", FeedFormat.RSS2)


@pytest.mark.asyncio
async def test_validate_rejects_non_http_url(client, auth_headers):
    response = await client.post(
        "/api/admin/validate", json={"url": "file:///etc/passwd"}, headers=auth_headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_content_changed_invalidates(client, engine, fake_redis, auth_headers):
    await engine.serve("/feed/rss2/", {})

    response = await client.post("/api/admin/content/4/changed", headers=auth_headers)

    assert response.json() == {"ok": True, "item_id": 4}
    assert not any(k.startswith("fs:sel:") for k in fake_redis.values)


@pytest.mark.asyncio
async def test_definition_changed(client, engine, auth_headers):
    with patch.object(engine, "on_definition_changed", AsyncMock()) as changed:
        response = await client.post("/api/admin/definitions/News/changed", headers=auth_headers)

    assert response.status_code == 200
    changed.assert_awaited_once_with("news")


@pytest.mark.asyncio
async def test_last_validation(client, engine, auth_headers):
    missing = await client.get("/api/admin/validation/last", headers=auth_headers)
    assert missing.status_code == 404

    result = ValidationResult(feed_type="rss2", errors=["Missing required element: link"])
    with patch.object(engine.validator, "validate", AsyncMock(return_value=result)):
        await engine.run_validation_sweep()

    response = await client.get("/api/admin/validation/last", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["all_valid"] is False
    assert set(body["results"]) == {"rss2", "atom", "json"}


@pytest.mark.asyncio
async def test_item_validation(client, engine, auth_headers):
    await engine.monitor.record_item_result(
        3, FeedFormat.ATOM, ValidationResult(feed_type="atom")
    )

    response = await client.get("/api/admin/validation/items/3", headers=auth_headers)

    assert response.json()["results"]["atom"]["valid"] is True
    assert "rss2" not in response.json()["results"]
