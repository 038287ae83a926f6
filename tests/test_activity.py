"""
Activity recorder tests: one entry per successful state-changing request,
none for failures, entity id resolution, and best-effort writes.
"""
import logging

import pytest
from fastapi import Request
from fastapi.responses import JSONResponse
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.activity import ActivityMarker, resolve_entity_id
from cms.models import ActivityLog, Category
from cms.services import activity_service


async def _entries(db: AsyncSession) -> list[tuple]:
    result = await db.execute(
        select(ActivityLog.user_id, ActivityLog.action, ActivityLog.entity_type, ActivityLog.entity_id)
        .order_by(ActivityLog.id)
    )
    return [tuple(row) for row in result.all()]


def _request(path_params: dict | None = None) -> Request:
    return Request({"type": "http", "method": "POST", "path": "/", "headers": [], "path_params": path_params or {}})


# ---------------------------------------------------------------------------
# Entity id resolution
# ---------------------------------------------------------------------------

def test_entity_id_prefers_response_body():
    marker = ActivityMarker("update", "article")
    response = JSONResponse({"id": 7, "title": "x"})
    assert resolve_entity_id(_request({"article_id": 3}), response, marker, user_id=1) == 7


def test_entity_id_falls_back_to_named_path_param():
    marker = ActivityMarker("delete", "article")
    response = JSONResponse({"message": "deleted"})
    assert resolve_entity_id(_request({"article_id": "3"}), response, marker, user_id=1) == 3


def test_entity_id_falls_back_to_plain_id_param():
    marker = ActivityMarker("delete", "category")
    response = JSONResponse({"message": "deleted"})
    assert resolve_entity_id(_request({"id": 12}), response, marker, user_id=1) == 12


def test_entity_id_absent():
    marker = ActivityMarker("update_settings", "setting")
    response = JSONResponse({"site_name": {"value": "x", "type": "text"}})
    assert resolve_entity_id(_request(), response, marker, user_id=1) is None


def test_entity_id_for_actor_routes():
    marker = ActivityMarker("login", "user", entity_is_actor=True)
    response = JSONResponse({"token": "t", "user": {"id": 99}})
    assert resolve_entity_id(_request(), response, marker, user_id=4) == 4


def test_entity_id_ignores_non_integer_ids():
    marker = ActivityMarker("update", "article")
    response = JSONResponse({"id": "abc"})
    assert resolve_entity_id(_request({"article_id": "hello-world"}), response, marker, user_id=1) is None


# ---------------------------------------------------------------------------
# Recording through the API
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_each_successful_write_appends_one_entry(
    async_client: AsyncClient, db_session: AsyncSession, admin, admin_headers
):
    created = (await async_client.post("/api/categories", json={"name": "Log me"}, headers=admin_headers)).json()
    await async_client.put(f"/api/categories/{created['id']}", json={"description": "d"}, headers=admin_headers)
    await async_client.delete(f"/api/categories/{created['id']}", headers=admin_headers)

    assert await _entries(db_session) == [
        (admin.id, "create", "category", created["id"]),
        (admin.id, "update", "category", created["id"]),
        (admin.id, "delete", "category", created["id"]),
    ]


@pytest.mark.asyncio
async def test_reads_are_not_recorded(async_client: AsyncClient, db_session: AsyncSession, admin_headers):
    await async_client.get("/api/categories")
    await async_client.get("/api/users", headers=admin_headers)
    await async_client.get("/api/auth/me", headers=admin_headers)
    assert await _entries(db_session) == []


@pytest.mark.asyncio
async def test_failed_requests_record_nothing(
    async_client: AsyncClient, db_session: AsyncSession, admin_headers, member_headers
):
    # 404, 403, 400 and 401 respectively
    await async_client.delete("/api/categories/99999", headers=admin_headers)
    await async_client.post("/api/categories", json={"name": "Nope"}, headers=member_headers)
    await async_client.post("/api/categories", json={}, headers=admin_headers)
    await async_client.post("/api/categories", json={"name": "Anon"})

    assert await _entries(db_session) == []


@pytest.mark.asyncio
async def test_recorder_failure_does_not_affect_response(
    async_client: AsyncClient, db_session: AsyncSession, admin_headers, monkeypatch, caplog
):
    async def broken_log_activity(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(activity_service, "log_activity", broken_log_activity)

    with caplog.at_level(logging.ERROR, logger="cms.activity"):
        resp = await async_client.post("/api/categories", json={"name": "Survivor"}, headers=admin_headers)

    assert resp.status_code == 201
    assert resp.json()["name"] == "Survivor"
    assert "Failed to record activity" in caplog.text

    stored = (await db_session.execute(select(func.count()).select_from(Category))).scalar_one()
    assert stored == 1
    assert await _entries(db_session) == []


@pytest.mark.asyncio
async def test_unhandled_error_returns_generic_500(app, async_client: AsyncClient):
    async def explode():
        raise RuntimeError("secret internal detail")

    app.add_api_route("/explode", explode)

    resp = await async_client.get("/explode")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}
    assert "secret" not in resp.text
