"""
API endpoint tests
"""

import pytest
import pytest_asyncio
import httpx
from datetime import date, timedelta
from unittest.mock import AsyncMock, patch
from api.main import app
from api.dependencies import get_db, get_http_client
from core.config import settings
from core.exceptions import SelectionError
from ingestion.loaders.stats_store import StatsStore
from ingestion.planner import plan_window, utc_today
from ingestion.runner import IngestionRunner
from models import PackageManager, RefreshMode
from schemas.normalized import HistoryPointCreate, StatSnapshotCreate


@pytest_asyncio.fixture
async def client(db_session, http_client):
    """Create test client with database and upstream overrides"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = lambda: http_client

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health_endpoint_database_connected(client, make_package):
    await make_package("left-pad", stats_refresh_mode=RefreshMode.DAILY)
    await make_package("is-odd", stats_refresh_mode=RefreshMode.PENDING)

    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["packages_by_refresh_mode"] == {"pending": 1, "daily": 1}
    assert data["last_run"] is None
    assert "X-Request-ID" in response.headers
    assert "X-API-Latency-ms" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_propagated(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_run_ingestion_daily(client, make_package, upstream):
    package = await make_package("left-pad")
    window = plan_window("daily", today=utc_today())
    upstream.npm_point("left-pad", window, {"day": 500, "week": 3000, "month": 12000, "year": 140000})
    upstream.npm_range("left-pad", window.start, window.end)

    with patch.object(settings, "INGESTION_PACKAGE_DELAY_SECONDS", 0):
        response = await client.post("/ingestion/run", json={"mode": "daily"})

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Processed 1 packages"
    assert data["processed"] == 1
    assert data["successful"] == 1
    assert data["failed"] == 0
    assert data["results"] == [{"packageId": package.id, "success": True}]

    health = (await client.get("/health")).json()
    assert health["last_run"]["status"] == "success"


@pytest.mark.asyncio
async def test_run_ingestion_reports_package_failures(client, make_package):
    package = await make_package("does-not-exist")

    response = await client.post("/ingestion/run", json={"mode": "daily", "packageId": package.id})

    assert response.status_code == 200
    data = response.json()
    assert data["failed"] == 1
    assert data["results"][0]["packageId"] == package.id
    assert data["results"][0]["error"] == "No download counts available for does-not-exist"

    health = (await client.get("/health")).json()
    assert health["status"] == "degraded"


@pytest.mark.asyncio
async def test_run_ingestion_without_body_defaults_to_daily(client):
    response = await client.post("/ingestion/run")

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "daily"
    assert data["message"] == "No packages to ingest"


@pytest.mark.asyncio
async def test_run_ingestion_rejects_unknown_mode(client):
    response = await client.post("/ingestion/run", json={"mode": "hourly"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_run_ingestion_fatal_error_returns_500(client):
    with patch.object(
        IngestionRunner,
        "run",
        AsyncMock(side_effect=SelectionError("Failed to select packages for ingestion")),
    ):
        response = await client.post("/ingestion/run", json={"mode": "bootstrap"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to select packages for ingestion"}


@pytest.mark.asyncio
async def test_run_ingestion_requires_api_key_when_configured(client):
    with patch.object(settings, "API_KEY", "secret"):
        denied = await client.post("/ingestion/run", json={"mode": "daily"})
        allowed = await client.post("/ingestion/run", json={"mode": "daily"}, headers={"X-API-Key": "secret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_create_package_canonicalizes_reference(client):
    response = await client.post("/packages", json={
        "name": "Redis",
        "package_manager": "docker",
        "package_url": "https://hub.docker.com/r/bitnami/redis?name=7.2",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["package_name"] == "bitnami/redis:7.2"
    assert data["stats_refresh_mode"] == "pending"
    assert data["stats_bootstrapped_at"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("package_manager,package_url", [
    ("npm", "https://github.com/left-pad/left-pad"),
    ("docker", "ghcr.io/owner/image"),
    ("pypi", "requests"),
])
async def test_create_package_rejects_invalid_reference(client, package_manager, package_url):
    response = await client.post("/packages", json={
        "name": "x",
        "package_manager": package_manager,
        "package_url": package_url,
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_packages(client, make_package):
    await make_package("left-pad")
    await make_package("library/nginx", PackageManager.DOCKER)

    response = await client.get("/packages", params={"package_manager": "docker"})

    assert response.status_code == 200
    assert [p["package_name"] for p in response.json()] == ["library/nginx"]


@pytest.mark.asyncio
async def test_latest_stats_and_history(client, db_session, make_package):
    package = await make_package("left-pad")
    store = StatsStore(db_session)
    today = date(2024, 3, 15)
    await store.upsert_snapshot(StatSnapshotCreate(package_id=package.id, date=today, downloads_day=500))
    await store.upsert_history([
        HistoryPointCreate(package_id=package.id, start_date=d, end_date=d, downloads=10)
        for d in (today - timedelta(days=3), today - timedelta(days=2), today - timedelta(days=1))
    ])

    latest = await client.get(f"/packages/{package.id}/stats/latest")
    assert latest.status_code == 200
    assert latest.json()["downloads_day"] == 500

    history = await client.get(
        f"/packages/{package.id}/history",
        params={"start_date": "2024-03-13", "end_date": "2024-03-14"},
    )
    assert history.status_code == 200
    data = history.json()
    assert data["total_downloads"] == 20
    assert [p["start_date"] for p in data["points"]] == ["2024-03-13", "2024-03-14"]


@pytest.mark.asyncio
async def test_stats_for_unknown_package(client):
    assert (await client.get("/packages/missing/stats/latest")).status_code == 404
    assert (await client.get("/packages/missing/history")).status_code == 404


@pytest.mark.asyncio
async def test_history_rejects_inverted_range(client, make_package):
    package = await make_package("left-pad")

    response = await client.get(
        f"/packages/{package.id}/history",
        params={"start_date": "2024-03-14", "end_date": "2024-03-01"},
    )

    assert response.status_code == 422
