"""API tests for the scout control surface."""

import httpx
import pytest

from arbscout.main import app

from conftest import ADMIN_HEADERS


@pytest.fixture
async def client(services):
    app.state.scout = services
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    daemon = services.daemon_manager.daemon
    services.daemon_manager.stop()
    if daemon is not None:
        await daemon.wait_for_idle()
    app.state.scout = None


async def create_config(client, **fields):
    payload = {"name": "Toys", "platforms": ["amazon"], "keywords": ["lego"]}
    payload.update(fields)
    response = await client.post("/api/scout/configs", json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_config_crud(client):
    created = await create_config(client, interval_minutes=5, min_margin_pct=30)

    assert created["enabled"] is True
    assert created["policy"]["interval_ms"] == 300_000
    assert created["policy"]["min_margin_pct"] == 30
    assert created["policy"]["max_source_price"] == 100

    config_id = created["id"]
    response = await client.patch(
        f"/api/scout/configs/{config_id}", json={"name": "Lego only", "max_results": 5}
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "Lego only"
    assert updated["policy"]["max_results"] == 5
    assert updated["policy"]["min_margin_pct"] == 30

    response = await client.delete(f"/api/scout/configs/{config_id}")
    assert response.status_code == 200

    response = await client.get(f"/api/scout/configs/{config_id}")
    assert response.json()["enabled"] is False

    response = await client.get("/api/scout/configs", params={"enabled_only": True})
    assert response.json() == []


@pytest.mark.asyncio
async def test_config_validation_errors(client):
    response = await client.post(
        "/api/scout/configs",
        json={"name": "Bad band", "min_source_price": 50, "max_source_price": 10},
    )
    assert response.status_code == 422

    response = await client.post("/api/scout/configs", json={"name": "  "})
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("interval", ["NaN", "Infinity", "-Infinity", "0"])
async def test_config_rejects_invalid_interval(client, interval):
    body = '{"name": "Toys", "interval_minutes": %s}' % interval
    response = await client.post(
        "/api/scout/configs",
        content=body,
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 422

    response = await client.get("/api/scout/configs")
    assert response.json() == []


@pytest.mark.asyncio
async def test_unknown_config_returns_404(client):
    assert (await client.get("/api/scout/configs/missing")).status_code == 404
    assert (await client.patch("/api/scout/configs/missing", json={})).status_code == 404
    assert (await client.delete("/api/scout/configs/missing")).status_code == 404
    assert (await client.post("/api/scout/configs/missing/run")).status_code == 404


@pytest.mark.asyncio
async def test_manual_run_and_review_flow(client):
    config = await create_config(client)

    response = await client.post(f"/api/scout/configs/{config['id']}/run")
    assert response.status_code == 200
    assert response.json() == {"scanned": 1, "qualified": 1, "queued": 1, "skipped": 0}

    response = await client.get("/api/scout/queue", params={"status": "pending"})
    body = response.json()
    assert body["count"] == 1
    item = body["items"][0]
    assert item["target_price"] == pytest.approx(28.24)

    item_id = item["id"]
    assert (await client.post(f"/api/scout/queue/{item_id}/approve")).status_code == 200
    assert (await client.post(f"/api/scout/queue/{item_id}/approve")).status_code == 409
    assert (await client.post(f"/api/scout/queue/{item_id}/reject")).status_code == 409
    assert (await client.post("/api/scout/queue/missing/approve")).status_code == 404

    response = await client.post(
        f"/api/scout/queue/{item_id}/listed", json={"listing_id": "ebay-1"}
    )
    assert response.status_code == 200

    response = await client.get("/api/scout/stats", params={"config_id": config["id"]})
    stats = response.json()
    assert stats["total_scanned"] == 1
    assert stats["total_listed"] == 1


@pytest.mark.asyncio
async def test_queue_rejects_unknown_status(client):
    response = await client.get("/api/scout/queue", params={"status": "archived"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_expire_endpoint(client):
    response = await client.post("/api/scout/queue/expire", json={"max_age_days": 7})
    assert response.status_code == 200
    assert response.json() == {"expired": 0}

    response = await client.post("/api/scout/queue/expire", json={"max_age_days": 0})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_run_without_scanner_returns_503(client, services):
    config = await create_config(client)
    services.scanner = None

    response = await client.post(f"/api/scout/configs/{config['id']}/run")
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_daemon_requires_admin_key(client):
    response = await client.post("/api/scout/daemon/start")
    assert response.status_code == 422

    response = await client.post(
        "/api/scout/daemon/start", headers={"X-Admin-API-Key": "wrong"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_daemon_start_status_stop(client):
    config = await create_config(client)

    response = await client.get("/api/scout/daemon")
    assert response.json()["state"] == "not_started"

    response = await client.post(
        "/api/scout/daemon/start",
        json={"interval_override_minutes": 60},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["config_ids"] == [config["id"]]

    status = (await client.get("/api/scout/daemon")).json()
    assert status["state"] == "running"
    assert status["configs"][0]["interval_ms"] == 3_600_000

    response = await client.post("/api/scout/daemon/stop", headers=ADMIN_HEADERS)
    assert response.status_code == 200

    response = await client.post("/api/scout/daemon/stop", headers=ADMIN_HEADERS)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_services_missing_returns_503():
    app.state.scout = None
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/scout/configs")
    assert response.status_code == 503
