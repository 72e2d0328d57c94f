"""HTTP API tests"""
import httpx
import pytest

from app.core.database import get_db
from app.core.rate_limit import MemoryRateLimitStore, rate_limiter
from app.main import app as application


@pytest.fixture
async def client(session_factory, monkeypatch, host):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(rate_limiter, "store", MemoryRateLimitStore())
    monkeypatch.setattr("app.services.provider_service.create_adapter", host.factory)
    monkeypatch.setattr("app.services.sync_service.create_adapter", host.factory)

    transport = httpx.ASGITransport(app=application)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    application.dependency_overrides.clear()


async def _signup(client, email="carol@example.com", password="password123"):
    return await client.post(
        "/api/v1/auth/signup", json={"email": email, "password": password, "full_name": "Carol"}
    )


async def _auth_headers(client, email="carol@example.com", password="password123"):
    await _signup(client, email, password)
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestAuth:
    async def test_signup_login_and_me(self, client):
        response = await _signup(client)
        assert response.status_code == 201
        assert response.json()["email"] == "carol@example.com"

        headers = await _auth_headers(client, "dave@example.com")
        me = await client.get("/api/v1/auth/me", headers=headers)

        assert me.status_code == 200
        assert me.json()["email"] == "dave@example.com"
        assert "password_hash" not in me.json()

    async def test_duplicate_signup(self, client):
        await _signup(client)
        response = await _signup(client)

        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    async def test_signup_is_rate_limited(self, client):
        statuses = [
            (await _signup(client, f"user{i}@example.com")).status_code for i in range(4)
        ]

        assert statuses == [201, 201, 201, 429]

    async def test_sixth_failed_login_is_throttled(self, client):
        await _signup(client)
        attempts = [
            await client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "wrong-password"})
            for _ in range(6)
        ]

        assert [r.status_code for r in attempts] == [401] * 5 + [429]
        assert int(attempts[5].headers["Retry-After"]) > 0

    async def test_successful_login_resets_counter(self, client):
        await _signup(client)
        for _ in range(4):
            await client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "wrong-password"})
        ok = await client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "password123"})
        assert ok.status_code == 200

        statuses = [
            (await client.post(
                "/api/v1/auth/login", json={"email": "carol@example.com", "password": "wrong-password"}
            )).status_code
            for _ in range(5)
        ]
        assert statuses == [401] * 5

    async def test_missing_and_invalid_tokens(self, client):
        assert (await client.get("/api/v1/providers/")).status_code == 401
        response = await client.get("/api/v1/providers/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestDNSWorkflow:
    async def test_provider_domain_and_record_lifecycle(self, client, host):
        headers = await _auth_headers(client)
        host.add_domain("zone-1", "example.com")
        host.add_record("zone-1", "MX", "@", "mail.example.com", priority=10)

        types = await client.get("/api/v1/providers/types", headers=headers)
        assert [t["name"] for t in types.json()] == ["cloudflare", "alidns", "dnspod"]

        added = await client.post(
            "/api/v1/providers/",
            json={"provider_type": "cloudflare", "label": "Main", "credentials": {"api_token": "tok"}},
            headers=headers,
        )
        assert added.json()["success"]
        provider_id = added.json()["id"]

        listed = await client.get("/api/v1/providers/", headers=headers)
        assert [(p["id"], p["status"]) for p in listed.json()] == [(provider_id, "active")]
        assert "credentials" not in listed.json()[0]

        synced = await client.post(f"/api/v1/providers/{provider_id}/sync", headers=headers)
        assert synced.json()["domains_count"] == 1

        domains = await client.get("/api/v1/domains/", headers=headers)
        domain_id = domains.json()[0]["id"]
        assert domains.json()[0]["provider_label"] == "Main"

        records_sync = await client.post(f"/api/v1/domains/{domain_id}/sync", headers=headers)
        assert records_sync.json()["records_count"] == 1

        created = await client.post(
            f"/api/v1/domains/{domain_id}/records",
            json={"type": "A", "name": "www", "content": "192.0.2.1", "ttl": 300},
            headers=headers,
        )
        assert created.json()["success"]
        record_id = created.json()["record"]["id"]

        updated = await client.patch(
            f"/api/v1/domains/{domain_id}/records/{record_id}", json={"content": "192.0.2.2"}, headers=headers
        )
        assert updated.json()["record"]["content"] == "192.0.2.2"

        detail = await client.get(f"/api/v1/domains/{domain_id}", headers=headers)
        assert [(r["type"], r["content"]) for r in detail.json()["records"]] == [
            ("A", "192.0.2.2"),
            ("MX", "mail.example.com"),
        ]

        deleted = await client.delete(f"/api/v1/domains/{domain_id}/records/{record_id}", headers=headers)
        assert deleted.json() == {
            "success": True, "error": None, "id": record_id,
            "domains_count": None, "records_count": None, "record": None,
        }

    async def test_invalid_record_returns_error_body(self, client, host):
        headers = await _auth_headers(client)

        response = await client.post(
            "/api/v1/domains/1/records",
            json={"type": "A", "name": "www", "content": "not-an-ip"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "Invalid IPv4 address format"

    async def test_unknown_domain_is_404(self, client):
        headers = await _auth_headers(client)

        response = await client.get("/api/v1/domains/999", headers=headers)

        assert response.status_code == 404

    async def test_domains_are_isolated_between_users(self, client, host):
        owner = await _auth_headers(client, "erin@example.com")
        host.add_domain("zone-1", "example.com")
        added = await client.post(
            "/api/v1/providers/",
            json={"provider_type": "cloudflare", "credentials": {"api_token": "tok"}},
            headers=owner,
        )
        await client.post(f"/api/v1/providers/{added.json()['id']}/sync", headers=owner)

        intruder = await _auth_headers(client, "frank@example.com")
        assert (await client.get("/api/v1/domains/", headers=intruder)).json() == []
        sync = await client.post(f"/api/v1/providers/{added.json()['id']}/sync", headers=intruder)
        assert sync.json()["error"] == "Provider not found"
