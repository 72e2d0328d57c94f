"""Provider and domain service tests"""
import json

import httpx
import pytest
from sqlalchemy import func, select

from app.core.crypto import vault
from app.core.locks import KeyedLock
from app.models.audit import AuditLog
from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.models.provider import Provider, ProviderStatus
from app.providers.cloudflare import CloudflareAdapter
from app.schemas.provider import ProviderCreate
from app.services.domain_service import DomainService
from app.services.provider_service import ProviderService
from app.services.sync_service import SyncService

from conftest import make_provider


@pytest.fixture
def providers(db, host):
    return ProviderService(db, adapter_factory=host.factory)


async def _count(db, model):
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestProviderService:
    async def test_add_provider_encrypts_credentials(self, providers, db, host, user):
        result = await providers.add_provider(
            user.id,
            ProviderCreate(provider_type="Cloudflare", label=" Work ", credentials={"api_token": " cf-secret-token-value "}),
        )

        assert result.success
        provider = (await db.execute(select(Provider).where(Provider.id == result.id))).scalar_one()
        assert provider.provider_type == "cloudflare"
        assert provider.label == "Work"
        assert provider.status == ProviderStatus.ACTIVE
        assert "cf-secret-token-value" not in provider.credentials
        assert vault.decrypt(provider.credentials) == {"api_token": "cf-secret-token-value"}
        assert host.calls == ["validate_credentials"]

        entry = (await db.execute(select(AuditLog))).scalar_one()
        assert (entry.action, entry.resource_type) == ("create", "provider")
        assert "cf-secret-token-value" not in entry.details

    async def test_label_defaults_to_display_name(self, providers, db, user):
        result = await providers.add_provider(
            user.id, ProviderCreate(provider_type="dnspod", credentials={"secret_id": "a", "secret_key": "b"})
        )

        provider = (await db.execute(select(Provider).where(Provider.id == result.id))).scalar_one()
        assert provider.label == "DNSPod"

    async def test_unknown_type_is_rejected(self, providers, db, host, user):
        result = await providers.add_provider(user.id, ProviderCreate(provider_type="route53", credentials={}))

        assert result.error == "Unknown provider type: route53"
        assert host.calls == []
        assert await _count(db, Provider) == 0

    async def test_invalid_credentials_are_not_stored(self, providers, db, host, user):
        host.valid = False

        result = await providers.add_provider(
            user.id, ProviderCreate(provider_type="cloudflare", credentials={"api_token": "bad"})
        )

        assert result.error == "Invalid Cloudflare credentials"
        assert await _count(db, Provider) == 0

    async def test_provider_errors_are_reported(self, providers, db, host, user):
        host.fail_with("Fake: forbidden", status_code=403)

        result = await providers.add_provider(
            user.id, ProviderCreate(provider_type="cloudflare", credentials={"api_token": "tok"})
        )

        assert result.error == "Fake: forbidden"
        assert await _count(db, Provider) == 0

    async def test_malformed_verification_payload_is_reported(self, db, user):
        def handler(request):
            return httpx.Response(200, json={"success": True, "errors": [], "result": ["active"]})

        def cloudflare(provider_type, credentials):
            return CloudflareAdapter(credentials, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        result = await ProviderService(db, adapter_factory=cloudflare).add_provider(
            user.id, ProviderCreate(provider_type="cloudflare", credentials={"api_token": "tok"})
        )

        assert not result.success
        assert result.error.startswith("Cloudflare: Malformed token in response")
        assert await _count(db, Provider) == 0

    async def test_list_is_scoped_to_owner(self, providers, db, user, other_user):
        await make_provider(db, user, "mine")
        await make_provider(db, other_user, "theirs")

        listed = await providers.list_providers(user.id)

        assert [p.label for p in listed] == ["mine"]

    def test_available_types(self, providers):
        assert [t["name"] for t in providers.get_available_provider_types()] == ["cloudflare", "alidns", "dnspod"]

    async def test_delete_cascades_to_domains_and_records(self, providers, db, host, user, provider):
        user_id, provider_id = user.id, provider.id
        host.add_domain("zone-1", "example.com")
        host.add_record("zone-1", "A", "www", "192.0.2.1")
        sync = SyncService(db, adapter_factory=host.factory, locks=KeyedLock())
        await sync.sync_provider(user_id, provider_id)
        domain_id = (await db.execute(select(Domain.id))).scalar_one()
        await sync.sync_domain_records(user_id, domain_id)

        result = await providers.delete_provider(user_id, provider_id)

        assert result.success
        assert await _count(db, Provider) == 0
        assert await _count(db, Domain) == 0
        assert await _count(db, DNSRecord) == 0
        entry = (await db.execute(select(AuditLog).order_by(AuditLog.id.desc()))).scalars().first()
        assert entry.action == "delete"
        assert json.loads(entry.details)["label"] == "Main account"

    async def test_delete_other_users_provider(self, providers, db, provider, other_user):
        result = await providers.delete_provider(other_user.id, provider.id)

        assert result.error == "Provider not found"
        assert await _count(db, Provider) == 1


class TestDomainService:
    async def _seed(self, db, host, user, provider):
        host.add_domain("zone-b", "beta.example")
        host.add_domain("zone-a", "alpha.example")
        host.add_record("zone-a", "TXT", "@", "hello")
        host.add_record("zone-a", "A", "www", "192.0.2.2")
        host.add_record("zone-a", "A", "api", "192.0.2.1")
        sync = SyncService(db, adapter_factory=host.factory, locks=KeyedLock())
        await sync.sync_provider(user.id, provider.id)
        domain_id = (await db.execute(select(Domain.id).where(Domain.remote_id == "zone-a"))).scalar_one()
        await sync.sync_domain_records(user.id, domain_id)
        return domain_id

    async def test_list_domains_includes_provider(self, db, host, user, provider):
        await self._seed(db, host, user, provider)

        domains = await DomainService(db).list_domains(user.id)

        assert [d.name for d in domains] == ["alpha.example", "beta.example"]
        assert all(d.provider_label == "Main account" and d.provider_type == "cloudflare" for d in domains)

    async def test_list_domains_filters_by_provider(self, db, host, user, provider):
        await self._seed(db, host, user, provider)

        assert await DomainService(db).list_domains(user.id, provider_id=provider.id + 1) == []

    async def test_domain_detail_orders_records(self, db, host, user, provider):
        domain_id = await self._seed(db, host, user, provider)

        detail = await DomainService(db).get_domain_with_records(user.id, domain_id)

        assert detail.remote_id == "zone-a"
        assert [(r.type, r.name) for r in detail.records] == [("A", "api"), ("A", "www"), ("TXT", "@")]
        assert "credentials" not in detail.model_dump()

    async def test_domain_detail_is_scoped_to_owner(self, db, host, user, other_user, provider):
        domain_id = await self._seed(db, host, user, provider)

        assert await DomainService(db).get_domain_with_records(other_user.id, domain_id) is None
