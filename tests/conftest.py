"""Shared fixtures: in-memory database, users, providers and a fake DNS host"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CREDENTIALS_ENCRYPTION_KEY"] = "test-master-key-for-credentials"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["PROVIDER_RETRY_BACKOFF"] = "0"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

from typing import Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.crypto import vault
from app.core.database import Base
from app.core.exceptions import ProviderAPIError
from app.core.security import get_password_hash
from app.models.provider import Provider, ProviderStatus
from app.models.user import User
from app.providers.base import DNSProviderAdapter, RemoteDomain, RemoteRecord


class FakeDNSHost:
    """In-memory stand-in for a provider account, shared by every adapter it creates"""

    def __init__(self):
        self.domains: Dict[str, RemoteDomain] = {}
        self.records: Dict[str, Dict[str, RemoteRecord]] = {}
        self.calls: List[str] = []
        self.error: Optional[ProviderAPIError] = None
        self.valid = True
        self._next_id = 1

    def add_domain(self, remote_id: str, name: str, status: str = "active") -> RemoteDomain:
        domain = RemoteDomain(id=remote_id, name=name, status=status)
        self.domains[remote_id] = domain
        self.records.setdefault(remote_id, {})
        return domain

    def add_record(self, domain_id: str, type: str, name: str, content: str, ttl: int = 300, priority=None) -> RemoteRecord:
        record = RemoteRecord(
            id=f"rec-{self._next_id}", type=type, name=name, content=content, ttl=ttl, priority=priority
        )
        self._next_id += 1
        self.records[domain_id][record.id] = record
        return record

    def fail_with(self, message: str = "Fake: service unavailable", status_code: Optional[int] = 400) -> None:
        self.error = ProviderAPIError("fake", message, status_code)

    def factory(self, provider_type, credentials):
        return FakeAdapter(credentials, host=self)


class FakeAdapter(DNSProviderAdapter):
    provider_type = "fake"
    display_name = "Fake"
    credential_fields = []

    def __init__(self, credentials, host: FakeDNSHost):
        super().__init__(credentials)
        self.host = host

    def _enter(self, name: str) -> None:
        self.host.calls.append(name)
        if self.host.error is not None:
            raise self.host.error

    async def validate_credentials(self) -> bool:
        self._enter("validate_credentials")
        return self.host.valid

    async def list_domains(self):
        self._enter("list_domains")
        return list(self.host.domains.values())

    async def get_domain(self, remote_domain_id):
        self._enter("get_domain")
        return self.host.domains[remote_domain_id]

    async def list_records(self, remote_domain_id):
        self._enter("list_records")
        return list(self.host.records.get(remote_domain_id, {}).values())

    async def create_record(self, remote_domain_id, record):
        self._enter("create_record")
        return self.host.add_record(
            remote_domain_id, record.type, record.name, record.content,
            ttl=record.ttl or 300, priority=record.priority,
        )

    async def update_record(self, remote_domain_id, remote_record_id, record):
        self._enter("update_record")
        current = self.host.records[remote_domain_id][remote_record_id]
        updated = current.model_copy(update=record.changes())
        self.host.records[remote_domain_id][remote_record_id] = updated
        return updated

    async def delete_record(self, remote_domain_id, remote_record_id):
        self._enter("delete_record")
        if remote_record_id not in self.host.records.get(remote_domain_id, {}):
            raise ProviderAPIError("fake", "Fake: record not found", 404)
        del self.host.records[remote_domain_id][remote_record_id]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def host():
    return FakeDNSHost()


async def make_user(db, email: str) -> User:
    user = User(email=email, password_hash=get_password_hash("password123"), full_name="Test User")
    db.add(user)
    await db.commit()
    return user


async def make_provider(db, user: User, label: str = "Main account") -> Provider:
    provider = Provider(
        user_id=user.id,
        provider_type="cloudflare",
        label=label,
        credentials=vault.encrypt({"api_token": "secret-token"}),
        status=ProviderStatus.ACTIVE,
    )
    db.add(provider)
    await db.commit()
    return provider


@pytest.fixture
async def user(db):
    return await make_user(db, "alice@example.com")


@pytest.fixture
async def other_user(db):
    return await make_user(db, "bob@example.com")


@pytest.fixture
async def provider(db, user):
    return await make_provider(db, user)
