"""Sync reconciliation engine

Keeps the local mirror of providers, domains and records consistent with
the remote provider, which is always the source of truth: a local row is
only written after the matching remote call has returned successfully.
"""
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.crypto import CredentialVault, vault as default_vault
from app.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    ProviderAPIError,
    ValidationError,
)
from app.core.locks import KeyedLock, sync_locks
from app.core.validation import validate_dns_record
from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.models.provider import Provider, ProviderStatus
from app.providers.base import DNSProviderAdapter, RemoteRecord
from app.providers.registry import create_adapter
from app.providers.resilience import GuardedAdapter
from app.schemas.dns import RecordCreate, RecordResponse, RecordUpdate
from app.schemas.results import OperationResult
from app.services.audit_service import AuditContext, AuditService

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str, Dict[str, str]], DNSProviderAdapter]

# Errors converted into failed OperationResults at this boundary
SYNC_ERRORS = (ProviderAPIError, DecryptionError, ConfigurationError)


def describe_error(error: Exception) -> str:
    """User-facing message for an engine error"""
    if isinstance(error, DecryptionError):
        # Never leak crypto details
        return "Failed to decrypt provider credentials"
    return str(error)


class SyncService:
    """Orchestrates vault, adapters and local storage"""

    def __init__(
        self,
        db: AsyncSession,
        adapter_factory: Optional[AdapterFactory] = None,
        vault: Optional[CredentialVault] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.db = db
        self.adapter_factory = adapter_factory or create_adapter
        self.vault = vault or default_vault
        self.locks = locks or sync_locks
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_provider(self, user_id: int, provider_id: int) -> Optional[Provider]:
        """Get a provider owned by the user"""
        result = await self.db.execute(
            select(Provider).where(Provider.id == provider_id, Provider.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_domain(self, user_id: int, domain_id: int) -> Optional[Tuple[Domain, Provider]]:
        """Get a domain and its provider, both owned by the user"""
        result = await self.db.execute(
            select(Domain, Provider)
            .join(Provider, Domain.provider_id == Provider.id)
            .where(Domain.id == domain_id, Provider.user_id == user_id)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def _get_record(self, domain_id: int, record_id: int) -> Optional[DNSRecord]:
        result = await self.db.execute(
            select(DNSRecord).where(DNSRecord.id == record_id, DNSRecord.domain_id == domain_id)
        )
        return result.scalar_one_or_none()

    def open_adapter(self, provider: Provider) -> GuardedAdapter:
        """Decrypt credentials and build a guarded adapter for the provider"""
        credentials = self.vault.decrypt(provider.credentials)
        return GuardedAdapter(self.adapter_factory(provider.provider_type, credentials))

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _fail(
        self,
        user_id: int,
        provider_id: int,
        action: str,
        resource_type: str,
        resource_id: int,
        error: Exception,
        context: Optional[AuditContext],
        details: Optional[Dict[str, Any]] = None,
    ) -> OperationResult:
        """Discard pending changes, flag the provider and report the error"""
        message = describe_error(error)
        if isinstance(error, ProviderAPIError):
            logger.warning(f"{action} {resource_type}:{resource_id} failed: {message}")
        else:
            logger.error(f"{action} {resource_type}:{resource_id} failed: {error}")

        await self.db.rollback()
        await self.db.execute(
            update(Provider)
            .where(Provider.id == provider_id)
            .values(status=ProviderStatus.ERROR, updated_at=datetime.utcnow())
        )
        await self.audit.log(
            user_id, action, resource_type, resource_id,
            {**(details or {}), "success": False, "error": message}, context,
        )
        await self.db.commit()
        return OperationResult.failed(message)

    # ------------------------------------------------------------------
    # Provider sync (upsert only)
    # ------------------------------------------------------------------

    async def sync_provider(
        self,
        user_id: int,
        provider_id: int,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """
        Mirror the provider's domain list.

        Domains are matched on (provider_id, remote_id) and updated in place
        or inserted. Local domains missing from the remote list are kept.
        """
        provider = await self.get_provider(user_id, provider_id)
        if not provider:
            return OperationResult.failed("Provider not found")

        async with self.locks.hold(f"provider:{provider_id}"):
            try:
                async with self.open_adapter(provider) as adapter:
                    remote_domains = await adapter.list_domains()
            except SYNC_ERRORS as e:
                return await self._fail(user_id, provider_id, "sync", "provider", provider_id, e, context)

            result = await self.db.execute(select(Domain).where(Domain.provider_id == provider_id))
            existing = {domain.remote_id: domain for domain in result.scalars().all()}

            now = datetime.utcnow()
            created = 0
            for remote in remote_domains:
                domain = existing.get(remote.id)
                if domain:
                    domain.name = remote.name
                    domain.status = remote.status
                    domain.synced_at = now
                    domain.updated_at = now
                else:
                    domain = Domain(
                        provider_id=provider_id,
                        name=remote.name,
                        remote_id=remote.id,
                        status=remote.status,
                        synced_at=now,
                    )
                    self.db.add(domain)
                    existing[remote.id] = domain
                    created += 1

            provider.status = ProviderStatus.ACTIVE
            provider.last_sync_at = now
            provider.updated_at = now

            await self.audit.log(
                user_id, "sync", "provider", provider_id,
                {"success": True, "domains": len(remote_domains), "created": created}, context,
            )
            await self.db.commit()

        logger.info(f"Synced provider {provider_id}: {len(remote_domains)} domains ({created} new)")
        return OperationResult(success=True, id=provider_id, domains_count=len(remote_domains))

    # ------------------------------------------------------------------
    # Domain record sync (diff and upsert, prune missing)
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_remote(record: DNSRecord, remote: RemoteRecord, now: datetime) -> None:
        record.remote_id = remote.id
        record.type = remote.type
        record.name = remote.name
        record.content = remote.content
        record.ttl = remote.ttl
        record.priority = remote.priority
        record.proxied = bool(remote.proxied)
        record.extra = json.dumps(remote.extra) if remote.extra else None
        record.synced_at = now
        record.updated_at = now

    def _new_record(self, domain_id: int, remote: RemoteRecord, now: datetime) -> DNSRecord:
        record = DNSRecord(domain_id=domain_id, created_at=now)
        self._apply_remote(record, remote, now)
        self.db.add(record)
        return record

    async def sync_domain_records(
        self,
        user_id: int,
        domain_id: int,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """
        Mirror a domain's records.

        After success the local record set equals the remote list exactly.
        Rows are diffed on (domain_id, remote_id) in one transaction, so
        readers never observe an empty domain mid-sync. A failed fetch
        leaves local records and synced_at untouched.
        """
        found = await self.get_domain(user_id, domain_id)
        if not found:
            return OperationResult.failed("Domain not found")
        domain, provider = found
        provider_id = provider.id

        async with self.locks.hold(f"domain:{domain_id}"):
            try:
                async with self.open_adapter(provider) as adapter:
                    remote_records = await adapter.list_records(domain.remote_id)
            except SYNC_ERRORS as e:
                return await self._fail(user_id, provider_id, "sync", "domain", domain_id, e, context)

            result = await self.db.execute(select(DNSRecord).where(DNSRecord.domain_id == domain_id))
            existing = {record.remote_id: record for record in result.scalars().all()}

            now = datetime.utcnow()
            seen = set()
            for remote in remote_records:
                if remote.id in seen:
                    continue
                seen.add(remote.id)
                record = existing.pop(remote.id, None)
                if record:
                    self._apply_remote(record, remote, now)
                else:
                    self._new_record(domain_id, remote, now)

            for stale in existing.values():
                await self.db.delete(stale)

            domain.synced_at = now
            domain.updated_at = now
            if provider.status == ProviderStatus.ERROR:
                provider.status = ProviderStatus.ACTIVE

            await self.audit.log(
                user_id, "sync", "domain", domain_id,
                {"success": True, "records": len(seen), "removed": len(existing)}, context,
            )
            await self.db.commit()

        logger.info(f"Synced domain {domain_id}: {len(seen)} records ({len(existing)} removed)")
        return OperationResult(success=True, id=domain_id, records_count=len(seen))

    # ------------------------------------------------------------------
    # Single record mutations
    # ------------------------------------------------------------------

    async def _record_result(self, record: DNSRecord) -> OperationResult:
        await self.db.refresh(record)
        return OperationResult(
            success=True,
            id=record.id,
            record=RecordResponse.model_validate(record),
        )

    async def create_record(
        self,
        user_id: int,
        domain_id: int,
        data: RecordCreate,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """Create a record remotely, then mirror the provider's copy"""
        try:
            validate_dns_record(data)
        except ValidationError as e:
            return OperationResult.failed(str(e))

        found = await self.get_domain(user_id, domain_id)
        if not found:
            return OperationResult.failed("Domain not found")
        domain, provider = found
        provider_id = provider.id

        async with self.locks.hold(f"domain:{domain_id}"):
            try:
                async with self.open_adapter(provider) as adapter:
                    remote = await adapter.create_record(domain.remote_id, data)
            except SYNC_ERRORS as e:
                # No local record exists yet, the failure is filed under its domain
                return await self._fail(
                    user_id, provider_id, "create_record", "domain", domain_id, e, context,
                    {"type": data.type, "name": data.name},
                )

            now = datetime.utcnow()
            result = await self.db.execute(
                select(DNSRecord).where(DNSRecord.domain_id == domain_id, DNSRecord.remote_id == remote.id)
            )
            record = result.scalar_one_or_none()
            if record:
                self._apply_remote(record, remote, now)
            else:
                record = self._new_record(domain_id, remote, now)
            await self.db.flush()

            await self.audit.log(
                user_id, "create", "record", record.id,
                {"domain_id": domain_id, "type": remote.type, "name": remote.name, "content": remote.content},
                context,
            )
            await self.db.commit()
            return await self._record_result(record)

    async def update_record(
        self,
        user_id: int,
        domain_id: int,
        record_id: int,
        data: RecordUpdate,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """Update a record remotely, then mirror the provider's copy"""
        found = await self.get_domain(user_id, domain_id)
        if not found:
            return OperationResult.failed("Domain not found")
        domain, provider = found
        provider_id = provider.id

        async with self.locks.hold(f"domain:{domain_id}"):
            record = await self._get_record(domain_id, record_id)
            if not record:
                return OperationResult.failed("Record not found")

            changes = data.changes()
            merged = {
                "type": changes.get("type", record.type),
                "name": changes.get("name", record.name),
                "content": changes.get("content", record.content),
                "priority": changes.get("priority", record.priority),
                "proxied": changes.get("proxied", record.proxied),
            }
            if "ttl" in changes:
                merged["ttl"] = changes["ttl"]
            if "extra" in changes:
                merged["extra"] = changes["extra"]

            # Provider-assigned TTLs (e.g. Cloudflare "auto") are only checked when changed
            try:
                validate_dns_record(merged)
            except ValidationError as e:
                return OperationResult.failed(str(e))

            try:
                async with self.open_adapter(provider) as adapter:
                    remote = await adapter.update_record(domain.remote_id, record.remote_id, RecordUpdate(**merged))
            except SYNC_ERRORS as e:
                return await self._fail(user_id, provider_id, "update", "record", record_id, e, context)

            self._apply_remote(record, remote, datetime.utcnow())
            await self.audit.log(
                user_id, "update", "record", record_id,
                {"domain_id": domain_id, "changes": changes}, context,
            )
            await self.db.commit()
            return await self._record_result(record)

    async def delete_record(
        self,
        user_id: int,
        domain_id: int,
        record_id: int,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """Delete a record remotely, then drop the local row"""
        found = await self.get_domain(user_id, domain_id)
        if not found:
            return OperationResult.failed("Domain not found")
        domain, provider = found
        provider_id = provider.id

        async with self.locks.hold(f"domain:{domain_id}"):
            record = await self._get_record(domain_id, record_id)
            if not record:
                return OperationResult.failed("Record not found")

            try:
                async with self.open_adapter(provider) as adapter:
                    await adapter.delete_record(domain.remote_id, record.remote_id)
            except SYNC_ERRORS as e:
                return await self._fail(user_id, provider_id, "delete", "record", record_id, e, context)

            details = {"domain_id": domain_id, "type": record.type, "name": record.name, "content": record.content}
            await self.db.delete(record)
            await self.audit.log(user_id, "delete", "record", record_id, details, context)
            await self.db.commit()

        return OperationResult(success=True, id=record_id)
