"""Provider connection service"""
import logging
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.crypto import CredentialVault, vault as default_vault
from app.core.exceptions import ConfigurationError, ProviderAPIError
from app.models.provider import Provider, ProviderStatus
from app.providers.base import DNSProviderAdapter
from app.providers.registry import create_adapter, get_adapter_class, get_available_providers
from app.providers.resilience import GuardedAdapter
from app.schemas.provider import ProviderCreate
from app.schemas.results import OperationResult
from app.services.audit_service import AuditContext, AuditService

logger = logging.getLogger(__name__)


class ProviderService:
    """Provider service for database operations"""

    def __init__(
        self,
        db: AsyncSession,
        adapter_factory: Optional[Callable[[str, Dict[str, str]], DNSProviderAdapter]] = None,
        vault: Optional[CredentialVault] = None,
    ):
        self.db = db
        self.adapter_factory = adapter_factory or create_adapter
        self.vault = vault or default_vault
        self.audit = AuditService(db)

    async def list_providers(self, user_id: int) -> List[Provider]:
        """List the user's providers, newest first"""
        result = await self.db.execute(
            select(Provider)
            .where(Provider.user_id == user_id)
            .order_by(Provider.created_at.desc(), Provider.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_id(self, user_id: int, provider_id: int) -> Optional[Provider]:
        """Get provider by ID, scoped to its owner"""
        result = await self.db.execute(
            select(Provider).where(Provider.id == provider_id, Provider.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def get_available_provider_types() -> List[Dict[str, Any]]:
        """Self descriptions of every registered provider type"""
        return get_available_providers()

    async def add_provider(
        self,
        user_id: int,
        data: ProviderCreate,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """
        Connect a new provider.

        Credentials are checked against the live API before anything is
        stored, then persisted encrypted.
        """
        try:
            adapter_class = get_adapter_class(data.provider_type)
        except ConfigurationError as e:
            return OperationResult.failed(str(e))

        provider_type = adapter_class.provider_type
        credentials = {key: value.strip() for key, value in data.credentials.items() if value is not None}

        try:
            adapter = GuardedAdapter(self.adapter_factory(provider_type, credentials))
        except ConfigurationError as e:
            return OperationResult.failed(str(e))

        try:
            async with adapter:
                valid = await adapter.validate_credentials()
        except ProviderAPIError as e:
            logger.warning(f"Credential check for {provider_type} failed: {e}")
            return OperationResult.failed(str(e))

        if not valid:
            return OperationResult.failed(f"Invalid {adapter_class.display_name} credentials")

        try:
            encrypted = self.vault.encrypt(credentials)
        except ConfigurationError as e:
            logger.error(f"Cannot store provider credentials: {e}")
            return OperationResult.failed(str(e))

        provider = Provider(
            user_id=user_id,
            provider_type=provider_type,
            label=(data.label or "").strip() or adapter_class.display_name,
            credentials=encrypted,
            status=ProviderStatus.ACTIVE,
        )
        self.db.add(provider)
        await self.db.flush()

        await self.audit.log(
            user_id, "create", "provider", provider.id,
            {"provider_type": provider_type, "label": provider.label}, context,
        )
        await self.db.commit()

        logger.info(f"User {user_id} connected {provider_type} provider {provider.id}")
        return OperationResult(success=True, id=provider.id)

    async def delete_provider(
        self,
        user_id: int,
        provider_id: int,
        context: Optional[AuditContext] = None,
    ) -> OperationResult:
        """Remove a provider with its mirrored domains and records"""
        provider = await self.get_by_id(user_id, provider_id)
        if not provider:
            return OperationResult.failed("Provider not found")

        details = {"provider_type": provider.provider_type, "label": provider.label}
        await self.db.delete(provider)
        await self.audit.log(user_id, "delete", "provider", provider_id, details, context)
        await self.db.commit()

        logger.info(f"User {user_id} removed provider {provider_id}")
        return OperationResult(success=True, id=provider_id)
