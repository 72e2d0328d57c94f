"""Domain service"""
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.models.provider import Provider
from app.schemas.dns import RecordResponse
from app.schemas.domain import DomainDetailResponse, DomainResponse


class DomainService:
    """Read side of the mirrored domains"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _to_response(domain: Domain, provider: Provider) -> dict:
        return {
            "id": domain.id,
            "provider_id": domain.provider_id,
            "name": domain.name,
            "status": domain.status,
            "synced_at": domain.synced_at,
            "created_at": domain.created_at,
            "provider_type": provider.provider_type,
            "provider_label": provider.label,
        }

    async def list_domains(self, user_id: int, provider_id: Optional[int] = None) -> List[DomainResponse]:
        """List the user's domains with their provider label and type"""
        query = (
            select(Domain, Provider)
            .join(Provider, Domain.provider_id == Provider.id)
            .where(Provider.user_id == user_id)
        )
        if provider_id is not None:
            query = query.where(Domain.provider_id == provider_id)

        result = await self.db.execute(query.order_by(Domain.name, Domain.id))
        return [DomainResponse(**self._to_response(domain, provider)) for domain, provider in result.all()]

    async def get_domain_with_records(self, user_id: int, domain_id: int) -> Optional[DomainDetailResponse]:
        """Get one domain and its mirrored records, ordered by type then name"""
        result = await self.db.execute(
            select(Domain, Provider)
            .join(Provider, Domain.provider_id == Provider.id)
            .where(Domain.id == domain_id, Provider.user_id == user_id)
        )
        row = result.first()
        if not row:
            return None
        domain, provider = row

        records = await self.db.execute(
            select(DNSRecord)
            .where(DNSRecord.domain_id == domain_id)
            .order_by(DNSRecord.type, DNSRecord.name, DNSRecord.id)
        )

        return DomainDetailResponse(
            **self._to_response(domain, provider),
            remote_id=domain.remote_id,
            records=[RecordResponse.model_validate(record) for record in records.scalars().all()],
        )
