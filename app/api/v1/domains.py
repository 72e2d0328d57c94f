"""Domain endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_context, get_current_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.domain import DomainDetailResponse, DomainResponse
from app.schemas.results import OperationResult
from app.services.audit_service import AuditContext
from app.services.domain_service import DomainService
from app.services.sync_service import SyncService

router = APIRouter()


@router.get("/", response_model=List[DomainResponse])
async def list_domains(
    provider_id: Optional[int] = Query(None, description="Only domains of this provider"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List mirrored domains"""
    return await DomainService(db).list_domains(current_user.id, provider_id)


@router.get("/{domain_id}", response_model=DomainDetailResponse)
async def get_domain(
    domain_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get domain with its records"""
    domain = await DomainService(db).get_domain_with_records(current_user.id, domain_id)
    if not domain:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Domain not found"
        )
    return domain


@router.post("/{domain_id}/sync", response_model=OperationResult)
async def sync_domain(
    domain_id: int,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Pull the domain's records from its provider"""
    return await SyncService(db).sync_domain_records(current_user.id, domain_id, context)
