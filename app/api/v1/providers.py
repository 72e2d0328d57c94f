"""Provider endpoints"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_context, get_current_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.provider import ProviderCreate, ProviderResponse, ProviderTypeResponse
from app.schemas.results import OperationResult
from app.services.audit_service import AuditContext
from app.services.provider_service import ProviderService
from app.services.sync_service import SyncService

router = APIRouter()


@router.get("/", response_model=List[ProviderResponse])
async def list_providers(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List connected providers"""
    return await ProviderService(db).list_providers(current_user.id)


@router.get("/types", response_model=List[ProviderTypeResponse])
async def list_provider_types(
    current_user: User = Depends(get_current_user),
):
    """List provider types and the credentials each one needs"""
    return ProviderService.get_available_provider_types()


@router.post("/", response_model=OperationResult)
async def add_provider(
    provider_create: ProviderCreate,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Connect a provider after checking its credentials"""
    return await ProviderService(db).add_provider(current_user.id, provider_create, context)


@router.delete("/{provider_id}", response_model=OperationResult)
async def delete_provider(
    provider_id: int,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Remove a provider and everything mirrored from it"""
    return await ProviderService(db).delete_provider(current_user.id, provider_id, context)


@router.post("/{provider_id}/sync", response_model=OperationResult)
async def sync_provider(
    provider_id: int,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Pull the provider's domain list"""
    return await SyncService(db).sync_provider(current_user.id, provider_id, context)
