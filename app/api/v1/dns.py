"""DNS record endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_context, get_current_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.dns import RecordCreate, RecordUpdate
from app.schemas.results import OperationResult
from app.services.audit_service import AuditContext
from app.services.sync_service import SyncService

router = APIRouter()


@router.post("/{domain_id}/records", response_model=OperationResult)
async def create_record(
    domain_id: int,
    record_create: RecordCreate,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Create DNS record at the provider"""
    return await SyncService(db).create_record(current_user.id, domain_id, record_create, context)


@router.patch("/{domain_id}/records/{record_id}", response_model=OperationResult)
async def update_record(
    domain_id: int,
    record_id: int,
    record_update: RecordUpdate,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Update DNS record at the provider"""
    return await SyncService(db).update_record(current_user.id, domain_id, record_id, record_update, context)


@router.delete("/{domain_id}/records/{record_id}", response_model=OperationResult)
async def delete_record(
    domain_id: int,
    record_id: int,
    current_user: User = Depends(get_current_user),
    context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete DNS record at the provider"""
    return await SyncService(db).delete_record(current_user.id, domain_id, record_id, context)
