"""Domain schemas"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from app.schemas.dns import RecordResponse


class DomainResponse(BaseModel):
    """Schema for domain listing"""
    id: int
    provider_id: int
    name: str
    status: str
    synced_at: Optional[datetime] = None
    created_at: datetime
    provider_type: str
    provider_label: str


class DomainDetailResponse(DomainResponse):
    """Schema for a domain with its mirrored records"""
    remote_id: str
    records: List[RecordResponse]
