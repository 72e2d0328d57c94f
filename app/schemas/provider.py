"""Provider schemas"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from app.models.provider import ProviderStatus


class ProviderCreate(BaseModel):
    """Schema for provider creation"""
    provider_type: str = Field(..., min_length=1, max_length=32)
    label: Optional[str] = Field(None, max_length=255)
    credentials: Dict[str, str] = Field(default_factory=dict)


class ProviderResponse(BaseModel):
    """Schema for provider response, credentials are never included"""
    id: int
    provider_type: str
    label: str
    status: ProviderStatus
    last_sync_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CredentialFieldResponse(BaseModel):
    """Credential field a provider type needs"""
    name: str
    label: str
    required: bool = True
    secret: bool = True


class ProviderTypeResponse(BaseModel):
    """Self description of an available provider type"""
    name: str
    display_name: str
    credential_fields: List[CredentialFieldResponse]
