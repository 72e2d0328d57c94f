"""DNS record schemas"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator


class RecordCreate(BaseModel):
    """Schema for DNS record creation"""
    type: str = Field(..., max_length=10)
    name: str = Field(..., max_length=255)
    content: str
    ttl: Optional[int] = None
    priority: Optional[int] = None
    proxied: Optional[bool] = None
    extra: Optional[Dict[str, Any]] = None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().upper()


CLEARABLE_FIELDS = ("priority", "extra")


class RecordUpdate(BaseModel):
    """Schema for DNS record update, unset fields keep their value"""
    type: Optional[str] = Field(None, max_length=10)
    name: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    ttl: Optional[int] = None
    priority: Optional[int] = None
    proxied: Optional[bool] = None
    extra: Optional[Dict[str, Any]] = None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    def changes(self) -> Dict[str, Any]:
        """Fields the caller set. An explicit null clears priority or extra and is ignored elsewhere."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in CLEARABLE_FIELDS
        }


class RecordResponse(BaseModel):
    """Schema for DNS record response"""
    id: int
    domain_id: int
    remote_id: str
    type: str
    name: str
    content: str
    ttl: int
    priority: Optional[int] = None
    proxied: bool
    extra: Optional[str] = None
    synced_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
