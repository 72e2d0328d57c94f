"""Operation outcome schemas"""
from typing import Optional
from pydantic import BaseModel

from app.schemas.dns import RecordResponse


class OperationResult(BaseModel):
    """Explicit outcome of a mutating operation"""
    success: bool
    error: Optional[str] = None
    id: Optional[int] = None
    domains_count: Optional[int] = None
    records_count: Optional[int] = None
    record: Optional[RecordResponse] = None

    @classmethod
    def failed(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)
