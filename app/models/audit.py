"""Audit log model"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text

from app.core.database import Base


class AuditLog(Base):
    """Trace of provider/domain/record changes"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(20), nullable=False)  # create, update, delete, sync
    resource_type = Column(String(20), nullable=False)  # provider, domain, record
    resource_id = Column(String(64), nullable=False)
    details = Column(Text, nullable=True)  # JSON

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
