"""Domain models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base


class Domain(Base):
    """DNS zone mirrored from a provider"""
    __tablename__ = "domains"
    __table_args__ = (
        UniqueConstraint("provider_id", "remote_id", name="uq_domains_provider_remote"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False, index=True)  # example.com
    remote_id = Column(String(255), nullable=False)  # Provider's domain ID
    status = Column(String(32), default="active", nullable=False)  # as reported by the provider
    synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    provider = relationship("Provider", back_populates="domains")
    dns_records = relationship("DNSRecord", back_populates="domain", cascade="all, delete-orphan")
