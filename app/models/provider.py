"""DNS provider connection models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base


class ProviderStatus(str, enum.Enum):
    """Provider connection status"""
    ACTIVE = "active"
    ERROR = "error"
    DISABLED = "disabled"


class Provider(Base):
    """A user's configured connection to a DNS host"""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    provider_type = Column(String(32), nullable=False)  # cloudflare, alidns, dnspod
    label = Column(String(255), nullable=False)

    # Encrypted JSON, see app.core.crypto
    credentials = Column(Text, nullable=False)

    status = Column(
        SQLEnum(ProviderStatus, values_callable=lambda e: [m.value for m in e]),
        default=ProviderStatus.ACTIVE,
        nullable=False,
    )
    last_sync_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="providers")
    domains = relationship("Domain", back_populates="provider", cascade="all, delete-orphan")
