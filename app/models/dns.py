"""DNS record models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base


class DNSRecord(Base):
    """DNS record mirrored from a provider"""
    __tablename__ = "records"
    __table_args__ = (
        UniqueConstraint("domain_id", "remote_id", name="uq_records_domain_remote"),
    )

    id = Column(Integer, primary_key=True, index=True)
    domain_id = Column(Integer, ForeignKey("domains.id", ondelete="CASCADE"), nullable=False, index=True)
    remote_id = Column(String(255), nullable=False)  # Provider's record ID

    # DNS fields
    type = Column(String(10), nullable=False)  # A, AAAA, CNAME, MX, TXT, SRV, NS, CAA
    name = Column(String(255), nullable=False, index=True)  # @ for root, or subdomain
    content = Column(Text, nullable=False)  # IP, hostname, or text content
    ttl = Column(Integer, default=300, nullable=False)

    # Priority for MX, SRV records
    priority = Column(Integer, nullable=True)

    # Proxied through Cloudflare (orange cloud)
    proxied = Column(Boolean, default=False, nullable=False)

    # Provider-specific data (JSON)
    extra = Column(Text, nullable=True)

    synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    domain = relationship("Domain", back_populates="dns_records")
