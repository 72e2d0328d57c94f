from app.models.user import User
from app.models.provider import Provider, ProviderStatus
from app.models.domain import Domain
from app.models.dns import DNSRecord
from app.models.audit import AuditLog
