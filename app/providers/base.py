"""
Provider adapter contract

Every DNS host is wrapped by one DNSProviderAdapter subclass that maps the
provider's native HTTP API onto RemoteDomain/RemoteRecord values.
Adapters never retry; any failure surfaces as ProviderAPIError.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, ClassVar, Dict, Iterator, List, Optional

import httpx
import pydantic
from pydantic import BaseModel

from app.core.exceptions import ConfigurationError, ProviderAPIError
from app.schemas.dns import RecordCreate, RecordUpdate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, AttributeError, ValueError, pydantic.ValidationError)


class CredentialField(BaseModel):
    """Credential a provider type needs from the user"""
    name: str
    label: str
    required: bool = True
    secret: bool = True


class RemoteDomain(BaseModel):
    """Domain as reported by a provider"""
    id: str
    name: str
    status: str = "active"


class RemoteRecord(BaseModel):
    """Record as reported by a provider"""
    id: str
    type: str
    name: str
    content: str
    ttl: int
    priority: Optional[int] = None
    proxied: Optional[bool] = None
    extra: Optional[Dict[str, Any]] = None


class DNSProviderAdapter(ABC):
    """Abstract base class for provider adapters"""

    provider_type: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    credential_fields: ClassVar[List[CredentialField]] = []

    def __init__(
        self,
        credentials: Dict[str, str],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        missing = [
            field.label for field in self.credential_fields
            if field.required and not credentials.get(field.name)
        ]
        if missing:
            raise ConfigurationError(f"{self.display_name}: missing credentials: {', '.join(missing)}")

        self.credentials = credentials
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        """Self description used to build credential forms"""
        return {
            "name": cls.provider_type,
            "display_name": cls.display_name,
            "credential_fields": [field.model_dump() for field in cls.credential_fields],
        }

    def _error(self, message: str, status_code: Optional[int] = None) -> ProviderAPIError:
        self.logger.warning(f"{self.display_name} API error ({status_code}): {message}")
        return ProviderAPIError(self.provider_type, f"{self.display_name}: {message}", status_code)

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, converting transport failures"""
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise self._error(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise self._error(f"Request failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Optional[Any]:
        try:
            return response.json()
        except ValueError:
            return None

    @contextmanager
    def _parsing(self, what: str) -> Iterator[None]:
        """Report payloads with missing or mistyped fields as ProviderAPIError"""
        try:
            yield
        except PAYLOAD_ERRORS as e:
            raise self._error(f"Malformed {what} in response: {e!r}") from e

    # ==========================================================================
    # Abstract methods - must be implemented by providers
    # ==========================================================================

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Lightweight authenticated call, True when the credentials work"""

    @abstractmethod
    async def list_domains(self) -> List[RemoteDomain]:
        """List every domain the credentials can see"""

    @abstractmethod
    async def get_domain(self, remote_domain_id: str) -> RemoteDomain:
        """Get one domain by its remote identifier"""

    @abstractmethod
    async def list_records(self, remote_domain_id: str) -> List[RemoteRecord]:
        """List every record of a domain"""

    @abstractmethod
    async def create_record(self, remote_domain_id: str, record: RecordCreate) -> RemoteRecord:
        """Create a record and return it as stored by the provider"""

    @abstractmethod
    async def update_record(
        self, remote_domain_id: str, remote_record_id: str, record: RecordUpdate
    ) -> RemoteRecord:
        """Update a record and return it as stored by the provider"""

    @abstractmethod
    async def delete_record(self, remote_domain_id: str, remote_record_id: str) -> None:
        """Delete a record"""


def split_srv_content(content: str):
    """Split "weight port target" into its parts"""
    weight, port, target = content.split()
    return int(weight), int(port), target


def split_caa_content(content: str):
    """Split "flags tag value" into its parts, value unquoted"""
    flags, tag, value = content.split(None, 2)
    return int(flags), tag.lower(), value.strip().strip('"')
