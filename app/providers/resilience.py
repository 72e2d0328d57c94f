"""
Timeout and retry guard around provider adapters

Every adapter call is bounded by a timeout. Idempotent reads are retried
with exponential backoff; mutations are sent exactly once because a
repeated create could duplicate a remote record.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from app.core.config import settings
from app.core.exceptions import ProviderAPIError
from app.providers.base import DNSProviderAdapter, RemoteDomain, RemoteRecord
from app.schemas.dns import RecordCreate, RecordUpdate

logger = logging.getLogger(__name__)


class GuardedAdapter:
    """Wraps an adapter with per-call timeouts and bounded read retries"""

    def __init__(
        self,
        adapter: DNSProviderAdapter,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
    ):
        self.adapter = adapter
        self.timeout = timeout if timeout is not None else settings.PROVIDER_REQUEST_TIMEOUT
        self.retries = retries if retries is not None else settings.PROVIDER_READ_RETRIES
        self.backoff = backoff if backoff is not None else settings.PROVIDER_RETRY_BACKOFF

    @property
    def provider_type(self) -> str:
        return self.adapter.provider_type

    async def aclose(self) -> None:
        await self.adapter.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def _once(self, name: str, call: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ProviderAPIError(
                self.provider_type,
                f"{self.adapter.display_name}: {name} timed out after {self.timeout:g}s",
            )

    async def _read(self, name: str, call: Callable[[], Awaitable[Any]]) -> Any:
        attempt = 0
        while True:
            try:
                return await self._once(name, call)
            except ProviderAPIError as e:
                if not e.retryable or attempt >= self.retries:
                    raise
                delay = self.backoff * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"{self.provider_type} {name} failed ({e}), retry {attempt}/{self.retries} in {delay:g}s"
                )
                await asyncio.sleep(delay)

    async def validate_credentials(self) -> bool:
        return await self._read("validate_credentials", self.adapter.validate_credentials)

    async def list_domains(self) -> List[RemoteDomain]:
        return await self._read("list_domains", self.adapter.list_domains)

    async def get_domain(self, remote_domain_id: str) -> RemoteDomain:
        return await self._read("get_domain", lambda: self.adapter.get_domain(remote_domain_id))

    async def list_records(self, remote_domain_id: str) -> List[RemoteRecord]:
        return await self._read("list_records", lambda: self.adapter.list_records(remote_domain_id))

    async def create_record(self, remote_domain_id: str, record: RecordCreate) -> RemoteRecord:
        return await self._once("create_record", lambda: self.adapter.create_record(remote_domain_id, record))

    async def update_record(
        self, remote_domain_id: str, remote_record_id: str, record: RecordUpdate
    ) -> RemoteRecord:
        return await self._once(
            "update_record",
            lambda: self.adapter.update_record(remote_domain_id, remote_record_id, record),
        )

    async def delete_record(self, remote_domain_id: str, remote_record_id: str) -> None:
        await self._once(
            "delete_record",
            lambda: self.adapter.delete_record(remote_domain_id, remote_record_id),
        )
