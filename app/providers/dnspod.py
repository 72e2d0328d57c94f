"""
Tencent Cloud DNSPod adapter

Uses Tencent Cloud API 3.0 (dnspod, version 2021-03-23) with
TC3-HMAC-SHA256 request signatures. As with AliDNS the domain name is
used as the remote domain identifier.
"""
import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.exceptions import ProviderAPIError
from app.providers.base import (
    CredentialField,
    DNSProviderAdapter,
    RemoteDomain,
    RemoteRecord,
)
from app.schemas.dns import RecordCreate, RecordUpdate

DEFAULT_LINE = "默认"
EMPTY_RECORD_LIST_CODE = "ResourceNotFound.NoDataOfRecord"
AUTH_ERROR_PREFIX = "AuthFailure"

STATUS_MAP = {
    "ENABLE": "active",
    "PAUSE": "paused",
    "SPAM": "spam",
    "LOCK": "locked",
}


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


class DNSPodAdapter(DNSProviderAdapter):
    """DNSPod adapter"""

    provider_type = "dnspod"
    display_name = "DNSPod"
    credential_fields = [
        CredentialField(name="secret_id", label="SecretId", secret=False),
        CredentialField(name="secret_key", label="SecretKey"),
    ]

    host = "dnspod.tencentcloudapi.com"
    service = "dnspod"
    api_version = "2021-03-23"
    page_size = 3000
    content_type = "application/json; charset=utf-8"

    def authorization(self, payload: str, timestamp: int) -> str:
        """Build the TC3-HMAC-SHA256 Authorization header"""
        date = datetime.fromtimestamp(timestamp, timezone.utc).strftime("%Y-%m-%d")
        signed_headers = "content-type;host"
        canonical_request = "\n".join([
            "POST",
            "/",
            "",
            f"content-type:{self.content_type}\nhost:{self.host}\n",
            signed_headers,
            hashlib.sha256(payload.encode("utf-8")).hexdigest(),
        ])
        credential_scope = f"{date}/{self.service}/tc3_request"
        string_to_sign = "\n".join([
            "TC3-HMAC-SHA256",
            str(timestamp),
            credential_scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ])

        secret_date = _hmac_sha256(f"TC3{self.credentials['secret_key']}".encode("utf-8"), date)
        secret_service = _hmac_sha256(secret_date, self.service)
        secret_signing = _hmac_sha256(secret_service, "tc3_request")
        signature = hmac.new(
            secret_signing, string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

        return (
            f"TC3-HMAC-SHA256 Credential={self.credentials['secret_id']}/{credential_scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )

    async def _call(self, action: str, **params: Any) -> dict:
        payload = json.dumps({k: v for k, v in params.items() if v is not None}, ensure_ascii=False)
        timestamp = int(time.time())
        headers = {
            "Authorization": self.authorization(payload, timestamp),
            "Content-Type": self.content_type,
            "Host": self.host,
            "X-TC-Action": action,
            "X-TC-Timestamp": str(timestamp),
            "X-TC-Version": self.api_version,
        }
        response = await self._send(
            "POST", f"https://{self.host}/", content=payload.encode("utf-8"), headers=headers
        )

        data = self._json(response)
        body = data.get("Response") if isinstance(data, dict) else None
        if not isinstance(body, dict):
            raise self._error(f"Malformed response (HTTP {response.status_code})", response.status_code)

        error = body.get("Error")
        if error:
            raise self._error(
                f"{error.get('Code', 'Error')}: {error.get('Message', 'unknown error')}",
                response.status_code,
            )
        if response.is_error:
            raise self._error(f"HTTP {response.status_code}", response.status_code)

        return body

    @staticmethod
    def _status(value: Optional[str]) -> str:
        if not value:
            return "active"
        return STATUS_MAP.get(value.upper(), value.lower())

    def _to_remote_record(self, item: dict) -> RemoteRecord:
        # DescribeRecordList and DescribeRecord use different field names
        record_type = item.get("Type") or item.get("RecordType")
        content = item.get("Value", "")
        priority = item.get("MX")

        # DNSPod keeps the SRV priority inside the value
        if record_type == "SRV":
            parts = content.split()
            if len(parts) == 4:
                priority = int(parts[0])
                content = " ".join(parts[1:])

        extra = {
            key: item[src]
            for key, src in (("line", "Line"), ("line", "RecordLine"), ("status", "Status"), ("weight", "Weight"))
            if item.get(src) is not None
        }

        return RemoteRecord(
            id=str(item["RecordId"] if "RecordId" in item else item["Id"]),
            type=record_type,
            name=item.get("Name") or item.get("SubDomain") or "@",
            content=content,
            ttl=int(item.get("TTL", 600)),
            priority=priority if record_type in ("MX", "SRV") else None,
            extra=extra or None,
        )

    @staticmethod
    def _record_params(fields: Dict[str, Any]) -> Dict[str, Any]:
        record_type = fields["type"]
        value = fields["content"]
        params = {
            "SubDomain": fields["name"],
            "RecordType": record_type,
            "RecordLine": (fields.get("extra") or {}).get("line") or DEFAULT_LINE,
            "Value": value,
            "TTL": fields.get("ttl"),
        }
        if record_type == "SRV":
            params["Value"] = f"{fields.get('priority') or 0} {value}"
        elif record_type == "MX":
            params["MX"] = fields.get("priority")
        return params

    async def validate_credentials(self) -> bool:
        try:
            await self._call("DescribeDomainList", Offset=0, Limit=1)
        except ProviderAPIError as e:
            if AUTH_ERROR_PREFIX in e.message:
                return False
            raise
        return True

    async def list_domains(self) -> List[RemoteDomain]:
        domains = []
        offset = 0
        while True:
            body = await self._call("DescribeDomainList", Offset=offset, Limit=self.page_size)
            with self._parsing("domain list"):
                items = body.get("DomainList") or []
                domains.extend(
                    RemoteDomain(id=item["Name"], name=item["Name"], status=self._status(item.get("Status")))
                    for item in items
                )
                total = int((body.get("DomainCountInfo") or {}).get("AllTotal", 0))
            offset += len(items)
            if not items or offset >= total:
                break
        return domains

    async def get_domain(self, remote_domain_id: str) -> RemoteDomain:
        body = await self._call("DescribeDomain", Domain=remote_domain_id)
        with self._parsing("domain"):
            info = body["DomainInfo"]
            return RemoteDomain(id=info["Domain"], name=info["Domain"], status=self._status(info.get("Status")))

    async def list_records(self, remote_domain_id: str) -> List[RemoteRecord]:
        records = []
        offset = 0
        while True:
            try:
                body = await self._call(
                    "DescribeRecordList", Domain=remote_domain_id, Offset=offset, Limit=self.page_size
                )
            except ProviderAPIError as e:
                if EMPTY_RECORD_LIST_CODE in e.message:
                    break
                raise
            with self._parsing("record list"):
                items = body.get("RecordList") or []
                records.extend(self._to_remote_record(item) for item in items)
                total = int((body.get("RecordCountInfo") or {}).get("TotalCount", 0))
            offset += len(items)
            if not items or offset >= total:
                break
        return records

    async def _get_record(self, remote_domain_id: str, remote_record_id: str) -> RemoteRecord:
        body = await self._call("DescribeRecord", Domain=remote_domain_id, RecordId=int(remote_record_id))
        with self._parsing("record"):
            return self._to_remote_record(body["RecordInfo"])

    async def create_record(self, remote_domain_id: str, record: RecordCreate) -> RemoteRecord:
        params = self._record_params(record.model_dump())
        body = await self._call("CreateRecord", Domain=remote_domain_id, **params)
        self.logger.info(f"Created {record.type} {record.name} in {remote_domain_id}")
        with self._parsing("record id"):
            record_id = str(body["RecordId"])
        return await self._get_record(remote_domain_id, record_id)

    async def update_record(
        self, remote_domain_id: str, remote_record_id: str, record: RecordUpdate
    ) -> RemoteRecord:
        # ModifyRecord needs the full record, merge onto the current one
        current = await self._get_record(remote_domain_id, remote_record_id)
        fields = current.model_dump()
        fields.update(record.changes())

        params = self._record_params(fields)
        await self._call("ModifyRecord", Domain=remote_domain_id, RecordId=int(remote_record_id), **params)
        self.logger.info(f"Updated record {remote_record_id} in {remote_domain_id}")
        return await self._get_record(remote_domain_id, remote_record_id)

    async def delete_record(self, remote_domain_id: str, remote_record_id: str) -> None:
        await self._call("DeleteRecord", Domain=remote_domain_id, RecordId=int(remote_record_id))
        self.logger.info(f"Deleted record {remote_record_id} from {remote_domain_id}")
