"""
Alibaba Cloud DNS (AliDNS) adapter

Uses the AliDNS RPC API (version 2015-01-09) with HMAC-SHA1 request
signatures. AliDNS keys every record call by domain name, so the domain
name doubles as the remote domain identifier.
"""
import base64
import hashlib
import hmac
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List
from urllib.parse import quote

from app.core.exceptions import ProviderAPIError
from app.providers.base import (
    CredentialField,
    DNSProviderAdapter,
    RemoteDomain,
    RemoteRecord,
)
from app.schemas.dns import RecordCreate, RecordUpdate

AUTH_ERROR_CODES = (
    "InvalidAccessKeyId.NotFound",
    "InvalidAccessKeyId.Inactive",
    "SignatureDoesNotMatch",
    "Forbidden.RAM",
)


def percent_encode(value: str) -> str:
    """RFC 3986 encoding as required by the RPC signature"""
    return quote(str(value), safe="~")


class AliDNSAdapter(DNSProviderAdapter):
    """AliDNS adapter"""

    provider_type = "alidns"
    display_name = "Alibaba Cloud DNS"
    credential_fields = [
        CredentialField(name="access_key_id", label="AccessKey ID", secret=False),
        CredentialField(name="access_key_secret", label="AccessKey Secret"),
    ]

    endpoint = "https://alidns.aliyuncs.com/"
    api_version = "2015-01-09"
    domains_page_size = 100
    records_page_size = 500

    def sign(self, params: Dict[str, str]) -> str:
        canonicalized = "&".join(
            f"{percent_encode(key)}={percent_encode(params[key])}" for key in sorted(params)
        )
        string_to_sign = f"GET&{percent_encode('/')}&{percent_encode(canonicalized)}"
        key = f"{self.credentials['access_key_secret']}&".encode("utf-8")
        digest = hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def _signed_params(self, action: str, params: Dict[str, Any]) -> Dict[str, str]:
        signed = {
            "Format": "JSON",
            "Version": self.api_version,
            "AccessKeyId": self.credentials["access_key_id"],
            "SignatureMethod": "HMAC-SHA1",
            "SignatureVersion": "1.0",
            "SignatureNonce": uuid.uuid4().hex,
            "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "Action": action,
        }
        signed.update({key: str(value) for key, value in params.items() if value is not None})
        signed["Signature"] = self.sign(signed)
        return signed

    async def _call(self, action: str, **params: Any) -> dict:
        response = await self._send("GET", self.endpoint, params=self._signed_params(action, params))

        data = self._json(response)
        if not isinstance(data, dict):
            raise self._error(f"Malformed response (HTTP {response.status_code})", response.status_code)

        if response.is_error or ("Code" in data and "Message" in data):
            code = data.get("Code", "Error")
            raise self._error(f"{code}: {data.get('Message', 'unknown error')}", response.status_code)

        return data

    @staticmethod
    def _to_remote_record(item: dict) -> RemoteRecord:
        record_type = item["Type"]
        content = item.get("Value", "")
        priority = item.get("Priority")

        # AliDNS keeps the SRV priority inside the value
        if record_type == "SRV":
            parts = content.split()
            if len(parts) == 4:
                priority = int(parts[0])
                content = " ".join(parts[1:])

        extra = {
            key: item[src]
            for key, src in (("line", "Line"), ("status", "Status"), ("locked", "Locked"), ("weight", "Weight"))
            if item.get(src) is not None
        }

        return RemoteRecord(
            id=str(item["RecordId"]),
            type=record_type,
            name=item.get("RR", "@"),
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
            "RR": fields["name"],
            "Type": record_type,
            "Value": value,
            "TTL": fields.get("ttl"),
        }
        if record_type == "SRV":
            params["Value"] = f"{fields.get('priority') or 0} {value}"
        elif record_type == "MX":
            params["Priority"] = fields.get("priority")

        line = (fields.get("extra") or {}).get("line")
        if line:
            params["Line"] = line
        return params

    async def validate_credentials(self) -> bool:
        try:
            await self._call("DescribeDomains", PageNumber=1, PageSize=1)
        except ProviderAPIError as e:
            if any(code in e.message for code in AUTH_ERROR_CODES):
                return False
            raise
        return True

    async def list_domains(self) -> List[RemoteDomain]:
        domains = []
        page = 1
        while True:
            data = await self._call("DescribeDomains", PageNumber=page, PageSize=self.domains_page_size)
            with self._parsing("domain list"):
                items = (data.get("Domains") or {}).get("Domain") or []
                domains.extend(
                    RemoteDomain(id=item["DomainName"], name=item["DomainName"]) for item in items
                )
                total = int(data.get("TotalCount", 0))
            if not items or len(domains) >= total:
                break
            page += 1
        return domains

    async def get_domain(self, remote_domain_id: str) -> RemoteDomain:
        data = await self._call("DescribeDomainInfo", DomainName=remote_domain_id)
        with self._parsing("domain"):
            return RemoteDomain(id=data["DomainName"], name=data["DomainName"])

    async def list_records(self, remote_domain_id: str) -> List[RemoteRecord]:
        records = []
        page = 1
        while True:
            data = await self._call(
                "DescribeDomainRecords",
                DomainName=remote_domain_id,
                PageNumber=page,
                PageSize=self.records_page_size,
            )
            with self._parsing("record list"):
                items = (data.get("DomainRecords") or {}).get("Record") or []
                records.extend(self._to_remote_record(item) for item in items)
                total = int(data.get("TotalCount", 0))
            if not items or len(records) >= total:
                break
            page += 1
        return records

    async def _get_record(self, remote_record_id: str) -> RemoteRecord:
        data = await self._call("DescribeDomainRecordInfo", RecordId=remote_record_id)
        with self._parsing("record"):
            return self._to_remote_record(data)

    async def create_record(self, remote_domain_id: str, record: RecordCreate) -> RemoteRecord:
        params = self._record_params(record.model_dump())
        data = await self._call("AddDomainRecord", DomainName=remote_domain_id, **params)
        self.logger.info(f"Created {record.type} {record.name} in {remote_domain_id}")
        with self._parsing("record id"):
            record_id = str(data["RecordId"])
        return await self._get_record(record_id)

    async def update_record(
        self, remote_domain_id: str, remote_record_id: str, record: RecordUpdate
    ) -> RemoteRecord:
        # UpdateDomainRecord needs the full record, merge onto the current one
        current = await self._get_record(remote_record_id)
        fields = current.model_dump()
        fields.update(record.changes())

        params = self._record_params(fields)
        await self._call("UpdateDomainRecord", RecordId=remote_record_id, **params)
        self.logger.info(f"Updated record {remote_record_id} in {remote_domain_id}")
        return await self._get_record(remote_record_id)

    async def delete_record(self, remote_domain_id: str, remote_record_id: str) -> None:
        await self._call("DeleteDomainRecord", RecordId=remote_record_id)
        self.logger.info(f"Deleted record {remote_record_id} from {remote_domain_id}")
