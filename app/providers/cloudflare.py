"""
Cloudflare DNS adapter

Uses Cloudflare API v4 with a scoped API token.
"""
from typing import Any, Dict, List, Optional

from app.core.exceptions import ProviderAPIError
from app.providers.base import (
    CredentialField,
    DNSProviderAdapter,
    RemoteDomain,
    RemoteRecord,
    split_caa_content,
    split_srv_content,
)
from app.schemas.dns import RecordCreate, RecordUpdate

PROXIABLE_TYPES = ("A", "AAAA", "CNAME")
AUTO_TTL = 1


class CloudflareAdapter(DNSProviderAdapter):
    """
    Cloudflare DNS adapter.

    Record names are returned zone-relative ("@" for the apex) even though
    Cloudflare itself works with fully qualified names.
    """

    provider_type = "cloudflare"
    display_name = "Cloudflare"
    credential_fields = [
        CredentialField(name="api_token", label="API Token"),
    ]

    api_base = "https://api.cloudflare.com/client/v4"
    zones_per_page = 50
    records_per_page = 100

    def __init__(self, credentials: Dict[str, str], **kwargs):
        super().__init__(credentials, **kwargs)
        self._headers = {
            "Authorization": f"Bearer {credentials['api_token']}",
            "Content-Type": "application/json",
        }
        self._zone_names: Dict[str, str] = {}

    async def _api_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
    ) -> dict:
        """Make API request to Cloudflare"""
        response = await self._send(
            method,
            f"{self.api_base}{endpoint}",
            params=params,
            json=json_data,
            headers=self._headers,
        )

        data = self._json(response)
        if not isinstance(data, dict):
            raise self._error(f"Malformed response (HTTP {response.status_code})", response.status_code)

        if response.is_error or not data.get("success", False):
            errors = data.get("errors") or []
            message = "; ".join(
                e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors
            ) or f"HTTP {response.status_code}"
            raise self._error(message, response.status_code)

        return data

    async def _paginate(self, endpoint: str, per_page: int) -> List[dict]:
        items = []
        page = 1
        while True:
            data = await self._api_request("GET", endpoint, params={"page": page, "per_page": per_page})
            with self._parsing("page"):
                items.extend(data.get("result") or [])
                total_pages = int((data.get("result_info") or {}).get("total_pages") or 1)
            if page >= total_pages:
                break
            page += 1
        return items

    async def _zone_name(self, zone_id: str) -> str:
        if zone_id not in self._zone_names:
            self._zone_names[zone_id] = (await self.get_domain(zone_id)).name
        return self._zone_names[zone_id]

    @staticmethod
    def _relative_name(name: str, zone_name: str) -> str:
        name = name.rstrip(".")
        if name == zone_name:
            return "@"
        if name.endswith(f".{zone_name}"):
            return name[: -len(zone_name) - 1]
        return name

    def _to_remote_domain(self, zone: dict) -> RemoteDomain:
        self._zone_names[zone["id"]] = zone["name"]
        return RemoteDomain(id=zone["id"], name=zone["name"], status=zone.get("status", "active"))

    def _to_remote_record(self, item: dict, zone_name: str) -> RemoteRecord:
        record_type = item["type"]
        content = item.get("content", "")
        priority = item.get("priority")
        data = item.get("data") or {}

        if record_type == "SRV" and data:
            content = f"{data.get('weight', 0)} {data.get('port', 0)} {data.get('target', '.')}"
            priority = data.get("priority", priority)

        extra = {key: item[key] for key in ("comment", "tags") if item.get(key)}

        return RemoteRecord(
            id=item["id"],
            type=record_type,
            name=self._relative_name(item["name"], zone_name),
            content=content,
            ttl=item.get("ttl", AUTO_TTL),
            priority=priority,
            proxied=item.get("proxied", False),
            extra=extra or None,
        )

    def _record_body(self, fields: Dict[str, Any]) -> dict:
        record_type = fields.get("type")
        body: Dict[str, Any] = {}

        for key in ("type", "name", "content"):
            if fields.get(key) is not None:
                body[key] = fields[key]

        if "ttl" in fields:
            body["ttl"] = fields["ttl"] or AUTO_TTL

        if record_type == "SRV" and fields.get("content"):
            weight, port, target = split_srv_content(fields["content"])
            body.pop("content")
            body["data"] = {
                "priority": fields.get("priority") or 0,
                "weight": weight,
                "port": port,
                "target": target,
            }
        elif record_type == "CAA" and fields.get("content"):
            flags, tag, value = split_caa_content(fields["content"])
            body.pop("content")
            body["data"] = {"flags": flags, "tag": tag, "value": value}
        elif fields.get("priority") is not None:
            body["priority"] = fields["priority"]

        if fields.get("proxied") is not None and (record_type is None or record_type in PROXIABLE_TYPES):
            body["proxied"] = fields["proxied"]

        extra = fields.get("extra") or {}
        for key in ("comment", "tags"):
            if key in extra:
                body[key] = extra[key]

        return body

    async def validate_credentials(self) -> bool:
        """Verify API token is valid"""
        try:
            data = await self._api_request("GET", "/user/tokens/verify")
        except ProviderAPIError as e:
            if e.status_code in (401, 403):
                return False
            raise
        with self._parsing("token"):
            status = (data.get("result") or {}).get("status")
        if status == "active":
            self.logger.info("Cloudflare API token verified")
            return True
        self.logger.warning(f"Cloudflare token status: {status}")
        return False

    async def list_domains(self) -> List[RemoteDomain]:
        zones = await self._paginate("/zones", self.zones_per_page)
        with self._parsing("zone"):
            return [self._to_remote_domain(zone) for zone in zones]

    async def get_domain(self, remote_domain_id: str) -> RemoteDomain:
        data = await self._api_request("GET", f"/zones/{remote_domain_id}")
        with self._parsing("zone"):
            return self._to_remote_domain(data["result"])

    async def list_records(self, remote_domain_id: str) -> List[RemoteRecord]:
        zone_name = await self._zone_name(remote_domain_id)
        items = await self._paginate(f"/zones/{remote_domain_id}/dns_records", self.records_per_page)
        with self._parsing("record"):
            return [self._to_remote_record(item, zone_name) for item in items]

    async def create_record(self, remote_domain_id: str, record: RecordCreate) -> RemoteRecord:
        zone_name = await self._zone_name(remote_domain_id)
        fields = record.model_dump()
        data = await self._api_request(
            "POST", f"/zones/{remote_domain_id}/dns_records", json_data=self._record_body(fields)
        )
        self.logger.info(f"Created {record.type} {record.name} in zone {zone_name}")
        with self._parsing("record"):
            return self._to_remote_record(data["result"], zone_name)

    async def update_record(
        self, remote_domain_id: str, remote_record_id: str, record: RecordUpdate
    ) -> RemoteRecord:
        zone_name = await self._zone_name(remote_domain_id)
        fields = record.changes()
        body = self._record_body(fields)
        if "extra" in fields and not fields["extra"]:
            body.update(comment="", tags=[])
        data = await self._api_request(
            "PATCH",
            f"/zones/{remote_domain_id}/dns_records/{remote_record_id}",
            json_data=body,
        )
        self.logger.info(f"Updated record {remote_record_id} in zone {zone_name}")
        with self._parsing("record"):
            return self._to_remote_record(data["result"], zone_name)

    async def delete_record(self, remote_domain_id: str, remote_record_id: str) -> None:
        await self._api_request("DELETE", f"/zones/{remote_domain_id}/dns_records/{remote_record_id}")
        self.logger.info(f"Deleted record {remote_record_id}")
