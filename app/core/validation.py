"""DNS record validation

Checks record input against DNS syntax rules before anything is sent to a
provider. Every check raises ValidationError with the message of the first
rule that fails.
"""
import ipaddress
import re
from typing import Any, Mapping, Optional, Union

from app.core.exceptions import ValidationError

MAX_NAME_LENGTH = 253
MAX_CONTENT_LENGTH = 4096
MIN_TTL = 60
MAX_TTL = 86400 * 7
MAX_UINT16 = 65535

IPV4_REGEX = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)

HOSTNAME_REGEX = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(?:\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.?$"
)

# Labels may carry one leading underscore (_dmarc, _sip._tcp)
_NAME_LABEL = r"_?[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?"
DNS_NAME_REGEX = re.compile(
    rf"^(?:@|\*|(?:\*\.)?(?:{_NAME_LABEL}\.)*{_NAME_LABEL})$"
)

TXT_CONTENT_REGEX = re.compile(r"^[\x20-\x7E]+$")

CAA_REGEX = re.compile(r"^(\d+)\s+(issue|issuewild|iodef)\s+(.+)$", re.IGNORECASE)

TYPES_REQUIRING_PRIORITY = ("MX", "SRV")


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    return None


def _is_ipv6(value: str) -> bool:
    # Zone indices (fe80::1%eth0) are not valid record content
    if "%" in value:
        return False
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def validate_record_name(name: Optional[str]) -> None:
    """Validate a record name (@ for apex, * or *. prefix for wildcards)"""
    if not name or not name.strip():
        raise ValidationError("Record name is required")

    trimmed = name.strip()

    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationError(f"Record name is too long (max {MAX_NAME_LENGTH} characters)")

    if not DNS_NAME_REGEX.match(trimmed):
        raise ValidationError("Invalid record name format")


def _validate_srv_content(content: str) -> None:
    parts = content.split()
    if len(parts) != 3:
        raise ValidationError("SRV record format: weight port target")

    weight, port, target = parts
    weight_value = _as_int(weight)
    if weight_value is None or not 0 <= weight_value <= MAX_UINT16:
        raise ValidationError("Invalid SRV weight (0-65535)")

    port_value = _as_int(port)
    if port_value is None or not 0 <= port_value <= MAX_UINT16:
        raise ValidationError("Invalid SRV port (0-65535)")

    if target != "." and not HOSTNAME_REGEX.match(target):
        raise ValidationError("Invalid SRV target hostname")


def validate_record_content(record_type: str, content: Optional[str]) -> None:
    """Validate record content for the given record type"""
    if not content or not content.strip():
        raise ValidationError("Record content is required")

    trimmed = content.strip()
    normalized_type = (record_type or "").upper()

    if normalized_type == "A":
        if not IPV4_REGEX.match(trimmed):
            raise ValidationError("Invalid IPv4 address format")

    elif normalized_type == "AAAA":
        if not _is_ipv6(trimmed):
            raise ValidationError("Invalid IPv6 address format")

    elif normalized_type in ("CNAME", "NS"):
        if not HOSTNAME_REGEX.match(trimmed):
            raise ValidationError(f"Invalid hostname for {normalized_type} record")

    elif normalized_type == "MX":
        if not HOSTNAME_REGEX.match(trimmed):
            raise ValidationError("Invalid mail server hostname")

    elif normalized_type == "TXT":
        if len(trimmed) > MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"TXT record content is too long (max {MAX_CONTENT_LENGTH} characters)"
            )
        if not TXT_CONTENT_REGEX.match(trimmed.replace('"', "")):
            raise ValidationError("TXT record contains invalid characters")

    elif normalized_type == "SRV":
        _validate_srv_content(trimmed)

    elif normalized_type == "CAA":
        if not CAA_REGEX.match(trimmed):
            raise ValidationError("Invalid CAA record format: flag tag value")

    elif len(trimmed) > MAX_CONTENT_LENGTH:
        raise ValidationError("Record content is too long")


def validate_ttl(ttl: Any) -> None:
    """Validate TTL (60 seconds to 7 days inclusive)"""
    value = _as_int(ttl)
    if value is None:
        raise ValidationError("TTL must be a number")

    if value < MIN_TTL:
        raise ValidationError(f"TTL must be at least {MIN_TTL} seconds")

    if value > MAX_TTL:
        raise ValidationError(f"TTL cannot exceed 7 days ({MAX_TTL} seconds)")


def validate_priority(priority: Any) -> None:
    """Validate MX/SRV priority"""
    value = _as_int(priority)
    if value is None:
        raise ValidationError("Priority must be a number")

    if not 0 <= value <= MAX_UINT16:
        raise ValidationError(f"Priority must be between 0 and {MAX_UINT16}")


def _field(record: Union[Mapping[str, Any], Any], name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def validate_dns_record(record: Union[Mapping[str, Any], Any]) -> None:
    """Validate a complete record.

    Accepts a mapping or any object with ``type``, ``name``, ``content``
    and optional ``ttl``/``priority`` attributes (e.g. RecordCreate).
    """
    record_type = _field(record, "type") or ""

    validate_record_name(_field(record, "name"))
    validate_record_content(record_type, _field(record, "content"))

    ttl = _field(record, "ttl")
    if ttl is not None:
        validate_ttl(ttl)

    if record_type.upper() in TYPES_REQUIRING_PRIORITY:
        priority = _field(record, "priority")
        if priority is None:
            raise ValidationError(f"Priority is required for {record_type} records")
        validate_priority(priority)
