"""
Provider adapter registry

Adapters are registered once per ProviderType at import time; callers
resolve them through create_adapter() instead of matching type strings.
"""
import enum
import logging
from typing import Any, Dict, List, Type, Union

from app.core.exceptions import ConfigurationError
from app.providers.alidns import AliDNSAdapter
from app.providers.base import DNSProviderAdapter
from app.providers.cloudflare import CloudflareAdapter
from app.providers.dnspod import DNSPodAdapter

logger = logging.getLogger(__name__)


class ProviderType(str, enum.Enum):
    """Supported DNS hosts"""
    CLOUDFLARE = "cloudflare"
    ALIDNS = "alidns"
    DNSPOD = "dnspod"


_adapters: Dict[ProviderType, Type[DNSProviderAdapter]] = {}


def register_adapter(provider_type: ProviderType, adapter_class: Type[DNSProviderAdapter]) -> None:
    """Register the adapter class for a provider type"""
    _adapters[provider_type] = adapter_class
    logger.debug(f"Registered DNS provider adapter: {provider_type.value}")


def parse_provider_type(value: Union[str, ProviderType]) -> ProviderType:
    """Resolve a stored tag to its ProviderType"""
    try:
        return ProviderType(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise ConfigurationError(f"Unknown provider type: {value}")


def get_adapter_class(provider_type: Union[str, ProviderType]) -> Type[DNSProviderAdapter]:
    """Get the adapter class for a provider type"""
    resolved = parse_provider_type(provider_type)
    if resolved not in _adapters:
        raise ConfigurationError(f"No adapter registered for provider type: {resolved.value}")
    return _adapters[resolved]


def create_adapter(
    provider_type: Union[str, ProviderType],
    credentials: Dict[str, str],
    **kwargs: Any,
) -> DNSProviderAdapter:
    """
    Create an adapter instance.

    Args:
        provider_type: Provider tag (e.g., "cloudflare")
        credentials: Decrypted credential map
        **kwargs: Adapter options (client, timeout)

    Raises:
        ConfigurationError: unknown provider type or missing credentials
    """
    return get_adapter_class(provider_type)(credentials, **kwargs)


def get_available_providers() -> List[Dict[str, Any]]:
    """Self descriptions of every registered provider type"""
    return [_adapters[provider_type].describe() for provider_type in ProviderType if provider_type in _adapters]


def _register_builtin_adapters() -> None:
    register_adapter(ProviderType.CLOUDFLARE, CloudflareAdapter)
    register_adapter(ProviderType.ALIDNS, AliDNSAdapter)
    register_adapter(ProviderType.DNSPOD, DNSPodAdapter)


_register_builtin_adapters()
