"""Error taxonomy shared by the vault, adapters and sync engine"""
from typing import Optional


class DNSHubError(Exception):
    """Base error"""


class ValidationError(DNSHubError):
    """Record input rejected before any network call"""


class ConfigurationError(DNSHubError):
    """Unknown provider type, missing encryption key or invalid settings"""


class DecryptionError(DNSHubError):
    """Stored credential blob could not be decrypted"""


class ProviderAPIError(DNSHubError):
    """Remote provider call failed"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Transport failures, timeouts, throttling and 5xx are worth another read"""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500

    def __str__(self) -> str:
        return self.message
