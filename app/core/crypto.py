"""Provider credential vault

Credentials are stored as base64(salt || nonce || tag || ciphertext) where
the AES-256-GCM key is derived per blob from the master key with
PBKDF2-HMAC-SHA256. The key itself is never stored.
"""
import base64
import binascii
import json
import logging
import os
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.config import settings
from app.core.exceptions import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)

SALT_LENGTH = 32
NONCE_LENGTH = 16
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 100000

HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH + AUTH_TAG_LENGTH


class CredentialVault:
    """Encrypts and decrypts provider credential maps"""

    def __init__(self, master_key: Optional[str] = None):
        self._master_key = master_key

    def _get_master_key(self) -> bytes:
        key = self._master_key if self._master_key is not None else settings.CREDENTIALS_ENCRYPTION_KEY
        if not key:
            raise ConfigurationError(
                "CREDENTIALS_ENCRYPTION_KEY environment variable is not set. "
                "Please generate a secure key using: openssl rand -base64 32"
            )
        return key.encode("utf-8")

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=ITERATIONS,
        )
        return kdf.derive(self._get_master_key())

    def encrypt(self, credentials: Dict[str, str]) -> str:
        """Encrypt a credential map into an opaque base64 blob"""
        plaintext = json.dumps(credentials).encode("utf-8")

        salt = os.urandom(SALT_LENGTH)
        nonce = os.urandom(NONCE_LENGTH)
        key = self._derive_key(salt)

        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(nonce, plaintext, None)
        ciphertext, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]

        return base64.b64encode(salt + nonce + auth_tag + ciphertext).decode("ascii")

    def _decrypt_aead(self, blob: str) -> Dict[str, str]:
        combined = base64.b64decode(blob, validate=True)
        if len(combined) < HEADER_LENGTH:
            raise ValueError("Encrypted credentials are too short")

        salt = combined[:SALT_LENGTH]
        nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
        auth_tag = combined[SALT_LENGTH + NONCE_LENGTH:HEADER_LENGTH]
        ciphertext = combined[HEADER_LENGTH:]

        key = self._derive_key(salt)
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + auth_tag, None)
        return _as_credentials(json.loads(plaintext.decode("utf-8")))

    def _decrypt_legacy(self, blob: str) -> Dict[str, str]:
        decoded = base64.b64decode(blob, validate=True).decode("utf-8")
        return _as_credentials(json.loads(decoded))

    def decrypt(self, blob: str) -> Dict[str, str]:
        """Decrypt a blob produced by encrypt().

        Falls back to the legacy plain base64 JSON format; raises
        DecryptionError when neither format matches.
        """
        # Checked up front so a missing key is never reported as corrupt data
        self._get_master_key()

        if is_encrypted_format(blob):
            try:
                return self._decrypt_aead(blob)
            except (InvalidTag, ValueError, TypeError, binascii.Error, UnicodeDecodeError):
                pass

        try:
            credentials = self._decrypt_legacy(blob)
        except (ValueError, TypeError, binascii.Error, UnicodeDecodeError):
            raise DecryptionError("Failed to decrypt credentials: Invalid or corrupted data")

        logger.warning(
            "Legacy base64-encoded credentials detected. "
            "Please re-save the provider to upgrade encryption."
        )
        return credentials


def _as_credentials(data) -> Dict[str, str]:
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ValueError("Credentials must be a JSON object of strings")
    return data


def is_encrypted_format(blob: str) -> bool:
    """Check whether a blob is long enough to use the AES-GCM layout"""
    try:
        return len(base64.b64decode(blob, validate=True)) >= HEADER_LENGTH
    except (ValueError, binascii.Error):
        return False


vault = CredentialVault()


def encrypt_credentials(credentials: Dict[str, str]) -> str:
    """Encrypt credentials with the configured master key"""
    return vault.encrypt(credentials)


def decrypt_credentials(blob: str) -> Dict[str, str]:
    """Decrypt credentials with the configured master key"""
    return vault.decrypt(blob)
