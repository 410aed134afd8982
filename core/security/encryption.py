"""
Encryption of OAuth tokens and app secrets at rest using Fernet.
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken


class CredentialDecryptionError(ValueError):
    """Raised when a stored token or secret can't be decrypted with the current key."""


class CredentialEncryption:
    """Handle encryption and decryption of stored tokens and secrets."""

    def __init__(self, secret_key: str):
        """
        Initialize with a secret key.

        Args:
            secret_key: Application secret key (hashed to 32 bytes for Fernet)
        """
        key_bytes = hashlib.sha256(secret_key.encode()).digest()
        self.fernet = Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt(self, value: str) -> str:
        """
        Encrypt a string value.

        Args:
            value: Plain text token or secret

        Returns:
            Fernet token as a string, or "" for empty input
        """
        if not value:
            return ""
        return self.fernet.encrypt(value.encode()).decode()

    def decrypt(self, encrypted_value: str) -> str:
        """
        Decrypt an encrypted string value.

        Args:
            encrypted_value: Fernet token produced by encrypt()

        Returns:
            Decrypted plain text value

        Raises:
            CredentialDecryptionError: If the value was encrypted with another key or is corrupt
        """
        if not encrypted_value:
            return ""
        try:
            return self.fernet.decrypt(encrypted_value.encode()).decode()
        except InvalidToken as e:
            raise CredentialDecryptionError("Failed to decrypt credential") from e


@lru_cache(maxsize=8)
def _encryption_for(secret_key: str) -> CredentialEncryption:
    return CredentialEncryption(secret_key)


def encrypt_credential(value: str, secret_key: str) -> str:
    """Encrypt a token or secret with the application key."""
    return _encryption_for(secret_key).encrypt(value)


def decrypt_credential(encrypted_value: str, secret_key: str) -> str:
    """
    Decrypt a token or secret with the application key.

    Raises:
        CredentialDecryptionError: If decryption fails
    """
    return _encryption_for(secret_key).decrypt(encrypted_value)


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask all but the first ``visible`` characters, for audit trails and logs."""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)
