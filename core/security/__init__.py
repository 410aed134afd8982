"""
Security utilities for stored credentials.
"""

from .encryption import (
    CredentialDecryptionError,
    CredentialEncryption,
    decrypt_credential,
    encrypt_credential,
    mask_secret,
)

__all__ = [
    "CredentialEncryption",
    "CredentialDecryptionError",
    "encrypt_credential",
    "decrypt_credential",
    "mask_secret",
]
